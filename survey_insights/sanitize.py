"""Coercion of loosely-typed upstream values into well-typed Python values.

Rows coming back from the remote data source are not trustworthy: numbers
arrive as strings, answers arrive wrapped in ``{"value": ..., "label": ...}``
objects and the occasional ``NaN`` sneaks through. Every boundary-crossing
value goes through one of the helpers below, which never raise: anything
unrepresentable becomes ``None`` (or ``False`` for booleans).
"""
from __future__ import annotations

import json
import math
import numbers
from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Optional

from survey_insights import config

__all__ = [
    "AnswerKind",
    "AnswerValue",
    "resolve_answer",
    "scale_factor",
    "to_boolean",
    "to_integer",
    "to_number",
    "to_satisfaction_scale",
    "to_string",
    "to_string_list",
]

_TRUE_STRINGS = frozenset({"true", "t", "1"})

RATING_TYPES = frozenset({"rating", "scale"})
TEXT_TYPES = frozenset({"text", "textarea", "long_text"})
CHOICE_TYPES = frozenset({"choice", "single_choice", "dropdown"})


def to_number(value: Any) -> Optional[float]:
    """Return *value* as a finite float, or ``None``.

    Accepts real numbers and numeric strings. Booleans, blank strings,
    ``NaN``/``Infinity`` and every other type are rejected.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, numbers.Real):
        try:
            number = float(value)
        except (OverflowError, ValueError):
            return None
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        try:
            number = float(stripped)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def to_integer(value: Any) -> Optional[int]:
    """Truncate :func:`to_number` towards zero."""
    number = to_number(value)
    if number is None:
        return None
    return math.trunc(number)


def to_boolean(value: Any) -> bool:
    """Return ``True`` for ``True``, non-zero numbers and ``"true"/"t"/"1"``."""
    if isinstance(value, bool):
        return value
    if isinstance(value, numbers.Integral):
        return value != 0
    if isinstance(value, numbers.Real):
        return to_number(value) not in (None, 0.0)
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_STRINGS
    return False


def to_string(value: Any) -> Optional[str]:
    """Return a stripped non-empty string or ``None``."""
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return None


def _load_json(value: str) -> Any:
    try:
        return json.loads(value)
    except (TypeError, ValueError):
        return None


def to_string_list(value: Any) -> List[str]:
    """Extract a list of non-empty strings.

    Understands plain lists, lists of ``{"answer_text": ...}`` / ``{"text": ...}``
    objects and JSON-encoded arrays.
    """
    if not value:
        return []
    if isinstance(value, str):
        parsed = _load_json(value)
        if not isinstance(parsed, list):
            return []
        value = parsed
    if not isinstance(value, (list, tuple)):
        return []

    items: List[str] = []
    for item in value:
        if isinstance(item, Mapping):
            item = item.get("answer_text") or item.get("text")
        if isinstance(item, str) and item:
            items.append(item)
    return items


def scale_factor(source_scale_max: Optional[int] = None) -> int:
    """Integer multiplier mapping source-scale scores onto the 1..10 domain."""
    source_max = source_scale_max or config.SOURCE_SCALE_MAX
    if config.SATISFACTION_SCALE_MAX % source_max == 0:
        return config.SATISFACTION_SCALE_MAX // source_max
    return 1


def to_satisfaction_scale(
    value: Optional[float], source_scale_max: Optional[int] = None
) -> Optional[float]:
    """Rescale *value* from the source scale onto the 0-10 satisfaction scale.

    This is the only place the 5-to-10 doubling happens; it must be applied
    exactly once, at ingestion.
    """
    if value is None:
        return None
    source_max = source_scale_max or config.SOURCE_SCALE_MAX
    if source_max == config.SATISFACTION_SCALE_MAX:
        return value
    return value * config.SATISFACTION_SCALE_MAX / source_max


# ---------------------------------------------------------------------------
# Tagged answer values
# ---------------------------------------------------------------------------


class AnswerKind(str, Enum):
    """Shape of a raw answer once resolved."""

    NUMERIC = "numeric"
    TEXT = "text"
    CHOICE = "choice"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class AnswerValue:
    """A raw answer resolved once at ingestion.

    Downstream code switches on :attr:`kind` and reads :attr:`number` or
    :attr:`text`; it never re-inspects :attr:`raw`.
    """

    kind: AnswerKind
    raw: Any
    number: Optional[float] = None
    text: Optional[str] = None


def _is_choice_type(question_type: str) -> bool:
    return question_type in CHOICE_TYPES or question_type.startswith("multiple_choice")


def _unwrap(raw: Any) -> Any:
    if isinstance(raw, Mapping):
        if "value" in raw:
            return raw["value"]
        if "label" in raw:
            return raw["label"]
    return raw


def resolve_answer(raw: Any, question_type: Optional[str]) -> AnswerValue:
    """Classify *raw* for a question of *question_type*."""
    value = _unwrap(raw)
    qtype = (question_type or "").strip().lower()

    if qtype in RATING_TYPES:
        number = to_number(value)
        if number is None:
            return AnswerValue(AnswerKind.UNKNOWN, raw)
        return AnswerValue(AnswerKind.NUMERIC, raw, number=number)

    if _is_choice_type(qtype):
        if isinstance(value, (list, tuple)):
            text = ",".join(str(part) for part in value if part is not None)
        elif isinstance(value, numbers.Real) and not isinstance(value, bool):
            text = str(value)
        else:
            text = value if isinstance(value, str) else None
        text = to_string(text)
        if text is None:
            return AnswerValue(AnswerKind.UNKNOWN, raw)
        return AnswerValue(AnswerKind.CHOICE, raw, text=text)

    if qtype in TEXT_TYPES:
        text = to_string(value)
        if text is None:
            return AnswerValue(AnswerKind.UNKNOWN, raw)
        return AnswerValue(AnswerKind.TEXT, raw, text=text)

    number = to_number(value)
    if number is not None:
        return AnswerValue(AnswerKind.NUMERIC, raw, number=number)
    text = to_string(value)
    if text is not None:
        return AnswerValue(AnswerKind.TEXT, raw, text=text)
    return AnswerValue(AnswerKind.UNKNOWN, raw)
