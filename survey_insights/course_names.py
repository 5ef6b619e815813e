"""Canonical course names used as grouping keys.

Course instances are labelled per cohort ("BS Advanced (odd group)",
"BS Advanced 3 group", "과정 1차-2일차 3조" ...). Those variants are
administratively the same course, so rollups group on the label with the
cohort/sub-group markers stripped.
"""
from __future__ import annotations

import re
from typing import List, Optional, Pattern, Tuple

__all__ = ["normalize_course_name"]

_I = re.IGNORECASE

# Ordered (pattern, replacement) pairs; order matters.
_RULES: List[Tuple[Pattern[str], str]] = [
    # Cohort parity markers: "(홀수조)", "(odd group)"
    (re.compile(r"\((?:홀수조|짝수조)\)"), ""),
    (re.compile(r"\(\s*(?:odd|even)\s+group\s*\)", _I), ""),
    # Numeric sub-group tags: "1/2조", "1/2 group"
    (re.compile(r"\b\d{1,2}/\d{1,2}조\b"), ""),
    (re.compile(r"\b\d{1,2}/\d{1,2}\s*group\b", _I), ""),
    # Group suffix attached to a round-day token: "1차-2일차 3조" -> "1차-2일차"
    (re.compile(r"(\d+차-\d+일차)\s+\d{1,2}조"), r"\1"),
    (re.compile(r"(\d+차-\d+일차)\s+(?:홀수조|짝수조)"), r"\1"),
    (re.compile(r"(\bround\s*\d+-day\s*\d+)\s+(?:group\s*\d{1,2}|\d{1,2}\s*group)\b", _I), r"\1"),
    (re.compile(r"(\bround\s*\d+-day\s*\d+)\s+(?:odd|even)\s+group\b", _I), r"\1"),
    # Bare group numbers: "3조", "2반", "3 group", "group 3"
    (re.compile(r"\b\d{1,2}\s*(?:조|반)\b"), ""),
    (re.compile(r"\b(?:\d{1,2}\s*group|group\s*\d{1,2})\b", _I), ""),
    # Parity prefixes joined with a hyphen: "홀수조-", "odd group-"
    (re.compile(r"(?:홀수조|짝수조)-"), ""),
    (re.compile(r"\b(?:odd|even)\s+group-", _I), ""),
    # Cleanup
    (re.compile(r"\s{2,}"), " "),
    (re.compile(r"-{2,}"), "-"),
]


def _apply_rules(name: str) -> str:
    for pattern, replacement in _RULES:
        name = pattern.sub(replacement, name)
    return name.strip()


def normalize_course_name(name: Optional[str]) -> Optional[str]:
    """Return the grouping key for *name* or ``None`` for blank input.

    Rules are re-applied until the string stops changing, so the result is a
    fixed point: ``normalize_course_name(normalize_course_name(x))`` equals
    ``normalize_course_name(x)``. Every rule only removes or collapses
    characters, so the loop terminates.
    """
    if not name:
        return None

    normalized = str(name)
    while True:
        updated = _apply_rules(normalized)
        if updated == normalized:
            break
        normalized = updated

    return normalized or None
