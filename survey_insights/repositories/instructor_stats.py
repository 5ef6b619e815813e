"""Ingestion of raw ``instructor_survey_stats`` rows.

The remote query is an opaque callable: it receives a dict of filter
parameters and returns an iterable of row mappings. Everything it returns is
passed through :mod:`survey_insights.sanitize` before it reaches the
aggregation code.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional

from survey_insights import config
from survey_insights.aggregation.distribution import parse_distribution
from survey_insights.exceptions import DataSourceError
from survey_insights.models import InstructorStatsRecord, MetricsSet, QuestionStat
from survey_insights.sanitize import (
    scale_factor,
    to_integer,
    to_number,
    to_satisfaction_scale,
    to_string,
    to_string_list,
)

logger = logging.getLogger(__name__)

__all__ = [
    "InstructorStatsRepository",
    "parse_metrics",
    "parse_question_stats",
    "parse_rows",
    "transform_row",
]

StatsQuery = Callable[[Dict[str, Any]], Optional[Iterable[Mapping[str, Any]]]]

_PARTITION_KEYS = {
    "real": {
        "avg_overall": "avg_overall_satisfaction",
        "avg_course": "avg_course_satisfaction",
        "avg_instructor": "avg_instructor_satisfaction",
        "avg_operation": "avg_operation_satisfaction",
        "rating_distribution": "rating_distribution",
        "question_stats": "question_stats",
        "text_responses": "text_responses",
        "response_count": "response_count",
        "survey_count": "survey_count",
        "active_survey_count": "active_survey_count",
        "text_response_count": "text_response_count",
    },
}
_PARTITION_KEYS["test"] = {
    attribute: f"test_{key}" for attribute, key in _PARTITION_KEYS["real"].items()
}


def _count(value: Any) -> int:
    number = to_integer(value)
    return number if number is not None and number > 0 else 0


def _string(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _json_list(value: Any) -> List[Any]:
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return []
    return list(value) if isinstance(value, list) else []


def parse_question_stats(value: Any, *, source_scale_max: int) -> List[QuestionStat]:
    """Parse a raw (possibly JSON-encoded) list of question stats."""
    stats: List[QuestionStat] = []
    for item in _json_list(value):
        if not isinstance(item, Mapping):
            continue
        stats.append(
            QuestionStat(
                question_id=_string(item.get("question_id")),
                question_text=_string(item.get("question_text")),
                question_type=_string(item.get("question_type")),
                satisfaction_type=to_string(item.get("satisfaction_type")),
                order_index=to_integer(item.get("order_index")),
                total_answers=_count(item.get("total_answers")),
                average=to_satisfaction_scale(to_number(item.get("average")), source_scale_max),
                rating_distribution=parse_distribution(
                    item.get("rating_distribution"),
                    scale_factor=scale_factor(source_scale_max),
                ),
                text_answers=to_string_list(item.get("text_answers")),
            )
        )
    return stats


def parse_metrics(row: Mapping[str, Any], prefix: str, *, source_scale_max: int) -> MetricsSet:
    """Build the *prefix* (``"real"`` or ``"test"``) partition of *row*."""
    keys = _PARTITION_KEYS[prefix]

    def _avg(attribute: str) -> Optional[float]:
        return to_satisfaction_scale(to_number(row.get(keys[attribute])), source_scale_max)

    return MetricsSet(
        response_count=_count(row.get(keys["response_count"])),
        survey_count=_count(row.get(keys["survey_count"])),
        active_survey_count=_count(row.get(keys["active_survey_count"])),
        text_response_count=_count(row.get(keys["text_response_count"])),
        avg_overall=_avg("avg_overall"),
        avg_course=_avg("avg_course"),
        avg_instructor=_avg("avg_instructor"),
        avg_operation=_avg("avg_operation"),
        rating_distribution=parse_distribution(
            row.get(keys["rating_distribution"]),
            scale_factor=scale_factor(source_scale_max),
        ),
        question_stats=parse_question_stats(
            row.get(keys["question_stats"]), source_scale_max=source_scale_max
        ),
        text_responses=to_string_list(row.get(keys["text_responses"])),
    )


def transform_row(
    row: Any, *, source_scale_max: Optional[int] = None
) -> Optional[InstructorStatsRecord]:
    """Convert one raw row, or return ``None`` when it is not a mapping."""
    if not isinstance(row, Mapping):
        return None
    scale = source_scale_max or config.SOURCE_SCALE_MAX

    survey_ids = row.get("survey_ids")
    return InstructorStatsRecord(
        education_year=to_integer(row.get("education_year")) or 0,
        education_round=to_integer(row.get("education_round")) or 0,
        course_name=to_string(row.get("course_name")),
        real=parse_metrics(row, "real", source_scale_max=scale),
        test=parse_metrics(row, "test", source_scale_max=scale),
        instructor_id=_string(row.get("instructor_id")),
        instructor_name=to_string(row.get("instructor_name")),
        survey_ids=[sid for sid in survey_ids if isinstance(sid, str)]
        if isinstance(survey_ids, list)
        else [],
        last_response_at=to_string(row.get("last_response_at")),
    )


def parse_rows(
    rows: Optional[Iterable[Any]], *, source_scale_max: Optional[int] = None
) -> List[InstructorStatsRecord]:
    """Transform every usable row; malformed rows are dropped and logged."""
    records: List[InstructorStatsRecord] = []
    for index, row in enumerate(rows or []):
        record = transform_row(row, source_scale_max=source_scale_max)
        if record is None:
            logger.debug("Dropping malformed stats row #%d: %r", index, row)
            continue
        records.append(record)
    return records


class InstructorStatsRepository:
    """Non-paged aggregate path: fetch every stats record for a filter set."""

    TABLE = "instructor_survey_stats"

    def __init__(self, query: StatsQuery, *, source_scale_max: Optional[int] = None) -> None:
        self._query = query
        self._source_scale_max = source_scale_max

    def fetch_stats(self, instructor_id: Optional[str] = None) -> List[InstructorStatsRecord]:
        """Return records ordered newest year/round first, then by course.

        Raises
        ------
        DataSourceError
            If the remote call fails or does not return a list of rows.
        """
        params: Dict[str, Any] = {
            "table": self.TABLE,
            "order": [
                ("education_year", "desc"),
                ("education_round", "desc"),
                ("course_name", "asc"),
            ],
        }
        if instructor_id:
            params["instructor_id"] = instructor_id

        try:
            rows = self._query(params)
        except DataSourceError:
            raise
        except Exception as exc:  # noqa: BLE001 – wrap any transport failure
            raise DataSourceError(f"Failed to fetch instructor stats: {exc}") from exc

        if rows is not None and (
            isinstance(rows, (str, bytes, Mapping)) or not hasattr(rows, "__iter__")
        ):
            raise DataSourceError("Instructor stats query returned an unexpected payload.")

        return parse_rows(rows, source_scale_max=self._source_scale_max)
