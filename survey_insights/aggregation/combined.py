"""Merge the real and test partitions of one record into :class:`CombinedMetrics`."""

from __future__ import annotations

from typing import Iterable, List, Sequence

from survey_insights.aggregation.distribution import sum_distributions
from survey_insights.aggregation.questions import dedupe_texts, merge_question_stats
from survey_insights.aggregation.weighting import weighted_average
from survey_insights.course_names import normalize_course_name
from survey_insights.models import CombinedMetrics, InstructorStatsRecord, MetricsSet

__all__ = ["build_combined_metrics", "combine_records", "source_partitions"]


def source_partitions(record: InstructorStatsRecord, include_test_data: bool) -> List[MetricsSet]:
    """Return the partitions that contribute under *include_test_data*."""
    if include_test_data:
        return [record.real, record.test]
    return [record.real]


def _category_average(partitions: Sequence[MetricsSet], attribute: str):
    return weighted_average(
        (getattr(partition, attribute), partition.response_count) for partition in partitions
    )


def build_combined_metrics(
    record: InstructorStatsRecord, include_test_data: bool
) -> CombinedMetrics:
    """Return *record* as one metrics object.

    The record is read-only here; every list and distribution on the result
    is freshly built.
    """
    partitions = source_partitions(record, include_test_data)

    question_stats = merge_question_stats([p.question_stats for p in partitions])
    text_responses = dedupe_texts(
        *(p.text_responses for p in partitions),
        *(stat.text_answers for stat in question_stats),
    )

    uses_test = include_test_data and not record.test.is_empty()

    return CombinedMetrics(
        source="test" if uses_test else "real",
        response_count=sum(p.response_count for p in partitions),
        survey_count=sum(p.survey_count for p in partitions),
        active_survey_count=sum(p.active_survey_count for p in partitions),
        text_response_count=sum(p.text_response_count for p in partitions),
        avg_overall=_category_average(partitions, "avg_overall"),
        avg_course=_category_average(partitions, "avg_course"),
        avg_instructor=_category_average(partitions, "avg_instructor"),
        avg_operation=_category_average(partitions, "avg_operation"),
        rating_distribution=sum_distributions(p.rating_distribution for p in partitions),
        question_stats=question_stats,
        text_responses=text_responses,
        education_year=record.education_year,
        education_round=record.education_round,
        course_name=record.course_name,
        normalized_course_name=normalize_course_name(record.course_name),
    )


def combine_records(
    records: Iterable[InstructorStatsRecord], include_test_data: bool
) -> List[CombinedMetrics]:
    """Map :func:`build_combined_metrics` over *records* with a fixed flag."""
    return [build_combined_metrics(record, include_test_data) for record in records]
