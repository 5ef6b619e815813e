"""Instructor dashboard: record filtering and every rollup in one call.

Records are fetched once; views are recomputed from the same immutable list
for any ``include_test_data`` value and filter combination.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from survey_insights.aggregation.combined import combine_records
from survey_insights.aggregation.rollups import (
    aggregate_question_stats,
    build_course_breakdown,
    build_rating_distribution,
    build_trend_series,
    calculate_summary_metrics,
)
from survey_insights.course_names import normalize_course_name
from survey_insights.models import (
    CombinedMetrics,
    CourseBreakdownItem,
    InstructorStatsRecord,
    QuestionInsights,
    RatingBucket,
    SummaryMetrics,
    TrendPoint,
)
from survey_insights.repositories.instructor_stats import InstructorStatsRepository

logger = logging.getLogger(__name__)

__all__ = [
    "ALL",
    "LATEST",
    "DashboardLoader",
    "DashboardView",
    "StatsFilters",
    "apply_filters",
    "available_courses",
    "available_rounds",
    "available_years",
    "build_dashboard",
    "has_data",
]

ALL = "all"
LATEST = "latest"

DEFAULT_ERROR_MESSAGE = "Failed to load survey statistics."


@dataclass(frozen=True)
class StatsFilters:
    """Year/round/course selection; ``round`` also accepts ``"latest"``."""

    year: Union[int, str] = ALL
    round: Union[int, str] = ALL
    course: str = ALL


def _latest_round(records: Sequence[InstructorStatsRecord]) -> List[InstructorStatsRecord]:
    if not records:
        return []
    max_year = max(record.education_year for record in records)
    in_year = [record for record in records if record.education_year == max_year]
    max_round = max(record.education_round for record in in_year)
    return [record for record in in_year if record.education_round == max_round]


def _filter_year_round(
    records: Sequence[InstructorStatsRecord], filters: StatsFilters
) -> List[InstructorStatsRecord]:
    filtered = list(records)
    if filters.year != ALL:
        filtered = [r for r in filtered if r.education_year == filters.year]
    if filters.round == LATEST:
        filtered = _latest_round(filtered)
    elif filters.round != ALL:
        filtered = [r for r in filtered if r.education_round == filters.round]
    return filtered


def apply_filters(
    records: Sequence[InstructorStatsRecord], filters: StatsFilters
) -> List[InstructorStatsRecord]:
    """Return the records matching *filters*.

    The course filter compares normalized names, and ``latest`` picks the
    highest round of the highest year after the year and course filters.
    """
    filtered = list(records)
    if filters.year != ALL:
        filtered = [r for r in filtered if r.education_year == filters.year]
    if filters.course != ALL:
        wanted = normalize_course_name(filters.course)
        filtered = [r for r in filtered if normalize_course_name(r.course_name) == wanted]
    return _filter_year_round(filtered, StatsFilters(round=filters.round))


def available_years(records: Sequence[InstructorStatsRecord]) -> List[int]:
    return sorted({record.education_year for record in records}, reverse=True)


def available_rounds(
    records: Sequence[InstructorStatsRecord], filters: StatsFilters = StatsFilters()
) -> List[int]:
    base = _filter_year_round(records, StatsFilters(year=filters.year))
    return sorted({record.education_round for record in base})


def available_courses(
    records: Sequence[InstructorStatsRecord], filters: StatsFilters = StatsFilters()
) -> List[str]:
    base = _filter_year_round(records, StatsFilters(year=filters.year, round=filters.round))
    courses = {normalize_course_name(record.course_name) for record in base}
    return sorted(course for course in courses if course)


def has_data(records: Sequence[InstructorStatsRecord], include_test_data: bool) -> bool:
    """True when any record has responses or assigned/active surveys."""
    for record in records:
        partitions = [record.real, record.test] if include_test_data else [record.real]
        if any(
            p.response_count > 0
            or p.text_response_count > 0
            or p.survey_count > 0
            or p.active_survey_count > 0
            for p in partitions
        ):
            return True
    return False


@dataclass(slots=True)
class DashboardView:
    """Everything a dashboard page renders, computed from one record set."""

    include_test_data: bool
    filters: StatsFilters
    records: List[InstructorStatsRecord]
    metrics: List[CombinedMetrics]
    summary: SummaryMetrics
    trend: List[TrendPoint]
    course_breakdown: List[CourseBreakdownItem]
    rating_distribution: List[RatingBucket]
    question_insights: QuestionInsights
    available_years: List[int] = field(default_factory=list)
    available_rounds: List[int] = field(default_factory=list)
    available_courses: List[str] = field(default_factory=list)
    has_data: bool = False

    @property
    def uses_test_data(self) -> bool:
        """True when any displayed number includes test responses."""
        return any(item.source == "test" for item in self.metrics)


def build_dashboard(
    records: Sequence[InstructorStatsRecord],
    *,
    include_test_data: bool,
    filters: StatsFilters = StatsFilters(),
) -> DashboardView:
    """Filter *records* and compute every rollup under *include_test_data*."""
    filtered = apply_filters(records, filters)
    metrics = combine_records(filtered, include_test_data)

    return DashboardView(
        include_test_data=include_test_data,
        filters=filters,
        records=filtered,
        metrics=metrics,
        summary=calculate_summary_metrics(metrics),
        trend=build_trend_series(metrics),
        course_breakdown=build_course_breakdown(metrics),
        rating_distribution=build_rating_distribution(metrics),
        question_insights=aggregate_question_stats(metrics),
        available_years=available_years(records),
        available_rounds=available_rounds(records, filters),
        available_courses=available_courses(records, filters),
        has_data=has_data(filtered, include_test_data),
    )


class DashboardLoader:
    """Fetch records once and serve views; failures become an ``error`` string."""

    def __init__(self, repository: InstructorStatsRepository) -> None:
        self._repository = repository
        self.records: List[InstructorStatsRecord] = []
        self.error: Optional[str] = None

    def load(self, instructor_id: Optional[str] = None) -> bool:
        """Fetch records for *instructor_id*; keeps the previous records on failure."""
        try:
            records = self._repository.fetch_stats(instructor_id)
        except Exception as exc:  # noqa: BLE001 – surfaced as error message
            self.error = str(exc) or DEFAULT_ERROR_MESSAGE
            logger.warning("Loading instructor stats failed: %s", exc)
            return False
        self.records = records
        self.error = None
        logger.debug("Loaded %d stats records", len(records))
        return True

    def view(
        self, *, include_test_data: bool, filters: StatsFilters = StatsFilters()
    ) -> DashboardView:
        return build_dashboard(self.records, include_test_data=include_test_data, filters=filters)
