"""Tests for dashboard filtering and the one-call rollup view."""
from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from survey_insights.dashboard import (
    LATEST,
    DashboardLoader,
    StatsFilters,
    apply_filters,
    available_courses,
    available_rounds,
    available_years,
    build_dashboard,
    has_data,
)
from survey_insights.exceptions import DataSourceError
from survey_insights.models import InstructorStatsRecord, MetricsSet


def _record(year, round_, course, *, real=None, test=None):
    return InstructorStatsRecord(
        education_year=year,
        education_round=round_,
        course_name=course,
        real=real or MetricsSet(),
        test=test or MetricsSet(),
    )


@pytest.fixture()
def records():
    return [
        _record(2023, 3, "Core (odd group)", real=MetricsSet(response_count=10, survey_count=1, avg_overall=8)),
        _record(2024, 1, "Core (even group)", real=MetricsSet(response_count=20, survey_count=2, avg_overall=9)),
        _record(
            2024,
            2,
            "Data",
            real=MetricsSet(response_count=5, survey_count=1, avg_overall=6),
            test=MetricsSet(response_count=5, survey_count=1, avg_overall=2),
        ),
        _record(2024, 2, "Core", real=MetricsSet(survey_count=1, active_survey_count=1)),
    ]


def _keys(records):
    return [(r.education_year, r.education_round, r.course_name) for r in records]


def test_no_filters_keep_everything(records):
    assert apply_filters(records, StatsFilters()) == records


def test_year_filter(records):
    assert [r.education_year for r in apply_filters(records, StatsFilters(year=2024))] == [2024] * 3


def test_latest_round_is_highest_round_of_highest_year(records):
    assert _keys(apply_filters(records, StatsFilters(round=LATEST))) == [
        (2024, 2, "Data"),
        (2024, 2, "Core"),
    ]


def test_course_filter_compares_normalized_names(records):
    filtered = apply_filters(records, StatsFilters(course="Core (odd group)"))
    assert [r.course_name for r in filtered] == ["Core (odd group)", "Core (even group)", "Core"]


def test_latest_applies_after_course_filter(records):
    filtered = apply_filters(records, StatsFilters(year=2023, round=LATEST, course="Core"))
    assert _keys(filtered) == [(2023, 3, "Core (odd group)")]


def test_available_options(records):
    assert available_years(records) == [2024, 2023]
    assert available_rounds(records, StatsFilters(year=2024)) == [1, 2]
    assert available_courses(records) == ["Core", "Data"]
    assert available_courses(records, StatsFilters(year=2024, round=1)) == ["Core"]


def test_has_data_respects_test_flag():
    only_test = [_record(2024, 1, "X", test=MetricsSet(response_count=3))]
    assert has_data(only_test, include_test_data=False) is False
    assert has_data(only_test, include_test_data=True) is True
    assert has_data([], include_test_data=True) is False


def test_build_dashboard_with_and_without_test_data(records):
    filters = StatsFilters(year=2024, round=2)

    real = build_dashboard(records, include_test_data=False, filters=filters)
    mixed = build_dashboard(records, include_test_data=True, filters=filters)

    assert real.summary.total_responses == 5
    assert real.summary.avg_satisfaction == 6.0
    assert real.uses_test_data is False
    assert mixed.summary.total_responses == 10
    assert mixed.summary.avg_satisfaction == 4.0
    assert mixed.uses_test_data is True
    assert [row.course for row in mixed.course_breakdown] == ["Data", "Core"]
    assert mixed.available_years == [2024, 2023]
    assert mixed.has_data is True


def test_build_dashboard_trend_spans_periods(records):
    view = build_dashboard(records, include_test_data=False)
    assert [p.period for p in view.trend] == ["2023-3", "2024-1", "2024-2"]
    assert view.trend[-1].course_count == 2


def test_loader_keeps_records_on_failure(records):
    repository = MagicMock()
    repository.fetch_stats.return_value = records
    loader = DashboardLoader(repository)

    assert loader.load("inst-1") is True
    repository.fetch_stats.assert_called_once_with("inst-1")

    repository.fetch_stats.side_effect = DataSourceError("Failed to fetch instructor stats: down")
    assert loader.load("inst-1") is False
    assert loader.error == "Failed to fetch instructor stats: down"
    assert loader.records == records

    view = loader.view(include_test_data=False, filters=StatsFilters(year=2023))
    assert view.summary.total_responses == 10


def test_loader_clears_error_after_success(records):
    repository = MagicMock()
    repository.fetch_stats.side_effect = [RuntimeError(), records]
    loader = DashboardLoader(repository)

    loader.load()
    assert loader.error == "Failed to load survey statistics."
    loader.load()
    assert loader.error is None
