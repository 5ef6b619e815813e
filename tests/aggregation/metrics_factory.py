"""Builders shared by the aggregation tests."""
from __future__ import annotations

from typing import Dict, Optional

from survey_insights.aggregation.distribution import empty_distribution
from survey_insights.models import CombinedMetrics, InstructorStatsRecord, MetricsSet, QuestionStat


def make_distribution(counts: Optional[Dict[int, int]] = None):
    distribution = empty_distribution()
    distribution.update(counts or {})
    return distribution


def make_partition(**kwargs) -> MetricsSet:
    if "rating_distribution" in kwargs:
        kwargs["rating_distribution"] = make_distribution(kwargs["rating_distribution"])
    return MetricsSet(**kwargs)


def make_record(year=2024, round_=1, course="Core", *, real=None, test=None) -> InstructorStatsRecord:
    return InstructorStatsRecord(
        education_year=year,
        education_round=round_,
        course_name=course,
        real=real or MetricsSet(),
        test=test or MetricsSet(),
        instructor_id="inst-1",
    )


def make_metrics(
    year=2024,
    round_=1,
    course: Optional[str] = "Core",
    *,
    responses=0,
    surveys=0,
    active=0,
    avg: Optional[float] = None,
    distribution: Optional[Dict[int, int]] = None,
    questions=(),
    texts=(),
) -> CombinedMetrics:
    return CombinedMetrics(
        source="real",
        response_count=responses,
        survey_count=surveys,
        active_survey_count=active,
        text_response_count=len(texts),
        avg_overall=avg,
        avg_course=None,
        avg_instructor=None,
        avg_operation=None,
        rating_distribution=make_distribution(distribution),
        question_stats=list(questions),
        text_responses=list(texts),
        education_year=year,
        education_round=round_,
        course_name=course,
        normalized_course_name=course,
    )


def make_question(question_id="q1", **kwargs) -> QuestionStat:
    return QuestionStat(question_id=question_id, **kwargs)
