"""Reduce a collection of :class:`CombinedMetrics` into dashboard rollups.

Every function here is pure and takes metrics already combined under one
``include_test_data`` flag (see :func:`combine_records`). Averages always go
through :func:`weighted_average` with response (or answer) counts as weights,
so a survey only counts as much as the responses it produced.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from survey_insights.aggregation.distribution import sum_distributions
from survey_insights.aggregation.questions import dedupe_texts, merge_question_stats
from survey_insights.aggregation.weighting import (
    round_half_up,
    satisfaction_percentage,
    weighted_average,
)
from survey_insights.models import (
    CategorySummary,
    CombinedMetrics,
    CourseBreakdownItem,
    QuestionInsights,
    QuestionStat,
    RatingBucket,
    SummaryMetrics,
    TrendPoint,
)

__all__ = [
    "RATING_BANDS",
    "aggregate_question_stats",
    "build_course_breakdown",
    "build_rating_distribution",
    "build_trend_series",
    "calculate_summary_metrics",
    "category_for",
]

# (label, lowest score, highest score), both inclusive
RATING_BANDS: Tuple[Tuple[str, int, int], ...] = (
    ("1-4", 1, 4),
    ("5-6", 5, 6),
    ("7-8", 7, 8),
    ("9-10", 9, 10),
)


def _round_average(average: Optional[float]) -> Optional[float]:
    return None if average is None else round_half_up(average, 1)


def calculate_summary_metrics(metrics: Sequence[CombinedMetrics]) -> SummaryMetrics:
    """Global totals and the response-weighted overall satisfaction."""
    total_responses = sum(item.response_count for item in metrics)
    total_surveys = sum(item.survey_count for item in metrics)
    active_surveys = sum(item.active_survey_count for item in metrics)
    average = weighted_average((item.avg_overall, item.response_count) for item in metrics)

    return SummaryMetrics(
        total_surveys=total_surveys,
        total_responses=total_responses,
        active_surveys=active_surveys,
        avg_satisfaction=_round_average(average),
        satisfaction_percentage=satisfaction_percentage(average),
        avg_responses_per_survey=(
            round_half_up(total_responses / total_surveys) if total_surveys > 0 else 0
        ),
    )


@dataclass
class _Bucket:
    responses: int = 0
    surveys: int = 0
    averages: List[Tuple[Optional[float], float]] = field(default_factory=list)
    courses: Dict[str, None] = field(default_factory=dict)

    def add(self, item: CombinedMetrics) -> None:
        self.responses += item.response_count
        self.surveys += item.survey_count
        self.averages.append((item.avg_overall, item.response_count))

    def average(self) -> Optional[float]:
        return weighted_average(self.averages)


def build_trend_series(metrics: Sequence[CombinedMetrics]) -> List[TrendPoint]:
    """One point per (education year, education round), oldest first."""
    buckets: Dict[Tuple[int, int], _Bucket] = {}
    for item in metrics:
        bucket = buckets.setdefault((item.education_year, item.education_round), _Bucket())
        bucket.add(item)
        if item.normalized_course_name:
            bucket.courses.setdefault(item.normalized_course_name, None)

    points: List[TrendPoint] = []
    for (year, round_), bucket in sorted(buckets.items()):
        average = bucket.average()
        points.append(
            TrendPoint(
                period=f"{year}-{round_}",
                year=year,
                round=round_,
                average=average,
                responses=bucket.responses,
                satisfaction=satisfaction_percentage(average),
                courses=list(bucket.courses),
            )
        )
    return points


def build_course_breakdown(metrics: Sequence[CombinedMetrics]) -> List[CourseBreakdownItem]:
    """Per normalized course, best rated first.

    Records whose course name normalizes to ``None`` are left out. Ties keep
    input order; courses without an average sort last.
    """
    buckets: Dict[str, _Bucket] = {}
    for item in metrics:
        if not item.normalized_course_name:
            continue
        buckets.setdefault(item.normalized_course_name, _Bucket()).add(item)

    rows: List[CourseBreakdownItem] = []
    for course, bucket in buckets.items():
        average = bucket.average()
        rows.append(
            CourseBreakdownItem(
                course=course,
                avg_satisfaction=_round_average(average),
                responses=bucket.responses,
                surveys=bucket.surveys,
                satisfaction_percentage=satisfaction_percentage(average),
            )
        )

    rows.sort(
        key=lambda row: (row.avg_satisfaction is None, -(row.avg_satisfaction or 0.0))
    )
    return rows


def build_rating_distribution(metrics: Sequence[CombinedMetrics]) -> List[RatingBucket]:
    """Re-bucket the merged 1..10 distribution into four bands."""
    distribution = sum_distributions(item.rating_distribution for item in metrics)
    total = sum(distribution.values())

    buckets: List[RatingBucket] = []
    for name, low, high in RATING_BANDS:
        value = sum(distribution[score] for score in range(low, high + 1))
        percentage = round_half_up(value / total * 100) if total > 0 else 0
        buckets.append(RatingBucket(name=name, value=value, percentage=percentage))
    return buckets


def category_for(satisfaction_type: Optional[str]) -> str:
    """Map a question's satisfaction type onto subject/instructor/operation."""
    if satisfaction_type == "instructor":
        return "instructor"
    if satisfaction_type == "operation":
        return "operation"
    return "subject"


def _category_summary(questions: List[QuestionStat]) -> CategorySummary:
    average = weighted_average((q.average, q.total_answers) for q in questions)
    return CategorySummary(questions=questions, average=_round_average(average))


def aggregate_question_stats(metrics: Sequence[CombinedMetrics]) -> QuestionInsights:
    """Merge questions across *metrics* and split them by satisfaction category."""
    questions = merge_question_stats([item.question_stats for item in metrics])

    grouped: Dict[str, List[QuestionStat]] = {
        "subject": [],
        "instructor": [],
        "operation": [],
    }
    for question in questions:
        grouped[category_for(question.satisfaction_type)].append(question)

    return QuestionInsights(
        questions=questions,
        subject=_category_summary(grouped["subject"]),
        instructor=_category_summary(grouped["instructor"]),
        operation=_category_summary(grouped["operation"]),
        text_responses=dedupe_texts(*(item.text_responses for item in metrics)),
    )
