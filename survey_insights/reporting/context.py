"""Context dataclass for rendering satisfaction reports.

This module defines `ReportContext`, a typed container that holds all
values expected by the Jinja2 template located in
`survey_insights/reporting/templates/report.md.j2`.

Keeping context building apart from template rendering lets the numbers be
unit-tested without touching template strings.
"""
from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from datetime import datetime as _dt
from datetime import timezone as _tz
from typing import Any, Dict, List, Optional

from survey_insights import config
from survey_insights.aggregation.weighting import round_half_up
from survey_insights.dashboard import DashboardView

__all__ = [
    "CategoryLine",
    "ReportContext",
    "build_report_context",
    "format_score",
]

def format_score(value: Optional[float], *, digits: int = 1, fallback: str = "-") -> str:
    """Format a satisfaction value; missing data renders as *fallback*."""
    if value is None:
        return fallback
    return f"{round_half_up(value, digits):.{digits}f}"


@dataclass(slots=True)
class CategoryLine:
    name: str
    average: str
    question_count: int


@dataclass(slots=True)
class ReportContext:
    """Container with all fields used by the report template."""

    date: str  # ISO-8601 date string (UTC)
    title: str
    includes_test_data: bool

    # Headline numbers
    total_surveys: int
    total_responses: int
    active_surveys: int
    avg_satisfaction: str
    satisfaction_percentage: str
    avg_responses_per_survey: int

    trend: List[Dict[str, Any]] = field(default_factory=list)
    courses: List[Dict[str, Any]] = field(default_factory=list)
    rating_bands: List[Dict[str, Any]] = field(default_factory=list)
    categories: List[CategoryLine] = field(default_factory=list)
    comments: List[str] = field(default_factory=list)

    version: str = "1"

    def to_dict(self) -> Dict[str, Any]:  # noqa: D401 – simple helper
        """Return a *plain* ``dict`` (recursively) for Jinja rendering."""
        return asdict(self)

    __call__ = to_dict


def build_report_context(view: DashboardView, *, title: str = "Satisfaction report") -> ReportContext:
    """Convert a :class:`DashboardView` into :class:`ReportContext`."""
    summary = view.summary
    insights = view.question_insights

    percentage = summary.satisfaction_percentage
    return ReportContext(
        date=_dt.now(tz=_tz.utc).strftime("%Y-%m-%d"),
        title=title,
        includes_test_data=view.uses_test_data,
        total_surveys=summary.total_surveys,
        total_responses=summary.total_responses,
        active_surveys=summary.active_surveys,
        avg_satisfaction=format_score(summary.avg_satisfaction),
        satisfaction_percentage=f"{percentage}%" if percentage is not None else "-",
        avg_responses_per_survey=summary.avg_responses_per_survey,
        trend=[
            {
                "period": point.period,
                "average": format_score(point.average),
                "responses": point.responses,
                "course_count": point.course_count,
            }
            for point in view.trend
        ],
        courses=[
            {
                "course": item.course,
                "average": format_score(item.avg_satisfaction),
                "responses": item.responses,
                "surveys": item.surveys,
            }
            for item in view.course_breakdown[: config.REPORT_MAX_COURSES]
        ],
        rating_bands=[
            {"name": band.name, "value": band.value, "percentage": band.percentage}
            for band in view.rating_distribution
        ],
        categories=[
            CategoryLine(
                name=name,
                average=format_score(category.average),
                question_count=len(category.questions),
            )
            for name, category in insights.categories.items()
        ],
        comments=insights.text_responses[: config.REPORT_MAX_COMMENTS],
        version=os.getenv("REPORT_VERSION", "0.1"),
    )
