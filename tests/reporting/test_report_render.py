"""Tests for markdown report rendering."""
from __future__ import annotations

from report_fixtures import empty_view, sample_view

from survey_insights.reporting.render import render_report


def test_render_contains_sections() -> None:
    report = render_report(sample_view(), title="Kim's report")

    assert report.startswith("# Kim's report (")
    assert "## Summary" in report
    assert "| 2 | 1 | 10 | 5 | 8.3 (83%) |" in report
    assert "- **instructor**: 8.5 (1 questions)" in report
    assert "| 2024-1 | 8.3 | 10 | 1 |" in report
    assert "| Data Course | 8.3 | 10 | 2 |" in report
    assert "- 9-10: 6 (60%)" in report
    assert "> comment 1" in report
    assert "Includes test responses" not in report


def test_render_discloses_test_data() -> None:
    assert "> Includes test responses." in render_report(sample_view(include_test_data=True))


def test_render_empty_view_skips_optional_sections() -> None:
    report = render_report(empty_view())
    assert "## Trend" not in report
    assert "## Courses" not in report
    assert "## Comments" not in report
    assert "## Rating distribution" in report
