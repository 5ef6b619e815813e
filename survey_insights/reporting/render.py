"""Render satisfaction reports using Jinja2 templates."""
from __future__ import annotations

import logging
from pathlib import Path

from jinja2 import Environment, FileSystemLoader

from survey_insights.dashboard import DashboardView
from survey_insights.reporting.context import build_report_context

logger = logging.getLogger(__name__)

_TEMPLATE_DIR = Path(__file__).parent / "templates"

# Markdown output doesn't need HTML escaping; it breaks apostrophes etc.
_env = Environment(
    loader=FileSystemLoader(str(_TEMPLATE_DIR)),
    autoescape=False,
    trim_blocks=True,
    lstrip_blocks=True,
)


def render_report(view: DashboardView, *, title: str = "Satisfaction report") -> str:
    """Render a markdown report of *view*."""
    context = build_report_context(view, title=title)

    template = _env.get_template("report.md.j2")
    report = template.render(**context.to_dict())
    logger.debug("Report rendered: courses=%d len=%d", len(context.courses), len(report))
    return report
