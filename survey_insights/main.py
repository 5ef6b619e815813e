"""Command-line bootstrap: render a satisfaction report from a JSON export.

The export is a JSON array of raw ``instructor_survey_stats`` rows, exactly as
the remote query returns them. Usage::

    python -m survey_insights.main export.json --include-test-data --round latest
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional, Union

from survey_insights.config import configure_logging
from survey_insights.dashboard import ALL, LATEST, DashboardLoader, StatsFilters
from survey_insights.reporting.render import render_report
from survey_insights.repositories.instructor_stats import InstructorStatsRepository

logger = logging.getLogger(__name__)


def _year_or_all(value: str) -> Union[int, str]:
    return ALL if value == ALL else int(value)


def _round_or_keyword(value: str) -> Union[int, str]:
    return value if value in (ALL, LATEST) else int(value)


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("export", type=Path, help="JSON file with raw stats rows")
    parser.add_argument("--include-test-data", action="store_true")
    parser.add_argument("--instructor", default=None, help="only rows of this instructor id")
    parser.add_argument("--year", type=_year_or_all, default=ALL)
    parser.add_argument("--round", type=_round_or_keyword, default=ALL)
    parser.add_argument("--course", default=ALL)
    parser.add_argument("--title", default="Satisfaction report")
    return parser.parse_args(argv)


def _file_query(path: Path):
    def _query(params):
        rows = json.loads(path.read_text(encoding="utf-8"))
        instructor_id = params.get("instructor_id")
        if instructor_id and isinstance(rows, list):
            rows = [row for row in rows if isinstance(row, dict) and row.get("instructor_id") == instructor_id]
        return rows

    return _query


def main(argv: Optional[List[str]] = None) -> int:
    """Print the report for *argv*; returns the process exit code."""
    configure_logging()
    args = _parse_args(argv)

    loader = DashboardLoader(InstructorStatsRepository(_file_query(args.export)))
    if not loader.load(args.instructor):
        logger.error("Could not load %s: %s", args.export, loader.error)
        return 1

    view = loader.view(
        include_test_data=args.include_test_data,
        filters=StatsFilters(year=args.year, round=args.round, course=args.course),
    )
    if not view.has_data:
        logger.info("No survey data matches the selected filters.")

    sys.stdout.write(render_report(view, title=args.title))
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
