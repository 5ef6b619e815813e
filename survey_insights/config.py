"""Configuration constants for the aggregation engine.

Values are read once at import time from the environment (a ``.env`` file in
the working directory is honoured). Invalid integers fall back to their
defaults with a warning instead of failing the import.
"""
from __future__ import annotations

import logging
import os
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _int_from_env(name: str, default: int, *, minimum: int = 0) -> int:  # noqa: WPS430 – tiny helper
    raw_val = os.getenv(name)
    if raw_val is None or raw_val.strip() == "":
        return default
    try:
        parsed = int(raw_val)
    except ValueError:
        logger.warning("Invalid %s value '%s'; must be integer.", name, raw_val)
        return default
    if parsed < minimum:
        logger.warning("Ignoring %s=%s (must be >= %d)", name, raw_val, minimum)
        return default
    return parsed


# Default page sizes for the three paged detail tracks
RESPONSE_PAGE_SIZE: int = _int_from_env("SURVEY_DETAIL_RESPONSE_LIMIT", 9999, minimum=1)
DISTRIBUTION_PAGE_SIZE: int = _int_from_env(
    "SURVEY_DETAIL_DISTRIBUTION_LIMIT", 9999, minimum=1
)
TEXT_PAGE_SIZE: int = _int_from_env("SURVEY_DETAIL_TEXT_LIMIT", 9999, minimum=1)

# Satisfaction values shown to consumers live on a 0-10 scale. Percentages are
# ``avg * 100 / SATISFACTION_SCALE_MAX``; changing the scale means changing this.
SATISFACTION_SCALE_MAX: int = 10

# Scale the upstream rows are recorded on. 5-point data is doubled once at
# ingestion so nothing downstream has to know about it.
SOURCE_SCALE_MAX: int = _int_from_env("SURVEY_SOURCE_SCALE_MAX", 10, minimum=1)

# Maximum number of courses and free-text comments listed in the report
REPORT_MAX_COURSES: int = _int_from_env("REPORT_MAX_COURSES", 10)
REPORT_MAX_COMMENTS: int = _int_from_env("REPORT_MAX_COMMENTS", 20)

LOG_LEVEL: str = os.getenv("SURVEY_INSIGHTS_LOG_LEVEL", "INFO")


def configure_logging(level: Optional[str] = None) -> None:
    """Apply the project log format to the root logger."""
    logging.basicConfig(format=LOG_FORMAT, level=(level or LOG_LEVEL).upper())
