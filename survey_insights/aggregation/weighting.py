"""Weighted averaging, the single averaging primitive for every rollup."""
from __future__ import annotations

import math
from typing import Iterable, Optional, Tuple

from survey_insights import config
from survey_insights.sanitize import to_number

__all__ = ["round_half_up", "satisfaction_percentage", "weighted_average"]

WeightedValue = Tuple[Optional[float], float]


def weighted_average(pairs: Iterable[WeightedValue]) -> Optional[float]:
    """Return ``sum(value * weight) / sum(weight)`` over the valid pairs.

    Pairs whose value is missing or non-finite, or whose weight is not a
    positive finite number, are skipped. Returns ``None`` when no weight is
    left. "Insufficient data" is not the same thing as a score of zero.
    """
    weighted_sum = 0.0
    total_weight = 0.0
    for raw_value, raw_weight in pairs:
        value = to_number(raw_value)
        weight = to_number(raw_weight)
        if value is None or weight is None or weight <= 0:
            continue
        weighted_sum += value * weight
        total_weight += weight

    if total_weight <= 0:
        return None
    return weighted_sum / total_weight


def round_half_up(value: float, digits: int = 0):
    """Round halves away from zero (``round`` in Python rounds to even)."""
    factor = 10 ** digits
    rounded = math.floor(abs(value) * factor + 0.5) / factor
    rounded = math.copysign(rounded, value)
    return int(rounded) if digits == 0 else rounded


def satisfaction_percentage(average: Optional[float]) -> Optional[int]:
    """Map a 0-10 satisfaction average onto 0-100."""
    if average is None:
        return None
    return round_half_up(average * 100 / config.SATISFACTION_SCALE_MAX)
