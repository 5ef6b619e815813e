"""Helpers for the fixed-domain (1..10) rating distribution."""
from __future__ import annotations

from typing import Any, Iterable, Mapping

from survey_insights.models import RatingDistribution
from survey_insights.sanitize import to_integer, to_number

SCORE_RANGE = range(1, 11)


def empty_distribution() -> RatingDistribution:
    return {score: 0 for score in SCORE_RANGE}


def add_distribution(target: RatingDistribution, source: Mapping[int, int]) -> RatingDistribution:
    """Add *source* into *target* in place over the full domain."""
    for score in SCORE_RANGE:
        target[score] = target.get(score, 0) + source.get(score, 0)
    return target


def sum_distributions(distributions: Iterable[Mapping[int, int]]) -> RatingDistribution:
    total = empty_distribution()
    for distribution in distributions:
        add_distribution(total, distribution)
    return total


def distribution_total(distribution: Mapping[int, int]) -> int:
    return sum(distribution.get(score, 0) for score in SCORE_RANGE)


def parse_distribution(value: Any, *, scale_factor: int = 1) -> RatingDistribution:
    """Build a zero-filled distribution from a raw ``{"score": count}`` mapping.

    Keys outside 1..10 (after applying *scale_factor*) are dropped, counts that
    are not numbers count as zero.
    """
    distribution = empty_distribution()
    if not isinstance(value, Mapping):
        return distribution

    for key, raw_count in value.items():
        score = to_integer(key)
        if score is None or to_number(key) != score:
            continue
        score *= scale_factor
        if score not in distribution:
            continue
        count = to_integer(raw_count)
        distribution[score] += count if count is not None and count > 0 else 0
    return distribution
