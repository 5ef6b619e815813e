"""Merge per-question statistics coming from several data partitions."""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from survey_insights.aggregation.distribution import add_distribution, empty_distribution
from survey_insights.aggregation.weighting import round_half_up, weighted_average
from survey_insights.models import OptionCount, QuestionStat, RatingDistribution, RawAnswer
from survey_insights.sanitize import AnswerKind

logger = logging.getLogger(__name__)

__all__ = [
    "build_question_stat",
    "count_options",
    "dedupe_texts",
    "merge_question_stats",
    "question_key",
    "question_sort_key",
]


def question_key(stat: QuestionStat) -> str:
    """Stable identity of *stat*.

    Legacy rows without an id fall back to ``text|type|category``.
    """
    if stat.question_id and stat.question_id.strip():
        return stat.question_id
    return f"{stat.question_text}|{stat.question_type}|{stat.satisfaction_type or ''}"


def question_sort_key(order_index: Optional[int], text: str) -> Tuple[int, int, str]:
    """Ascending by order index with ``None`` last, then by text."""
    if order_index is None:
        return (1, 0, text)
    return (0, order_index, text)


def dedupe_texts(*groups: Iterable[str]) -> List[str]:
    """Union of *groups* keeping first-seen order and dropping blanks."""
    seen: Dict[str, None] = {}
    for group in groups:
        for text in group:
            if text and text not in seen:
                seen[text] = None
    return list(seen)


@dataclass
class _Accumulator:
    question_id: str
    question_text: str = ""
    question_type: str = ""
    satisfaction_type: Optional[str] = None
    order_index: Optional[int] = None
    total_answers: int = 0
    averages: List[Tuple[Optional[float], float]] = field(default_factory=list)
    distribution: RatingDistribution = field(default_factory=empty_distribution)
    text_answers: Dict[str, None] = field(default_factory=dict)

    def add(self, stat: QuestionStat) -> None:
        # First non-empty value wins for descriptive metadata.
        self.question_text = self.question_text or stat.question_text
        self.question_type = self.question_type or stat.question_type
        self.satisfaction_type = self.satisfaction_type or stat.satisfaction_type
        if stat.order_index is not None and (
            self.order_index is None or stat.order_index < self.order_index
        ):
            self.order_index = stat.order_index

        self.total_answers += stat.total_answers
        if stat.average is not None:
            self.averages.append((stat.average, stat.total_answers))
        add_distribution(self.distribution, stat.rating_distribution)
        for answer in stat.text_answers:
            if answer:
                self.text_answers.setdefault(answer, None)

    def build(self) -> QuestionStat:
        return QuestionStat(
            question_id=self.question_id,
            question_text=self.question_text,
            question_type=self.question_type,
            satisfaction_type=self.satisfaction_type,
            order_index=self.order_index,
            total_answers=self.total_answers,
            average=weighted_average(self.averages),
            rating_distribution=self.distribution,
            text_answers=list(self.text_answers),
        )


def merge_question_stats(stat_lists: Sequence[Iterable[QuestionStat]]) -> List[QuestionStat]:
    """Merge several lists of :class:`QuestionStat` keyed by question identity.

    Answer counts and distributions are summed, averages are re-weighted by
    each partition's ``total_answers`` and free-text answers are unioned.
    The inputs are not mutated.
    """
    merged: Dict[str, _Accumulator] = {}
    for stats in stat_lists:
        for stat in stats:
            key = question_key(stat)
            accumulator = merged.get(key)
            if accumulator is None:
                accumulator = merged[key] = _Accumulator(question_id=stat.question_id or key)
            accumulator.add(stat)

    questions = [accumulator.build() for accumulator in merged.values()]
    questions.sort(key=lambda q: question_sort_key(q.order_index, q.question_text))
    return questions


# ---------------------------------------------------------------------------
# Building stats from raw answers
# ---------------------------------------------------------------------------


def _clamp_score(number: float) -> int:
    return max(1, min(10, int(number)))


def count_options(answers: Iterable[RawAnswer]) -> List[OptionCount]:
    """Count comma-separated choice options, most frequent first."""
    counts: Counter[str] = Counter()
    for answer in answers:
        if answer.value.kind is not AnswerKind.CHOICE or not answer.value.text:
            continue
        for option in answer.value.text.split(","):
            option = option.strip()
            if option:
                counts[option] += 1
    return [
        OptionCount(option=option, count=count)
        for option, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]


def build_question_stat(
    question_id: str,
    answers: Iterable[RawAnswer],
    *,
    question_text: str = "",
    question_type: str = "",
    satisfaction_type: Optional[str] = None,
    order_index: Optional[int] = None,
) -> QuestionStat:
    """Aggregate the raw answers of one question into a :class:`QuestionStat`.

    Numeric answers are truncated and clamped into 1..10. ``total_answers``
    counts every answer that carried a usable value whatever its kind;
    ``average`` stays ``None`` without numeric answers.
    """
    distribution = empty_distribution()
    scores: List[int] = []
    texts: Dict[str, None] = {}
    total = 0

    for answer in answers:
        value = answer.value
        if value.kind is AnswerKind.NUMERIC and value.number is not None:
            total += 1
            score = _clamp_score(value.number)
            distribution[score] += 1
            scores.append(score)
        elif value.kind is AnswerKind.CHOICE:
            total += 1
        elif value.kind is AnswerKind.TEXT and value.text:
            total += 1
            texts.setdefault(value.text, None)
        else:
            logger.debug("Skipping unusable answer for question %s", question_id)

    average = None
    if scores:
        average = round_half_up(sum(scores) / len(scores), 2)

    return QuestionStat(
        question_id=question_id,
        question_text=question_text,
        question_type=question_type,
        satisfaction_type=satisfaction_type,
        order_index=order_index,
        total_answers=total,
        average=average,
        rating_distribution=distribution,
        text_answers=list(texts),
    )
