"""Paged survey-detail payloads: one survey, three cursor tracks and a summary.

The remote procedure returns a single row holding the current page of each
track (responses, per-question distributions, free-text answers), the next
cursor and total count per track, and a summary snapshot. This module turns
that row into :class:`SurveyDetailStatsResult`.

Some deployments return empty tracks from the procedure even though responses
exist. When a :class:`RawAnswerStore` is configured the repository rebuilds
those tracks from raw questions and answers instead.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Sequence

from survey_insights import config
from survey_insights.aggregation.distribution import empty_distribution, parse_distribution
from survey_insights.aggregation.questions import build_question_stat, count_options, question_sort_key
from survey_insights.exceptions import DataSourceError
from survey_insights.models import (
    OptionCount,
    PagedResult,
    RawAnswer,
    SurveyDetailResponse,
    SurveyDetailStatsResult,
    SurveyDetailSummary,
    SurveyQuestionDistribution,
    SurveyTextAnswer,
)
from survey_insights.sanitize import (
    RATING_TYPES,
    TEXT_TYPES,
    AnswerKind,
    resolve_answer,
    scale_factor,
    to_boolean,
    to_integer,
    to_number,
    to_satisfaction_scale,
    to_string,
)

logger = logging.getLogger(__name__)

__all__ = [
    "DetailQuery",
    "RawAnswerStore",
    "SurveyDetailRepository",
    "parse_distributions",
    "parse_responses",
    "parse_summary",
    "parse_text_answers",
]

RPC_NAME = "get_survey_detail_stats"

RpcCall = Callable[[str, Dict[str, Any]], Any]


@dataclass(frozen=True)
class DetailQuery:
    """Parameters of one detail round-trip. A zero limit skips that track."""

    survey_id: str
    include_test_data: bool = False
    response_cursor: int = 0
    response_limit: int = config.RESPONSE_PAGE_SIZE
    distribution_cursor: int = 0
    distribution_limit: int = config.DISTRIBUTION_PAGE_SIZE
    text_cursor: int = 0
    text_limit: int = config.TEXT_PAGE_SIZE

    def to_rpc_params(self) -> Dict[str, Any]:
        return {
            "p_survey_id": self.survey_id,
            "p_include_test": self.include_test_data,
            "p_response_cursor": self.response_cursor,
            "p_response_limit": self.response_limit,
            "p_distribution_cursor": self.distribution_cursor,
            "p_distribution_limit": self.distribution_limit,
            "p_text_cursor": self.text_cursor,
            "p_text_limit": self.text_limit,
        }


class RawAnswerStore(Protocol):
    """Direct access to raw rows, used when the procedure returns empty tracks."""

    def fetch_responses(
        self, survey_id: str, start: int, limit: int
    ) -> Sequence[Mapping[str, Any]]: ...

    def fetch_questions(self, survey_id: str) -> Sequence[Mapping[str, Any]]: ...

    def fetch_answers(self, response_ids: Sequence[str]) -> Sequence[Mapping[str, Any]]: ...


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _items(value: Any) -> List[Mapping[str, Any]]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, Mapping)]


def _by_order_then(text_attr: str):
    def _key(item: Any):
        return question_sort_key(item.order_index, getattr(item, text_attr))

    return _key


def _parse_response(item: Mapping[str, Any]) -> Optional[SurveyDetailResponse]:
    response_id = _text(item.get("id"))
    if not response_id:
        return None
    return SurveyDetailResponse(
        id=response_id,
        submitted_at=_str_or_none(item.get("submitted_at")),
        respondent_email=_str_or_none(item.get("respondent_email")),
        session_id=_str_or_none(item.get("session_id")),
        is_test=to_boolean(item.get("is_test")),
    )


def parse_responses(value: Any) -> List[SurveyDetailResponse]:
    responses = (_parse_response(item) for item in _items(value))
    return [response for response in responses if response is not None]


def parse_option_counts(value: Any) -> List[OptionCount]:
    counts: List[OptionCount] = []
    for item in _items(value):
        raw_option = item.get("option")
        option = raw_option if isinstance(raw_option, str) else (
            str(raw_option) if raw_option is not None else ""
        )
        if not option:
            continue
        counts.append(OptionCount(option=option, count=to_integer(item.get("count")) or 0))
    counts.sort(key=lambda oc: (-oc.count, oc.option))
    return counts


def parse_distributions(
    value: Any, *, source_scale_max: Optional[int] = None
) -> List[SurveyQuestionDistribution]:
    distributions: List[SurveyQuestionDistribution] = []
    for item in _items(value):
        question_id = _text(item.get("question_id"))
        if not question_id:
            continue
        distributions.append(
            SurveyQuestionDistribution(
                question_id=question_id,
                question_text=_text(item.get("question_text")),
                question_type=_text(item.get("question_type")),
                satisfaction_type=_str_or_none(item.get("satisfaction_type")),
                order_index=to_integer(item.get("order_index")),
                session_id=_str_or_none(item.get("session_id")),
                section_id=_str_or_none(item.get("section_id")),
                total_answers=to_integer(item.get("total_answers")) or 0,
                average=to_satisfaction_scale(to_number(item.get("average")), source_scale_max),
                rating_distribution=parse_distribution(
                    item.get("rating_distribution"), scale_factor=scale_factor(source_scale_max)
                ),
                option_counts=parse_option_counts(item.get("option_counts")),
            )
        )
    distributions.sort(key=_by_order_then("question_text"))
    return distributions


def parse_text_answers(value: Any) -> List[SurveyTextAnswer]:
    answers: List[SurveyTextAnswer] = []
    for item in _items(value):
        answer_id = _text(item.get("answer_id"))
        question_id = _text(item.get("question_id"))
        answer_text = _text(item.get("answer_text"))
        if not (answer_id and question_id and answer_text):
            continue
        answers.append(
            SurveyTextAnswer(
                answer_id=answer_id,
                question_id=question_id,
                answer_text=answer_text,
                question_text=_text(item.get("question_text")),
                satisfaction_type=_str_or_none(item.get("satisfaction_type")),
                order_index=to_integer(item.get("order_index")),
                session_id=_str_or_none(item.get("session_id")),
                section_id=_str_or_none(item.get("section_id")),
                created_at=_str_or_none(item.get("created_at")),
            )
        )
    answers.sort(key=_by_order_then("answer_id"))
    return answers


def parse_summary(
    value: Any,
    *,
    response_total: int,
    question_total: int,
    text_total: int,
    source_scale_max: Optional[int] = None,
) -> SurveyDetailSummary:
    """Parse the summary snapshot; missing counts fall back to track totals."""
    summary = SurveyDetailSummary(
        response_count=response_total,
        question_count=question_total,
        text_answer_count=text_total,
    )
    if not isinstance(value, Mapping):
        return summary

    response_count = to_integer(value.get("responseCount"))
    question_count = to_integer(value.get("questionCount"))
    text_answer_count = to_integer(value.get("textAnswerCount"))

    def _scaled(raw: Any) -> Optional[float]:
        return to_satisfaction_scale(to_number(raw), source_scale_max)

    summary.response_count = response_total if response_count is None else response_count
    summary.rating_response_count = to_integer(value.get("ratingResponseCount")) or 0
    summary.avg_overall = _scaled(value.get("avgOverall"))
    summary.avg_course = _scaled(value.get("avgCourse"))
    summary.avg_instructor = _scaled(value.get("avgInstructor"))
    summary.avg_operation = _scaled(value.get("avgOperation"))
    summary.question_count = question_total if question_count is None else question_count
    summary.text_answer_count = text_total if text_answer_count is None else text_answer_count
    return summary


# ---------------------------------------------------------------------------
# Raw rebuild
# ---------------------------------------------------------------------------


def _raw_answers(question: Mapping[str, Any], rows: Sequence[Mapping[str, Any]]) -> List[RawAnswer]:
    qtype = _text(question.get("question_type"))
    answers: List[RawAnswer] = []
    for row in rows:
        raw = row.get("answer_value")
        if raw is None:
            raw = row.get("answer_text")
        answers.append(
            RawAnswer(
                question_id=_text(question.get("id")),
                question_type=qtype,
                satisfaction_type=_str_or_none(question.get("satisfaction_type")),
                value=resolve_answer(raw, qtype),
                response_id=_str_or_none(row.get("response_id")),
            )
        )
    return answers


def rebuild_distributions(
    questions: Sequence[Mapping[str, Any]],
    answer_rows: Sequence[Mapping[str, Any]],
    *,
    source_scale_max: Optional[int] = None,
) -> List[SurveyQuestionDistribution]:
    """Aggregate rating/scale and choice questions from raw answer rows.

    Scores are clamped on the source scale, then mapped onto 1..10.
    """
    by_question: Dict[str, List[Mapping[str, Any]]] = defaultdict(list)
    for row in answer_rows:
        by_question[_text(row.get("question_id"))].append(row)

    distributions: List[SurveyQuestionDistribution] = []
    for question in questions:
        question_id = _text(question.get("id"))
        if not question_id:
            continue
        qtype = _text(question.get("question_type"))
        answers = _raw_answers(question, by_question.get(question_id, []))
        options = count_options(answers)
        if qtype.lower() not in RATING_TYPES and not options:
            continue

        average = None
        distribution = empty_distribution()
        if qtype.lower() in RATING_TYPES:
            numeric = [a for a in answers if a.value.kind is AnswerKind.NUMERIC]
            stat = build_question_stat(question_id, numeric, question_type=qtype)
            total = stat.total_answers
            average = to_satisfaction_scale(stat.average, source_scale_max)
            distribution = parse_distribution(
                stat.rating_distribution, scale_factor=scale_factor(source_scale_max)
            )
        else:
            total = sum(option.count for option in options)

        distributions.append(
            SurveyQuestionDistribution(
                question_id=question_id,
                question_text=_text(question.get("question_text")),
                question_type=qtype,
                satisfaction_type=_str_or_none(question.get("satisfaction_type")),
                order_index=to_integer(question.get("order_index")),
                session_id=_str_or_none(question.get("session_id")),
                section_id=_str_or_none(question.get("section_id")),
                total_answers=total,
                average=average,
                rating_distribution=distribution,
                option_counts=options,
            )
        )
    distributions.sort(key=_by_order_then("question_text"))
    return distributions


def rebuild_text_answers(
    questions: Sequence[Mapping[str, Any]], answer_rows: Sequence[Mapping[str, Any]]
) -> List[SurveyTextAnswer]:
    """Collect non-blank answers to text questions."""
    questions_by_id = {_text(q.get("id")): q for q in questions if _text(q.get("id"))}
    answers: List[SurveyTextAnswer] = []
    for row in answer_rows:
        question = questions_by_id.get(_text(row.get("question_id")))
        if question is None or _text(question.get("question_type")).lower() not in TEXT_TYPES:
            continue
        text = to_string(row.get("answer_text"))
        answer_id = _text(row.get("id"))
        if text is None or not answer_id:
            continue
        answers.append(
            SurveyTextAnswer(
                answer_id=answer_id,
                question_id=_text(question.get("id")),
                answer_text=text,
                question_text=_text(question.get("question_text")),
                satisfaction_type=_str_or_none(question.get("satisfaction_type")),
                order_index=to_integer(question.get("order_index")),
                session_id=_str_or_none(question.get("session_id")),
                section_id=_str_or_none(question.get("section_id")),
                created_at=_str_or_none(row.get("created_at")),
            )
        )
    answers.sort(key=_by_order_then("answer_id"))
    return answers


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class SurveyDetailRepository:
    """Fetch one page of every detail track in a single round-trip."""

    def __init__(
        self,
        rpc: RpcCall,
        *,
        raw_store: Optional[RawAnswerStore] = None,
        source_scale_max: Optional[int] = None,
    ) -> None:
        self._rpc = rpc
        self._raw_store = raw_store
        self._source_scale_max = source_scale_max

    def fetch_survey_detail_stats(self, query: DetailQuery) -> SurveyDetailStatsResult:
        """Run *query* against the remote procedure.

        Raises
        ------
        DataSourceError
            If the remote call fails.
        """
        try:
            data = self._rpc(RPC_NAME, query.to_rpc_params())
        except DataSourceError:
            raise
        except Exception as exc:  # noqa: BLE001 – wrap any transport failure
            raise DataSourceError(f"Failed to fetch survey detail stats: {exc}") from exc

        row: Mapping[str, Any] = {}
        if isinstance(data, list) and data and isinstance(data[0], Mapping):
            row = data[0]
        elif isinstance(data, Mapping):
            row = data

        response_total = to_integer(row.get("response_total_count")) or 0
        distribution_total = to_integer(row.get("distribution_total_count")) or 0
        text_total = to_integer(row.get("text_total_count")) or 0

        responses = PagedResult(
            items=parse_responses(row.get("responses")),
            next_cursor=to_integer(row.get("response_next_cursor")),
            total_count=response_total,
        )
        distributions = PagedResult(
            items=parse_distributions(
                row.get("question_distributions"), source_scale_max=self._source_scale_max
            ),
            next_cursor=to_integer(row.get("distribution_next_cursor")),
            total_count=distribution_total,
        )
        text_answers = PagedResult(
            items=parse_text_answers(row.get("text_answers")),
            next_cursor=to_integer(row.get("text_next_cursor")),
            total_count=text_total,
        )

        summary_raw = row.get("summary")
        question_total = len(distributions.items)
        if isinstance(summary_raw, Mapping):
            question_count = to_integer(summary_raw.get("questionCount"))
            if question_count is not None:
                question_total = question_count
        summary = parse_summary(
            summary_raw,
            response_total=response_total,
            question_total=question_total,
            text_total=text_total,
            source_scale_max=self._source_scale_max,
        )

        if self._raw_store is not None:
            self._fill_from_raw(self._raw_store, query, responses, distributions, text_answers)

        return SurveyDetailStatsResult(
            summary=summary,
            responses=responses,
            distributions=distributions,
            text_answers=text_answers,
        )

    def _fill_from_raw(
        self,
        store: RawAnswerStore,
        query: DetailQuery,
        responses: PagedResult[SurveyDetailResponse],
        distributions: PagedResult[SurveyQuestionDistribution],
        text_answers: PagedResult[SurveyTextAnswer],
    ) -> None:
        if not responses.items and responses.total_count > 0 and query.response_limit > 0:
            rows = store.fetch_responses(query.survey_id, query.response_cursor, query.response_limit)
            responses.items = parse_responses(list(rows))
            fetched = len(responses.items)
            responses.next_cursor = (
                query.response_cursor + fetched if fetched >= query.response_limit else None
            )
            logger.debug(
                "Rebuilt %d responses for survey %s from raw rows", fetched, query.survey_id
            )

        need_distributions = not distributions.items and query.distribution_limit > 0
        need_text = not text_answers.items and query.text_limit > 0
        if not (need_distributions or need_text) or not responses.items:
            return

        questions = list(store.fetch_questions(query.survey_id))
        answer_rows = list(store.fetch_answers([r.id for r in responses.items]))

        if need_distributions:
            distributions.items = rebuild_distributions(
                questions, answer_rows, source_scale_max=self._source_scale_max
            )
            logger.debug(
                "Rebuilt %d distributions for survey %s", len(distributions.items), query.survey_id
            )
        if need_text:
            text_answers.items = rebuild_text_answers(questions, answer_rows)
            logger.debug(
                "Rebuilt %d text answers for survey %s", len(text_answers.items), query.survey_id
            )
