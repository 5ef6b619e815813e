"""Tests for the paged survey-detail fetcher."""
from __future__ import annotations

import threading

import pytest

from survey_insights.detail_fetcher import FetcherState, SurveyDetailFetcher, Track
from survey_insights.exceptions import UnknownTrackError
from survey_insights.models import (
    PagedResult,
    SurveyDetailResponse,
    SurveyDetailStatsResult,
    SurveyDetailSummary,
    SurveyQuestionDistribution,
    SurveyTextAnswer,
)

RESPONSES = [SurveyDetailResponse(id=f"r{i}") for i in range(5)]
DISTRIBUTIONS = [
    SurveyQuestionDistribution(question_id=f"q{i}", question_text=f"Q{i}", order_index=i)
    for i in range(1, 4)
]
TEXT_ANSWERS = [
    SurveyTextAnswer(answer_id="t1", question_id="q2", answer_text="B", question_text="Q2", order_index=2),
    SurveyTextAnswer(answer_id="t2", question_id="q1", answer_text="A", question_text="Q1", order_index=1),
    SurveyTextAnswer(answer_id="t3", question_id="q2", answer_text="C", question_text="Q2", order_index=2),
]


def _page(data, cursor, limit):
    if limit <= 0:
        return PagedResult()
    end = cursor + limit
    return PagedResult(
        items=list(data[cursor:end]),
        next_cursor=end if end < len(data) else None,
        total_count=len(data),
    )


class FakeSource:
    """Serves static tracks; can block or fail selected queries."""

    def __init__(self):
        self.calls = []
        self.entered = threading.Event()
        self.release = threading.Event()
        self.gate_when = lambda query: False
        self.fail_when = lambda query: False

    def fetch_survey_detail_stats(self, query):
        self.calls.append(query)
        if self.gate_when(query):
            self.entered.set()
            assert self.release.wait(5)
        if self.fail_when(query):
            raise RuntimeError("upstream unavailable")
        return SurveyDetailStatsResult(
            summary=SurveyDetailSummary(response_count=len(RESPONSES)),
            responses=_page(RESPONSES, query.response_cursor, query.response_limit),
            distributions=_page(DISTRIBUTIONS, query.distribution_cursor, query.distribution_limit),
            text_answers=_page(TEXT_ANSWERS, query.text_cursor, query.text_limit),
        )


@pytest.fixture()
def source():
    return FakeSource()


@pytest.fixture()
def fetcher(source):
    return SurveyDetailFetcher(
        source,
        "s1",
        page_sizes={"responses": 2, "distributions": 2, "text_answers": 2},
    )


def _in_thread(target, *args):
    results = []
    thread = threading.Thread(target=lambda: results.append(target(*args)))
    thread.start()
    return thread, results


# ---------------------------------------------------------------------------
# Initial load
# ---------------------------------------------------------------------------


def test_initial_state_is_idle(fetcher):
    assert fetcher.state is FetcherState.IDLE
    assert fetcher.responses == []
    assert fetcher.summary is None


def test_fetch_initial_loads_first_page_of_every_track(fetcher, source):
    assert fetcher.fetch_initial() is True

    assert fetcher.state is FetcherState.READY
    assert [r.id for r in fetcher.responses] == ["r0", "r1"]
    assert fetcher.cursor(Track.RESPONSES) == 2
    assert fetcher.total("responses") == 5
    assert len(fetcher.distributions) == 2
    assert fetcher.summary.response_count == 5
    query = source.calls[0]
    assert (query.response_limit, query.distribution_limit, query.text_limit) == (2, 2, 2)


def test_fetch_initial_without_survey_is_noop(source):
    fetcher = SurveyDetailFetcher(source)
    assert fetcher.fetch_initial() is False
    assert source.calls == []


def test_load_more_after_survey_cleared_is_noop(fetcher, source):
    fetcher.fetch_initial()
    fetcher.set_survey(None)

    assert fetcher.load_more("responses") is False
    assert fetcher.fetch_initial() is False
    assert len(source.calls) == 1


def test_fetch_initial_failure_sets_error(fetcher, source):
    source.fail_when = lambda query: True

    assert fetcher.fetch_initial() is False

    assert fetcher.state is FetcherState.ERROR
    assert fetcher.error == "upstream unavailable"


def test_failure_without_message_uses_default(fetcher, source):
    def _raise(query):
        raise RuntimeError()

    source.fetch_survey_detail_stats = _raise
    fetcher.fetch_initial()
    assert fetcher.error == "Failed to load survey detail data."


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


def test_load_more_appends_and_only_requests_that_track(fetcher, source):
    fetcher.fetch_initial()

    assert fetcher.load_more(Track.RESPONSES) is True

    query = source.calls[-1]
    assert query.response_cursor == 2
    assert query.response_limit == 2
    assert query.distribution_limit == 0
    assert query.text_limit == 0
    assert [r.id for r in fetcher.responses] == ["r0", "r1", "r2", "r3"]
    assert len(fetcher.distributions) == 2


def test_load_more_until_exhausted(fetcher, source):
    fetcher.fetch_initial()
    while fetcher.has_more("responses"):
        assert fetcher.load_more("responses")

    assert [r.id for r in fetcher.responses] == [r.id for r in RESPONSES]
    calls = len(source.calls)
    assert fetcher.load_more("responses") is False
    assert len(source.calls) == calls


def test_load_more_before_initial_is_noop(fetcher, source):
    assert fetcher.load_more("responses") is False
    assert source.calls == []


def test_second_load_more_on_same_track_is_noop_while_in_flight(fetcher, source):
    fetcher.fetch_initial()
    source.gate_when = lambda query: query.response_cursor > 0

    thread, results = _in_thread(fetcher.load_more, Track.RESPONSES)
    assert source.entered.wait(5)

    assert fetcher.is_loading("responses") is True
    assert fetcher.state is FetcherState.LOADING_MORE
    assert fetcher.load_more(Track.RESPONSES) is False

    source.release.set()
    thread.join(5)

    assert results == [True]
    assert len(source.calls) == 2
    assert [r.id for r in fetcher.responses] == ["r0", "r1", "r2", "r3"]
    assert fetcher.state is FetcherState.READY


def test_other_tracks_load_while_one_is_in_flight(fetcher, source):
    fetcher.fetch_initial()
    source.gate_when = lambda query: query.response_cursor > 0

    thread, _ = _in_thread(fetcher.load_more, Track.RESPONSES)
    assert source.entered.wait(5)
    assert fetcher.load_more(Track.TEXT_ANSWERS) is True
    source.release.set()
    thread.join(5)

    assert len(fetcher.text_answers) == 3
    assert len(fetcher.responses) == 4


def test_failed_load_more_keeps_accumulated_data(fetcher, source):
    fetcher.fetch_initial()
    fetcher.load_more("responses")
    source.fail_when = lambda query: query.distribution_cursor > 0

    assert fetcher.load_more("distributions") is False

    assert fetcher.state is FetcherState.ERROR
    assert fetcher.error == "upstream unavailable"
    assert len(fetcher.responses) == 4
    assert len(fetcher.distributions) == 2
    assert len(fetcher.text_answers) == 2
    assert fetcher.has_more("distributions")
    assert fetcher.is_loading("distributions") is False


def test_error_persists_until_refresh(fetcher, source):
    fetcher.fetch_initial()
    source.fail_when = lambda query: query.distribution_cursor > 0
    fetcher.load_more("distributions")

    assert fetcher.load_more("responses") is True
    assert fetcher.error == "upstream unavailable"

    source.fail_when = lambda query: False
    assert fetcher.refresh() is True
    assert fetcher.error is None
    assert fetcher.state is FetcherState.READY
    assert [r.id for r in fetcher.responses] == ["r0", "r1"]


def test_unknown_track_raises(fetcher):
    with pytest.raises(UnknownTrackError):
        fetcher.load_more("comments")
    with pytest.raises(UnknownTrackError):
        fetcher.items("comments")


# ---------------------------------------------------------------------------
# Stale results
# ---------------------------------------------------------------------------


def test_result_for_previous_survey_is_discarded(fetcher, source):
    fetcher.fetch_initial()
    source.gate_when = lambda query: query.response_cursor > 0

    thread, results = _in_thread(fetcher.load_more, "responses")
    assert source.entered.wait(5)
    fetcher.set_survey("s2")
    source.release.set()
    thread.join(5)

    assert results == [False]
    assert fetcher.survey_id == "s2"
    assert fetcher.responses == []
    assert fetcher.state is FetcherState.IDLE


def test_page_is_discarded_when_track_was_reloaded(fetcher, source):
    fetcher.fetch_initial()
    source.gate_when = lambda query: query.response_cursor > 0

    thread, results = _in_thread(fetcher.load_more, "responses")
    assert source.entered.wait(5)
    assert fetcher.fetch_initial() is True
    source.release.set()
    thread.join(5)

    assert results == [False]
    assert [r.id for r in fetcher.responses] == ["r0", "r1"]
    assert fetcher.cursor("responses") == 2


def test_set_survey_switches_test_data_mode(fetcher, source):
    fetcher.set_survey("s2", include_test_data=True)
    fetcher.fetch_initial()
    assert source.calls[-1].survey_id == "s2"
    assert source.calls[-1].include_test_data is True


# ---------------------------------------------------------------------------
# Derived views
# ---------------------------------------------------------------------------


def test_grouped_text_answers_follow_question_order(fetcher):
    fetcher.fetch_initial()

    grouped = fetcher.grouped_text_answers
    assert [g.question_id for g in grouped] == ["q1", "q2"]
    assert fetcher.grouped_text_answers is grouped

    fetcher.load_more("text_answers")

    regrouped = fetcher.grouped_text_answers
    assert regrouped is not grouped
    assert [a.answer_id for a in regrouped[1].answers] == ["t1", "t3"]


def test_reset_clears_everything(fetcher):
    fetcher.fetch_initial()
    fetcher.reset()
    assert fetcher.state is FetcherState.IDLE
    assert fetcher.summary is None
    assert fetcher.cursor("responses") is None
    assert fetcher.grouped_text_answers == []
