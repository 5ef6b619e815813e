"""Incremental loader for one survey's paged detail data.

A :class:`SurveyDetailFetcher` owns three independently paginated tracks
(responses, per-question distributions, free-text answers) plus the summary
snapshot returned with every page. State changes happen under a lock; the
remote call itself happens outside it, so different tracks can load at the
same time while a second request for a track that is already loading is a
no-op.

Every request remembers the survey identity (a generation counter) and the
track epoch it was issued for. A result that comes back after the survey was
switched, the fetcher was reset, or the track was reloaded from scratch is
dropped without touching the current state.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple, Union

from survey_insights import config
from survey_insights.aggregation.questions import question_sort_key
from survey_insights.exceptions import UnknownTrackError
from survey_insights.models import (
    GroupedTextAnswers,
    PagedResult,
    SurveyDetailResponse,
    SurveyDetailStatsResult,
    SurveyDetailSummary,
    SurveyQuestionDistribution,
    SurveyTextAnswer,
)
from survey_insights.repositories.survey_detail import DetailQuery

logger = logging.getLogger(__name__)

__all__ = ["DetailSource", "FetcherState", "SurveyDetailFetcher", "Track"]

DEFAULT_ERROR_MESSAGE = "Failed to load survey detail data."


class Track(str, Enum):
    """Independently paginated slices of a survey's detail data."""

    RESPONSES = "responses"
    DISTRIBUTIONS = "distributions"
    TEXT_ANSWERS = "text_answers"


class FetcherState(str, Enum):
    IDLE = "idle"
    LOADING_INITIAL = "loading_initial"
    READY = "ready"
    LOADING_MORE = "loading_more"
    ERROR = "error"


class DetailSource(Protocol):
    def fetch_survey_detail_stats(self, query: DetailQuery) -> SurveyDetailStatsResult: ...


@dataclass
class _TrackState:
    items: List[Any] = field(default_factory=list)
    cursor: Optional[int] = None
    total: int = 0
    loading: bool = False
    epoch: int = 0
    version: int = 0

    def replace(self, page: PagedResult) -> None:
        self.items = list(page.items)
        self.cursor = page.next_cursor
        self.total = page.total_count
        self.epoch += 1
        self.version += 1

    def append(self, page: PagedResult) -> None:
        self.items.extend(page.items)
        self.cursor = page.next_cursor
        self.total = page.total_count
        self.version += 1


def _page_for(result: SurveyDetailStatsResult, track: Track) -> PagedResult:
    if track is Track.RESPONSES:
        return result.responses
    if track is Track.DISTRIBUTIONS:
        return result.distributions
    return result.text_answers


def _error_message(exc: Exception) -> str:
    return str(exc) or DEFAULT_ERROR_MESSAGE


def group_text_answers(answers: List[SurveyTextAnswer]) -> List[GroupedTextAnswers]:
    """Group flat text answers by question, ordered by the question's order index."""
    groups: Dict[str, GroupedTextAnswers] = {}
    for answer in answers:
        group = groups.get(answer.question_id)
        if group is None:
            group = groups[answer.question_id] = GroupedTextAnswers(
                question_id=answer.question_id,
                question_text=answer.question_text,
                satisfaction_type=answer.satisfaction_type,
                order_index=answer.order_index,
            )
        group.answers.append(answer)
    return sorted(
        groups.values(), key=lambda g: question_sort_key(g.order_index, g.question_text)
    )


class SurveyDetailFetcher:
    """Stateful, thread-safe pager over one survey's detail tracks."""

    def __init__(
        self,
        source: DetailSource,
        survey_id: Optional[str] = None,
        *,
        include_test_data: bool = False,
        page_sizes: Optional[Mapping[Union[Track, str], int]] = None,
    ) -> None:
        self._source = source
        self._lock = threading.Lock()
        self._survey_id = survey_id
        self._include_test_data = include_test_data
        self._page_sizes: Dict[Track, int] = {
            Track.RESPONSES: config.RESPONSE_PAGE_SIZE,
            Track.DISTRIBUTIONS: config.DISTRIBUTION_PAGE_SIZE,
            Track.TEXT_ANSWERS: config.TEXT_PAGE_SIZE,
        }
        for key, size in (page_sizes or {}).items():
            self._page_sizes[self._track(key)] = size

        self._generation = 0
        self._tracks: Dict[Track, _TrackState] = {}
        self._summary: Optional[SurveyDetailSummary] = None
        self._error: Optional[str] = None
        self._initial_loading = False
        self._loaded = False
        self._grouped_cache: Optional[Tuple[_TrackState, int, List[GroupedTextAnswers]]] = None
        self._reset_locked()

    # ------------------------------------------------------------------
    # Identity & lifecycle
    # ------------------------------------------------------------------

    @staticmethod
    def _track(track: Union[Track, str]) -> Track:
        try:
            return Track(track)
        except ValueError:
            raise UnknownTrackError(f"Unknown detail track: {track!r}") from None

    def _reset_locked(self) -> None:
        self._generation += 1
        self._tracks = {track: _TrackState() for track in Track}
        self._summary = None
        self._error = None
        self._initial_loading = False
        self._loaded = False
        self._grouped_cache = None

    def reset(self) -> None:
        """Drop all accumulated data and return to ``idle``."""
        with self._lock:
            self._reset_locked()

    def set_survey(self, survey_id: Optional[str], *, include_test_data: Optional[bool] = None) -> None:
        """Switch to another survey (or test-data mode); in-flight results are discarded."""
        with self._lock:
            self._survey_id = survey_id
            if include_test_data is not None:
                self._include_test_data = include_test_data
            self._reset_locked()

    @property
    def survey_id(self) -> Optional[str]:
        return self._survey_id

    @property
    def include_test_data(self) -> bool:
        return self._include_test_data

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    def _query(
        self, survey_id: str, track: Optional[Track] = None, cursor: int = 0
    ) -> DetailQuery:
        def _limit(candidate: Track) -> int:
            if track is None or track is candidate:
                return self._page_sizes[candidate]
            return 0

        def _cursor(candidate: Track) -> int:
            return cursor if track is candidate else 0

        return DetailQuery(
            survey_id=survey_id,
            include_test_data=self._include_test_data,
            response_cursor=_cursor(Track.RESPONSES),
            response_limit=_limit(Track.RESPONSES),
            distribution_cursor=_cursor(Track.DISTRIBUTIONS),
            distribution_limit=_limit(Track.DISTRIBUTIONS),
            text_cursor=_cursor(Track.TEXT_ANSWERS),
            text_limit=_limit(Track.TEXT_ANSWERS),
        )

    def fetch_initial(self) -> bool:
        """Load the first page of every track, replacing accumulated data.

        Returns *True* when the result was applied.
        """
        with self._lock:
            if self._survey_id is None:
                return False
            if self._initial_loading:
                logger.debug("Initial load already running for survey %s", self._survey_id)
                return False
            self._initial_loading = True
            self._error = None
            generation = self._generation
            query = self._query(self._survey_id)

        try:
            result = self._source.fetch_survey_detail_stats(query)
        except Exception as exc:  # noqa: BLE001 – surfaced as error message
            with self._lock:
                if generation != self._generation:
                    return False
                self._initial_loading = False
                self._error = _error_message(exc)
            logger.warning("Initial detail load failed for survey %s: %s", query.survey_id, exc)
            return False

        with self._lock:
            if generation != self._generation:
                logger.debug("Discarding stale initial result for survey %s", query.survey_id)
                return False
            self._initial_loading = False
            self._summary = result.summary
            for track, state in self._tracks.items():
                state.replace(_page_for(result, track))
            self._loaded = True
        return True

    def load_more(self, track: Union[Track, str]) -> bool:
        """Load the next page of *track* and append it.

        A no-op (returning *False*) when the track is exhausted or already
        loading, so at most one request per track is in flight.
        """
        track = self._track(track)
        with self._lock:
            if self._survey_id is None:
                return False
            state = self._tracks[track]
            if state.cursor is None:
                logger.debug("Track %s exhausted for survey %s", track.value, self._survey_id)
                return False
            if state.loading:
                logger.debug("Track %s already loading for survey %s", track.value, self._survey_id)
                return False
            state.loading = True
            generation = self._generation
            epoch = state.epoch
            query = self._query(self._survey_id, track, state.cursor)

        try:
            result = self._source.fetch_survey_detail_stats(query)
        except Exception as exc:  # noqa: BLE001 – surfaced as error message
            with self._lock:
                state.loading = False
                if generation != self._generation:
                    return False
                self._error = _error_message(exc)
            logger.warning(
                "Loading more %s failed for survey %s: %s", track.value, query.survey_id, exc
            )
            return False

        with self._lock:
            state.loading = False
            if (
                generation != self._generation
                or self._tracks[track] is not state
                or state.epoch != epoch
            ):
                logger.debug("Discarding stale %s page for survey %s", track.value, query.survey_id)
                return False
            state.append(_page_for(result, track))
            self._summary = result.summary
        return True

    def refresh(self) -> bool:
        """Reset to ``idle`` and load the first pages again."""
        self.reset()
        return self.fetch_initial()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def state(self) -> FetcherState:
        with self._lock:
            if self._initial_loading:
                return FetcherState.LOADING_INITIAL
            if self._error is not None:
                return FetcherState.ERROR
            if any(state.loading for state in self._tracks.values()):
                return FetcherState.LOADING_MORE
            if self._loaded:
                return FetcherState.READY
            return FetcherState.IDLE

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def summary(self) -> Optional[SurveyDetailSummary]:
        return self._summary

    def items(self, track: Union[Track, str]) -> List[Any]:
        with self._lock:
            return list(self._tracks[self._track(track)].items)

    def total(self, track: Union[Track, str]) -> int:
        return self._tracks[self._track(track)].total

    def cursor(self, track: Union[Track, str]) -> Optional[int]:
        return self._tracks[self._track(track)].cursor

    def has_more(self, track: Union[Track, str]) -> bool:
        return self.cursor(track) is not None

    def is_loading(self, track: Union[Track, str]) -> bool:
        return self._tracks[self._track(track)].loading

    @property
    def responses(self) -> List[SurveyDetailResponse]:
        return self.items(Track.RESPONSES)

    @property
    def distributions(self) -> List[SurveyQuestionDistribution]:
        return self.items(Track.DISTRIBUTIONS)

    @property
    def text_answers(self) -> List[SurveyTextAnswer]:
        return self.items(Track.TEXT_ANSWERS)

    @property
    def grouped_text_answers(self) -> List[GroupedTextAnswers]:
        """Text answers grouped by question; recomputed only when the track changes."""
        with self._lock:
            state = self._tracks[Track.TEXT_ANSWERS]
            cached = self._grouped_cache
            if cached is not None and cached[0] is state and cached[1] == state.version:
                return cached[2]
            grouped = group_text_answers(state.items)
            self._grouped_cache = (state, state.version, grouped)
            return grouped
