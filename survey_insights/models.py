"""Data structures shared by the aggregation engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar

from survey_insights.sanitize import AnswerValue

T = TypeVar("T")

# Score (1..10) -> count. Always holds all ten keys.
RatingDistribution = Dict[int, int]


def _empty_distribution() -> RatingDistribution:
    return {score: 0 for score in range(1, 11)}


@dataclass(frozen=True)
class RawAnswer:
    """One respondent's answer to one question, resolved at ingestion."""

    question_id: str
    question_type: str
    satisfaction_type: Optional[str]
    value: AnswerValue
    response_id: Optional[str] = None


@dataclass(slots=True)
class QuestionStat:
    """Per-question aggregate."""

    question_id: str
    question_text: str = ""
    question_type: str = ""
    satisfaction_type: Optional[str] = None
    order_index: Optional[int] = None
    total_answers: int = 0
    average: Optional[float] = None
    rating_distribution: RatingDistribution = field(default_factory=_empty_distribution)
    text_answers: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:  # noqa: D401 – simple helper
        return asdict(self)


@dataclass(slots=True)
class MetricsSet:
    """One partition (real or test) of an :class:`InstructorStatsRecord`."""

    response_count: int = 0
    survey_count: int = 0
    active_survey_count: int = 0
    text_response_count: int = 0
    avg_overall: Optional[float] = None
    avg_course: Optional[float] = None
    avg_instructor: Optional[float] = None
    avg_operation: Optional[float] = None
    rating_distribution: RatingDistribution = field(default_factory=_empty_distribution)
    question_stats: List[QuestionStat] = field(default_factory=list)
    text_responses: List[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        """Return *True* when nothing in the partition carries data."""
        return not (
            self.response_count
            or self.survey_count
            or self.active_survey_count
            or self.text_response_count
            or self.question_stats
            or self.text_responses
            or any(self.rating_distribution.values())
        )


@dataclass(slots=True)
class InstructorStatsRecord:
    """Stats for one (education year, education round, course name) triple."""

    education_year: int
    education_round: int
    course_name: Optional[str]
    real: MetricsSet = field(default_factory=MetricsSet)
    test: MetricsSet = field(default_factory=MetricsSet)
    instructor_id: str = ""
    instructor_name: Optional[str] = None
    survey_ids: List[str] = field(default_factory=list)
    last_response_at: Optional[str] = None


@dataclass(slots=True)
class CombinedMetrics:
    """Real (and optionally test) partitions of one record merged together.

    Derived on demand and never persisted. ``source`` is ``"test"`` when test
    data contributed so consumers can disclose it.
    """

    source: str
    response_count: int
    survey_count: int
    active_survey_count: int
    text_response_count: int
    avg_overall: Optional[float]
    avg_course: Optional[float]
    avg_instructor: Optional[float]
    avg_operation: Optional[float]
    rating_distribution: RatingDistribution
    question_stats: List[QuestionStat]
    text_responses: List[str]
    education_year: int
    education_round: int
    course_name: Optional[str]
    normalized_course_name: Optional[str]


# ---------------------------------------------------------------------------
# Rollup rows
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class SummaryMetrics:
    total_surveys: int
    total_responses: int
    active_surveys: int
    avg_satisfaction: Optional[float]
    satisfaction_percentage: Optional[int]
    avg_responses_per_survey: int


@dataclass(slots=True)
class TrendPoint:
    period: str
    year: int
    round: int
    average: Optional[float]
    responses: int
    satisfaction: Optional[int]
    courses: List[str] = field(default_factory=list)

    @property
    def course_count(self) -> int:
        return len(self.courses)


@dataclass(slots=True)
class CourseBreakdownItem:
    course: str
    avg_satisfaction: Optional[float]
    responses: int
    surveys: int
    satisfaction_percentage: Optional[int]


@dataclass(slots=True)
class RatingBucket:
    name: str
    value: int
    percentage: int


@dataclass(slots=True)
class CategorySummary:
    questions: List[QuestionStat] = field(default_factory=list)
    average: Optional[float] = None


@dataclass(slots=True)
class QuestionInsights:
    questions: List[QuestionStat]
    subject: CategorySummary
    instructor: CategorySummary
    operation: CategorySummary
    text_responses: List[str] = field(default_factory=list)

    @property
    def categories(self) -> Dict[str, CategorySummary]:
        return {
            "subject": self.subject,
            "instructor": self.instructor,
            "operation": self.operation,
        }


# ---------------------------------------------------------------------------
# Paged survey detail
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class PagedResult(Generic[T]):
    """One page of a cursor-paginated track.

    ``next_cursor is None`` is the only end-of-track signal; cursors are
    server-assigned offsets and are never derived on the client.
    """

    items: List[T] = field(default_factory=list)
    next_cursor: Optional[int] = None
    total_count: int = 0


@dataclass(frozen=True)
class SurveyDetailResponse:
    id: str
    submitted_at: Optional[str] = None
    respondent_email: Optional[str] = None
    session_id: Optional[str] = None
    is_test: bool = False


@dataclass(frozen=True)
class OptionCount:
    option: str
    count: int


@dataclass(slots=True)
class SurveyQuestionDistribution:
    question_id: str
    question_text: str = ""
    question_type: str = ""
    satisfaction_type: Optional[str] = None
    order_index: Optional[int] = None
    session_id: Optional[str] = None
    section_id: Optional[str] = None
    total_answers: int = 0
    average: Optional[float] = None
    rating_distribution: RatingDistribution = field(default_factory=_empty_distribution)
    option_counts: List[OptionCount] = field(default_factory=list)


@dataclass(frozen=True)
class SurveyTextAnswer:
    answer_id: str
    question_id: str
    answer_text: str
    question_text: str = ""
    satisfaction_type: Optional[str] = None
    order_index: Optional[int] = None
    session_id: Optional[str] = None
    section_id: Optional[str] = None
    created_at: Optional[str] = None


@dataclass(slots=True)
class SurveyDetailSummary:
    response_count: int = 0
    rating_response_count: int = 0
    avg_overall: Optional[float] = None
    avg_course: Optional[float] = None
    avg_instructor: Optional[float] = None
    avg_operation: Optional[float] = None
    question_count: int = 0
    text_answer_count: int = 0


@dataclass(slots=True)
class SurveyDetailStatsResult:
    summary: SurveyDetailSummary
    responses: PagedResult[SurveyDetailResponse]
    distributions: PagedResult[SurveyQuestionDistribution]
    text_answers: PagedResult[SurveyTextAnswer]


@dataclass(slots=True)
class GroupedTextAnswers:
    question_id: str
    question_text: str
    satisfaction_type: Optional[str]
    order_index: Optional[int]
    answers: List[SurveyTextAnswer] = field(default_factory=list)
