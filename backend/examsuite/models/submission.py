"""Submission, evaluation and lifecycle models"""

from enum import Enum
from pydantic import BaseModel, Field, ConfigDict
from typing import Annotated, Optional, List, Literal, Union, Iterable
from datetime import datetime, timezone


class SubmissionStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    SUBMITTED = "submitted"
    EVALUATED = "evaluated"
    PUBLISHED = "published"


# Forward-only lifecycle; anything not listed here is rejected
SUBMISSION_TRANSITIONS = {
    SubmissionStatus.IN_PROGRESS: frozenset({SubmissionStatus.SUBMITTED}),
    SubmissionStatus.SUBMITTED: frozenset({SubmissionStatus.EVALUATED}),
    SubmissionStatus.EVALUATED: frozenset({SubmissionStatus.PUBLISHED}),
    SubmissionStatus.PUBLISHED: frozenset(),
}


class InvalidTransitionError(ValueError):
    def __init__(self, current, target):
        self.current = SubmissionStatus(current)
        self.target = SubmissionStatus(target)
        super().__init__(f"Cannot move submission from '{self.current.value}' to '{self.target.value}'")


def can_transition(current, target) -> bool:
    return SubmissionStatus(target) in SUBMISSION_TRANSITIONS[SubmissionStatus(current)]


def ensure_transition(current, target) -> SubmissionStatus:
    """Validate a lifecycle step and return the target status."""
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
    return SubmissionStatus(target)


def has_reached(current, status) -> bool:
    """True if `current` is `status` or any state after it."""
    order = list(SubmissionStatus)
    return order.index(SubmissionStatus(current)) >= order.index(SubmissionStatus(status))


class SubmissionType(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


class EvaluatorKind(str, Enum):
    AUTOMATIC = "automatic"
    DELEGATED_AI = "delegated-ai"
    TEACHER = "teacher"
    SYSTEM_FALLBACK = "system-fallback"


# ============== EVALUATION METADATA (tagged by kind) ==============

class AutomaticMeta(BaseModel):
    kind: Literal["automatic"] = "automatic"
    outcome: Literal["correct", "incorrect", "unanswered", "empty-answer", "unknown-option"]
    detail: Optional[str] = None


class AiSuccessMeta(BaseModel):
    kind: Literal["ai-success"] = "ai-success"
    correlation_id: str
    provider: str
    score_100: int
    attempts: int = 1
    truncated: bool = False


class AiFallbackConfigMeta(BaseModel):
    kind: Literal["ai-fallback-config"] = "ai-fallback-config"
    correlation_id: str
    tag: str = "config-heuristic"
    heuristic_score_100: int
    truncated: bool = False


class AiFallbackErrorMeta(BaseModel):
    kind: Literal["ai-fallback-error"] = "ai-fallback-error"
    correlation_id: str
    tag: str = "error-heuristic"
    heuristic_score_100: int
    reason: str
    attempts: int
    truncated: bool = False


class EvaluationErrorMeta(BaseModel):
    """System fallback when evaluating one answer blew up outside the scorer."""
    kind: Literal["evaluation-error"] = "evaluation-error"
    reason: str


class TeacherOverrideMeta(BaseModel):
    kind: Literal["teacher-override"] = "teacher-override"
    previous_marks: float
    previous_evaluator: str
    teacher_id: Optional[str] = None


EvaluationMeta = Annotated[
    Union[AutomaticMeta, AiSuccessMeta, AiFallbackConfigMeta, AiFallbackErrorMeta,
          EvaluationErrorMeta, TeacherOverrideMeta],
    Field(discriminator="kind"),
]


class Evaluation(BaseModel):
    model_config = ConfigDict(use_enum_values=True)
    evaluator: EvaluatorKind
    marks: float = Field(ge=0)
    remarks: str = Field(default="", max_length=1000)
    evaluated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    meta: EvaluationMeta


class QuestionEvaluation(BaseModel):
    question_id: str
    evaluation: Evaluation


def compute_total_marks(evaluations: Iterable) -> float:
    """Sum of marks across evaluations; accepts models or raw documents."""
    total = 0.0
    for entry in evaluations:
        if isinstance(entry, QuestionEvaluation):
            total += entry.evaluation.marks
        else:
            total += float((entry.get("evaluation") or {}).get("marks") or 0)
    return total


# ============== ANSWERS & VIOLATIONS ==============

class AnswerSlot(BaseModel):
    question_id: str
    response_text: Optional[str] = None
    response_option: Optional[str] = None


class AnswerUpdate(BaseModel):
    """Partial edit of one slot; only fields the client actually sends are applied."""
    question_id: str
    response_text: Optional[str] = Field(default=None, max_length=3000)
    response_option: Optional[str] = None


class Violation(BaseModel):
    type: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Submission(BaseModel):
    """One student's attempt at one exam"""
    model_config = ConfigDict(extra="ignore", use_enum_values=True)
    submission_id: str
    exam_id: str
    student_id: str
    answers: List[AnswerSlot] = []
    evaluations: List[QuestionEvaluation] = []
    violations: List[Violation] = []
    marked_for_review: List[str] = []
    status: SubmissionStatus = SubmissionStatus.IN_PROGRESS
    submission_type: Optional[SubmissionType] = None
    started_at: datetime
    duration: int  # minutes, frozen at start
    submitted_at: Optional[datetime] = None
    evaluated_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    evaluated_by: Optional[str] = None
    total_marks: Optional[float] = 0

    @property
    def violation_count(self) -> int:
        return len(self.violations)

    def redacted(self) -> "Submission":
        """Hide scores from the student until results are published."""
        if self.status == SubmissionStatus.PUBLISHED:
            return self
        return self.model_copy(update={"evaluations": [], "total_marks": None})


# ============== REQUEST BODIES ==============

class SaveAnswersRequest(BaseModel):
    answers: List[AnswerUpdate] = []
    marked_for_review: Optional[List[str]] = None


class SubmitRequest(BaseModel):
    answers: List[AnswerUpdate] = []
    marked_for_review: Optional[List[str]] = None


class ViolationReport(BaseModel):
    type: str = Field(min_length=1, max_length=100)


class EvaluationOverride(BaseModel):
    question_id: str
    marks: float = Field(ge=0)
    remarks: str = Field(default="", max_length=1000)


class EvaluationOverrideRequest(BaseModel):
    evaluations: List[EvaluationOverride] = Field(min_length=1)
