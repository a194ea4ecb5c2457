"""Pydantic models for the examsuite submission core"""

from .user import User
from .exam import (
    ExamStatus,
    QuestionType,
    EvaluationPolicy,
    QuestionOption,
    Question,
    Exam,
)
from .submission import (
    SubmissionStatus,
    SUBMISSION_TRANSITIONS,
    InvalidTransitionError,
    can_transition,
    ensure_transition,
    has_reached,
    SubmissionType,
    EvaluatorKind,
    AutomaticMeta,
    AiSuccessMeta,
    AiFallbackConfigMeta,
    AiFallbackErrorMeta,
    EvaluationErrorMeta,
    TeacherOverrideMeta,
    Evaluation,
    QuestionEvaluation,
    compute_total_marks,
    AnswerSlot,
    AnswerUpdate,
    Violation,
    Submission,
    SaveAnswersRequest,
    SubmitRequest,
    ViolationReport,
    EvaluationOverride,
    EvaluationOverrideRequest,
)
