"""Exam and question Pydantic models (read-only from the submission core)"""

from enum import Enum
from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Literal
from datetime import datetime, timezone


class ExamStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple-choice"
    SUBJECTIVE = "subjective"


class EvaluationPolicy(BaseModel):
    """Teacher guidance for the scorer. Every field is optional so that a
    question-level policy can override only what it sets."""
    model_config = ConfigDict(extra="ignore")
    strictness: Optional[Literal["lenient", "moderate", "strict"]] = None
    review_tone: Optional[Literal["concise", "detailed", "comprehensive", "exhaustive"]] = None
    expected_length: Optional[int] = Field(default=None, ge=1)  # expected words
    custom_instructions: Optional[str] = Field(default=None, max_length=500)

    def merged_with(self, override: Optional["EvaluationPolicy"]) -> "EvaluationPolicy":
        """Return a new policy where fields set on `override` win."""
        if override is None:
            return self.model_copy()
        data = self.model_dump()
        data.update({k: v for k, v in override.model_dump().items() if v is not None})
        return EvaluationPolicy(**data)


class QuestionOption(BaseModel):
    option_id: str
    text: str = ""
    is_correct: bool = False


class Question(BaseModel):
    model_config = ConfigDict(extra="ignore")
    question_id: str
    type: QuestionType
    text: str = ""
    max_marks: float = Field(ge=0)
    options: List[QuestionOption] = []  # MCQ only
    answer: Optional[str] = None  # reference answer for subjective questions
    evaluation_policy: Optional[EvaluationPolicy] = None


class Exam(BaseModel):
    model_config = ConfigDict(extra="ignore")
    exam_id: str
    title: str = ""
    teacher_id: Optional[str] = None
    status: ExamStatus = ExamStatus.DRAFT
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: int = Field(ge=1)  # minutes
    question_ids: List[str] = []
    evaluation_policy: EvaluationPolicy = Field(default_factory=EvaluationPolicy)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
