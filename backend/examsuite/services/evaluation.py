"""
Evaluation dispatcher - scores every answer slot of a submission.

Objective questions are marked locally; subjective ones go through the
ScoringClient. Slots are scored concurrently and independently, so one bad
slot never holds up the rest.
"""

import asyncio
import time
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional

from fastapi import HTTPException

from examsuite.config import logger, SCORING_CONCURRENCY
from examsuite.models.exam import EvaluationPolicy, Question, QuestionType
from examsuite.models.submission import (
    AutomaticMeta,
    EvaluationErrorMeta,
    Evaluation,
    EvaluatorKind,
    QuestionEvaluation,
    compute_total_marks,
)
from examsuite.utils.ids import new_id


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _automatic(question: Question, marks: float, remarks: str, outcome: str,
               evaluated_at: datetime, detail: Optional[str] = None) -> QuestionEvaluation:
    return QuestionEvaluation(
        question_id=question.question_id,
        evaluation=Evaluation(
            evaluator=EvaluatorKind.AUTOMATIC,
            marks=marks,
            remarks=remarks,
            evaluated_at=evaluated_at,
            meta=AutomaticMeta(outcome=outcome, detail=detail),
        ),
    )


def evaluate_multiple_choice(slot: dict, question: Question, evaluated_at: datetime) -> QuestionEvaluation:
    chosen = slot.get("response_option")
    if not chosen:
        return _automatic(question, 0, "Not answered", "unanswered", evaluated_at)

    option = next((o for o in question.options if o.option_id == str(chosen)), None)
    if option is None:
        return _automatic(question, 0, "Selected option is not part of this question",
                          "unknown-option", evaluated_at, detail=str(chosen))
    if option.is_correct:
        return _automatic(question, question.max_marks, "Correct answer", "correct", evaluated_at)
    return _automatic(question, 0, "Incorrect answer", "incorrect", evaluated_at)


async def evaluate_subjective(slot: dict, question: Question, exam_policy: Optional[EvaluationPolicy],
                              scorer, now: Callable[[], datetime] = _now) -> QuestionEvaluation:
    response = slot.get("response_text") or ""
    if not response.strip():
        return _automatic(question, 0, "No answer provided", "empty-answer", now())

    policy = (exam_policy or EvaluationPolicy()).merged_with(question.evaluation_policy)
    result = await scorer.score(
        question.text,
        response,
        reference_answer=question.answer,
        weight=question.max_marks / 100,
        max_marks=question.max_marks,
        policy=policy,
    )
    return QuestionEvaluation(
        question_id=question.question_id,
        evaluation=Evaluation(
            evaluator=result.evaluator,
            marks=result.marks,
            remarks=result.remarks[:1000],
            evaluated_at=now(),
            meta=result.meta,
        ),
    )


async def evaluate_answer(slot: dict, question: Question, exam_policy: Optional[EvaluationPolicy],
                          scorer, now: Callable[[], datetime] = _now) -> QuestionEvaluation:
    if question.type == QuestionType.MULTIPLE_CHOICE:
        return evaluate_multiple_choice(slot, question, now())
    return await evaluate_subjective(slot, question, exam_policy, scorer, now)


def check_question_integrity(slots: List[dict], questions: Dict[str, Question]):
    """Missing questions or question text mean corrupted data, not a scorer hiccup."""
    for slot in slots:
        question = questions.get(slot["question_id"])
        if question is None:
            raise HTTPException(
                status_code=500,
                detail=f"Question {slot['question_id']} referenced by submission no longer exists",
            )
        if question.type == QuestionType.SUBJECTIVE and not question.text.strip():
            raise HTTPException(
                status_code=500,
                detail=f"Question {question.question_id} has no text to evaluate against",
            )


async def evaluate_answers(slots: List[dict], questions: Dict[str, Question],
                           exam_policy: Optional[EvaluationPolicy], scorer,
                           now: Callable[[], datetime] = _now,
                           concurrency: int = SCORING_CONCURRENCY) -> List[QuestionEvaluation]:
    """One evaluation per slot, in slot order."""
    check_question_integrity(slots, questions)
    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def run(slot: dict) -> QuestionEvaluation:
        question = questions[slot["question_id"]]
        async with semaphore:
            try:
                return await evaluate_answer(slot, question, exam_policy, scorer, now)
            except Exception as e:
                logger.error(f"Evaluation failed for question {question.question_id}: {e}", exc_info=True)
                return QuestionEvaluation(
                    question_id=question.question_id,
                    evaluation=Evaluation(
                        evaluator=EvaluatorKind.SYSTEM_FALLBACK,
                        marks=0,
                        remarks="This answer could not be evaluated automatically and is flagged for teacher review.",
                        evaluated_at=now(),
                        meta=EvaluationErrorMeta(reason=f"{type(e).__name__}: {e}"[:500]),
                    ),
                )

    return list(await asyncio.gather(*(run(slot) for slot in slots)))


def summarize_evaluations(evaluations: List[QuestionEvaluation]) -> dict:
    by_kind: Dict[str, int] = {}
    for entry in evaluations:
        kind = entry.evaluation.meta.kind
        by_kind[kind] = by_kind.get(kind, 0) + 1
    return {
        "num_questions": len(evaluations),
        "total_marks": compute_total_marks(evaluations),
        "by_meta_kind": by_kind,
        "fallback_count": sum(
            1 for e in evaluations if e.evaluation.evaluator == EvaluatorKind.SYSTEM_FALLBACK.value
        ),
    }


async def log_evaluation_analytics(database, submission_id: str, exam_id: str,
                                   evaluations: List[QuestionEvaluation], started: float):
    """Best-effort audit row per evaluated submission."""
    try:
        await database.evaluation_analytics.insert_one({
            "analytics_id": new_id("ea"),
            "submission_id": submission_id,
            "exam_id": exam_id,
            "evaluation_time_ms": int((time.monotonic() - started) * 1000),
            **summarize_evaluations(evaluations),
            "created_at": datetime.now(timezone.utc),
        })
    except Exception as e:
        logger.error(f"Error logging evaluation analytics: {e}")
