"""
Submission lifecycle - the state machine behind every student attempt.

    in-progress -> submitted -> evaluated -> published

Every transition is a single `find_one_and_update` filtered on the expected
current status, so two racing triggers (a manual submit and a deadline-driven
auto-finalize, say) cannot both move the same submission: the loser finds no
match, re-reads, and returns the record as it now stands.

The deadline is checked lazily at the top of every read and write. An expired
in-progress attempt is submitted and evaluated in the same call, so the caller
always gets a definitive status back.
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional, Tuple

from fastapi import HTTPException
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from examsuite.config import logger, VIOLATION_THRESHOLD
from examsuite.models.submission import (
    Evaluation,
    EvaluationOverride,
    EvaluatorKind,
    InvalidTransitionError,
    QuestionEvaluation,
    Submission,
    SubmissionStatus,
    SubmissionType,
    TeacherOverrideMeta,
    compute_total_marks,
    ensure_transition,
    has_reached,
)
from examsuite.services.answer_merge import merge_answers, merge_review_marks
from examsuite.services.deadline import as_utc, is_expired
from examsuite.services.evaluation import evaluate_answers, log_evaluation_analytics
from examsuite.services.exams import get_exam, get_questions, is_exam_open
from examsuite.services.scoring import ScoringClient
from examsuite.services.violations import exceeds_threshold, record_violation
from examsuite.utils.ids import new_id

IN_PROGRESS = SubmissionStatus.IN_PROGRESS.value
SUBMITTED = SubmissionStatus.SUBMITTED.value
EVALUATED = SubmissionStatus.EVALUATED.value
PUBLISHED = SubmissionStatus.PUBLISHED.value

# Extra grace on top of the scorer's worst-case latency before a submission
# stuck in `submitted` is considered abandoned and re-evaluated
STALE_EVALUATION_MARGIN_SECONDS = 60

_PROJECTION = {"_id": 0}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SubmissionService:
    """Owns the authoritative status of every attempt."""

    def __init__(self, database, scorer=None, clock: Callable[[], datetime] = _utcnow,
                 violation_threshold: int = VIOLATION_THRESHOLD):
        self.db = database
        self.scorer = scorer if scorer is not None else ScoringClient()
        self.clock = clock
        self.violation_threshold = violation_threshold

        settings = getattr(self.scorer, "settings", None)
        worst_case = settings.worst_case_seconds if settings is not None else 0
        self.stale_after = timedelta(seconds=worst_case + STALE_EVALUATION_MARGIN_SECONDS)

    # ============== LOOKUPS ==============

    async def _load(self, submission_id: str) -> Optional[dict]:
        return await self.db.submissions.find_one({"submission_id": submission_id}, _PROJECTION)

    async def _require(self, submission_id: str) -> dict:
        doc = await self._load(submission_id)
        if not doc:
            raise HTTPException(status_code=404, detail="Submission not found")
        return doc

    async def _exam_end_time(self, exam_id: str) -> Optional[datetime]:
        exam = await self.db.exams.find_one({"exam_id": exam_id}, {"_id": 0, "end_time": 1})
        return exam.get("end_time") if exam else None

    async def _transition(self, submission_id: str, expected: str, update: dict) -> Optional[dict]:
        """Atomic status-guarded write; None when the status already moved on."""
        return await self.db.submissions.find_one_and_update(
            {"submission_id": submission_id, "status": expected},
            {"$set": update},
            projection=_PROJECTION,
            return_document=ReturnDocument.AFTER,
        )

    # ============== DEADLINE GUARD ==============

    async def _enforce_deadline(self, doc: dict) -> Tuple[dict, bool]:
        """
        Run before any operation on a submission. Returns the (possibly
        finalized) document and whether this call auto-finalized it.
        """
        status = doc.get("status")
        if status == IN_PROGRESS:
            end_time = await self._exam_end_time(doc["exam_id"])
            if is_expired(self.clock(), doc["started_at"], doc["duration"], end_time):
                logger.info(f"⏰ Deadline passed for {doc['submission_id']} - auto-finalizing")
                return await self._finalize(doc, SubmissionType.AUTO), True

        elif status == SUBMITTED and not doc.get("evaluations"):
            submitted_at = as_utc(doc.get("submitted_at"))
            if submitted_at is None or as_utc(self.clock()) - submitted_at >= self.stale_after:
                logger.warning(f"Submission {doc['submission_id']} stuck in submitted - re-running evaluation")
                return await self._evaluate(doc), False

        return doc, False

    # ============== TRANSITIONS ==============

    async def _finalize(self, doc: dict, submission_type: SubmissionType,
                        answers: Optional[Iterable] = None,
                        review_marks: Optional[Iterable[str]] = None) -> dict:
        """in-progress -> submitted -> evaluated, with a last merge of unsaved answers."""
        submission_id = doc["submission_id"]
        if doc["status"] != IN_PROGRESS:
            return doc
        ensure_transition(doc["status"], SubmissionStatus.SUBMITTED)

        update = {
            "status": SUBMITTED,
            "submitted_at": self.clock(),
            "submission_type": SubmissionType(submission_type).value,
        }
        if answers:
            update["answers"] = merge_answers(doc["answers"], answers)
        if review_marks is not None:
            update["marked_for_review"] = merge_review_marks(doc["answers"], review_marks)

        submitted = await self._transition(submission_id, IN_PROGRESS, update)
        if submitted is None:
            logger.info(f"Submission {submission_id} already advanced - returning current state")
            return await self._require(submission_id)

        logger.info(f"📝 Submission {submission_id} submitted ({update['submission_type']})")
        return await self._evaluate(submitted)

    async def _evaluate(self, doc: dict) -> dict:
        """submitted -> evaluated. Skipped when evaluations already exist."""
        submission_id = doc["submission_id"]
        if doc.get("evaluations"):
            return doc
        ensure_transition(doc["status"], SubmissionStatus.EVALUATED)

        exam = await get_exam(self.db, doc["exam_id"])
        if exam is None:
            raise HTTPException(
                status_code=500,
                detail=f"Exam {doc['exam_id']} referenced by submission {submission_id} no longer exists",
            )
        questions = await get_questions(self.db, [slot["question_id"] for slot in doc["answers"]])

        started = time.monotonic()
        evaluations = await evaluate_answers(
            doc["answers"], questions, exam.evaluation_policy, self.scorer, now=self.clock
        )
        evaluation_docs = [entry.model_dump() for entry in evaluations]

        # Single replace of the full set; readers never see a partial evaluation
        evaluated = await self.db.submissions.find_one_and_update(
            {"submission_id": submission_id, "status": SUBMITTED, "evaluations": {"$size": 0}},
            {"$set": {
                "evaluations": evaluation_docs,
                "total_marks": compute_total_marks(evaluation_docs),
                "evaluated_at": self.clock(),
                "status": EVALUATED,
            }},
            projection=_PROJECTION,
            return_document=ReturnDocument.AFTER,
        )
        if evaluated is None:
            logger.info(f"Submission {submission_id} was evaluated concurrently - keeping existing result")
            return await self._require(submission_id)

        logger.info(f"✅ Evaluated {submission_id}: {len(evaluation_docs)} answer(s), "
                    f"total {evaluated['total_marks']}")
        await log_evaluation_analytics(self.db, submission_id, doc["exam_id"], evaluations, started)
        return evaluated

    # ============== OPERATIONS ==============

    async def start_or_resume_submission(self, exam_id: str, student_id: str) -> Submission:
        existing = await self.db.submissions.find_one(
            {"exam_id": exam_id, "student_id": student_id}, _PROJECTION
        )
        if existing:
            doc, _ = await self._enforce_deadline(existing)
            return Submission(**doc)

        exam = await get_exam(self.db, exam_id)
        if exam is None:
            raise HTTPException(status_code=404, detail="Exam not found")

        now = self.clock()
        if not is_exam_open(exam, now):
            raise HTTPException(status_code=403, detail="Exam is not open for attempts")

        doc = {
            "submission_id": new_id("sub"),
            "exam_id": exam_id,
            "student_id": student_id,
            "answers": [
                {"question_id": qid, "response_text": None, "response_option": None}
                for qid in exam.question_ids
            ],
            "evaluations": [],
            "violations": [],
            "marked_for_review": [],
            "status": IN_PROGRESS,
            "submission_type": None,
            "started_at": now,
            "duration": exam.duration,
            "submitted_at": None,
            "evaluated_at": None,
            "published_at": None,
            "evaluated_by": None,
            "total_marks": 0,
        }
        try:
            await self.db.submissions.insert_one(dict(doc))
        except DuplicateKeyError:
            # A concurrent start won; resume theirs
            logger.info(f"Concurrent start for exam {exam_id} / student {student_id} - resuming")
            existing = await self.db.submissions.find_one(
                {"exam_id": exam_id, "student_id": student_id}, _PROJECTION
            )
            doc, _ = await self._enforce_deadline(existing)
            return Submission(**doc)

        logger.info(f"🆕 Started submission {doc['submission_id']} for exam {exam_id} "
                    f"({len(doc['answers'])} questions, {exam.duration} min)")
        return Submission(**doc)

    async def save_answers(self, submission_id: str, answers: Optional[Iterable] = None,
                           review_marks: Optional[Iterable[str]] = None) -> Submission:
        doc = await self._require(submission_id)
        doc, finalized = await self._enforce_deadline(doc)
        if finalized:
            return Submission(**doc)
        if doc["status"] != IN_PROGRESS:
            # Time ran out (or violations tripped) before this save arrived
            if doc.get("submission_type") == SubmissionType.AUTO.value:
                return Submission(**doc)
            raise HTTPException(status_code=409, detail="Submission is no longer in progress")

        update = {"answers": merge_answers(doc["answers"], answers)}
        if review_marks is not None:
            update["marked_for_review"] = merge_review_marks(doc["answers"], review_marks)

        saved = await self._transition(submission_id, IN_PROGRESS, update)
        if saved is None:
            logger.info(f"Save on {submission_id} lost a race with finalize - returning current state")
            return Submission(**(await self._require(submission_id)))
        return Submission(**saved)

    async def submit(self, submission_id: str,
                     submission_type: SubmissionType = SubmissionType.MANUAL,
                     answers: Optional[Iterable] = None,
                     review_marks: Optional[Iterable[str]] = None) -> Submission:
        doc = await self._require(submission_id)
        doc, finalized = await self._enforce_deadline(doc)
        if finalized or doc["status"] != IN_PROGRESS:
            return Submission(**doc)
        doc = await self._finalize(doc, submission_type, answers, review_marks)
        return Submission(**doc)

    async def report_violation(self, submission_id: str, violation_type: str) -> dict:
        """
        Record a proctoring violation. Never raises: proctoring signals must
        not break the exam client.
        """
        count = 0
        try:
            doc = await self._load(submission_id)
            if doc is None:
                logger.warning(f"Violation '{violation_type}' reported for unknown submission {submission_id}")
                return {"violation_count": 0, "status": None, "submission": None}

            doc, finalized = await self._enforce_deadline(doc)
            count = len(doc.get("violations", []))
            if finalized or doc["status"] != IN_PROGRESS:
                return {"violation_count": count, "status": doc["status"], "submission": Submission(**doc)}

            recorded = await record_violation(self.db, submission_id, violation_type, self.clock())
            doc = await self._require(submission_id)
            count = recorded if recorded is not None else len(doc.get("violations", []))

            if recorded is not None and exceeds_threshold(recorded, self.violation_threshold):
                logger.warning(f"🚨 Violation threshold exceeded on {submission_id} "
                               f"({recorded} > {self.violation_threshold}) - auto-submitting")
                doc = await self._finalize(doc, SubmissionType.AUTO)

            return {"violation_count": count, "status": doc["status"], "submission": Submission(**doc)}
        except Exception as e:
            logger.error(f"Error handling violation for {submission_id}: {e}", exc_info=True)
            return {"violation_count": count, "status": None, "submission": None}

    async def apply_teacher_evaluation_override(self, submission_id: str, overrides: Iterable,
                                                teacher_id: Optional[str] = None) -> Submission:
        overrides = [o if isinstance(o, EvaluationOverride) else EvaluationOverride(**o) for o in overrides]
        if not overrides:
            raise HTTPException(status_code=400, detail="At least one evaluation is required")

        doc = await self._require(submission_id)
        doc, _ = await self._enforce_deadline(doc)
        if not has_reached(doc["status"], SubmissionStatus.EVALUATED):
            raise HTTPException(status_code=409, detail="Submission has not been evaluated yet")

        evaluations = [dict(entry) for entry in doc.get("evaluations", [])]
        index = {entry["question_id"]: pos for pos, entry in enumerate(evaluations)}
        questions = await get_questions(self.db, [o.question_id for o in overrides if o.question_id in index])
        now = self.clock()

        applied = 0
        for override in overrides:
            pos = index.get(override.question_id)
            if pos is None:
                logger.warning(f"Override for unknown question {override.question_id} on {submission_id} ignored")
                continue
            question = questions.get(override.question_id)
            if question is not None and override.marks > question.max_marks:
                raise HTTPException(
                    status_code=400,
                    detail=f"Marks for question {override.question_id} cannot exceed {question.max_marks}",
                )
            previous = evaluations[pos]["evaluation"]
            evaluations[pos] = QuestionEvaluation(
                question_id=override.question_id,
                evaluation=Evaluation(
                    evaluator=EvaluatorKind.TEACHER,
                    marks=override.marks,
                    remarks=override.remarks,
                    evaluated_at=now,
                    meta=TeacherOverrideMeta(
                        previous_marks=previous.get("marks", 0),
                        previous_evaluator=previous.get("evaluator", "unknown"),
                        teacher_id=teacher_id,
                    ),
                ),
            ).model_dump()
            applied += 1

        if not applied:
            return Submission(**doc)

        updated = await self.db.submissions.find_one_and_update(
            {"submission_id": submission_id, "status": {"$in": [EVALUATED, PUBLISHED]}},
            {"$set": {
                "evaluations": evaluations,
                "total_marks": compute_total_marks(evaluations),
                "evaluated_by": teacher_id,
            }},
            projection=_PROJECTION,
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            return Submission(**(await self._require(submission_id)))

        logger.info(f"✏️ Teacher {teacher_id} overrode {applied} evaluation(s) on {submission_id}")
        return Submission(**updated)

    async def publish(self, submission_id: str) -> Submission:
        doc = await self._require(submission_id)
        doc, _ = await self._enforce_deadline(doc)
        if doc["status"] == PUBLISHED:
            return Submission(**doc)
        try:
            ensure_transition(doc["status"], SubmissionStatus.PUBLISHED)
        except InvalidTransitionError as e:
            raise HTTPException(status_code=409, detail=f"Cannot publish unevaluated work: {e}")

        published = await self._transition(submission_id, EVALUATED, {
            "status": PUBLISHED,
            "published_at": self.clock(),
        })
        if published is None:
            return Submission(**(await self._require(submission_id)))
        logger.info(f"📢 Published submission {submission_id}")
        return Submission(**published)

    async def publish_all_evaluated(self, exam_id: str) -> dict:
        result = await self.db.submissions.update_many(
            {"exam_id": exam_id, "status": EVALUATED},
            {"$set": {"status": PUBLISHED, "published_at": self.clock()}},
        )
        logger.info(f"📢 Published {result.modified_count} submission(s) for exam {exam_id}")
        return {"count": result.modified_count}

    # ============== READS ==============

    async def get_owner_id(self, submission_id: str) -> str:
        """Student id of a submission, read without running the deadline guard."""
        doc = await self.db.submissions.find_one(
            {"submission_id": submission_id}, {"_id": 0, "student_id": 1}
        )
        if not doc:
            raise HTTPException(status_code=404, detail="Submission not found")
        return doc["student_id"]

    async def get_submission(self, submission_id: str, redact: bool = True) -> Submission:
        doc = await self._require(submission_id)
        doc, _ = await self._enforce_deadline(doc)
        submission = Submission(**doc)
        return submission.redacted() if redact else submission

    async def list_my_submissions(self, student_id: str) -> List[Submission]:
        docs = await self.db.submissions.find(
            {"student_id": student_id}, _PROJECTION
        ).sort("started_at", -1).to_list(500)
        result = []
        for doc in docs:
            doc, _ = await self._enforce_deadline(doc)
            result.append(Submission(**doc).redacted())
        return result

    async def list_exam_submissions(self, exam_id: str) -> List[Submission]:
        """Teacher view: every attempt for one exam, scores included."""
        docs = await self.db.submissions.find(
            {"exam_id": exam_id}, _PROJECTION
        ).sort("started_at", 1).to_list(1000)
        result = []
        for doc in docs:
            doc, _ = await self._enforce_deadline(doc)
            result.append(Submission(**doc))
        return result
