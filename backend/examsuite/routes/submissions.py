"""Student submission routes - start, save, submit, report violations, read."""

from fastapi import APIRouter, Depends, HTTPException

from examsuite.config import logger
from examsuite.deps import require_student, get_submission_service
from examsuite.models.user import User
from examsuite.models.submission import (
    SaveAnswersRequest,
    SubmitRequest,
    SubmissionType,
    ViolationReport,
)
from examsuite.services.submissions import SubmissionService

router = APIRouter(tags=["submissions"])


async def _check_owner(service: SubmissionService, submission_id: str, user: User):
    """404 unless the caller owns the submission. Leaves the deadline guard to
    the operation that follows."""
    if await service.get_owner_id(submission_id) != user.user_id:
        raise HTTPException(status_code=404, detail="Submission not found")


@router.post("/exams/{exam_id}/submissions")
async def start_submission(
    exam_id: str,
    user: User = Depends(require_student),
    service: SubmissionService = Depends(get_submission_service),
):
    """Start an attempt, or resume the existing one"""
    submission = await service.start_or_resume_submission(exam_id, user.user_id)
    return submission.redacted()


@router.get("/submissions/mine")
async def list_my_submissions(
    user: User = Depends(require_student),
    service: SubmissionService = Depends(get_submission_service),
):
    return await service.list_my_submissions(user.user_id)


@router.get("/submissions/{submission_id}")
async def get_my_submission(
    submission_id: str,
    user: User = Depends(require_student),
    service: SubmissionService = Depends(get_submission_service),
):
    await _check_owner(service, submission_id, user)
    return await service.get_submission(submission_id)


@router.put("/submissions/{submission_id}/answers")
async def save_answers(
    submission_id: str,
    body: SaveAnswersRequest,
    user: User = Depends(require_student),
    service: SubmissionService = Depends(get_submission_service),
):
    """Partial save; auto-finalizes instead if time is up"""
    await _check_owner(service, submission_id, user)
    submission = await service.save_answers(submission_id, body.answers, body.marked_for_review)
    return submission.redacted()


@router.post("/submissions/{submission_id}/submit")
async def submit_submission(
    submission_id: str,
    body: SubmitRequest,
    user: User = Depends(require_student),
    service: SubmissionService = Depends(get_submission_service),
):
    await _check_owner(service, submission_id, user)
    submission = await service.submit(
        submission_id, SubmissionType.MANUAL, body.answers, body.marked_for_review
    )
    return submission.redacted()


@router.post("/submissions/{submission_id}/violations")
async def report_violation(
    submission_id: str,
    body: ViolationReport,
    user: User = Depends(require_student),
    service: SubmissionService = Depends(get_submission_service),
):
    """Proctoring signal. Always answers 200 so the exam client never breaks."""
    try:
        await _check_owner(service, submission_id, user)
    except HTTPException:
        return {"violation_count": 0, "status": None}
    except Exception as e:
        logger.error(f"Error checking ownership of {submission_id} for violation report: {e}", exc_info=True)
        return {"violation_count": 0, "status": None}
    result = await service.report_violation(submission_id, body.type)
    return {"violation_count": result["violation_count"], "status": result["status"]}
