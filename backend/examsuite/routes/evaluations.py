"""Teacher-facing routes - review, override and publish evaluated submissions."""

from fastapi import APIRouter, Depends

from examsuite.deps import require_teacher, get_submission_service
from examsuite.models.user import User
from examsuite.models.submission import EvaluationOverrideRequest
from examsuite.services.submissions import SubmissionService

router = APIRouter(tags=["evaluations"])


@router.get("/exams/{exam_id}/submissions")
async def list_exam_submissions(
    exam_id: str,
    user: User = Depends(require_teacher),
    service: SubmissionService = Depends(get_submission_service),
):
    return await service.list_exam_submissions(exam_id)


@router.put("/submissions/{submission_id}/evaluations")
async def override_evaluations(
    submission_id: str,
    body: EvaluationOverrideRequest,
    user: User = Depends(require_teacher),
    service: SubmissionService = Depends(get_submission_service),
):
    """Replace marks/remarks for individual questions"""
    return await service.apply_teacher_evaluation_override(
        submission_id, body.evaluations, teacher_id=user.user_id
    )


@router.post("/submissions/{submission_id}/publish")
async def publish_submission(
    submission_id: str,
    user: User = Depends(require_teacher),
    service: SubmissionService = Depends(get_submission_service),
):
    return await service.publish(submission_id)


@router.post("/exams/{exam_id}/publish-results")
async def publish_exam_results(
    exam_id: str,
    user: User = Depends(require_teacher),
    service: SubmissionService = Depends(get_submission_service),
):
    """Publish every evaluated submission of an exam"""
    return await service.publish_all_evaluated(exam_id)
