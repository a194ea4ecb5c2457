"""API route registration."""

from fastapi import APIRouter
from .submissions import router as submissions_router
from .evaluations import router as evaluations_router


def register_all_routes(api_router: APIRouter):
    """Include all route modules on the main API router."""
    # Student routes first so /submissions/mine wins over /submissions/{id}
    api_router.include_router(submissions_router)
    api_router.include_router(evaluations_router)
