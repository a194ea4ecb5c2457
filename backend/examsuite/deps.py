"""
FastAPI dependencies - get_current_user, role guards, service wiring.
"""

from functools import lru_cache
from datetime import datetime, timezone

from fastapi import Request, HTTPException, Depends

from .database import db
from .models.user import User
from .services.scoring import ScoringClient
from .services.submissions import SubmissionService


async def get_current_user(request: Request) -> User:
    """Resolve the caller from a session token (cookie or bearer header).
    Sessions are issued elsewhere; this only validates them."""
    session_token = request.cookies.get("session_token")

    if not session_token:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            session_token = auth_header.split(" ")[1]

    if not session_token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    session = await db.user_sessions.find_one(
        {"session_token": session_token},
        {"_id": 0}
    )
    if not session:
        raise HTTPException(status_code=401, detail="Invalid session")

    expires_at = session.get("expires_at")
    if isinstance(expires_at, str):
        expires_at = datetime.fromisoformat(expires_at)
    if expires_at is not None:
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at < datetime.now(timezone.utc):
            raise HTTPException(status_code=401, detail="Session expired")

    user = await db.users.find_one({"user_id": session["user_id"]}, {"_id": 0})
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    account_status = user.get("account_status", "active")
    if account_status in ("banned", "disabled"):
        raise HTTPException(status_code=403, detail=f"Account {account_status}. Contact support.")

    return User(**user)


async def require_student(user: User = Depends(get_current_user)) -> User:
    if user.role != "student":
        raise HTTPException(status_code=403, detail="Student access required")
    return user


async def require_teacher(user: User = Depends(get_current_user)) -> User:
    if user.role not in ("teacher", "admin"):
        raise HTTPException(status_code=403, detail="Teacher access required")
    return user


@lru_cache(maxsize=1)
def get_scoring_client() -> ScoringClient:
    return ScoringClient()


def get_submission_service() -> SubmissionService:
    return SubmissionService(db, scorer=get_scoring_client())
