"""
Violation ledger - append-only proctoring events on a submission.
"""

from datetime import datetime, timezone
from typing import Optional

from pymongo import ReturnDocument

from examsuite.config import logger
from examsuite.models.submission import SubmissionStatus


async def record_violation(database, submission_id: str, violation_type: str,
                           timestamp: Optional[datetime] = None) -> Optional[int]:
    """
    Append one violation and return the new count.

    Only in-progress submissions accept new events. Returns None when no
    in-progress submission matched, leaving the caller to decide what that
    means.
    """
    event = {
        "type": violation_type,
        "timestamp": timestamp or datetime.now(timezone.utc),
    }
    updated = await database.submissions.find_one_and_update(
        {"submission_id": submission_id, "status": SubmissionStatus.IN_PROGRESS.value},
        {"$push": {"violations": event}},
        projection={"_id": 0, "violations": 1},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        return None

    count = len(updated.get("violations", []))
    logger.info(f"Recorded violation '{violation_type}' on {submission_id} (count={count})")
    return count


def exceeds_threshold(count: int, threshold: int) -> bool:
    # Strictly greater: the report after the threshold-th one triggers
    return count > threshold
