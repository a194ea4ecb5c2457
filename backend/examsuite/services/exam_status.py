"""
Exam status maintenance - keeps exam lifecycle states eventually consistent.

Both jobs are single filter-based writes, so overlapping ticks (or several app
instances running the sweep) cannot race each other. Submissions are never
touched here.
"""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from examsuite.config import (
    logger,
    EXAM_STATUS_SYNC_SECONDS,
    ORPHAN_CLEANUP_SECONDS,
    ORPHAN_DRAFT_MAX_AGE_HOURS,
)
from examsuite.models.exam import ExamStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def sync_exam_statuses(database, now: Optional[datetime] = None) -> dict:
    """Flip active exams whose end time has passed to completed."""
    now = now or _utcnow()
    result = await database.exams.update_many(
        {"status": ExamStatus.ACTIVE.value, "end_time": {"$lte": now}},
        {"$set": {"status": ExamStatus.COMPLETED.value}},
    )
    return {"completed": result.modified_count, "ran_at": now}


async def cleanup_orphan_exams(database, now: Optional[datetime] = None,
                               max_age_hours: float = ORPHAN_DRAFT_MAX_AGE_HOURS) -> int:
    """Delete drafts that never got a question and are older than `max_age_hours`."""
    now = now or _utcnow()
    cutoff = now - timedelta(hours=max_age_hours)
    result = await database.exams.delete_many({
        "status": ExamStatus.DRAFT.value,
        "question_ids": {"$size": 0},
        "created_at": {"$lte": cutoff},
    })
    if result.deleted_count:
        logger.info(f"🧹 Removed {result.deleted_count} orphan draft exam(s)")
    return result.deleted_count


async def run_exam_status_scheduler(
    database,
    interval: float = EXAM_STATUS_SYNC_SECONDS,
    cleanup_interval: float = ORPHAN_CLEANUP_SECONDS,
    clock: Callable[[], datetime] = _utcnow,
    sleep=asyncio.sleep,
    max_ticks: Optional[int] = None,
):
    """
    Sync statuses every `interval` seconds and clean up orphan drafts every
    `cleanup_interval` seconds. Runs once immediately on start. A failing tick
    is logged and the loop carries on.
    """
    last_cleanup = None
    ticks = 0
    while max_ticks is None or ticks < max_ticks:
        try:
            result = await sync_exam_statuses(database, clock())
            if result["completed"]:
                logger.info(f"[exam-status] completed {result['completed']} exam(s)")
        except Exception as e:
            logger.error(f"[exam-status] sync error: {e}", exc_info=True)

        if last_cleanup is None or time.monotonic() - last_cleanup >= cleanup_interval:
            try:
                await cleanup_orphan_exams(database, clock())
            except Exception as e:
                logger.error(f"[exam-status] cleanup error: {e}", exc_info=True)
            last_cleanup = time.monotonic()

        ticks += 1
        if max_ticks is not None and ticks >= max_ticks:
            break
        await sleep(interval)
