"""
Background worker service - hosts the exam status scheduler.
"""

from examsuite.config import logger
from examsuite.database import db
from examsuite.services.exam_status import run_exam_status_scheduler


async def run_background_worker(database=None):
    """Integrated background worker - runs until cancelled."""
    logger.info("🔄 Background worker started")
    logger.info("=" * 60)

    try:
        await run_exam_status_scheduler(database if database is not None else db)
    except Exception as e:
        logger.error(f"Background worker error: {e}", exc_info=True)
