"""
Database connection - MongoDB async (Motor).
"""

import os

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ASCENDING

from examsuite.config import logger

mongo_url = os.environ.get('MONGO_URL', 'mongodb://localhost:27017')
db_name = os.environ.get('DB_NAME', 'examsuite')

# Motor connects lazily, so importing this module never touches the network
client = AsyncIOMotorClient(mongo_url, tz_aware=True)
db = client[db_name]


async def ensure_indexes(database=None):
    """Create the indexes the submission core relies on."""
    database = database if database is not None else db

    # One submission per (exam, student) - concurrent starts collapse onto this
    await database.submissions.create_index(
        [("exam_id", ASCENDING), ("student_id", ASCENDING)],
        unique=True,
        name="exam_student_unique",
    )
    await database.submissions.create_index("submission_id", unique=True)
    await database.submissions.create_index([("student_id", ASCENDING), ("started_at", ASCENDING)])
    await database.exams.create_index("exam_id", unique=True)
    await database.exams.create_index([("status", ASCENDING), ("end_time", ASCENDING)])
    await database.questions.create_index("question_id", unique=True)
    logger.info("✅ MongoDB indexes ensured")
