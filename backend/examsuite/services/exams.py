"""
Exam and question lookups. The submission core only reads these collections.
"""

from datetime import datetime
from typing import Dict, Iterable, Optional

from examsuite.models.exam import Exam, ExamStatus, Question
from examsuite.services.deadline import as_utc


async def get_exam(database, exam_id: str) -> Optional[Exam]:
    doc = await database.exams.find_one({"exam_id": exam_id}, {"_id": 0})
    return Exam(**doc) if doc else None


async def get_questions(database, question_ids: Iterable[str]) -> Dict[str, Question]:
    """Questions keyed by id; ids with no document are simply absent."""
    ids = list(question_ids)
    if not ids:
        return {}
    docs = await database.questions.find(
        {"question_id": {"$in": ids}}, {"_id": 0}
    ).to_list(len(ids))
    return {doc["question_id"]: Question(**doc) for doc in docs}


def is_exam_open(exam: Exam, now: datetime) -> bool:
    """Active and inside its [start_time, end_time) window."""
    if exam.status != ExamStatus.ACTIVE:
        return False
    now = as_utc(now)
    if exam.start_time is not None and now < as_utc(exam.start_time):
        return False
    if exam.end_time is not None and now >= as_utc(exam.end_time):
        return False
    return True
