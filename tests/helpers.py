"""Shared builders for the submission-core tests."""

import asyncio
from datetime import timedelta

from examsuite.config import ScorerSettings
from examsuite.services.scoring import ScoringClient

from fakes import FakeTransport, no_sleep

SCORER_SETTINGS = ScorerSettings(
    api_url="http://scorer.test/generate",
    api_key="test-key",
    timeout_seconds=1.0,
    max_retries=2,
    retry_delay_seconds=0.0,
    answer_char_cap=3000,
)


def run(coro):
    return asyncio.run(coro)


def make_scorer(*responses, default=None, settings=SCORER_SETTINGS):
    transport = FakeTransport(*responses, default=default)
    return ScoringClient(settings=settings, transport=transport, sleep=no_sleep), transport


def seed_exam(db, clock, exam_id="exam_1", duration=30, end_in_minutes=120, status="active",
              policy=None, start_offset_minutes=-5):
    """One MCQ (q_mcq, 5 marks) and one subjective question (q_essay, 10 marks)."""
    db.questions.docs.extend([
        {
            "question_id": "q_mcq",
            "type": "multiple-choice",
            "text": "Which planet is known as the red planet?",
            "max_marks": 5,
            "options": [
                {"option_id": "opt_venus", "text": "Venus", "is_correct": False},
                {"option_id": "opt_mars", "text": "Mars", "is_correct": True},
                {"option_id": "opt_jupiter", "text": "Jupiter", "is_correct": False},
            ],
        },
        {
            "question_id": "q_essay",
            "type": "subjective",
            "text": "Explain why the sky appears blue.",
            "max_marks": 10,
            "answer": "Rayleigh scattering scatters shorter blue wavelengths more strongly.",
        },
    ])
    db.exams.docs.append({
        "exam_id": exam_id,
        "title": "Physics quiz",
        "status": status,
        "start_time": clock() + timedelta(minutes=start_offset_minutes),
        "end_time": clock() + timedelta(minutes=end_in_minutes) if end_in_minutes is not None else None,
        "duration": duration,
        "question_ids": ["q_mcq", "q_essay"],
        "evaluation_policy": policy or {"strictness": "moderate"},
        "created_at": clock() - timedelta(days=1),
    })


