import logging
from datetime import timedelta

from examsuite.services.exam_status import (
    cleanup_orphan_exams,
    run_exam_status_scheduler,
    sync_exam_statuses,
)
from fakes import FakeClock, FakeDatabase
from helpers import run


def exam(exam_id, clock, status="active", end_in_minutes=60, question_ids=("q1",), age_hours=1):
    return {
        "exam_id": exam_id,
        "title": exam_id,
        "status": status,
        "end_time": clock() + timedelta(minutes=end_in_minutes) if end_in_minutes is not None else None,
        "duration": 30,
        "question_ids": list(question_ids),
        "created_at": clock() - timedelta(hours=age_hours),
    }


def statuses(db):
    return {doc["exam_id"]: doc["status"] for doc in db.exams.docs}


def test_sync_completes_only_ended_active_exams():
    db, clock = FakeDatabase(), FakeClock()
    db.exams.docs.extend([
        exam("ended", clock, end_in_minutes=-1),
        exam("ending_now", clock, end_in_minutes=0),
        exam("running", clock, end_in_minutes=30),
        exam("draft_past", clock, status="draft", end_in_minutes=-60),
        exam("open_ended", clock, end_in_minutes=None),
    ])
    result = run(sync_exam_statuses(db, clock()))
    assert result == {"completed": 2, "ran_at": clock()}
    assert statuses(db) == {
        "ended": "completed",
        "ending_now": "completed",
        "running": "active",
        "draft_past": "draft",
        "open_ended": "active",
    }


def test_sync_is_idempotent():
    db, clock = FakeDatabase(), FakeClock()
    db.exams.docs.append(exam("ended", clock, end_in_minutes=-1))
    run(sync_exam_statuses(db, clock()))
    assert run(sync_exam_statuses(db, clock()))["completed"] == 0


def test_cleanup_removes_only_old_empty_drafts():
    db, clock = FakeDatabase(), FakeClock()
    db.exams.docs.extend([
        exam("orphan", clock, status="draft", question_ids=(), age_hours=25),
        exam("fresh_draft", clock, status="draft", question_ids=(), age_hours=2),
        exam("draft_with_questions", clock, status="draft", age_hours=48),
        exam("active_empty", clock, question_ids=(), age_hours=48),
    ])
    assert run(cleanup_orphan_exams(db, clock())) == 1
    assert "orphan" not in statuses(db)
    assert len(db.exams.docs) == 3
    assert run(cleanup_orphan_exams(db, clock())) == 0


def test_scheduler_runs_immediately_and_sleeps_between_ticks():
    db, clock = FakeDatabase(), FakeClock()
    db.exams.docs.append(exam("ended", clock, end_in_minutes=-1))
    waits = []

    async def sleep(seconds):
        waits.append(seconds)
        clock.advance(seconds=seconds)

    run(run_exam_status_scheduler(db, interval=60, cleanup_interval=3600,
                                  clock=clock, sleep=sleep, max_ticks=3))
    assert waits == [60, 60]
    assert statuses(db) == {"ended": "completed"}


def test_scheduler_survives_a_failing_tick(caplog):
    db, clock = FakeDatabase(), FakeClock()
    db.exams.docs.append(exam("ended", clock, end_in_minutes=-1))
    db.exams.fail_next = RuntimeError("connection reset")

    async def sleep(_seconds):
        return None

    with caplog.at_level(logging.ERROR, logger="examsuite"):
        run(run_exam_status_scheduler(db, interval=1, cleanup_interval=3600,
                                      clock=clock, sleep=sleep, max_ticks=2))
    assert "connection reset" in caplog.text
    assert statuses(db) == {"ended": "completed"}
