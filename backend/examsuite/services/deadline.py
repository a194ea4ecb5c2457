"""
Deadline policy for in-progress submissions.

A submission's deadline is the earlier of its own time budget
(`started_at + duration`) and the exam's hard `end_time`. The check is pure and
evaluated lazily on access, so no per-submission timers are needed.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Mongo hands back naive datetimes unless tz_aware is set; treat those as UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def compute_deadline(started_at: datetime, duration_minutes: float,
                     exam_end_time: Optional[datetime] = None) -> datetime:
    deadline = as_utc(started_at) + timedelta(minutes=duration_minutes)
    end_time = as_utc(exam_end_time)
    if end_time is not None and end_time < deadline:
        return end_time
    return deadline


def is_expired(now: datetime, started_at: datetime, duration_minutes: float,
               exam_end_time: Optional[datetime] = None) -> bool:
    return as_utc(now) >= compute_deadline(started_at, duration_minutes, exam_end_time)


def seconds_remaining(now: datetime, started_at: datetime, duration_minutes: float,
                      exam_end_time: Optional[datetime] = None) -> float:
    """Time left before auto-finalize, never negative."""
    remaining = compute_deadline(started_at, duration_minutes, exam_end_time) - as_utc(now)
    return max(0.0, remaining.total_seconds())
