"""
Single user + challenge progress view.

describe_progress is deterministic for a fixed `now`; a user without a
record gets a zero-valued view rather than an error.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from ecotrac.models.challenge import Challenge
from ecotrac.models.progress import NoteView, ProgressRecord, ProgressView

ONE_DAY = timedelta(days=1)


def describe_progress(
    challenge: Challenge,
    record: Optional[ProgressRecord],
    now: Optional[datetime] = None,
    *,
    user_id: Optional[str] = None,
) -> ProgressView:
    """Derive time-window and completion metrics for one user in one challenge."""
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    start = _aware(challenge.start_date)
    end = _aware(challenge.end_date)
    duration = challenge.duration

    # Floor division of timedeltas; not clamped to duration
    days_passed = (now - start) // ONE_DAY
    days_remaining = max(0, duration - days_passed)
    is_active = start <= now <= end

    if record is None:
        return ProgressView(
            challenge_id=challenge.challenge_id,
            user_id=user_id,
            joined=False,
            days_passed=days_passed,
            days_remaining=days_remaining,
            progress_percentage=0.0,
            is_active=is_active,
            is_completed=False,
            total_days_completed=0,
            points_earned=0,
            current_streak=0,
            longest_streak=0,
            computed_at=now,
        )

    completed = record.total_days_completed
    percentage = round(min(100.0, completed / duration * 100), 2)

    return ProgressView(
        challenge_id=challenge.challenge_id,
        user_id=record.user_id,
        joined=True,
        days_passed=days_passed,
        days_remaining=days_remaining,
        progress_percentage=percentage,
        is_active=is_active,
        is_completed=completed >= duration,
        total_days_completed=completed,
        completed_days=list(record.completed_days),
        points_earned=record.points_earned,
        current_streak=record.current_streak,
        longest_streak=record.longest_streak,
        achievements=list(record.achievements),
        notes=[NoteView(day=n.day, note=n.note, timestamp=n.timestamp) for n in record.notes],
        joined_at=record.joined_at,
        last_activity_date=record.last_activity_date,
        computed_at=now,
    )


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo else moment.replace(tzinfo=timezone.utc)
