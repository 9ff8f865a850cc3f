"""
Day-completion processor.

Pure transitions over a ProgressRecord: the input record is never mutated,
an accepted event yields a new record with version + 1. Persistence is the
caller's job.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from ecotrac.core.errors import DuplicateDayError, ValidationError
from ecotrac.features.progress.achievements import evaluate_achievements
from ecotrac.models.progress import ProgressNote, ProgressRecord

POINTS_PER_COMPLETION = 10


def apply_completion(
    record: ProgressRecord,
    day: int,
    *,
    duration: int,
    note: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[ProgressRecord, List[str]]:
    """
    Apply one "day completed" event.

    Returns the updated record and the achievement tags unlocked by this
    event. Raises DuplicateDayError if the day was already completed, and
    ValidationError for a day outside [1, duration].
    """
    _validate_day(day, duration)
    if day in record.completed_days:
        raise DuplicateDayError(day, user_id=record.user_id)

    moment = _normalize(now)
    previous_max = max(record.completed_days, default=0)

    # Streak continuity is by day number, not by calendar date
    if day == previous_max + 1:
        streak = record.current_streak + 1
    else:
        streak = 1

    notes = list(record.notes)
    if note is not None:
        text = note.strip()
        if not text:
            raise ValidationError("Note text must not be blank")
        notes.append(ProgressNote(day=day, note=text, timestamp=moment))

    updated = replace(
        record,
        completed_days=sorted(set(record.completed_days) | {day}),
        points_earned=record.points_earned + POINTS_PER_COMPLETION,
        current_streak=streak,
        longest_streak=max(record.longest_streak, streak),
        last_activity_date=moment,
        achievements=list(record.achievements),
        notes=notes,
        version=record.version + 1,
    )

    unlocked = evaluate_achievements(updated, duration)
    updated.achievements.extend(unlocked)
    return updated, unlocked


def add_note(
    record: ProgressRecord,
    day: int,
    note: str,
    *,
    duration: int,
    now: Optional[datetime] = None,
) -> ProgressRecord:
    """Attach a note to a day without touching streaks, points or achievements."""
    _validate_day(day, duration)
    text = (note or "").strip()
    if not text:
        raise ValidationError("Note text must not be blank")

    moment = _normalize(now)
    return replace(
        record,
        completed_days=list(record.completed_days),
        achievements=list(record.achievements),
        notes=[*record.notes, ProgressNote(day=day, note=text, timestamp=moment)],
        version=record.version + 1,
    )


def _validate_day(day: int, duration: int) -> None:
    if isinstance(day, bool) or not isinstance(day, int):
        raise ValidationError("Day number is required")
    if day < 1 or day > duration:
        raise ValidationError(f"Day must be between 1 and {duration}, got {day}")


def _normalize(moment: Optional[datetime]) -> datetime:
    if moment is None:
        return datetime.now(timezone.utc)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)
