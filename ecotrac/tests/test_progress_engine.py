"""
ecotrac/tests/test_progress_engine.py

Tests for the day-completion processor.
"""

import copy
from datetime import datetime, timedelta, timezone

import pytest

from ecotrac.core.errors import DuplicateDayError, ValidationError
from ecotrac.features.progress.engine import POINTS_PER_COMPLETION, add_note, apply_completion
from ecotrac.models.progress import ProgressRecord

JOINED = datetime(2025, 3, 1, 8, 0, tzinfo=timezone.utc)


def _complete(record, days, duration=30, start=None):
    now = start or datetime(2025, 3, 2, 9, 0, tzinfo=timezone.utc)
    unlocked_all = []
    for offset, day in enumerate(days):
        record, unlocked = apply_completion(record, day, duration=duration, now=now + timedelta(hours=offset))
        unlocked_all.extend(unlocked)
    return record, unlocked_all


def _assert_invariants(record):
    assert record.total_days_completed == len(record.completed_days)
    assert record.longest_streak >= record.current_streak
    assert record.completed_days == sorted(set(record.completed_days))


class TestStreaks:
    def test_consecutive_days_extend_streak(self):
        record, _ = _complete(ProgressRecord.initial("u1", JOINED), [1, 2, 3])
        assert record.current_streak == 3
        assert record.longest_streak == 3
        _assert_invariants(record)

    def test_gap_resets_streak(self):
        record, _ = _complete(ProgressRecord.initial("u1", JOINED), [1, 5])
        assert record.current_streak == 1
        assert record.longest_streak == 1

    def test_longest_streak_survives_reset(self):
        record, _ = _complete(ProgressRecord.initial("u1", JOINED), [1, 2, 3, 4, 9])
        assert record.current_streak == 1
        assert record.longest_streak == 4
        _assert_invariants(record)

    def test_backfilled_day_does_not_extend_streak(self):
        # Day 2 after day 3: previous max is 3, so continuity is broken
        record, _ = _complete(ProgressRecord.initial("u1", JOINED), [1, 3, 2])
        assert record.completed_days == [1, 2, 3]
        assert record.current_streak == 1

    def test_streak_uses_day_numbers_not_calendar(self):
        record = ProgressRecord.initial("u1", JOINED)
        record, _ = apply_completion(record, 4, duration=30, now=datetime(2025, 3, 1, tzinfo=timezone.utc))
        # Ten calendar days later, day 5 still continues the streak
        record, _ = apply_completion(record, 5, duration=30, now=datetime(2025, 3, 11, tzinfo=timezone.utc))
        assert record.current_streak == 2


class TestPointsAndCounters:
    def test_points_are_fixed_per_completion(self):
        record, _ = _complete(ProgressRecord.initial("u1", JOINED), [1, 2, 7, 9])
        assert record.points_earned == 4 * POINTS_PER_COMPLETION == 40
        assert record.total_days_completed == 4

    def test_version_increments_per_accepted_event(self):
        record, _ = _complete(ProgressRecord.initial("u1", JOINED), [1, 2])
        assert record.version == 2

    def test_last_activity_is_event_time(self):
        moment = datetime(2025, 3, 5, 18, 30, tzinfo=timezone.utc)
        record, _ = apply_completion(ProgressRecord.initial("u1", JOINED), 1, duration=10, now=moment)
        assert record.last_activity_date == moment

    def test_naive_now_treated_as_utc(self):
        record, _ = apply_completion(
            ProgressRecord.initial("u1", JOINED), 1, duration=10, now=datetime(2025, 3, 5, 18, 30)
        )
        assert record.last_activity_date.tzinfo == timezone.utc


class TestDuplicates:
    def test_duplicate_day_rejected_and_record_unchanged(self):
        record, _ = _complete(ProgressRecord.initial("u1", JOINED), [1, 2])
        snapshot = copy.deepcopy(record)

        with pytest.raises(DuplicateDayError) as excinfo:
            apply_completion(record, 2, duration=30, note="again")

        assert excinfo.value.day == 2
        assert excinfo.value.code == "duplicate_day"
        assert record == snapshot

    def test_input_record_never_mutated(self):
        original = ProgressRecord.initial("u1", JOINED)
        snapshot = copy.deepcopy(original)
        apply_completion(original, 1, duration=10, note="first")
        assert original == snapshot


class TestInputValidation:
    @pytest.mark.parametrize("day", [0, -1, 11])
    def test_day_out_of_range(self, day):
        with pytest.raises(ValidationError):
            apply_completion(ProgressRecord.initial("u1", JOINED), day, duration=10)

    def test_day_required(self):
        with pytest.raises(ValidationError):
            apply_completion(ProgressRecord.initial("u1", JOINED), None, duration=10)

    def test_blank_note_rejected(self):
        with pytest.raises(ValidationError):
            apply_completion(ProgressRecord.initial("u1", JOINED), 1, duration=10, note="   ")


class TestNotes:
    def test_note_recorded_with_completion(self):
        moment = datetime(2025, 3, 2, tzinfo=timezone.utc)
        record, _ = apply_completion(
            ProgressRecord.initial("u1", JOINED), 1, duration=10, note="Biked to work", now=moment
        )
        assert len(record.notes) == 1
        assert record.notes[0].day == 1
        assert record.notes[0].note == "Biked to work"
        assert record.notes[0].timestamp == moment

    def test_no_note_when_omitted(self):
        record, _ = apply_completion(ProgressRecord.initial("u1", JOINED), 1, duration=10)
        assert record.notes == []

    def test_add_note_leaves_progress_untouched(self):
        record, _ = _complete(ProgressRecord.initial("u1", JOINED), [1, 2])
        noted = add_note(record, 3, "Planning tomorrow", duration=30)

        assert [n.note for n in noted.notes] == ["Planning tomorrow"]
        assert noted.completed_days == record.completed_days
        assert noted.points_earned == record.points_earned
        assert noted.current_streak == record.current_streak
        assert noted.version == record.version + 1
        assert record.notes == []

    def test_add_note_requires_text(self):
        with pytest.raises(ValidationError):
            add_note(ProgressRecord.initial("u1", JOINED), 1, "", duration=10)
