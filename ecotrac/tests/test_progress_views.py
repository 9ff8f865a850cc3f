from datetime import datetime, timedelta, timezone

import pytest

from ecotrac.features.progress.engine import apply_completion
from ecotrac.features.progress.views import describe_progress
from ecotrac.models.challenge import Challenge
from ecotrac.models.progress import ProgressRecord

START = datetime(2025, 3, 1, tzinfo=timezone.utc)


def _challenge(duration=10):
    return Challenge(
        challenge_id="c1",
        title="Plastic-free week",
        duration=duration,
        start_date=START,
        end_date=START + timedelta(days=duration),
    )


def _record_with(days, duration=10):
    record = ProgressRecord.initial("u1", START)
    for day in days:
        record, _ = apply_completion(record, day, duration=duration, now=START)
    return record


def test_percentage_for_three_of_ten_days():
    view = describe_progress(_challenge(10), _record_with([1, 2, 3]), START + timedelta(days=4))
    assert view.progress_percentage == 30.00
    assert view.total_days_completed == 3
    assert view.is_completed is False


def test_percentage_rounded_to_two_places():
    view = describe_progress(_challenge(3), _record_with([1], duration=3), START)
    assert view.progress_percentage == 33.33


def test_window_metrics_mid_challenge():
    now = START + timedelta(days=4, hours=23)
    view = describe_progress(_challenge(10), _record_with([1]), now)
    assert view.days_passed == 4
    assert view.days_remaining == 6
    assert view.is_active is True


def test_days_passed_not_clamped_after_window():
    now = START + timedelta(days=25)
    view = describe_progress(_challenge(10), _record_with([1]), now)
    assert view.days_passed == 25
    assert view.days_remaining == 0
    assert view.is_active is False


def test_before_start_is_inactive():
    view = describe_progress(_challenge(10), None, START - timedelta(hours=1))
    assert view.is_active is False
    assert view.days_passed == -1
    assert view.days_remaining == 11


def test_completed_when_all_days_done():
    record = _record_with(range(1, 11))
    view = describe_progress(_challenge(10), record, START + timedelta(days=10))
    assert view.is_completed is True
    assert view.progress_percentage == 100.0


def test_missing_record_yields_zero_view():
    view = describe_progress(_challenge(10), None, START + timedelta(days=2), user_id="newcomer")
    assert view.joined is False
    assert view.user_id == "newcomer"
    assert view.total_days_completed == 0
    assert view.points_earned == 0
    assert view.progress_percentage == 0.0
    assert view.achievements == []
    assert view.is_active is True


@pytest.mark.parametrize("hours", [0, 1, 23])
def test_days_passed_floors_partial_days(hours):
    view = describe_progress(_challenge(10), None, START + timedelta(days=2, hours=hours))
    assert view.days_passed == 2
