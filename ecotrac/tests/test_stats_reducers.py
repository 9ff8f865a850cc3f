"""
ecotrac/tests/test_stats_reducers.py

Tests for user summary and leaderboard reducers.
"""

from datetime import datetime, timedelta, timezone

import pytest

from ecotrac.features.progress.achievements import FIRST_STEP, WEEK_WARRIOR
from ecotrac.features.stats.reducers import rank_leaderboard, summarize_user
from ecotrac.models.challenge import Challenge
from ecotrac.models.progress import ProgressRecord
from ecotrac.models.user import UserProfile

START = datetime(2025, 3, 1, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now():
    return datetime(2025, 3, 20, 10, 0, tzinfo=timezone.utc)


def _challenge(challenge_id, duration):
    return Challenge(
        challenge_id=challenge_id,
        title=challenge_id,
        duration=duration,
        start_date=START,
        end_date=START + timedelta(days=duration),
    )


def _record(user_id, days, achievements=(), longest=0):
    return ProgressRecord(
        user_id=user_id,
        joined_at=START,
        completed_days=list(days),
        points_earned=10 * len(days),
        current_streak=min(longest, len(days)),
        longest_streak=longest,
        achievements=list(achievements),
    )


class TestSummarizeUser:
    def test_points_summed_and_achievements_deduplicated(self, fixed_now):
        pairs = [
            (_challenge("a", 30), _record("u1", [1, 2], [FIRST_STEP])),
            (_challenge("b", 30), _record("u1", [1, 2, 3], [FIRST_STEP])),
        ]
        summary = summarize_user("u1", pairs, now=fixed_now)
        assert summary.total_points == 50
        assert summary.total_days_completed == 5
        assert summary.achievements == [FIRST_STEP]

    def test_completed_and_active_counts(self, fixed_now):
        pairs = [
            (_challenge("short", 2), _record("u1", [1, 2])),
            (_challenge("long", 30), _record("u1", [1])),
            (_challenge("untouched", 10), _record("u1", [])),
        ]
        summary = summarize_user("u1", pairs, now=fixed_now)
        assert summary.total_challenges == 3
        assert summary.completed_challenges == 1
        assert summary.active_challenges == 2

    def test_order_independent(self, fixed_now):
        pairs = [
            (_challenge("a", 7), _record("u1", range(1, 8), [FIRST_STEP, WEEK_WARRIOR], longest=7)),
            (_challenge("b", 30), _record("u1", [4, 9], [FIRST_STEP], longest=1)),
        ]
        forward = summarize_user("u1", pairs, now=fixed_now)
        backward = summarize_user("u1", list(reversed(pairs)), now=fixed_now)
        assert forward.model_dump_json() == backward.model_dump_json()
        assert forward.longest_streak == 7

    def test_no_challenges(self, fixed_now):
        summary = summarize_user("u1", [], now=fixed_now)
        assert summary.total_challenges == 0
        assert summary.total_points == 0
        assert summary.achievements == []
        assert summary.computed_at == fixed_now


class TestLeaderboard:
    def test_top_ten_of_twelve(self, fixed_now):
        records = [_record(f"user-{i:02d}", range(1, i + 1)) for i in range(1, 13)]
        board = rank_leaderboard("c1", records, now=fixed_now)

        assert len(board.entries) == 10
        assert [e.rank for e in board.entries] == list(range(1, 11))
        points = [e.points_earned for e in board.entries]
        assert points == sorted(points, reverse=True)
        assert board.entries[0].user_id == "user-12"

    def test_ties_keep_input_order_with_positional_ranks(self, fixed_now):
        records = [
            _record("first", [1, 2]),
            _record("leader", [1, 2, 3]),
            _record("second", [4, 5]),
        ]
        board = rank_leaderboard("c1", records, now=fixed_now)
        assert [(e.rank, e.user_id) for e in board.entries] == [
            (1, "leader"),
            (2, "first"),
            (3, "second"),
        ]

    def test_custom_limit(self, fixed_now):
        records = [_record(f"u{i}", [1]) for i in range(5)]
        board = rank_leaderboard("c1", records, limit=3, now=fixed_now)
        assert len(board.entries) == 3

    def test_display_names_from_profiles(self, fixed_now):
        profile = UserProfile(user_id="ana@example.com", created_at=START, display_name="Ana")
        records = [_record("ana@example.com", [1]), _record("bo@example.com", [])]
        board = rank_leaderboard("c1", records, profiles={profile.user_id: profile}, now=fixed_now)
        assert board.entries[0].display_name == "Ana"
        assert board.entries[1].display_name.startswith("@u_")

    def test_empty_challenge(self, fixed_now):
        board = rank_leaderboard("c1", [], now=fixed_now)
        assert board.entries == []
        assert board.challenge_id == "c1"
