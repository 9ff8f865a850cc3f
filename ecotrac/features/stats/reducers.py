"""
ecotrac/features/stats/reducers.py

Pure deterministic reducers over progress records.
All reducers: (records, now) -> immutable read model.
"""

from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ecotrac.models.challenge import Challenge
from ecotrac.models.progress import ProgressRecord
from ecotrac.models.stats import LeaderboardEntry, LeaderboardResponse, UserSummary
from ecotrac.models.user import UserProfile

DEFAULT_LEADERBOARD_LIMIT = 10


def summarize_user(
    user_id: str,
    pairs: Iterable[Tuple[Challenge, ProgressRecord]],
    now: Optional[datetime] = None,
) -> UserSummary:
    """
    Fold a user's progress across challenges into summary statistics.

    Pure function: the result does not depend on the order of `pairs`.
    An achievement earned in several challenges is counted once.

    Args:
        user_id: User being summarized
        pairs: (challenge, that user's progress record) for each joined challenge
        now: Fixed timestamp for deterministic results

    Returns:
        UserSummary (immutable)
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    total_challenges = 0
    completed_challenges = 0
    total_points = 0
    total_days = 0
    longest_streak = 0
    achievements: Set[str] = set()

    for challenge, record in pairs:
        total_challenges += 1
        total_points += record.points_earned
        total_days += record.total_days_completed
        longest_streak = max(longest_streak, record.longest_streak)
        achievements.update(record.achievements)
        if record.total_days_completed >= challenge.duration:
            completed_challenges += 1

    return UserSummary(
        user_id=user_id,
        total_challenges=total_challenges,
        active_challenges=total_challenges - completed_challenges,
        completed_challenges=completed_challenges,
        total_points=total_points,
        total_days_completed=total_days,
        longest_streak=longest_streak,
        achievements=sorted(achievements),
        computed_at=now,
    )


def rank_leaderboard(
    challenge_id: str,
    records: Sequence[ProgressRecord],
    *,
    limit: int = DEFAULT_LEADERBOARD_LIMIT,
    profiles: Optional[Dict[str, UserProfile]] = None,
    now: Optional[datetime] = None,
) -> LeaderboardResponse:
    """
    Rank a challenge's progress records by points.

    Sort is descending by points and stable: equal-point records keep
    their input order and still get distinct positional ranks.

    Args:
        challenge_id: Challenge the records belong to
        records: Progress records in join order
        limit: Maximum number of entries returned
        profiles: Optional profiles keyed by user_id for display names
        now: Fixed timestamp for deterministic results

    Returns:
        LeaderboardResponse (immutable, at most `limit` entries)
    """
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    profiles = profiles or {}
    ordered = sorted(records, key=lambda r: r.points_earned, reverse=True)

    entries: List[LeaderboardEntry] = []
    for rank, record in enumerate(ordered[:limit], start=1):
        profile = profiles.get(record.user_id)
        display_name = UserProfile.normalized_display_name(
            record.user_id, profile.display_name if profile else None
        )
        entries.append(LeaderboardEntry(
            rank=rank,
            user_id=record.user_id,
            display_name=display_name,
            avatar_url=profile.avatar_url if profile else None,
            points_earned=record.points_earned,
            total_days_completed=record.total_days_completed,
            current_streak=record.current_streak,
        ))

    return LeaderboardResponse(
        challenge_id=challenge_id,
        entries=entries,
        computed_at=now,
    )
