"""
Read models for cross-challenge statistics and challenge leaderboards.
"""

from pydantic import BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Optional, List


class UserSummary(BaseModel):
    """A user's progress folded across every joined challenge."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    total_challenges: int = Field(ge=0)
    active_challenges: int = Field(ge=0, description="Joined but not yet completed")
    completed_challenges: int = Field(ge=0)
    total_points: int = Field(ge=0)
    total_days_completed: int = Field(ge=0)
    longest_streak: int = Field(ge=0, description="Best streak in any single challenge")
    achievements: List[str] = Field(description="De-duplicated across challenges, sorted")
    computed_at: datetime


class LeaderboardEntry(BaseModel):
    """Single entry in a challenge leaderboard."""

    model_config = ConfigDict(frozen=True)

    rank: int = Field(ge=1, description="1-based position after sorting")
    user_id: str
    display_name: str
    avatar_url: Optional[str] = None
    points_earned: int = Field(ge=0)
    total_days_completed: int = Field(ge=0)
    current_streak: int = Field(ge=0)


class LeaderboardResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    challenge_id: str
    entries: List[LeaderboardEntry] = Field(description="Top entries by points")
    computed_at: datetime
