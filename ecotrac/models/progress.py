from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class ProgressNote:
    day: int
    note: str
    timestamp: datetime


@dataclass
class ProgressRecord:
    """
    One user's progress within one challenge.

    completed_days is kept sorted and unique; total_days_completed is always
    derived from it. version increments on every accepted transition.
    """

    user_id: str
    joined_at: datetime
    completed_days: List[int] = field(default_factory=list)
    points_earned: int = 0
    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: Optional[datetime] = None
    achievements: List[str] = field(default_factory=list)
    notes: List[ProgressNote] = field(default_factory=list)
    version: int = 0

    @property
    def total_days_completed(self) -> int:
        return len(self.completed_days)

    @classmethod
    def initial(cls, user_id: str, joined_at: datetime) -> ProgressRecord:
        return cls(user_id=user_id, joined_at=joined_at)


class NoteView(BaseModel):
    model_config = ConfigDict(frozen=True)

    day: int
    note: str
    timestamp: datetime


class ProgressView(BaseModel):
    """Single user + challenge progress, as shown to the user."""

    model_config = ConfigDict(frozen=True)

    challenge_id: str
    user_id: Optional[str] = None
    joined: bool = Field(description="False when the user has not joined yet")
    days_passed: int = Field(description="Whole days since the challenge start (not clamped)")
    days_remaining: int = Field(ge=0)
    progress_percentage: float = Field(ge=0, le=100, description="Rounded to two decimals")
    is_active: bool
    is_completed: bool
    total_days_completed: int = Field(ge=0)
    completed_days: List[int] = Field(default_factory=list)
    points_earned: int = Field(ge=0)
    current_streak: int = Field(ge=0)
    longest_streak: int = Field(ge=0)
    achievements: List[str] = Field(default_factory=list)
    notes: List[NoteView] = Field(default_factory=list)
    joined_at: Optional[datetime] = None
    last_activity_date: Optional[datetime] = None
    computed_at: datetime
