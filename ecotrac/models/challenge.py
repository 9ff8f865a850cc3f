from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ecotrac.models.progress import ProgressRecord


@dataclass
class Challenge:
    """A time-boxed habit challenge with its embedded progress records."""

    challenge_id: str
    title: str
    duration: int
    start_date: datetime
    end_date: datetime
    description: Optional[str] = None
    category: Optional[str] = None
    impact_metric: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    participants: List[str] = field(default_factory=list)
    progress: List[ProgressRecord] = field(default_factory=list)

    @property
    def participant_count(self) -> int:
        return len(self.participants)

    def progress_for(self, user_id: str) -> Optional[ProgressRecord]:
        for record in self.progress:
            if record.user_id == user_id:
                return record
        return None


@dataclass
class JoinResult:
    """Outcome of a join event. already_joined=True means nothing changed."""

    record: ProgressRecord
    already_joined: bool = False


@dataclass
class CompletionResult:
    """Outcome of an accepted day completion."""

    record: ProgressRecord
    day: int
    points_awarded: int
    newly_unlocked: List[str] = field(default_factory=list)
