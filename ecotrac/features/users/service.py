"""
User profile service.
- get_or_create_profile(user_id)
- get_profile(user_id)
- rebuild_profile_counters(user_id, summary)

Profile counters are a cache over the user's progress records. They are
only ever rebuilt from a UserSummary, never incremented in place.
"""

import os
import threading
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional

from sqlalchemy import select, insert, update
from sqlalchemy.exc import IntegrityError

from ecotrac.core.database import check_connection, get_db_session, user_profiles
from ecotrac.core.errors import NotFoundError, ValidationError
from ecotrac.models.stats import UserSummary
from ecotrac.models.user import UserProfile


def normalize_display_name(user_id: str, display_name: Optional[str]) -> str:
    return UserProfile.normalized_display_name(user_id, display_name)


class InMemoryProfileStore:
    def __init__(self):
        self._profiles: Dict[str, UserProfile] = {}
        self._lock = threading.Lock()

    def get(self, user_id: str) -> Optional[UserProfile]:
        with self._lock:
            return self._profiles.get(user_id)

    def create(self, profile: UserProfile) -> UserProfile:
        """Insert unless present; returns whichever profile is stored."""
        with self._lock:
            return self._profiles.setdefault(profile.user_id, profile)

    def set_counters(self, user_id: str, *, total_points: int, joined: int, completed: int) -> None:
        with self._lock:
            current = self._profiles.get(user_id)
            if current is None:
                return
            self._profiles[user_id] = current.model_copy(update={
                "total_points": total_points,
                "challenges_joined": joined,
                "challenges_completed": completed,
            })

    def clear(self) -> None:
        with self._lock:
            self._profiles.clear()


class PostgresProfileStore:
    @staticmethod
    def get(user_id: str) -> Optional[UserProfile]:
        with get_db_session() as session:
            row = session.execute(
                select(user_profiles).where(user_profiles.c.user_id == user_id)
            ).first()
            if not row:
                return None
            return UserProfile(
                user_id=row.user_id,
                created_at=row.created_at,
                display_name=row.display_name,
                avatar_url=row.avatar_url,
                role=row.role,
                total_points=row.total_points,
                challenges_joined=row.challenges_joined,
                challenges_completed=row.challenges_completed,
            )

    def create(self, profile: UserProfile) -> UserProfile:
        try:
            with get_db_session() as session:
                session.execute(insert(user_profiles).values(**profile.model_dump()))
        except IntegrityError:
            # Created concurrently; the stored row wins
            pass
        return self.get(profile.user_id)

    @staticmethod
    def set_counters(user_id: str, *, total_points: int, joined: int, completed: int) -> None:
        with get_db_session() as session:
            session.execute(
                update(user_profiles)
                .where(user_profiles.c.user_id == user_id)
                .values(
                    total_points=total_points,
                    challenges_joined=joined,
                    challenges_completed=completed,
                )
            )

    @staticmethod
    def clear() -> None:
        with get_db_session() as session:
            session.execute(user_profiles.delete())


class UserService:
    def __init__(self, store=None):
        self._store = store or InMemoryProfileStore()

    def get_profile(self, user_id: str) -> UserProfile:
        profile = self._store.get(user_id)
        if profile is None:
            raise NotFoundError(f"User {user_id} not found")
        return profile

    def get_or_create_profile(
        self,
        user_id: str,
        *,
        display_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> UserProfile:
        """Register a profile (idempotent: an existing profile is returned unchanged)."""
        user_id = (user_id or "").strip()
        if not user_id:
            raise ValidationError("User identifier is required")

        existing = self._store.get(user_id)
        if existing:
            return existing

        profile = UserProfile(
            user_id=user_id,
            created_at=now or datetime.now(timezone.utc),
            display_name=normalize_display_name(user_id, display_name),
            avatar_url=avatar_url,
        )
        return self._store.create(profile)

    def rebuild_profile_counters(self, user_id: str, summary: UserSummary) -> None:
        """Overwrite cached counters from a freshly computed summary."""
        self._store.set_counters(
            user_id,
            total_points=summary.total_points,
            joined=summary.total_challenges,
            completed=summary.completed_challenges,
        )

    def profiles_for(self, user_ids: Iterable[str]) -> Dict[str, UserProfile]:
        found = {}
        for user_id in user_ids:
            profile = self._store.get(user_id)
            if profile:
                found[user_id] = profile
        return found

    def clear(self) -> None:
        """FOR TESTING ONLY."""
        self._store.clear()


def get_profile_store():
    """PostgreSQL profiles when DATABASE_URL is configured and reachable, else in-memory."""
    if os.getenv("DATABASE_URL"):
        if check_connection():
            return PostgresProfileStore()
    return InMemoryProfileStore()
