from __future__ import annotations

import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Tuple

from ecotrac.core.config import settings
from ecotrac.core.errors import DuplicateDayError, NotFoundError, PersistenceConflictError, ValidationError
from ecotrac.core.logging import log_event
from ecotrac.features.challenges.store import get_challenge_store
from ecotrac.features.progress import engine
from ecotrac.features.progress.views import describe_progress
from ecotrac.features.stats.reducers import rank_leaderboard, summarize_user
from ecotrac.features.users.service import UserService, get_profile_store
from ecotrac.models.challenge import Challenge, CompletionResult, JoinResult
from ecotrac.models.progress import ProgressRecord, ProgressView
from ecotrac.models.stats import LeaderboardResponse, UserSummary

# Size of each fixed lock pool; keys hash onto a stripe
LOCK_STRIPES = 64


class ChallengeService:
    """
    Challenge lifecycle and progress transitions.

    Every write to a (challenge, user) progress record runs under that key's
    lock and is persisted with the version it was computed from, so a writer
    in another process surfaces as PersistenceConflictError and is retried.
    Different keys proceed in parallel unless they share a lock stripe.
    Profile counters are rebuilt under a separate per-user lock.
    """

    def __init__(self, store=None, users: Optional[UserService] = None, *, max_retries: Optional[int] = None):
        self._store = store if store is not None else get_challenge_store()
        self._users = users if users is not None else UserService(get_profile_store())
        self._max_retries = settings.PROGRESS_MAX_RETRIES if max_retries is None else max_retries
        self._key_locks = tuple(threading.Lock() for _ in range(LOCK_STRIPES))
        self._user_locks = tuple(threading.Lock() for _ in range(LOCK_STRIPES))

    @property
    def users(self) -> UserService:
        return self._users

    # Challenges -------------------------------------------------------
    def create_challenge(
        self,
        *,
        title: str,
        duration: int,
        start_date: datetime,
        end_date: Optional[datetime] = None,
        description: Optional[str] = None,
        category: Optional[str] = None,
        impact_metric: Optional[str] = None,
        created_by: Optional[str] = None,
        challenge_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> Challenge:
        """Create a challenge. A zero or negative duration is rejected here."""
        if not title or not title.strip():
            raise ValidationError("Challenge title is required")
        if isinstance(duration, bool) or not isinstance(duration, int) or duration < 1:
            raise ValidationError("Challenge duration must be a positive number of days")

        start = _normalize(start_date)
        end = _normalize(end_date) if end_date else start + timedelta(days=duration)
        if end < start:
            raise ValidationError("Challenge end date must not be before its start date")

        challenge = Challenge(
            challenge_id=challenge_id or uuid.uuid4().hex,
            title=title.strip(),
            description=description,
            category=category,
            duration=duration,
            start_date=start,
            end_date=end,
            impact_metric=impact_metric,
            created_by=created_by,
            created_at=_normalize(now),
        )
        if not self._store.insert(challenge):
            raise ValidationError(f"Challenge {challenge.challenge_id} already exists")

        log_event("info", "challenge.created", challenge_id=challenge.challenge_id, event_type="challenge.created")
        return challenge

    def get_challenge(self, challenge_id: str) -> Challenge:
        challenge = self._store.get(challenge_id)
        if challenge is None:
            raise NotFoundError(f"Challenge {challenge_id} not found")
        return challenge

    def list_challenges(self) -> List[Challenge]:
        return self._store.list_all()

    # Membership -------------------------------------------------------
    def join_challenge(self, challenge_id: str, user_id: str, *, now: Optional[datetime] = None) -> JoinResult:
        """Join a challenge (idempotent: a second join returns the existing record)."""
        user_id = _require_user(user_id)
        self.get_challenge(challenge_id)
        self._users.get_or_create_profile(user_id)

        with self._key_lock(challenge_id, user_id):
            record = ProgressRecord.initial(user_id, _normalize(now))
            joined = self._store.join(challenge_id, record)
            if not joined:
                existing = self._require_record(self.get_challenge(challenge_id), user_id)
                log_event("info", "challenge.already_joined", user_id=user_id, challenge_id=challenge_id,
                          event_type="challenge.already_joined")
                return JoinResult(record=existing, already_joined=True)

        log_event("info", "challenge.joined", user_id=user_id, challenge_id=challenge_id, event_type="challenge.joined")
        self._refresh_profile(user_id)
        return JoinResult(record=record, already_joined=False)

    # Progress ---------------------------------------------------------
    def complete_day(
        self,
        challenge_id: str,
        user_id: str,
        day: int,
        *,
        note: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> CompletionResult:
        """Apply a day completion. Raises DuplicateDayError if the day was already completed."""
        user_id = _require_user(user_id)
        if day is None:
            raise ValidationError("Day number is required")

        def transition(challenge: Challenge, record: ProgressRecord):
            return engine.apply_completion(record, day, duration=challenge.duration, note=note, now=now)

        try:
            updated, unlocked = self._transition(challenge_id, user_id, transition)
        except DuplicateDayError as exc:
            exc.challenge_id = challenge_id
            log_event("info", "progress.duplicate_day", user_id=user_id, challenge_id=challenge_id,
                      event_type="progress.duplicate_day", error_code=exc.code, extra={"day": day})
            raise

        log_event("info", "progress.day_completed", user_id=user_id, challenge_id=challenge_id,
                  event_type="progress.day_completed",
                  extra={"day": day, "streak": updated.current_streak, "points": updated.points_earned})
        for tag in unlocked:
            log_event("info", "progress.achievement_unlocked", user_id=user_id, challenge_id=challenge_id,
                      event_type="progress.achievement_unlocked", extra={"achievement": tag})

        self._refresh_profile(user_id)
        return CompletionResult(
            record=updated,
            day=day,
            points_awarded=engine.POINTS_PER_COMPLETION,
            newly_unlocked=unlocked,
        )

    def add_note(
        self,
        challenge_id: str,
        user_id: str,
        day: int,
        note: str,
        *,
        now: Optional[datetime] = None,
    ) -> ProgressRecord:
        user_id = _require_user(user_id)
        if day is None:
            raise ValidationError("Day number is required")

        def transition(challenge: Challenge, record: ProgressRecord):
            return engine.add_note(record, day, note, duration=challenge.duration, now=now), None

        updated, _ = self._transition(challenge_id, user_id, transition)
        log_event("info", "progress.note_added", user_id=user_id, challenge_id=challenge_id,
                  event_type="progress.note_added", extra={"day": day})
        return updated

    # Read models ------------------------------------------------------
    def describe_progress(self, challenge_id: str, user_id: str, *, now: Optional[datetime] = None) -> ProgressView:
        user_id = _require_user(user_id)
        challenge = self.get_challenge(challenge_id)
        return describe_progress(challenge, challenge.progress_for(user_id), now, user_id=user_id)

    def user_summary(self, user_id: str, *, now: Optional[datetime] = None) -> UserSummary:
        user_id = _require_user(user_id)
        return summarize_user(user_id, self._joined_pairs(user_id), now)

    def leaderboard(
        self,
        challenge_id: str,
        *,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> LeaderboardResponse:
        challenge = self.get_challenge(challenge_id)
        profiles = self._users.profiles_for(challenge.participants)
        return rank_leaderboard(
            challenge_id,
            challenge.progress,
            limit=limit or settings.LEADERBOARD_LIMIT,
            profiles=profiles,
            now=now,
        )

    # Internal helpers -------------------------------------------------
    def _transition(self, challenge_id: str, user_id: str, apply: Callable):
        """Read-modify-write one progress record with per-key serialization and version retry."""
        with self._key_lock(challenge_id, user_id):
            attempt = 0
            while True:
                challenge = self.get_challenge(challenge_id)
                record = self._require_record(challenge, user_id)
                updated, detail = apply(challenge, record)
                try:
                    self._store.replace_progress(challenge_id, updated, expected_version=record.version)
                    return updated, detail
                except PersistenceConflictError as exc:
                    if attempt >= self._max_retries:
                        log_event("warning", "progress.conflict_exhausted", user_id=user_id,
                                  challenge_id=challenge_id, error_code=exc.code, extra={"attempts": attempt + 1})
                        raise
                    attempt += 1
                    log_event("info", "progress.conflict_retry", user_id=user_id, challenge_id=challenge_id,
                              event_type="progress.conflict_retry", extra={"attempt": attempt})

    def _key_lock(self, challenge_id: str, user_id: str) -> threading.Lock:
        return self._key_locks[hash((challenge_id, user_id)) % len(self._key_locks)]

    def _user_lock(self, user_id: str) -> threading.Lock:
        return self._user_locks[hash(user_id) % len(self._user_locks)]

    def _joined_pairs(self, user_id: str) -> List[Tuple[Challenge, ProgressRecord]]:
        pairs = []
        for challenge in self._store.list_joined(user_id):
            record = challenge.progress_for(user_id)
            if record is not None:
                pairs.append((challenge, record))
        return pairs

    def _refresh_profile(self, user_id: str) -> None:
        # Summary and counter write are atomic per user
        with self._user_lock(user_id):
            summary = summarize_user(user_id, self._joined_pairs(user_id))
            self._users.rebuild_profile_counters(user_id, summary)

    @staticmethod
    def _require_record(challenge: Challenge, user_id: str) -> ProgressRecord:
        record = challenge.progress_for(user_id)
        if record is None:
            raise NotFoundError(f"User {user_id} has not joined challenge {challenge.challenge_id}")
        return record


def _require_user(user_id: Optional[str]) -> str:
    cleaned = (user_id or "").strip()
    if not cleaned:
        raise ValidationError("User identifier is required")
    return cleaned


def _normalize(moment: Optional[datetime]) -> datetime:
    if moment is None:
        return datetime.now(timezone.utc)
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


_service: Optional[ChallengeService] = None


def get_challenge_service() -> ChallengeService:
    """Process-wide service used by routes."""
    global _service
    if _service is None:
        _service = ChallengeService()
    return _service
