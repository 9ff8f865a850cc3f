"""
ecotrac/features/challenges/store.py

Challenge document store with embedded progress records.
In-memory implementation; store_pg.py provides the PostgreSQL one with the
same interface.
"""

import copy
import os
import threading
from typing import Dict, List, Optional

from ecotrac.core.errors import NotFoundError, PersistenceConflictError
from ecotrac.models.challenge import Challenge
from ecotrac.models.progress import ProgressRecord


class InMemoryChallengeStore:
    """
    Challenges keyed by id. Reads return copies, never references, so a
    caller cannot mutate stored state outside replace_progress/join.
    """

    def __init__(self):
        self._challenges: Dict[str, Challenge] = {}
        self._lock = threading.Lock()

    def insert(self, challenge: Challenge) -> bool:
        """Store a new challenge. Returns False if the id already exists."""
        with self._lock:
            if challenge.challenge_id in self._challenges:
                return False
            self._challenges[challenge.challenge_id] = copy.deepcopy(challenge)
            return True

    def get(self, challenge_id: str) -> Optional[Challenge]:
        with self._lock:
            challenge = self._challenges.get(challenge_id)
            return copy.deepcopy(challenge) if challenge else None

    def list_all(self) -> List[Challenge]:
        with self._lock:
            return [copy.deepcopy(c) for c in self._challenges.values()]

    def list_joined(self, user_id: str) -> List[Challenge]:
        """All challenges the user has joined, in creation order."""
        with self._lock:
            return [
                copy.deepcopy(c)
                for c in self._challenges.values()
                if user_id in c.participants
            ]

    def join(self, challenge_id: str, record: ProgressRecord) -> bool:
        """
        Append a participant and its initial record in one step.

        Returns False (and changes nothing) if the user already joined.
        """
        with self._lock:
            challenge = self._require(challenge_id)
            if record.user_id in challenge.participants:
                return False
            challenge.participants.append(record.user_id)
            challenge.progress.append(copy.deepcopy(record))
            return True

    def replace_progress(self, challenge_id: str, record: ProgressRecord, expected_version: int) -> None:
        """
        Replace the one record matching record.user_id, only if the stored
        version still equals expected_version.
        """
        with self._lock:
            challenge = self._require(challenge_id)
            for index, existing in enumerate(challenge.progress):
                if existing.user_id != record.user_id:
                    continue
                if existing.version != expected_version:
                    raise PersistenceConflictError(challenge_id, record.user_id, expected_version)
                challenge.progress[index] = copy.deepcopy(record)
                return
        raise NotFoundError(f"No progress for user {record.user_id} in challenge {challenge_id}")

    def clear(self) -> None:
        """
        Remove all challenges.
        FOR TESTING ONLY.
        """
        with self._lock:
            self._challenges.clear()

    def _require(self, challenge_id: str) -> Challenge:
        challenge = self._challenges.get(challenge_id)
        if challenge is None:
            raise NotFoundError(f"Challenge {challenge_id} not found")
        return challenge


_store = None


def get_challenge_store():
    """
    Get the appropriate challenge store implementation.

    - PostgreSQL if DATABASE_URL is configured and reachable
    - In-memory otherwise

    Returns:
        InMemoryChallengeStore or PostgresChallengeStore instance
    """
    global _store
    if _store is not None:
        return _store

    if os.getenv("DATABASE_URL"):
        from ecotrac.core.database import check_connection, create_all_tables

        if check_connection():
            from ecotrac.features.challenges.store_pg import PostgresChallengeStore

            create_all_tables()
            _store = PostgresChallengeStore()
            return _store

    _store = InMemoryChallengeStore()
    return _store


def reset_store() -> None:
    """Forget the selected store so the next call re-selects. FOR TESTING ONLY."""
    global _store
    _store = None
