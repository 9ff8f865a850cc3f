"""
ecotrac/features/challenges/store_pg.py

PostgreSQL-backed challenge store.

Maintains the same interface as InMemoryChallengeStore. Progress records
live in challenge_progress with a unique (challenge_id, user_id) key, and
every progress write is a conditional UPDATE on the record version.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, insert, update, and_
from sqlalchemy.exc import IntegrityError

from ecotrac.core.database import get_db_session, challenges, challenge_progress
from ecotrac.core.errors import NotFoundError, PersistenceConflictError
from ecotrac.models.challenge import Challenge
from ecotrac.models.progress import ProgressNote, ProgressRecord


class PostgresChallengeStore:
    """
    PostgreSQL-backed challenge persistence.
    """

    @staticmethod
    def insert(challenge: Challenge) -> bool:
        """
        Persist a new challenge (without participants).

        Returns:
            True if created, False if the id already exists
        """
        try:
            with get_db_session() as session:
                session.execute(insert(challenges).values(
                    challenge_id=challenge.challenge_id,
                    title=challenge.title,
                    description=challenge.description,
                    category=challenge.category,
                    duration=challenge.duration,
                    start_date=challenge.start_date,
                    end_date=challenge.end_date,
                    impact_metric=challenge.impact_metric,
                    created_by=challenge.created_by,
                    created_at=challenge.created_at,
                ))
                return True
        except IntegrityError:
            return False

    @staticmethod
    def get(challenge_id: str) -> Optional[Challenge]:
        with get_db_session() as session:
            row = session.execute(
                select(challenges).where(challenges.c.challenge_id == challenge_id)
            ).first()
            if not row:
                return None
            progress_rows = session.execute(
                select(challenge_progress)
                .where(challenge_progress.c.challenge_id == challenge_id)
                .order_by(challenge_progress.c.id)
            ).all()
            return _row_to_challenge(row, progress_rows)

    @staticmethod
    def list_all() -> List[Challenge]:
        with get_db_session() as session:
            rows = session.execute(
                select(challenges).order_by(challenges.c.created_at, challenges.c.challenge_id)
            ).all()
            return [_load_with_progress(session, row) for row in rows]

    @staticmethod
    def list_joined(user_id: str) -> List[Challenge]:
        with get_db_session() as session:
            joined_ids = select(challenge_progress.c.challenge_id).where(
                challenge_progress.c.user_id == user_id
            )
            rows = session.execute(
                select(challenges)
                .where(challenges.c.challenge_id.in_(joined_ids))
                .order_by(challenges.c.created_at, challenges.c.challenge_id)
            ).all()
            return [_load_with_progress(session, row) for row in rows]

    @staticmethod
    def join(challenge_id: str, record: ProgressRecord) -> bool:
        """
        Insert the initial progress record. The unique (challenge_id, user_id)
        constraint makes a second join a no-op.
        """
        _require_challenge(challenge_id)
        try:
            with get_db_session() as session:
                session.execute(insert(challenge_progress).values(
                    challenge_id=challenge_id,
                    **_record_values(record),
                ))
                return True
        except IntegrityError:
            return False

    @staticmethod
    def replace_progress(challenge_id: str, record: ProgressRecord, expected_version: int) -> None:
        """Conditional update matched on (challenge_id, user_id, version)."""
        with get_db_session() as session:
            result = session.execute(
                update(challenge_progress)
                .where(and_(
                    challenge_progress.c.challenge_id == challenge_id,
                    challenge_progress.c.user_id == record.user_id,
                    challenge_progress.c.version == expected_version,
                ))
                .values(**_record_values(record))
            )
            if result.rowcount == 1:
                return

            exists = session.execute(
                select(challenge_progress.c.id).where(and_(
                    challenge_progress.c.challenge_id == challenge_id,
                    challenge_progress.c.user_id == record.user_id,
                ))
            ).first()

        if exists is None:
            raise NotFoundError(f"No progress for user {record.user_id} in challenge {challenge_id}")
        raise PersistenceConflictError(challenge_id, record.user_id, expected_version)

    @staticmethod
    def clear() -> None:
        """
        Remove all challenges and progress.
        FOR TESTING ONLY.
        """
        with get_db_session() as session:
            session.execute(challenge_progress.delete())
            session.execute(challenges.delete())


def _require_challenge(challenge_id: str) -> None:
    with get_db_session() as session:
        found = session.execute(
            select(challenges.c.challenge_id).where(challenges.c.challenge_id == challenge_id)
        ).first()
    if found is None:
        raise NotFoundError(f"Challenge {challenge_id} not found")


def _load_with_progress(session, row) -> Challenge:
    progress_rows = session.execute(
        select(challenge_progress)
        .where(challenge_progress.c.challenge_id == row.challenge_id)
        .order_by(challenge_progress.c.id)
    ).all()
    return _row_to_challenge(row, progress_rows)


def _row_to_challenge(row, progress_rows) -> Challenge:
    progress = [_row_to_record(p) for p in progress_rows]
    return Challenge(
        challenge_id=row.challenge_id,
        title=row.title,
        description=row.description,
        category=row.category,
        duration=row.duration,
        start_date=row.start_date,
        end_date=row.end_date,
        impact_metric=row.impact_metric,
        created_by=row.created_by,
        created_at=row.created_at,
        participants=[r.user_id for r in progress],
        progress=progress,
    )


def _row_to_record(row) -> ProgressRecord:
    return ProgressRecord(
        user_id=row.user_id,
        joined_at=row.joined_at,
        completed_days=sorted(int(d) for d in (row.completed_days or [])),
        points_earned=row.points_earned,
        current_streak=row.current_streak,
        longest_streak=row.longest_streak,
        last_activity_date=row.last_activity_date,
        achievements=list(row.achievements or []),
        notes=[
            ProgressNote(day=n["day"], note=n["note"], timestamp=datetime.fromisoformat(n["timestamp"]))
            for n in (row.notes or [])
        ],
        version=row.version,
    )


def _record_values(record: ProgressRecord) -> dict:
    return {
        "user_id": record.user_id,
        "joined_at": record.joined_at,
        "completed_days": list(record.completed_days),
        "points_earned": record.points_earned,
        "current_streak": record.current_streak,
        "longest_streak": record.longest_streak,
        "last_activity_date": record.last_activity_date,
        "achievements": list(record.achievements),
        "notes": [
            {"day": n.day, "note": n.note, "timestamp": n.timestamp.isoformat()}
            for n in record.notes
        ],
        "version": record.version,
    }
