"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Test database support
- Table definitions for challenges, progress records and user profiles
"""
import logging
import os
from contextlib import contextmanager
from typing import Optional

from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, DateTime, JSON, Text, Index, UniqueConstraint, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func

from ecotrac.core.config import settings

logger = logging.getLogger("ecotrac")

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Global engine and session factory
_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    return os.getenv("DATABASE_URL") or settings.DATABASE_URL


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    engine_args = {"echo": False}
    if url.startswith("sqlite"):
        engine_args["connect_args"] = {"check_same_thread": False}
    else:
        engine_args.update(
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
        )

    _engine = create_engine(url, **engine_args)

    # Create session factory
    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine
    )

    return _engine


def get_engine():
    """Get the current SQLAlchemy engine."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


def reset_engine() -> None:
    """Dispose the engine so the next call re-reads the database URL."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables():
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    engine = get_engine()
    metadata.create_all(bind=engine)


def check_connection() -> bool:
    """
    Check if database connection is available.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(select(1))
        return True
    except (SQLAlchemyError, ValueError) as e:
        logger.warning("Database connection check failed: %s", e)
        return False


# Challenges table. Participants live in challenge_progress (one row per join).
challenges = Table(
    'challenges',
    metadata,
    Column('challenge_id', String(100), primary_key=True),
    Column('title', Text, nullable=False),
    Column('description', Text, nullable=True),
    Column('category', String(100), nullable=True, index=True),
    Column('duration', Integer, nullable=False),
    Column('start_date', DateTime(timezone=True), nullable=False),
    Column('end_date', DateTime(timezone=True), nullable=False),
    Column('impact_metric', Text, nullable=True),
    Column('created_by', String(255), nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    Index('idx_challenges_start_end', 'start_date', 'end_date'),
)

# Progress records: the join-table form of the embedded progress array.
challenge_progress = Table(
    'challenge_progress',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('challenge_id', String(100), nullable=False, index=True),
    Column('user_id', String(255), nullable=False, index=True),
    Column('joined_at', DateTime(timezone=True), nullable=False),
    Column('completed_days', JSON, nullable=False),
    Column('points_earned', Integer, nullable=False, default=0),
    Column('current_streak', Integer, nullable=False, default=0),
    Column('longest_streak', Integer, nullable=False, default=0),
    Column('last_activity_date', DateTime(timezone=True), nullable=True),
    Column('achievements', JSON, nullable=False),
    Column('notes', JSON, nullable=False),
    Column('version', Integer, nullable=False, default=0),
    # One progress record per (challenge, user)
    UniqueConstraint('challenge_id', 'user_id', name='uq_challenge_progress_challenge_user'),
    # Leaderboard and join-order reads: (challenge_id, id)
    Index('idx_challenge_progress_challenge_id', 'challenge_id', 'id'),
)

# User profiles (counters are a cache rebuilt from challenge_progress)
user_profiles = Table(
    'user_profiles',
    metadata,
    Column('user_id', String(255), primary_key=True),
    Column('display_name', Text, nullable=True),
    Column('avatar_url', Text, nullable=True),
    Column('role', String(50), nullable=False, server_default='user'),
    Column('total_points', Integer, nullable=False, default=0),
    Column('challenges_joined', Integer, nullable=False, default=0),
    Column('challenges_completed', Integer, nullable=False, default=0),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)
