# ecotrac/conftest.py
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add repository root to PYTHONPATH
REPO_ROOT = Path(__file__).resolve().parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture(scope="session")
def db_url():
    """
    Provide DATABASE_URL for tests.

    Returns the URL from environment, or None if not set.
    Tests can use this to conditionally enable persistence tests.
    """
    return os.getenv("DATABASE_URL")


@pytest.fixture
def fixed_now():
    """Fixed timestamp for deterministic testing."""
    return datetime(2025, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def challenge_start():
    return datetime(2025, 3, 1, 0, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def service():
    """Fresh service backed by in-memory stores."""
    from ecotrac.features.challenges.service import ChallengeService
    from ecotrac.features.challenges.store import InMemoryChallengeStore
    from ecotrac.features.users.service import InMemoryProfileStore, UserService

    return ChallengeService(
        store=InMemoryChallengeStore(),
        users=UserService(InMemoryProfileStore()),
    )


@pytest.fixture
def client(service):
    """TestClient whose routes use the per-test in-memory service."""
    from fastapi.testclient import TestClient

    from ecotrac.features.challenges.service import get_challenge_service
    from ecotrac.main import app

    app.dependency_overrides[get_challenge_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
