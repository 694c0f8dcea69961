"""Shared fixtures for progression engine tests."""

import os
import tempfile
from datetime import datetime, timedelta, timezone

import pytest

from boltlab_progression.services.achievements import load_catalog
from boltlab_progression.services.progression_service import ProgressionService
from boltlab_progression.store import InMemoryProgressionStore, SQLiteProgressionStore


class FakeClock:
    """Settable clock returning timezone-aware datetimes."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, days: int = 0, hours: int = 0) -> None:
        self.now = self.now + timedelta(days=days, hours=hours)


@pytest.fixture
def clock():
    """Clock starting at 2024-01-01 09:00 UTC."""
    return FakeClock(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def catalog():
    """The built-in achievement catalog."""
    return load_catalog()


@pytest.fixture
def memory_store():
    """Empty in-memory store."""
    return InMemoryProgressionStore()


@pytest.fixture
def temp_db_path():
    """Create a temporary database file path."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    yield db_path
    try:
        os.unlink(db_path)
    except OSError:
        pass


@pytest.fixture
def sqlite_store(temp_db_path):
    """Create a SQLiteProgressionStore with a temporary database."""
    return SQLiteProgressionStore(db_path=temp_db_path)


@pytest.fixture
def service(memory_store, catalog, clock):
    """ProgressionService over the in-memory store, shields disabled."""
    return ProgressionService(memory_store, catalog=catalog, clock=clock)


@pytest.fixture
def shield_service(memory_store, catalog, clock):
    """ProgressionService with streak shields enabled."""
    return ProgressionService(
        memory_store,
        catalog=catalog,
        clock=clock,
        streak_shields_enabled=True,
        max_streak_shields=3,
    )
