"""Pytest fixtures for content-ingest tests."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from content_ingest.ingestion.schemas import ContentDraft


class FakeClock:
    """Manual clock: sleeping advances time instantly and is recorded."""

    def __init__(self, start: float = 0.0):
        self.t = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.t

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.t += seconds


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_database() -> AsyncMock:
    """Mock Database instance matching the Database API."""
    db = AsyncMock()
    db.fetch = AsyncMock(return_value=[])
    db.fetchval = AsyncMock(return_value=None)
    db.fetchrow = AsyncMock(return_value=None)
    db.execute = AsyncMock(return_value="INSERT 0 1")
    return db


@pytest.fixture
def sample_draft() -> ContentDraft:
    """A typical transformed Reddit post."""
    return ContentDraft(
        type="meme",
        title="Deep dish fail at the pizzeria",
        url="https://i.redd.it/abc123.jpg",
        source_url="https://reddit.com/r/pizza/comments/abc123/deep_dish_fail/",
        source_platform="reddit",
    )


@pytest.fixture
def source_row() -> dict:
    """A dict mimicking an asyncpg Record for import_sources."""
    return {
        "id": "5b0c1c4e-0000-4000-8000-000000000001",
        "platform": "reddit",
        "source_identifier": "pizza",
        "display_name": "r/pizza",
        "is_active": True,
        "last_fetched_at": None,
        "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
    }


@pytest.fixture
def log_row() -> dict:
    """A dict mimicking an asyncpg Record for import_logs."""
    return {
        "id": "5b0c1c4e-0000-4000-8000-0000000000aa",
        "source_id": "5b0c1c4e-0000-4000-8000-000000000001",
        "status": "running",
        "items_found": 0,
        "items_imported": 0,
        "items_skipped": 0,
        "error_message": None,
        "started_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
        "completed_at": None,
    }
