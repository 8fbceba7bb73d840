"""Tests for the Database pool wrapper."""

from unittest.mock import AsyncMock, patch

import pytest

from content_ingest.storage.database import Database


@pytest.fixture
def pool() -> AsyncMock:
    p = AsyncMock()
    p.fetchval = AsyncMock(return_value=1)
    p.execute = AsyncMock(return_value="UPDATE 2")
    return p


class TestDatabase:
    """Tests for Database."""

    @pytest.mark.asyncio
    async def test_context_manager_opens_and_closes(self, pool):
        with patch(
            "content_ingest.storage.database.asyncpg.create_pool", AsyncMock(return_value=pool)
        ) as create_pool:
            async with Database("postgresql://u:p@localhost/db", min_size=1, max_size=3) as db:
                assert db.is_connected
                assert await db.execute("UPDATE content SET status = $1", "approved") == "UPDATE 2"

        create_pool.assert_awaited_once()
        assert create_pool.call_args.kwargs["max_size"] == 3
        pool.close.assert_awaited_once()
        assert not db.is_connected

    @pytest.mark.asyncio
    async def test_connect_is_idempotent(self, pool):
        with patch(
            "content_ingest.storage.database.asyncpg.create_pool", AsyncMock(return_value=pool)
        ) as create_pool:
            db = Database("postgresql://u:p@localhost/db")
            await db.connect()
            await db.connect()

        assert create_pool.await_count == 1

    def test_pool_requires_connect(self):
        with pytest.raises(RuntimeError):
            Database("postgresql://u:p@localhost/db").pool

    @pytest.mark.asyncio
    async def test_health_check(self, pool):
        db = Database("postgresql://u:p@localhost/db")
        db._pool = pool

        assert await db.health_check()

        pool.fetchval.side_effect = OSError("connection reset")
        assert not await db.health_check()

    @pytest.mark.asyncio
    async def test_health_check_not_connected(self):
        assert not await Database("postgresql://u:p@localhost/db").health_check()
