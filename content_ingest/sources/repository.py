"""Database repositories for the import_sources and import_logs tables."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import asyncpg

from content_ingest.sources.schemas import ImportLog, ImportSource, ImportStatus
from content_ingest.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_SOURCES_SQL = """
CREATE TABLE IF NOT EXISTS import_sources (
    id                UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    platform          TEXT NOT NULL,
    source_identifier TEXT NOT NULL,
    display_name      TEXT,
    last_fetched_at   TIMESTAMPTZ,
    is_active         BOOLEAN DEFAULT TRUE,
    config            JSONB DEFAULT '{}',
    created_at        TIMESTAMPTZ DEFAULT NOW(),
    UNIQUE (platform, source_identifier)
);

CREATE INDEX IF NOT EXISTS idx_import_sources_platform
    ON import_sources(platform);
CREATE INDEX IF NOT EXISTS idx_import_sources_active
    ON import_sources(is_active);
"""

_CREATE_LOGS_SQL = """
CREATE TABLE IF NOT EXISTS import_logs (
    id             UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    source_id      UUID REFERENCES import_sources(id),
    status         TEXT NOT NULL,
    items_found    INTEGER DEFAULT 0,
    items_imported INTEGER DEFAULT 0,
    items_skipped  INTEGER DEFAULT 0,
    error_message  TEXT,
    started_at     TIMESTAMPTZ DEFAULT NOW(),
    completed_at   TIMESTAMPTZ
);

CREATE INDEX IF NOT EXISTS idx_import_logs_source
    ON import_logs(source_id);
CREATE INDEX IF NOT EXISTS idx_import_logs_status
    ON import_logs(status);
"""

# Conflicting inserts return the existing row instead of failing
_CREATE_SOURCE_SQL = """
INSERT INTO import_sources (platform, source_identifier, display_name, is_active)
VALUES ($1, $2, $3, TRUE)
ON CONFLICT (platform, source_identifier) DO UPDATE SET
    display_name = COALESCE(import_sources.display_name, EXCLUDED.display_name)
RETURNING *
"""

_FINISH_LOG_SQL = """
UPDATE import_logs SET
    status = $2,
    items_found = $3,
    items_imported = $4,
    items_skipped = $5,
    error_message = $6,
    completed_at = NOW()
WHERE id = $1
"""


class TrackingUnavailableError(Exception):
    """Raised when the import bookkeeping tables have not been migrated."""


@contextmanager
def _tracking_tables() -> Iterator[None]:
    """Translate missing-table errors into TrackingUnavailableError."""
    try:
        yield
    except asyncpg.UndefinedTableError as e:
        raise TrackingUnavailableError(str(e)) from e


def _record_to_source(record) -> ImportSource:
    """Convert an asyncpg Record to an ImportSource dataclass."""
    return ImportSource(
        id=str(record["id"]),
        platform=record["platform"],
        source_identifier=record["source_identifier"],
        display_name=record["display_name"],
        is_active=bool(record["is_active"]),
        last_fetched_at=record["last_fetched_at"],
        created_at=record["created_at"],
    )


def _record_to_log(record) -> ImportLog:
    """Convert an asyncpg Record to an ImportLog dataclass."""
    return ImportLog(
        id=str(record["id"]),
        source_id=str(record["source_id"]),
        status=ImportStatus(record["status"]),
        items_found=record["items_found"] or 0,
        items_imported=record["items_imported"] or 0,
        items_skipped=record["items_skipped"] or 0,
        error_message=record["error_message"],
        started_at=record["started_at"],
        completed_at=record["completed_at"],
    )


class ImportSourcesRepository:
    """Lookup and lifecycle operations for import_sources."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the import_sources table and indexes (idempotent)."""
        await self._db.execute(_CREATE_SOURCES_SQL)
        logger.info("Import sources table ensured")

    async def get_by_key(
        self, platform: str, source_identifier: str
    ) -> ImportSource | None:
        """Fetch a single source by platform and identifier."""
        with _tracking_tables():
            row = await self._db.fetchrow(
                "SELECT * FROM import_sources WHERE platform = $1 AND source_identifier = $2",
                platform, source_identifier,
            )
        return _record_to_source(row) if row else None

    async def create(
        self, platform: str, source_identifier: str, display_name: str | None
    ) -> ImportSource:
        """Insert a source, returning the stored row (existing row on conflict)."""
        with _tracking_tables():
            row = await self._db.fetchrow(
                _CREATE_SOURCE_SQL, platform, source_identifier, display_name
            )
        return _record_to_source(row)

    async def touch(self, source_id: str) -> None:
        """Set last_fetched_at to now."""
        with _tracking_tables():
            await self._db.execute(
                "UPDATE import_sources SET last_fetched_at = NOW() WHERE id = $1",
                source_id,
            )

    async def list_sources(
        self, platform: str | None = None, active_only: bool = False
    ) -> list[ImportSource]:
        """List sources, optionally filtered by platform and activity."""
        conditions: list[str] = []
        params: list = []

        if platform:
            conditions.append(f"platform = ${len(params) + 1}")
            params.append(platform)
        if active_only:
            conditions.append("is_active = TRUE")

        where_clause = " WHERE " + " AND ".join(conditions) if conditions else ""
        with _tracking_tables():
            rows = await self._db.fetch(
                f"SELECT * FROM import_sources{where_clause} ORDER BY platform, source_identifier",
                *params,
            )
        return [_record_to_source(r) for r in rows]


class ImportLogsRepository:
    """Run log operations for import_logs."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the import_logs table and indexes (idempotent).

        Requires import_sources to exist.
        """
        await self._db.execute(_CREATE_LOGS_SQL)
        logger.info("Import logs table ensured")

    async def start(self, source_id: str) -> ImportLog:
        """Open a new log row in running status."""
        with _tracking_tables():
            row = await self._db.fetchrow(
                "INSERT INTO import_logs (source_id, status) VALUES ($1, $2) RETURNING *",
                source_id,
                ImportStatus.RUNNING.value,
            )
        return _record_to_log(row)

    async def finish(
        self,
        log_id: str,
        status: ImportStatus,
        items_found: int,
        items_imported: int,
        items_skipped: int,
        error_message: str | None = None,
    ) -> None:
        """Write final counts and completion time."""
        with _tracking_tables():
            await self._db.execute(
                _FINISH_LOG_SQL,
                log_id,
                status.value,
                items_found,
                items_imported,
                items_skipped,
                error_message,
            )

    async def recent(
        self, source_id: str | None = None, limit: int = 20
    ) -> list[ImportLog]:
        """Most recent runs, newest first."""
        with _tracking_tables():
            if source_id:
                rows = await self._db.fetch(
                    "SELECT * FROM import_logs WHERE source_id = $1 ORDER BY started_at DESC LIMIT $2",
                    source_id, limit,
                )
            else:
                rows = await self._db.fetch(
                    "SELECT * FROM import_logs ORDER BY started_at DESC LIMIT $1",
                    limit,
                )
        return [_record_to_log(r) for r in rows]
