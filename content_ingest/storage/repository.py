"""
Content repository for the `content` table.

The importer only ever inserts rows; the link audit pass reads rows and
flips their status. Uniqueness of `source_url` is enforced by a partial
unique index so concurrent importers cannot store the same item twice.
"""

import logging
from dataclasses import dataclass
from typing import Any

import asyncpg

from content_ingest.ingestion.schemas import ContentRecord, ContentStatus
from content_ingest.storage.database import Database

logger = logging.getLogger(__name__)

_CREATE_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS content (
    id              UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    type            TEXT NOT NULL,
    title           TEXT NOT NULL,
    url             TEXT NOT NULL,
    thumbnail_url   TEXT,
    source_url      TEXT,
    source_platform TEXT,
    tags            TEXT[] NOT NULL DEFAULT '{}',
    status          TEXT NOT NULL DEFAULT 'approved',
    description     TEXT,
    is_viral        BOOLEAN NOT NULL DEFAULT FALSE,
    created_at      TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_content_source_url
    ON content(source_url) WHERE source_url IS NOT NULL;
CREATE INDEX IF NOT EXISTS idx_content_status
    ON content(status);
CREATE INDEX IF NOT EXISTS idx_content_source_platform
    ON content(source_platform);
"""

_INSERT_SQL = """
INSERT INTO content (
    type, title, url, thumbnail_url, source_url,
    source_platform, tags, status, description, is_viral
) VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
RETURNING id
"""


class DuplicateContentError(Exception):
    """Raised when an insert collides with an existing source_url."""

    def __init__(self, source_url: str | None):
        super().__init__(f"Content already exists for source_url {source_url!r}")
        self.source_url = source_url


@dataclass
class StoredContent:
    """A content row as seen by the link audit pass."""

    id: str
    title: str
    url: str
    thumbnail_url: str | None = None
    source_platform: str | None = None
    type: str | None = None
    status: str = ContentStatus.APPROVED.value

    @property
    def check_url(self) -> str | None:
        """URL probed by liveness checks: the thumbnail, falling back to the media URL."""
        return self.thumbnail_url or self.url


def _record_to_content(record) -> StoredContent:
    """Convert an asyncpg Record to a StoredContent dataclass."""
    return StoredContent(
        id=str(record["id"]),
        title=record["title"],
        url=record["url"],
        thumbnail_url=record["thumbnail_url"],
        source_platform=record["source_platform"],
        type=record["type"],
        status=record["status"],
    )


class ContentRepository:
    """Insert and audit operations for the content table."""

    def __init__(self, database: Database) -> None:
        self._db = database

    async def create_table(self) -> None:
        """Create the content table and indexes (idempotent)."""
        await self._db.execute(_CREATE_TABLE_SQL)
        logger.info("Content table ensured")

    async def get_source_urls(self) -> list[str]:
        """Return every non-null source_url currently stored."""
        rows = await self._db.fetch(
            "SELECT source_url FROM content WHERE source_url IS NOT NULL"
        )
        return [row["source_url"] for row in rows if row["source_url"]]

    async def insert(self, record: ContentRecord) -> str:
        """
        Insert a content record.

        Args:
            record: Record with defaults already applied

        Returns:
            ID of the new row

        Raises:
            DuplicateContentError: If the source_url is already stored
        """
        try:
            row_id = await self._db.fetchval(
                _INSERT_SQL,
                record.type,
                record.title,
                record.url,
                record.thumbnail_url,
                record.source_url,
                record.source_platform,
                record.tags,
                record.status,
                record.description,
                record.is_viral,
            )
        except asyncpg.UniqueViolationError as e:
            raise DuplicateContentError(record.source_url) from e

        return str(row_id)

    async def list_content(
        self,
        status: ContentStatus | str = ContentStatus.APPROVED,
        platform: str | None = None,
        content_type: str | None = None,
        limit: int | None = None,
    ) -> list[StoredContent]:
        """
        List content rows for auditing, newest first.

        Args:
            status: Status to select
            platform: Optional source_platform filter
            content_type: Optional type filter
            limit: Optional maximum number of rows
        """
        status_value = status.value if isinstance(status, ContentStatus) else status
        conditions = ["status = $1"]
        params: list[Any] = [status_value]
        idx = 2

        if platform:
            conditions.append(f"source_platform = ${idx}")
            params.append(platform)
            idx += 1

        if content_type:
            conditions.append(f"type = ${idx}")
            params.append(content_type)
            idx += 1

        where_clause = " AND ".join(conditions)
        sql = f"""
            SELECT id, title, url, thumbnail_url, source_platform, type, status
            FROM content
            WHERE {where_clause}
            ORDER BY created_at DESC
        """
        if limit:
            sql += f" LIMIT ${idx}"
            params.append(limit)

        rows = await self._db.fetch(sql, *params)
        return [_record_to_content(r) for r in rows]

    async def update_status(
        self, ids: list[str], status: ContentStatus | str
    ) -> int:
        """
        Set the status of several rows.

        Returns:
            Number of rows updated
        """
        if not ids:
            return 0

        status_value = status.value if isinstance(status, ContentStatus) else status
        result = await self._db.execute(
            "UPDATE content SET status = $1 WHERE id = ANY($2::uuid[])",
            status_value,
            ids,
        )
        # asyncpg returns e.g. "UPDATE 3"
        try:
            return int(result.split()[-1])
        except (ValueError, IndexError):
            return 0
