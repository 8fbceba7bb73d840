"""Content ingestion - schemas, rate limiting, dedup, tagging and the importer."""

from content_ingest.ingestion.schemas import (
    ContentDraft,
    ContentRecord,
    ContentStatus,
    ContentType,
    ImportStats,
    ItemError,
    Platform,
)

__all__ = [
    "Platform",
    "ContentType",
    "ContentStatus",
    "ContentDraft",
    "ContentRecord",
    "ImportStats",
    "ItemError",
]
