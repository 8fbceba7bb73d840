"""Storage layer for content persistence."""

from content_ingest.storage.database import Database
from content_ingest.storage.repository import (
    ContentRepository,
    DuplicateContentError,
    StoredContent,
)

__all__ = [
    "Database",
    "ContentRepository",
    "DuplicateContentError",
    "StoredContent",
]
