"""Data models for import source and import log bookkeeping."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ImportStatus(str, Enum):
    """Lifecycle of a single import run."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class ImportSource:
    """A recurring import configuration (e.g. one subreddit or search query).

    Uses composite key (platform, source_identifier) so one platform can
    have several configurations.
    """

    id: str
    platform: str
    source_identifier: str
    display_name: str | None = None
    is_active: bool = True
    last_fetched_at: datetime | None = None
    created_at: datetime | None = None


@dataclass
class ImportLog:
    """One row per import run, owned by an ImportSource."""

    id: str
    source_id: str
    status: ImportStatus
    items_found: int = 0
    items_imported: int = 0
    items_skipped: int = 0
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
