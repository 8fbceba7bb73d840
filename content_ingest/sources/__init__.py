"""Sources: import source and run log bookkeeping."""

from content_ingest.sources.repository import (
    ImportLogsRepository,
    ImportSourcesRepository,
    TrackingUnavailableError,
)
from content_ingest.sources.schemas import ImportLog, ImportSource, ImportStatus

__all__ = [
    "ImportLog",
    "ImportSource",
    "ImportStatus",
    "ImportLogsRepository",
    "ImportSourcesRepository",
    "TrackingUnavailableError",
]
