"""
Content importer - drives one import run for one source.

A run:
1. Ensures the import source row exists and opens a run log
2. Fetches raw items through the rate limiter
3. For each item, in source order: transform, dedup, tag, apply defaults, persist
4. Writes final counts to the run log and touches the source

Per-item failures are recorded and never abort the run. Failures before
item processing starts (initialization, fetch) finalize the run as failed
and raise ImportFailedError.
"""

import inspect
import time
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

import structlog

from content_ingest.config.settings import get_settings
from content_ingest.ingestion.base_adapter import SourceAdapter
from content_ingest.ingestion.deduplication import Deduplicator
from content_ingest.ingestion.rate_limiter import RateLimiter
from content_ingest.ingestion.schemas import (
    ContentDraft,
    ContentRecord,
    ImportStats,
    ItemError,
    Platform,
    platform_value,
)
from content_ingest.ingestion.tagging import AutoTagger
from content_ingest.observability.metrics import get_metrics
from content_ingest.sources.repository import (
    ImportLogsRepository,
    ImportSourcesRepository,
    TrackingUnavailableError,
)
from content_ingest.sources.schemas import ImportStatus
from content_ingest.storage.database import Database
from content_ingest.storage.repository import ContentRepository, DuplicateContentError

logger = structlog.get_logger(__name__)

FetchFn = Callable[[], Awaitable[list[Any] | None] | list[Any] | None]
TransformFn = Callable[[Any], Awaitable[ContentDraft | None] | ContentDraft | None]


class ImportState(str, Enum):
    """Lifecycle of an importer within one run."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    FETCHING = "fetching"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ImportFailedError(Exception):
    """Raised when a run fails before or during fetch. Carries the partial stats."""

    def __init__(self, message: str, stats: ImportStats):
        super().__init__(message)
        self.stats = stats


def item_identifier(item: Any) -> str:
    """Best-effort label for a raw item: its id, then its title."""
    for key in ("id", "title"):
        if isinstance(item, dict):
            value = item.get(key)
        else:
            value = getattr(item, key, None)
        if value:
            return str(value)
    return "unknown"


class ContentImporter:
    """
    Orchestrates one import run.

    Usage:
        importer = ContentImporter(
            database=db,
            platform=Platform.REDDIT,
            source_identifier="pizza",
            display_name="r/pizza",
            rate_limiter=reddit_limiter,
        )
        stats = await importer.run(fetch_fn, transform_fn)
    """

    def __init__(
        self,
        database: Database | None = None,
        platform: Platform | str = Platform.MOCK,
        source_identifier: str = "default",
        display_name: str | None = None,
        rate_limiter: RateLimiter | None = None,
        requests_per_minute: int | None = None,
        auto_tagger: AutoTagger | None = None,
        deduplicator: Deduplicator | None = None,
        dry_run: bool = False,
        verbose: bool = False,
        content_repository: ContentRepository | None = None,
        sources_repository: ImportSourcesRepository | None = None,
        logs_repository: ImportLogsRepository | None = None,
    ):
        """
        Initialize importer.

        Args:
            database: Database used to build any repository not passed explicitly
            platform: Source platform (unknown platform strings are stored as given)
            source_identifier: Key of the source within the platform
            display_name: Name stored on first creation of the source
            rate_limiter: Shared limiter (one is created when omitted)
            requests_per_minute: Budget for a limiter created here
            auto_tagger: Tagger for drafts without tags
            deduplicator: Dedup cache (built on the content repository when omitted)
            dry_run: Count items as imported without writing anything
            verbose: Log every skip decision at debug level
            content_repository: Content table access
            sources_repository: import_sources access
            logs_repository: import_logs access
        """
        missing = [
            name
            for name, repo in (
                ("content_repository", content_repository),
                ("sources_repository", sources_repository),
                ("logs_repository", logs_repository),
            )
            if repo is None
        ]
        if missing and database is None:
            raise ValueError(f"database is required when {', '.join(missing)} not given")

        settings = get_settings()

        self.platform = platform_value(platform)
        self.source_identifier = source_identifier
        self.display_name = display_name or f"{self.platform}/{source_identifier}"
        self.dry_run = dry_run
        self.verbose = verbose

        self._content = content_repository or ContentRepository(database)
        self._sources = sources_repository or ImportSourcesRepository(database)
        self._logs = logs_repository or ImportLogsRepository(database)

        self.rate_limiter = rate_limiter or RateLimiter(requests_per_minute=requests_per_minute)
        self.auto_tagger = auto_tagger or AutoTagger(
            max_tags=settings.max_tags, base_tag=settings.base_tag
        )
        self.deduplicator = deduplicator or Deduplicator(self._content)
        self._default_tags = [self.auto_tagger.base_tag]

        self.source_id: str | None = None
        self.log_id: str | None = None
        self.degraded = False
        self.stats = ImportStats()

        self._state = ImportState.UNINITIALIZED
        self._finalized = False
        self._metrics = get_metrics()
        self._log = logger.bind(platform=self.platform, source=self.source_identifier)

    @property
    def state(self) -> ImportState:
        return self._state

    def _trace(self, event: str, **kw: Any) -> None:
        if self.verbose:
            self._log.debug(event, **kw)

    async def initialize(self) -> None:
        """
        Ensure the source row, open the run log and load the dedup cache.

        Missing bookkeeping tables switch the importer to degraded mode:
        content is still imported, and whichever of the source and log
        writes still has a table is kept.
        """
        self._state = ImportState.INITIALIZING
        self._log.info("Initializing importer", dry_run=self.dry_run)

        try:
            await self._ensure_source()
        except TrackingUnavailableError as e:
            self._degrade("Import sources table not found, run init-db first", e)
            self.source_id = None

        if not self.degraded:
            try:
                await self._start_log()
            except TrackingUnavailableError as e:
                self._degrade("Import logs table not found, run init-db first", e)
                self.log_id = None

        await self.deduplicator.load_cache()
        self._log.info(
            "Importer ready",
            display_name=self.display_name,
            source_id=self.source_id,
            cached_urls=self.deduplicator.size,
        )

    def _degrade(self, message: str, error: Exception) -> None:
        self.degraded = True
        self._log.warning(f"{message}. Continuing without full bookkeeping", error=str(error))

    async def _ensure_source(self) -> None:
        existing = await self._sources.get_by_key(self.platform, self.source_identifier)
        if existing:
            self.source_id = existing.id
            self._log.info("Using existing source", source_id=existing.id)
            return

        if self.dry_run:
            self._log.info("Source not found, not creating it in dry run")
            return

        created = await self._sources.create(
            self.platform, self.source_identifier, self.display_name
        )
        self.source_id = created.id
        self._log.info("Created source", source_id=created.id)

    async def _start_log(self) -> None:
        if self.dry_run or not self.source_id:
            return

        import_log = await self._logs.start(self.source_id)
        self.log_id = import_log.id
        self._log.info("Started import log", log_id=import_log.id)

    async def run(self, fetch_fn: FetchFn, transform_fn: TransformFn) -> ImportStats:
        """
        Run one import.

        Args:
            fetch_fn: Returns the raw items (sync or async, called under the rate limiter)
            transform_fn: Maps a raw item to a draft, or None to skip (sync or async)

        Returns:
            Run statistics

        Raises:
            ImportFailedError: If initialization or fetch failed
        """
        self.stats = ImportStats()
        self.source_id = None
        self.log_id = None
        self.degraded = False
        self._finalized = False

        try:
            await self.initialize()

            self._state = ImportState.FETCHING
            self._log.info("Fetching content")
            start = time.monotonic()
            items = await self.rate_limiter.execute(fetch_fn, context=f"{self.platform}:fetch")
            self._metrics.record_fetch_latency(self.platform, time.monotonic() - start)
        except Exception as e:
            self._state = ImportState.FAILED
            self._log.error("Import failed", error=str(e), error_type=type(e).__name__)
            await self._finalize_after_failure(str(e))
            raise ImportFailedError(f"Import failed: {e}", self.stats) from e

        items = list(items or [])
        self.stats.found = len(items)
        self._log.info("Fetched items", found=self.stats.found)

        self._state = ImportState.PROCESSING
        for item in items:
            try:
                await self._process_item(item, transform_fn)
            except Exception as e:
                identifier = item_identifier(item)
                self.stats.errors.append(ItemError(item=identifier, error=str(e)))
                self._log.error("Error processing item", item=identifier, error=str(e))

        await self.finalize(ImportStatus.COMPLETED)
        return self.stats

    async def run_adapter(self, adapter: SourceAdapter) -> ImportStats:
        """Run an import with an adapter's fetch and transform."""
        self._log.info("Running adapter", adapter=adapter.name)
        return await self.run(adapter.fetch, adapter.transform)

    async def _process_item(self, item: Any, transform_fn: TransformFn) -> None:
        draft = transform_fn(item)
        if inspect.isawaitable(draft):
            draft = await draft

        if draft is None:
            self.stats.skipped += 1
            self._trace("Skipped by transform", item=item_identifier(item))
            return

        if draft.source_url and await self.deduplicator.exists(draft.source_url):
            self.stats.skipped += 1
            self._trace("Skipping duplicate", source_url=draft.source_url)
            return

        if not draft.tags:
            draft = draft.model_copy(
                update={
                    "tags": self.auto_tagger.extract_from_content(
                        {
                            "title": draft.title,
                            "description": draft.description,
                            "alt_text": draft.alt_text,
                            "caption": draft.caption,
                            "keywords": draft.keywords,
                            "platform": self.platform,
                            "type": draft.type,
                        }
                    )
                }
            )

        record = ContentRecord.from_draft(draft, self.platform, self._default_tags)

        if self.dry_run:
            self._log.info("[DRY RUN] Would import", title=record.title, tags=record.tags)
            self.deduplicator.add_to_cache(record.source_url)
            self.stats.imported += 1
            return

        try:
            content_id = await self._content.insert(record)
        except DuplicateContentError:
            self.stats.skipped += 1
            self._trace("Duplicate rejected by store", source_url=record.source_url)
            return

        self.deduplicator.add_to_cache(record.source_url)
        self.stats.imported += 1
        self._log.info("Imported", title=record.title, content_id=content_id)

    async def finalize(
        self, status: ImportStatus, error_message: str | None = None
    ) -> None:
        """
        Log the summary and write bookkeeping for the run.

        Only the first call per run has any effect.
        """
        if self._finalized:
            return
        self._finalized = True

        self._state = (
            ImportState.COMPLETED if status == ImportStatus.COMPLETED else ImportState.FAILED
        )
        self._log.info(
            f"Import {status.value}",
            found=self.stats.found,
            imported=self.stats.imported,
            skipped=self.stats.skipped,
            errors=len(self.stats.errors),
        )
        self._metrics.record_items(
            self.platform,
            found=self.stats.found,
            imported=self.stats.imported,
            skipped=self.stats.skipped,
            errors=len(self.stats.errors),
        )
        self._metrics.record_run(self.platform, status.value)

        if self.dry_run:
            return

        if self.log_id:
            try:
                await self._logs.finish(
                    self.log_id,
                    status,
                    self.stats.found,
                    self.stats.imported,
                    self.stats.skipped,
                    error_message,
                )
            except TrackingUnavailableError as e:
                self._degrade("Import logs table disappeared during run", e)

        if self.source_id:
            try:
                await self._sources.touch(self.source_id)
            except TrackingUnavailableError as e:
                self._degrade("Import sources table disappeared during run", e)

    async def _finalize_after_failure(self, error_message: str) -> None:
        # The original failure is what the caller needs to see
        try:
            await self.finalize(ImportStatus.FAILED, error_message)
        except Exception as e:
            self._log.error("Failed to record failed run", error=str(e))
