"""
Link audit pass over stored content.

Probes the media of approved rows and flags the dead ones as
flagged_broken. In fix mode it instead re-probes flagged rows and restores
the ones that work again. Runs separately from imports.
"""

from collections import Counter
from dataclasses import dataclass, field

import structlog

from content_ingest.config.settings import get_settings
from content_ingest.ingestion.schemas import ContentStatus
from content_ingest.storage.repository import ContentRepository, StoredContent
from content_ingest.validation.liveness import LivenessChecker, LivenessResult

logger = structlog.get_logger(__name__)


@dataclass
class BrokenItem:
    """A row whose media failed its probe."""

    content: StoredContent
    result: LivenessResult


@dataclass
class AuditReport:
    """Outcome of one audit pass."""

    checked: int = 0
    live: int = 0
    broken: int = 0
    updated: int = 0
    fix: bool = False
    dry_run: bool = False
    broken_items: list[BrokenItem] = field(default_factory=list)
    broken_by_platform: dict[str, int] = field(default_factory=dict)

    def summary(self) -> str:
        return (
            f"checked={self.checked} live={self.live} "
            f"broken={self.broken} updated={self.updated}"
        )


class LinkAuditService:
    """
    Flags content whose media no longer resolves.

    Usage:
        service = LinkAuditService(ContentRepository(db), checker)
        report = await service.run(platform="reddit", limit=100)
    """

    def __init__(
        self,
        repository: ContentRepository,
        checker: LivenessChecker,
        concurrency: int | None = None,
    ):
        self._repo = repository
        self._checker = checker
        self._concurrency = concurrency or get_settings().liveness_concurrency

    async def run(
        self,
        platform: str | None = None,
        content_type: str | None = None,
        limit: int | None = None,
        fix: bool = False,
        dry_run: bool = False,
        concurrency: int | None = None,
    ) -> AuditReport:
        """
        Audit one slice of the content table.

        Args:
            platform: Only rows from this source platform
            content_type: Only rows of this type
            limit: Maximum rows to check, newest first
            fix: Re-check flagged rows and restore the working ones
            dry_run: Report without updating any row
            concurrency: Probes in flight at once

        Returns:
            AuditReport
        """
        status = ContentStatus.FLAGGED_BROKEN if fix else ContentStatus.APPROVED
        rows = await self._repo.list_content(
            status=status, platform=platform, content_type=content_type, limit=limit
        )
        report = AuditReport(fix=fix, dry_run=dry_run)

        log = logger.bind(status=status.value, platform=platform, content_type=content_type)
        if not rows:
            log.info("No content to check")
            return report

        log.info("Checking content", count=len(rows), dry_run=dry_run)

        live_ids: list[str] = []
        broken_ids: list[str] = []
        batch = self._checker.check_batch(
            rows,
            concurrency=concurrency or self._concurrency,
            url_getter=lambda row: row.check_url,
        )
        async for checked in batch:
            report.checked += 1
            if checked.result.ok:
                live_ids.append(checked.item.id)
            else:
                broken_ids.append(checked.item.id)
                report.broken_items.append(BrokenItem(checked.item, checked.result))
                log.debug(
                    "Broken content",
                    content_id=checked.item.id,
                    title=(checked.item.title or "")[:50],
                    reason=checked.result.reason,
                )

        report.live = len(live_ids)
        report.broken = len(broken_ids)
        by_platform = Counter(b.content.source_platform or "unknown" for b in report.broken_items)
        report.broken_by_platform = dict(by_platform.most_common())

        if not dry_run:
            if fix and live_ids:
                report.updated = await self._repo.update_status(live_ids, ContentStatus.APPROVED)
                log.info("Unflagged working content", count=report.updated)
            elif not fix and broken_ids:
                report.updated = await self._repo.update_status(
                    broken_ids, ContentStatus.FLAGGED_BROKEN
                )
                log.info("Flagged broken content", count=report.updated)

        log.info(
            "Audit complete",
            checked=report.checked,
            live=report.live,
            broken=report.broken,
            updated=report.updated,
            broken_by_platform=report.broken_by_platform,
        )
        return report
