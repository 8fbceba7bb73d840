"""
Command-line interface for content-ingest.

Provides commands to initialize the database, run imports, audit stored
links and check dependency health.

Usage:
    content-ingest init-db                      # Create tables and indexes
    content-ingest import reddit -s pizza       # Import one subreddit
    content-ingest import mock --dry-run        # Exercise the pipeline offline
    content-ingest sources --platform reddit    # List sources and recent runs
    content-ingest check-links --source reddit  # Flag dead media
    content-ingest health                       # Check service health
"""

import asyncio
import sys

import click

from content_ingest.config.settings import get_settings
from content_ingest.observability.logging import bind_command, setup_logging
from content_ingest.observability.metrics import get_metrics


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--json-logs/--console-logs", default=None, help="Log format (defaults to JSON in production)"
)
@click.pass_context
def main(ctx: click.Context, debug: bool, json_logs: bool | None) -> None:
    """Content Ingest - rate-limited content imports with dedup, tagging and link audits."""
    setup_logging(level="DEBUG" if debug else None, json_logs=json_logs)
    if ctx.invoked_subcommand:
        bind_command(ctx.invoked_subcommand)


@main.command("init-db")
def init_db() -> None:
    """Initialize the database schema."""
    from content_ingest.sources.repository import ImportLogsRepository, ImportSourcesRepository
    from content_ingest.storage.database import Database
    from content_ingest.storage.repository import ContentRepository

    async def run():
        async with Database() as db:
            await ContentRepository(db).create_table()
            await ImportSourcesRepository(db).create_table()
            await ImportLogsRepository(db).create_table()

        click.echo("Database initialized successfully")

    asyncio.run(run())


@main.command("import")
@click.argument("platform", type=click.Choice(["reddit", "mock"]))
@click.option(
    "--source", "-s", "sources", multiple=True,
    help="Source to import (subreddit for reddit; can repeat)",
)
@click.option("--limit", "-l", default=25, show_default=True, help="Items to fetch per source")
@click.option(
    "--sort", default="hot", show_default=True,
    type=click.Choice(["hot", "new", "top", "rising"]),
    help="Listing sort order",
)
@click.option(
    "--time", "-t", "time_period", default="week", show_default=True,
    type=click.Choice(["hour", "day", "week", "month", "year", "all"]),
    help="Time window for top listings",
)
@click.option(
    "--requests-per-minute", default=None, type=click.IntRange(min=1),
    help="Override the platform rate limit",
)
@click.option("--validate-media/--no-validate-media", default=True, help="Probe media URLs before import")
@click.option("--dry-run", is_flag=True, help="Show what would be imported without saving")
@click.option("--verbose", "-v", is_flag=True, help="Log every skip decision")
@click.option("--metrics/--no-metrics", default=False, help="Enable metrics server")
def import_content(
    platform: str,
    sources: tuple[str, ...],
    limit: int,
    sort: str,
    time_period: str,
    requests_per_minute: int | None,
    validate_media: bool,
    dry_run: bool,
    verbose: bool,
    metrics: bool,
) -> None:
    """Import content from PLATFORM."""
    import httpx
    import structlog

    from content_ingest.ingestion.importer import ContentImporter, ImportFailedError
    from content_ingest.ingestion.mock_adapter import MockAdapter
    from content_ingest.ingestion.rate_limiter import RateLimiter
    from content_ingest.ingestion.reddit_adapter import DEFAULT_SUBREDDITS, RedditAdapter
    from content_ingest.storage.database import Database
    from content_ingest.validation.liveness import LivenessChecker

    logger = structlog.get_logger()
    settings = get_settings()

    if platform == "reddit":
        source_list = list(sources) or DEFAULT_SUBREDDITS
        default_rpm = settings.reddit_requests_per_minute
    else:
        source_list = list(sources) or ["default"]
        default_rpm = settings.default_requests_per_minute
    rpm = requests_per_minute if requests_per_minute is not None else default_rpm

    async def run() -> bool:
        if metrics:
            get_metrics().start_server()

        # One limiter per platform, shared by every source in this run
        limiter = RateLimiter(requests_per_minute=rpm)
        failures = 0

        async with Database() as db, httpx.AsyncClient(
            timeout=30.0, follow_redirects=True
        ) as client:
            checker = LivenessChecker(client=client) if validate_media else None

            for source in source_list:
                if platform == "reddit":
                    adapter = RedditAdapter.from_settings(
                        source,
                        client=client,
                        sort=sort,
                        time=time_period,
                        limit=limit,
                        media_checker=checker,
                    )
                else:
                    adapter = MockAdapter(source_identifier=source, items_per_fetch=limit)

                importer = ContentImporter(
                    database=db,
                    platform=adapter.platform,
                    source_identifier=adapter.source_identifier,
                    display_name=adapter.display_name,
                    rate_limiter=limiter,
                    dry_run=dry_run,
                    verbose=verbose,
                )

                try:
                    stats = await importer.run_adapter(adapter)
                except ImportFailedError as e:
                    failures += 1
                    logger.error("Import failed", source=source, error=str(e))
                    continue
                finally:
                    await adapter.close()

                click.echo(f"{adapter.display_name}: {stats.summary()}")

        return failures == 0

    ok = asyncio.run(run())
    sys.exit(0 if ok else 1)


@main.command()
@click.option("--platform", default=None, help="Only list sources of this platform")
@click.option("--active-only", is_flag=True, help="Hide deactivated sources")
@click.option(
    "--runs", default=3, show_default=True, type=click.IntRange(min=0),
    help="Recent runs per source",
)
def sources(platform: str | None, active_only: bool, runs: int) -> None:
    """List import sources and their recent runs."""
    from content_ingest.sources.repository import (
        ImportLogsRepository,
        ImportSourcesRepository,
        TrackingUnavailableError,
    )
    from content_ingest.storage.database import Database

    async def run():
        async with Database() as db:
            logs_repo = ImportLogsRepository(db)
            try:
                found = await ImportSourcesRepository(db).list_sources(
                    platform=platform, active_only=active_only
                )
            except TrackingUnavailableError:
                click.echo(
                    click.style("Import tracking tables not found, run init-db first", fg="red")
                )
                sys.exit(1)

            if not found:
                click.echo("No import sources")
                return

            for source in found:
                last = source.last_fetched_at.isoformat() if source.last_fetched_at else "never"
                state = "" if source.is_active else " (inactive)"
                click.echo(f"\n{source.display_name or source.source_identifier}{state}")
                click.echo(f"  key: {source.platform}/{source.source_identifier}")
                click.echo(f"  last fetched: {last}")
                if not runs:
                    continue
                for log in await logs_repo.recent(source_id=source.id, limit=runs):
                    started = log.started_at.isoformat() if log.started_at else "?"
                    click.echo(
                        f"  - {started} {log.status.value}: found={log.items_found} "
                        f"imported={log.items_imported} skipped={log.items_skipped}"
                    )

    asyncio.run(run())


@main.command("check-links")
@click.option("--source", "platform", default=None, help="Only check this source platform")
@click.option("--type", "content_type", default=None, help="Only check this content type")
@click.option("--limit", default=None, type=int, help="Maximum items to check")
@click.option("--dry-run", is_flag=True, help="Report without updating the database")
@click.option("--fix", is_flag=True, help="Re-check flagged items and unflag working ones")
@click.option("--concurrency", default=None, type=int, help="Concurrent checks")
@click.option("--verbose", "-v", is_flag=True, help="List broken items")
def check_links(
    platform: str | None,
    content_type: str | None,
    limit: int | None,
    dry_run: bool,
    fix: bool,
    concurrency: int | None,
    verbose: bool,
) -> None:
    """Probe stored media URLs and flag broken content."""
    from content_ingest.storage.database import Database
    from content_ingest.storage.repository import ContentRepository
    from content_ingest.validation.liveness import LivenessChecker
    from content_ingest.validation.service import LinkAuditService

    async def run():
        async with Database() as db, LivenessChecker() as checker:
            service = LinkAuditService(ContentRepository(db), checker)
            report = await service.run(
                platform=platform,
                content_type=content_type,
                limit=limit,
                fix=fix,
                dry_run=dry_run,
                concurrency=concurrency,
            )

        click.echo("\nLink Check Results:")
        click.echo("-" * 40)
        click.echo(click.style(f"  ✓ live: {report.live}", fg="green"))
        click.echo(click.style(f"  ✗ broken: {report.broken}", fg="red"))
        action = "unflagged" if fix else "flagged"
        click.echo(f"  {action}: {report.updated}" + (" (dry run)" if dry_run else ""))

        if verbose and report.broken_items:
            click.echo("\nBroken items:")
            for broken in report.broken_items[:20]:
                title = (broken.content.title or "")[:50]
                click.echo(f"  - [{broken.content.source_platform}] {title}: {broken.result.reason}")
            if len(report.broken_items) > 20:
                click.echo(f"  ... and {len(report.broken_items) - 20} more")

        if report.broken_by_platform:
            click.echo("\nBroken items by source:")
            for name, count in report.broken_by_platform.items():
                click.echo(f"  {name}: {count}")

    asyncio.run(run())


@main.command()
def health() -> None:
    """Check health of all dependencies."""
    import asyncpg
    import structlog

    logger = structlog.get_logger()

    async def check():
        results: dict[str, bool] = {}

        # Check PostgreSQL
        from content_ingest.storage.database import Database

        db = Database()
        try:
            await db.connect()
            results["postgres"] = await db.health_check()
        except (asyncpg.PostgresError, OSError) as e:
            results["postgres"] = False
            logger.error("Postgres health check failed", error=str(e))
        finally:
            await db.close()

        settings = get_settings()
        results["reddit_configured"] = settings.reddit_configured

        # Print results
        click.echo("\nHealth Check Results:")
        click.echo("-" * 40)

        all_healthy = True
        for name, status in results.items():
            icon = "✓" if status else "✗"
            color = "green" if status else "red"
            click.echo(click.style(f"  {icon} {name}: {status}", fg=color))
            if name == "postgres" and not status:
                all_healthy = False

        click.echo("-" * 40)

        if all_healthy:
            click.echo(click.style("All core services healthy!", fg="green"))
            sys.exit(0)
        else:
            click.echo(click.style("Some services unhealthy!", fg="red"))
            sys.exit(1)

    asyncio.run(check())


if __name__ == "__main__":
    main()
