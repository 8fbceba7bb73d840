"""
Prometheus metrics for monitoring the ingestion pipeline.

Defines and exposes metrics for:
- Import run outcomes and item counts
- Fetch latency
- Rate limit backoffs
- Dedup cache size
- URL liveness checks

Metrics are exposed via HTTP endpoint for Prometheus scraping.
"""

import logging

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

from content_ingest.config.settings import get_settings
from content_ingest.ingestion.schemas import Platform, platform_value

logger = logging.getLogger(__name__)

# Buckets for latency histograms (in seconds)
LATENCY_BUCKETS = (0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0)


class MetricsCollector:
    """
    Prometheus metrics collector for the content-ingest pipeline.

    Usage:
        metrics = get_metrics()
        metrics.start_server()

        metrics.record_items(platform="reddit", imported=3, skipped=1)
        metrics.record_liveness_check("youtube", ok=False)
    """

    def __init__(self):
        """Initialize Prometheus metrics."""

        # Item counters
        self.items_found = Counter(
            "content_ingest_items_found_total",
            "Total raw items returned by source fetches",
            ["platform"],
        )

        self.items_imported = Counter(
            "content_ingest_items_imported_total",
            "Total items persisted (or counted in dry runs)",
            ["platform"],
        )

        self.items_skipped = Counter(
            "content_ingest_items_skipped_total",
            "Total items skipped (rejected by transform or duplicate)",
            ["platform"],
        )

        self.item_errors = Counter(
            "content_ingest_item_errors_total",
            "Total per-item processing errors",
            ["platform"],
        )

        # Run outcomes
        self.import_runs = Counter(
            "content_ingest_import_runs_total",
            "Total import runs by final status",
            ["platform", "status"],  # status: completed, failed
        )

        self.fetch_latency = Histogram(
            "content_ingest_fetch_latency_seconds",
            "Time to fetch raw items from a source, including rate limit waits",
            ["platform"],
            buckets=LATENCY_BUCKETS,
        )

        # Rate limiting
        self.rate_limit_backoffs = Counter(
            "content_ingest_rate_limit_backoffs_total",
            "Total backoff sleeps triggered by rate limit responses",
            ["context"],
        )

        # Deduplication
        self.dedup_cache_size = Gauge(
            "content_ingest_dedup_cache_size",
            "Number of normalized source URLs in the dedup cache",
        )

        # Liveness
        self.liveness_checks = Counter(
            "content_ingest_liveness_checks_total",
            "Total URL liveness checks",
            ["strategy", "outcome"],  # outcome: live, broken
        )

        self._server_started = False

    def start_server(self, port: int | None = None) -> None:
        """
        Start Prometheus metrics HTTP server.

        Args:
            port: Port to listen on (defaults to settings.metrics_port)
        """
        if self._server_started:
            return

        port = port or get_settings().metrics_port
        start_http_server(port)
        self._server_started = True
        logger.info(f"Metrics server started on port {port}")

    def record_items(
        self,
        platform: Platform | str,
        found: int = 0,
        imported: int = 0,
        skipped: int = 0,
        errors: int = 0,
    ) -> None:
        """
        Record item counts for a run.

        Args:
            platform: Source platform
            found: Raw items fetched
            imported: Items imported
            skipped: Items skipped
            errors: Items that failed
        """
        label = platform_value(platform)
        if found:
            self.items_found.labels(platform=label).inc(found)
        if imported:
            self.items_imported.labels(platform=label).inc(imported)
        if skipped:
            self.items_skipped.labels(platform=label).inc(skipped)
        if errors:
            self.item_errors.labels(platform=label).inc(errors)

    def record_run(self, platform: Platform | str, status: str) -> None:
        """Record a finished import run."""
        self.import_runs.labels(platform=platform_value(platform), status=status).inc()

    def record_fetch_latency(self, platform: Platform | str, latency: float) -> None:
        """Record time spent fetching raw items."""
        self.fetch_latency.labels(platform=platform_value(platform)).observe(latency)

    def record_backoff(self, context: str) -> None:
        self.rate_limit_backoffs.labels(context=context).inc()

    def set_dedup_cache_size(self, size: int) -> None:
        self.dedup_cache_size.set(size)

    def record_liveness_check(self, strategy: str, ok: bool) -> None:
        """
        Record the outcome of a liveness check.

        Args:
            strategy: Strategy name that handled the URL
            ok: Whether the URL was live
        """
        outcome = "live" if ok else "broken"
        self.liveness_checks.labels(strategy=strategy, outcome=outcome).inc()


# Global metrics instance
_metrics: MetricsCollector | None = None


def get_metrics() -> MetricsCollector:
    """Get global metrics collector instance."""
    global _metrics
    if _metrics is None:
        _metrics = MetricsCollector()
    return _metrics
