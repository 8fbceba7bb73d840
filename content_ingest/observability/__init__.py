"""Observability layer - logging and metrics."""

from content_ingest.observability.logging import setup_logging
from content_ingest.observability.metrics import MetricsCollector, get_metrics

__all__ = ["setup_logging", "MetricsCollector", "get_metrics"]
