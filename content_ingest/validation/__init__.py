"""Validation - URL liveness checks and the link audit pass."""

from content_ingest.validation.liveness import (
    BatchCheckResult,
    GenericStrategy,
    LivenessChecker,
    LivenessResult,
    LivenessStrategy,
    OEmbedStrategy,
)
from content_ingest.validation.service import AuditReport, LinkAuditService

__all__ = [
    "LivenessChecker",
    "LivenessResult",
    "LivenessStrategy",
    "OEmbedStrategy",
    "GenericStrategy",
    "BatchCheckResult",
    "LinkAuditService",
    "AuditReport",
]
