"""Orphaned asset cleanup package."""

from src.cleanup.collector import (
    CleanupAlreadyRunningError,
    CleanupError,
    ReachabilityCollector,
    ReferenceReadError,
)
from src.cleanup.markers import CleanupMarkerStore
from src.cleanup.references import ActiveSlotRegistry

__all__ = [
    "ActiveSlotRegistry",
    "CleanupAlreadyRunningError",
    "CleanupError",
    "CleanupMarkerStore",
    "ReachabilityCollector",
    "ReferenceReadError",
]
