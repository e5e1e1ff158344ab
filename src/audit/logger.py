"""
Audit Logger

DESIGN DECISION: Every action that creates or deletes a local asset is
logged. This provides:
1. Traceability of which pass deleted which file
2. Debugging capability when a photo "disappears"
3. A record of settings changes

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

import structlog

from src.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from src.services.storage.interface import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    # -------------------------------------------------------------------------
    # Slot updates
    # -------------------------------------------------------------------------

    async def log_photo_replaced(
        self,
        owner_id: str,
        primary_path: str,
        previous_path: Optional[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.photo_replaced(
            owner_id=owner_id,
            primary_path=primary_path,
            previous_path=previous_path,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_photo_removed(
        self,
        owner_id: str,
        removed_path: Optional[str],
        correlation_id: UUID,
    ) -> None:
        event = AuditEventBuilder.photo_removed(
            owner_id=owner_id,
            removed_path=removed_path,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_photo_update_failed(
        self,
        owner_id: str,
        stage: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        """Log a failed capture/select/remove step."""
        event = AuditEventBuilder.photo_update_failed(
            owner_id=owner_id,
            stage=stage,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    # -------------------------------------------------------------------------
    # Variant generation
    # -------------------------------------------------------------------------

    async def log_variants_generated(
        self,
        source: str,
        primary_path: str,
        thumbnail_path: str,
        total_bytes: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.variants_generated(
            source=source,
            primary_path=primary_path,
            thumbnail_path=thumbnail_path,
            total_bytes=total_bytes,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_variant_generation_failed(
        self,
        source: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.variant_generation_failed(
            source=source,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_gallery_mirror_failed(
        self,
        path: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.best_effort_failure(
            event_type=AuditEventType.GALLERY_MIRROR_FAILED,
            path=path,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_previous_variants_delete_failed(
        self,
        path: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.best_effort_failure(
            event_type=AuditEventType.PREVIOUS_VARIANTS_DELETE_FAILED,
            path=path,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    # -------------------------------------------------------------------------
    # Collector
    # -------------------------------------------------------------------------

    async def log_cleanup_scheduled(
        self,
        owner_id: str,
        last_run: Optional[datetime],
    ) -> None:
        event = AuditEventBuilder.cleanup_scheduled(owner_id=owner_id, last_run=last_run)
        await self.log(event)

    async def log_cleanup_completed(self, run_summary: dict) -> None:
        """Log a finished pass (run_summary is CleanupRun.to_log_dict())."""
        event = AuditEventBuilder.cleanup_completed(run_summary)
        await self.log(event)

    async def log_cleanup_skipped(self, owner_id: str, reason: str) -> None:
        event = AuditEventBuilder.cleanup_skipped(owner_id=owner_id, reason=reason)
        await self.log(event)

    async def log_cleanup_aborted(self, owner_id: str, error_message: str) -> None:
        event = AuditEventBuilder.cleanup_aborted(
            owner_id=owner_id,
            error_message=error_message,
        )
        await self.log(event)

    async def log_cache_cleared(self, freed_bytes: int, reason: str) -> None:
        event = AuditEventBuilder.cache_cleared(freed_bytes=freed_bytes, reason=reason)
        await self.log(event)

    # -------------------------------------------------------------------------
    # Settings & errors
    # -------------------------------------------------------------------------

    async def log_settings_changed(self, changes: dict, reset: bool = False) -> None:
        event = AuditEventBuilder.settings_changed(changes=changes, reset=reset)
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a photo capture).
    Pass it through all subsequent operations.
    """
    return uuid4()
