"""
Audit Models for the Image Asset Lifecycle Manager

Every significant action on local assets is logged for audit purposes:
1. Photo replacements and removals
2. Variant generation and its failures
3. Every collector pass (and why it was skipped or aborted)
4. Settings changes

DESIGN DECISION: Audit logs are append-only. A deleted file leaves a trace
in the audit trail even though the file itself is gone.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Slot updates
    PHOTO_REPLACED = "photo_replaced"
    PHOTO_REMOVED = "photo_removed"
    PHOTO_UPDATE_FAILED = "photo_update_failed"

    # Variant generation
    VARIANTS_GENERATED = "variants_generated"
    VARIANT_GENERATION_FAILED = "variant_generation_failed"
    GALLERY_MIRROR_FAILED = "gallery_mirror_failed"
    PREVIOUS_VARIANTS_DELETE_FAILED = "previous_variants_delete_failed"

    # Collector
    CLEANUP_SCHEDULED = "cleanup_scheduled"
    CLEANUP_COMPLETED = "cleanup_completed"
    CLEANUP_SKIPPED = "cleanup_skipped"
    CLEANUP_ABORTED = "cleanup_aborted"
    CACHE_CLEARED = "cache_cleared"

    # Settings
    SETTINGS_UPDATED = "settings_updated"
    SETTINGS_RESET = "settings_reset"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'slot', 'asset', 'settings')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Owner ID or asset path this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one photo update)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.photo_replaced(owner_id, primary, previous, correlation_id)
        event = AuditEventBuilder.cleanup_completed(run)
    """

    @staticmethod
    def photo_replaced(
        owner_id: str,
        primary_path: str,
        previous_path: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PHOTO_REPLACED,
            entity_type="slot",
            entity_id=owner_id,
            correlation_id=correlation_id,
            description="Profile photo replaced",
            details={
                "primary_path": primary_path,
                "previous_path": previous_path,
            },
            is_user_action=True,
        )

    @staticmethod
    def photo_removed(
        owner_id: str,
        removed_path: Optional[str],
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PHOTO_REMOVED,
            entity_type="slot",
            entity_id=owner_id,
            correlation_id=correlation_id,
            description="Profile photo removed",
            details={"removed_path": removed_path},
            is_user_action=True,
        )

    @staticmethod
    def photo_update_failed(
        owner_id: str,
        stage: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PHOTO_UPDATE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="slot",
            entity_id=owner_id,
            correlation_id=correlation_id,
            description=f"Profile photo update failed at {stage}",
            details={"stage": stage},
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def variants_generated(
        source: str,
        primary_path: str,
        thumbnail_path: str,
        total_bytes: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VARIANTS_GENERATED,
            entity_type="asset",
            entity_id=primary_path,
            correlation_id=correlation_id,
            description="Primary and thumbnail variants written",
            details={
                "source": source,
                "thumbnail_path": thumbnail_path,
                "total_bytes": total_bytes,
            },
        )

    @staticmethod
    def variant_generation_failed(
        source: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VARIANT_GENERATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="asset",
            entity_id=source,
            correlation_id=correlation_id,
            description="Variant generation failed",
            error_message=error_message,
        )

    @staticmethod
    def best_effort_failure(
        event_type: AuditEventType,
        path: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        """Gallery mirroring / previous-pair deletion: logged, never fatal."""
        return AuditEvent(
            event_type=event_type,
            severity=AuditSeverity.WARNING,
            entity_type="asset",
            entity_id=path,
            correlation_id=correlation_id,
            description=f"Best-effort step failed: {event_type.value}",
            error_message=error_message,
        )

    @staticmethod
    def cleanup_scheduled(owner_id: str, last_run: Optional[datetime]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLEANUP_SCHEDULED,
            entity_type="owner",
            entity_id=owner_id,
            description="Background cleanup pass started",
            details={"last_run": last_run.isoformat() if last_run else None},
        )

    @staticmethod
    def cleanup_completed(run_summary: dict) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLEANUP_COMPLETED,
            entity_type="owner",
            entity_id=run_summary.get("owner_id"),
            description=(
                f"Cleanup deleted {run_summary.get('deleted_count', 0)} orphaned assets"
            ),
            details=run_summary,
        )

    @staticmethod
    def cleanup_skipped(owner_id: str, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLEANUP_SKIPPED,
            entity_type="owner",
            entity_id=owner_id,
            description=f"Cleanup skipped: {reason}",
            details={"reason": reason},
        )

    @staticmethod
    def cleanup_aborted(owner_id: str, error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CLEANUP_ABORTED,
            severity=AuditSeverity.WARNING,
            entity_type="owner",
            entity_id=owner_id,
            description="Cleanup aborted with zero deletions",
            error_message=error_message,
        )

    @staticmethod
    def cache_cleared(freed_bytes: int, reason: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CACHE_CLEARED,
            entity_type="cache",
            description=f"Ephemeral cache cleared ({reason})",
            details={"freed_bytes": freed_bytes, "reason": reason},
        )

    @staticmethod
    def settings_changed(changes: dict, reset: bool = False) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.SETTINGS_RESET if reset else AuditEventType.SETTINGS_UPDATED
            ),
            entity_type="settings",
            description="Image settings reset to defaults" if reset else "Image settings updated",
            details={"changes": changes},
            is_user_action=True,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
