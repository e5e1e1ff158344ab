"""
Abstract Storage Interfaces

DESIGN DECISION: The asset core never talks to a concrete backend.
It depends on these interfaces so we can:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing and local mode
3. Keep lifecycle logic decoupled from remote record semantics

Only the operations the asset lifecycle needs are modeled here.
Financial-record CRUD lives elsewhere in the app.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from src.models.audit import AuditEvent


class RecordStoreInterface(ABC):
    """
    The remote record store, seen from the asset lifecycle.

    The profile photo path stored here is the AUTHORITATIVE photo field.
    """

    @abstractmethod
    async def list_receipt_paths(self, owner_id: str) -> list[str]:
        """
        List every non-empty receipt-image path of the owner's records.

        Raises:
            StorageError: If the records cannot be read. Callers building
                a reference set MUST treat this as "unknown", never as
                "no references".
        """
        pass

    @abstractmethod
    async def get_profile_photo_path(self, owner_id: str) -> Optional[str]:
        """
        Get the owner's profile photo path, if one is set.

        Raises:
            StorageError: If the profile cannot be read
        """
        pass

    @abstractmethod
    async def set_profile_photo_path(
        self,
        owner_id: str,
        path: Optional[str],
    ) -> bool:
        """
        Set (or clear, with None) the owner's profile photo path.

        Returns:
            True if written successfully

        Raises:
            StorageError: If the write fails
        """
        pass


class IdentityProviderInterface(ABC):
    """
    The identity provider's own photo field.

    This is a best-effort mirror of the record store; the local path
    stays authoritative for display.
    """

    @abstractmethod
    async def get_photo_hint(self, owner_id: str) -> Optional[str]:
        pass

    @abstractmethod
    async def set_photo_hint(self, owner_id: str, path: Optional[str]) -> bool:
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one photo update).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
