"""
In-Memory Storage Implementations

Used for local-only mode (no remote backend configured) and in tests.
They honor the same contracts as the remote backends, including raising
StorageError when told to simulate an outage.
"""

from collections import defaultdict
from typing import Optional
from uuid import UUID

from src.models.audit import AuditEvent
from src.services.storage.interface import (
    AuditStorageInterface,
    IdentityProviderInterface,
    RecordStoreInterface,
    StorageError,
)


class InMemoryRecordStore(RecordStoreInterface):
    """Receipts and profile photo paths held in dictionaries."""

    def __init__(self):
        self._receipts: dict[str, list[str]] = defaultdict(list)
        self._profile_photos: dict[str, Optional[str]] = {}
        # Flip to simulate an unreachable backend
        self.fail_reads = False
        self.fail_writes = False

    def add_receipt(self, owner_id: str, receipt_image_path: Optional[str]) -> None:
        """Attach a record to the owner; empty paths mimic records without a receipt."""
        self._receipts[owner_id].append(receipt_image_path or "")

    async def list_receipt_paths(self, owner_id: str) -> list[str]:
        if self.fail_reads:
            raise StorageError("Record store unavailable")
        return [path for path in self._receipts.get(owner_id, []) if path]

    async def get_profile_photo_path(self, owner_id: str) -> Optional[str]:
        if self.fail_reads:
            raise StorageError("Record store unavailable")
        return self._profile_photos.get(owner_id)

    async def set_profile_photo_path(
        self,
        owner_id: str,
        path: Optional[str],
    ) -> bool:
        if self.fail_writes:
            raise StorageError("Record store unavailable")
        self._profile_photos[owner_id] = path
        return True


class InMemoryIdentityProvider(IdentityProviderInterface):
    """Photo hints keyed by owner."""

    def __init__(self):
        self._hints: dict[str, Optional[str]] = {}
        self.fail_writes = False

    async def get_photo_hint(self, owner_id: str) -> Optional[str]:
        return self._hints.get(owner_id)

    async def set_photo_hint(self, owner_id: str, path: Optional[str]) -> bool:
        if self.fail_writes:
            raise StorageError("Identity provider unavailable")
        self._hints[owner_id] = path
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
