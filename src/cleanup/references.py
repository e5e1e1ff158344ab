"""
Active Slot Registry

Every Lifecycle Facade in the process publishes its slot here, so the
collector can protect assets that are displayed right now but may not
have reached the record store yet.

DESIGN DECISION: While ANY slot mutation is in flight the collector
considers its reference set uncertain and deletes nothing. A pass
costs nothing to retry; a deleted profile photo cannot be recovered.
"""

from typing import Optional

from src.models.assets import AssetSlot


class ActiveSlotRegistry:
    """In-memory view of every owner's current slot and pending mutations."""

    def __init__(self):
        self._slots: dict[str, AssetSlot] = {}
        self._pending: set[str] = set()

    def publish(self, slot: AssetSlot) -> None:
        """Record the owner's current slot (replacing any previous one)."""
        self._slots[slot.owner_id] = slot

    def get(self, owner_id: str) -> Optional[AssetSlot]:
        return self._slots.get(owner_id)

    def mark_pending(self, owner_id: str) -> None:
        self._pending.add(owner_id)

    def clear_pending(self, owner_id: str) -> None:
        self._pending.discard(owner_id)

    def is_pending(self, owner_id: str) -> bool:
        return owner_id in self._pending

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def referenced_paths(self) -> list[str]:
        """Every non-empty path held by a published slot."""
        paths = []
        for slot in self._slots.values():
            paths.extend(slot.paths())
        return paths
