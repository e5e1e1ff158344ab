"""Tests for the audit logger and in-memory audit storage."""

import asyncio
from datetime import datetime, timedelta

from src.audit import AuditLogger, create_correlation_id
from src.models.audit import AuditEventBuilder, AuditEventType, AuditSeverity
from src.services.storage import AuditStorageInterface, InMemoryAuditStorage


class BrokenAuditStorage(InMemoryAuditStorage):
    async def append_event(self, event):
        raise RuntimeError("disk full")


class TestAuditLogger:
    """Tests for local + persisted audit logging."""

    def test_events_are_persisted(self):
        storage = InMemoryAuditStorage()
        audit = AuditLogger(storage)

        asyncio.run(audit.log_cache_cleared(4096, reason="manual"))

        assert len(storage.events) == 1
        assert storage.events[0].event_type == AuditEventType.CACHE_CLEARED
        assert storage.events[0].details["freed_bytes"] == 4096

    def test_storage_failure_never_raises(self):
        audit = AuditLogger(BrokenAuditStorage())
        event = AuditEventBuilder.cleanup_skipped("user-1", "disabled")

        assert asyncio.run(audit.log(event)) is False

    def test_local_only_logging_succeeds(self):
        audit = AuditLogger()
        event = AuditEventBuilder.settings_changed({"quality_percent": 60})

        assert asyncio.run(audit.log(event)) is True

    def test_log_error_records_system_error(self):
        storage = InMemoryAuditStorage()
        audit = AuditLogger(storage)

        asyncio.run(audit.log_error("OSError", "boom", details={"owner_id": "user-1"}))

        event = storage.events[0]
        assert event.event_type == AuditEventType.SYSTEM_ERROR
        assert event.severity == AuditSeverity.ERROR
        assert event.details == {"owner_id": "user-1"}


class TestInMemoryAuditStorage:
    """Tests for audit event queries."""

    def test_events_by_correlation_id(self):
        storage = InMemoryAuditStorage()
        audit = AuditLogger(storage)
        correlation_id = create_correlation_id()

        async def scenario():
            await audit.log_photo_replaced("user-1", "/a/profile_2.jpg", None, correlation_id)
            await audit.log_photo_removed("user-2", "/a/profile_3.jpg", create_correlation_id())
            await audit.log_photo_update_failed("user-1", "record_store", "offline", correlation_id)
            return await storage.get_events_by_correlation_id(correlation_id)

        events = asyncio.run(scenario())

        assert {e.event_type for e in events} == {
            AuditEventType.PHOTO_REPLACED,
            AuditEventType.PHOTO_UPDATE_FAILED,
        }
        assert all(e.correlation_id == correlation_id for e in events)

    def test_recent_events_newest_first(self):
        storage = InMemoryAuditStorage()
        older = AuditEventBuilder.cleanup_skipped("user-1", "disabled")
        newer = AuditEventBuilder.cleanup_aborted("user-1", "offline")
        older.timestamp = datetime(2024, 1, 1)
        newer.timestamp = older.timestamp + timedelta(minutes=5)

        async def scenario():
            await storage.append_event(newer)
            await storage.append_event(older)
            return await storage.get_recent_events(limit=1)

        events = asyncio.run(scenario())

        assert [e.event_type for e in events] == [AuditEventType.CLEANUP_ABORTED]

    def test_implements_interface(self):
        assert isinstance(InMemoryAuditStorage(), AuditStorageInterface)
