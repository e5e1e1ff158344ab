"""
Tests for the Image Asset Lifecycle Manager

Test strategy:
1. Unit tests for individual components (models, naming, settings)
2. Integration tests for flows (real files under tmp_path, fake device)
3. No real API calls in tests (in-memory stores, mocked gspread)
"""

import os
from datetime import datetime
from uuid import uuid4

import pytest
from pydantic import ValidationError

from src.models.assets import (
    AssetSlot,
    CleanupRun,
    StorageStats,
    StoredAsset,
    format_bytes,
    is_thumbnail_path,
    normalize_path,
    primary_path_for,
    thumbnail_path_for,
    variant_file_names,
)
from src.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from src.models.settings import DEFAULT_IMAGE_SETTINGS, ImageSettings


class TestVariantNaming:
    """Tests for the primary <-> thumbnail path transform."""

    def test_variant_file_names(self):
        """Test names produced for one generation event."""
        primary, thumbnail = variant_file_names("profile", 1700000000000)
        assert primary == "profile_1700000000000.jpg"
        assert thumbnail == "profile_small_1700000000000.jpg"

    def test_thumbnail_path_keeps_directory(self):
        """Test that the thumbnail lives next to its primary."""
        primary = os.path.join("data", "assets", "profile_100.jpg")
        assert thumbnail_path_for(primary) == os.path.join(
            "data", "assets", "profile_small_100.jpg"
        )

    def test_primary_path_inverts_thumbnail_path(self):
        """Test that primary_path_for undoes thumbnail_path_for."""
        primary = "/tmp/assets/profile_200.jpg"
        assert primary_path_for(thumbnail_path_for(primary)) == primary

    def test_thumbnail_of_thumbnail_is_none(self):
        """Test that a thumbnail name has no thumbnail of its own."""
        assert thumbnail_path_for("profile_small_100.jpg") is None

    def test_non_conforming_names(self):
        """Test names outside the variant scheme."""
        assert thumbnail_path_for("avatar.jpg") is None
        assert thumbnail_path_for("") is None
        assert thumbnail_path_for(None) is None
        assert primary_path_for("profile_100.jpg") is None

    def test_is_thumbnail_path(self):
        assert is_thumbnail_path("/a/profile_small_1.jpg")
        assert not is_thumbnail_path("/a/profile_1.jpg")
        assert not is_thumbnail_path("/a/receipt.jpg")

    def test_normalize_path_strips_file_scheme(self):
        """Test that file:// URIs and plain paths compare equal."""
        assert normalize_path("file:///tmp/a/../b/x.jpg") == normalize_path("/tmp/b/x.jpg")


class TestFormatBytes:
    """Tests for human-readable sizes."""

    def test_zero(self):
        assert format_bytes(0) == "0 Bytes"

    def test_bytes(self):
        assert format_bytes(512) == "512 Bytes"

    def test_kilobytes(self):
        assert format_bytes(1024) == "1 KB"
        assert format_bytes(1536) == "1.5 KB"

    def test_megabytes(self):
        assert format_bytes(50 * 1024 * 1024) == "50 MB"
        assert format_bytes(int(12.34 * 1024 * 1024)) == "12.34 MB"


class TestAssetSlot:
    """Tests for the slot pairing invariant."""

    def test_empty_slot(self):
        slot = AssetSlot.empty("user-1")
        assert slot.primary_path is None
        assert slot.is_consistent
        assert not slot.has_photo
        assert slot.paths() == []

    def test_from_primary_derives_thumbnail(self):
        slot = AssetSlot.from_primary("user-1", "/a/profile_100.jpg")
        assert slot.thumbnail_path == "/a/profile_small_100.jpg"
        assert slot.has_photo

    def test_inconsistent_slot_is_accepted_but_has_no_photo(self):
        """Test that a mismatched pair is treated as 'no photo', not rejected."""
        slot = AssetSlot(
            owner_id="user-1",
            primary_path="/a/profile_100.jpg",
            thumbnail_path="/a/profile_small_200.jpg",
        )
        assert not slot.is_consistent
        assert not slot.has_photo
        assert len(slot.paths()) == 2

    def test_one_sided_slot_has_no_photo(self):
        slot = AssetSlot(owner_id="user-1", primary_path="/a/profile_100.jpg")
        assert not slot.has_photo

    def test_owner_id_required(self):
        with pytest.raises(ValidationError):
            AssetSlot(owner_id="")

    def test_slot_is_frozen(self):
        slot = AssetSlot.empty("user-1")
        with pytest.raises(ValidationError):
            slot.primary_path = "/a/profile_1.jpg"


class TestCollectorModels:
    """Tests for StoredAsset, CleanupRun and StorageStats."""

    def test_stored_asset_is_image(self):
        assert StoredAsset(path="/a/x.JPG").is_image
        assert StoredAsset(path="/a/x.webp").is_image
        assert not StoredAsset(path="/a/x.txt").is_image

    def test_cleanup_run_counts(self):
        run = CleanupRun(owner_id="user-1")
        run.deleted_paths.extend(["/a/1.jpg", "/a/2.jpg"])
        run.failed_paths.append("/a/3.jpg")
        assert run.deleted_count == 2
        assert run.failed_count == 1
        assert run.to_log_dict()["deleted_count"] == 2

    def test_storage_stats_display(self):
        stats = StorageStats(
            total_images=3,
            total_bytes=1536,
            orphaned_images=1,
            orphaned_bytes=0,
            cache_bytes=1024 * 1024,
        )
        display = stats.to_display_dict()
        assert display["total_size"] == "1.5 KB"
        assert display["orphaned_size"] == "0 Bytes"
        assert display["cache_size"] == "1 MB"


class TestImageSettings:
    """Tests for the user settings model."""

    def test_defaults(self):
        settings = ImageSettings()
        assert settings.quality_percent == 80
        assert settings.max_dimension_px == 1024
        assert settings.auto_save_to_gallery is False
        assert settings.auto_compress is True
        assert settings.cache_enabled is True
        assert settings.auto_cleanup_enabled is True
        assert settings.cleanup_interval_days == 30
        assert settings == DEFAULT_IMAGE_SETTINGS

    @pytest.mark.parametrize("quality", [0, 101])
    def test_quality_out_of_range_rejected(self, quality):
        with pytest.raises(ValidationError):
            ImageSettings(quality_percent=quality)

    def test_strict_types(self):
        """Test that strings are not coerced into numbers."""
        with pytest.raises(ValidationError):
            ImageSettings(quality_percent="80")

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            ImageSettings(sharpness=3)


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.PHOTO_REPLACED,
            description="Profile photo replaced",
        )
        assert event.event_type == AuditEventType.PHOTO_REPLACED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.CACHE_CLEARED,
            description="Cache cleared",
            details={"freed_bytes": 2048},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "cache_cleared"
        assert log_dict["details"]["freed_bytes"] == 2048

    def test_audit_event_builder_photo_replaced(self):
        """Test AuditEventBuilder.photo_replaced."""
        correlation_id = uuid4()
        event = AuditEventBuilder.photo_replaced(
            owner_id="user-1",
            primary_path="/a/profile_200.jpg",
            previous_path="/a/profile_100.jpg",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.PHOTO_REPLACED
        assert event.entity_id == "user-1"
        assert event.correlation_id == correlation_id
        assert event.details["previous_path"] == "/a/profile_100.jpg"
        assert event.is_user_action is True

    def test_audit_event_builder_cleanup_completed(self):
        """Test that a cleanup summary becomes the event details."""
        run = CleanupRun(owner_id="user-1", finished_at=datetime.utcnow())
        run.deleted_paths.append("/a/profile_100.jpg")
        event = AuditEventBuilder.cleanup_completed(run.to_log_dict())
        assert event.entity_id == "user-1"
        assert event.details["deleted_count"] == 1
        assert "1" in event.description

    def test_audit_event_builder_cleanup_aborted_is_warning(self):
        event = AuditEventBuilder.cleanup_aborted("user-1", "Record store unavailable")
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "Record store unavailable"
