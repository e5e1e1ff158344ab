"""
Data Models Package

This package contains all Pydantic models used by the asset lifecycle
manager. All data flowing through the system must conform to these schemas.
"""

from src.models.assets import (
    AssetSlot,
    Avatar,
    CleanupRun,
    SizeHint,
    SlotState,
    StorageStats,
    StoredAsset,
    VariantPair,
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

__all__ = [
    # Asset models
    "AssetSlot",
    "Avatar",
    "CleanupRun",
    "SizeHint",
    "SlotState",
    "StorageStats",
    "StoredAsset",
    "VariantPair",
    # Naming helpers
    "format_bytes",
    "is_thumbnail_path",
    "normalize_path",
    "primary_path_for",
    "thumbnail_path_for",
    "variant_file_names",
    # Settings
    "DEFAULT_IMAGE_SETTINGS",
    "ImageSettings",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
