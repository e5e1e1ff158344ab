"""
Asset Data Models

These models describe the locally stored image variants and the
bookkeeping around them:
1. AssetSlot - the "current photo" of one owner
2. VariantPair - what one generation event produced
3. StoredAsset / CleanupRun / StorageStats - collector bookkeeping

DESIGN DECISION: The thumbnail path is derived from the primary path by a
pure string transform. Any consumer can go from one to the other without
touching the filesystem, so the pair can never drift apart silently.
"""

import os
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# NAMING
# =============================================================================

THUMBNAIL_MARKER = "small_"
VARIANT_EXTENSION = ".jpg"

DEFAULT_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif", ".bmp", ".webp")


def variant_file_names(prefix: str, stamp: int) -> tuple[str, str]:
    """Primary and thumbnail file names for one generation event."""
    return (
        f"{prefix}_{stamp}{VARIANT_EXTENSION}",
        f"{prefix}_{THUMBNAIL_MARKER}{stamp}{VARIANT_EXTENSION}",
    )


def _split_variant_name(name: str) -> Optional[tuple[str, str]]:
    """Split '<prefix>_<rest>' into (prefix, rest)."""
    prefix, sep, rest = name.partition("_")
    if not sep or not prefix or not rest:
        return None
    return prefix, rest


def is_thumbnail_path(path: str) -> bool:
    parts = _split_variant_name(os.path.basename(path))
    return parts is not None and parts[1].startswith(THUMBNAIL_MARKER)


def thumbnail_path_for(primary_path: Optional[str]) -> Optional[str]:
    """
    Derive the thumbnail path of a primary variant.

    'profile_1700000000000.jpg' -> 'profile_small_1700000000000.jpg'
    (same directory). Returns None for names that don't follow the
    variant naming scheme or that already are thumbnails.
    """
    if not primary_path:
        return None
    directory, name = os.path.split(primary_path)
    parts = _split_variant_name(name)
    if parts is None or parts[1].startswith(THUMBNAIL_MARKER):
        return None
    prefix, rest = parts
    thumb_name = f"{prefix}_{THUMBNAIL_MARKER}{rest}"
    return os.path.join(directory, thumb_name) if directory else thumb_name


def primary_path_for(thumbnail_path: Optional[str]) -> Optional[str]:
    """Inverse of thumbnail_path_for."""
    if not thumbnail_path:
        return None
    directory, name = os.path.split(thumbnail_path)
    parts = _split_variant_name(name)
    if parts is None or not parts[1].startswith(THUMBNAIL_MARKER):
        return None
    prefix, rest = parts
    rest = rest[len(THUMBNAIL_MARKER):]
    if not rest:
        return None
    primary_name = f"{prefix}_{rest}"
    return os.path.join(directory, primary_name) if directory else primary_name


def normalize_path(path: str) -> str:
    """
    Canonical form used whenever paths are compared.

    Records written by older clients carry 'file://' URIs; those
    and plain paths must compare equal.
    """
    if path.startswith("file://"):
        path = path[len("file://"):]
    return os.path.normpath(os.path.abspath(path))


def format_bytes(num_bytes: int) -> str:
    """Human-readable size: 0 Bytes, 512 Bytes, 1.5 KB, 12.34 MB."""
    if num_bytes <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB", "TB"]
    index = 0
    while num_bytes >= 1024 ** (index + 1) and index < len(units) - 1:
        index += 1
    value = num_bytes / (1024 ** index)
    text = f"{value:.2f}".rstrip("0").rstrip(".")
    return f"{text} {units[index]}"


# =============================================================================
# ENUMS
# =============================================================================

class SlotState(str, Enum):
    """Lifecycle state of an owner's asset slot."""
    EMPTY = "empty"
    PENDING = "pending"   # capture/select/remove in flight
    PRESENT = "present"


class SizeHint(str, Enum):
    """Display size requested by a consumer."""
    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    CUSTOM = "custom"


# =============================================================================
# SLOT & VARIANTS
# =============================================================================

class AssetSlot(BaseModel):
    """
    The logical "current photo" for one owner.

    An inconsistent slot (only one path set, or a thumbnail that isn't
    derived from the primary) is accepted as-is; has_photo reports False
    for it so consumers show "no photo" instead of crashing.
    """
    model_config = ConfigDict(frozen=True)

    owner_id: str = Field(
        ...,
        min_length=1,
        description="Opaque owner identifier"
    )
    primary_path: Optional[str] = Field(
        default=None,
        description="Local path of the primary variant"
    )
    thumbnail_path: Optional[str] = Field(
        default=None,
        description="Local path of the thumbnail variant"
    )
    updated_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    @classmethod
    def empty(cls, owner_id: str) -> "AssetSlot":
        return cls(owner_id=owner_id)

    @classmethod
    def from_primary(
        cls,
        owner_id: str,
        primary_path: str,
        updated_at: Optional[datetime] = None,
    ) -> "AssetSlot":
        """Build a slot whose thumbnail is derived from the primary."""
        return cls(
            owner_id=owner_id,
            primary_path=primary_path,
            thumbnail_path=thumbnail_path_for(primary_path),
            updated_at=updated_at or datetime.utcnow(),
        )

    @property
    def is_consistent(self) -> bool:
        if not self.primary_path and not self.thumbnail_path:
            return True
        if not self.primary_path or not self.thumbnail_path:
            return False
        return self.thumbnail_path == thumbnail_path_for(self.primary_path)

    @property
    def has_photo(self) -> bool:
        return bool(self.primary_path) and self.is_consistent

    def paths(self) -> list[str]:
        """Non-empty paths held by this slot (consistent or not)."""
        return [p for p in (self.primary_path, self.thumbnail_path) if p]


class VariantPair(BaseModel):
    """Result of one variant generation event."""
    model_config = ConfigDict(frozen=True)

    primary_path: str
    thumbnail_path: str
    primary_size_px: tuple[int, int]
    thumbnail_size_px: tuple[int, int]
    primary_bytes: int = Field(ge=0)
    thumbnail_bytes: int = Field(ge=0)
    generated_at: datetime = Field(
        default_factory=datetime.utcnow
    )


class Avatar(BaseModel):
    """What the display layer should render: a photo or initials."""

    uri: Optional[str] = None
    initials: str = ""
    timed_out: bool = False


# =============================================================================
# COLLECTOR BOOKKEEPING
# =============================================================================

class StoredAsset(BaseModel):
    """Any file under the durable asset directory."""
    model_config = ConfigDict(frozen=True)

    path: str
    size_bytes: int = Field(default=0, ge=0)

    @property
    def is_image(self) -> bool:
        return os.path.splitext(self.path)[1].lower() in DEFAULT_IMAGE_EXTENSIONS


class CleanupRun(BaseModel):
    """
    Summary of one collector pass.

    Not persisted; only started_at becomes the owner's last-run marker.
    """

    owner_id: str
    started_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    finished_at: Optional[datetime] = None

    scanned_count: int = Field(default=0, ge=0)
    # Insertion order is deletion order
    deleted_paths: list[str] = Field(default_factory=list)
    freed_bytes: int = Field(default=0, ge=0)
    failed_paths: list[str] = Field(
        default_factory=list,
        description="Files skipped because of per-file I/O errors"
    )

    skipped: bool = Field(
        default=False,
        description="True when auto-cleanup is disabled and nothing was touched"
    )
    cache_cleared: bool = False
    cache_freed_bytes: int = Field(default=0, ge=0)

    @property
    def deleted_count(self) -> int:
        return len(self.deleted_paths)

    @property
    def failed_count(self) -> int:
        return len(self.failed_paths)

    def to_log_dict(self) -> dict:
        return {
            "owner_id": self.owner_id,
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "scanned_count": self.scanned_count,
            "deleted_count": self.deleted_count,
            "freed_bytes": self.freed_bytes,
            "failed_count": self.failed_count,
            "skipped": self.skipped,
            "cache_cleared": self.cache_cleared,
        }


class StorageStats(BaseModel):
    """Storage introspection for the settings screen."""

    total_images: int = Field(default=0, ge=0)
    total_bytes: int = Field(default=0, ge=0)
    orphaned_images: int = Field(default=0, ge=0)
    orphaned_bytes: int = Field(default=0, ge=0)
    cache_bytes: int = Field(default=0, ge=0)

    def to_display_dict(self) -> dict[str, str]:
        return {
            "total_images": str(self.total_images),
            "total_size": format_bytes(self.total_bytes),
            "orphaned_images": str(self.orphaned_images),
            "orphaned_size": format_bytes(self.orphaned_bytes),
            "cache_size": format_bytes(self.cache_bytes),
        }
