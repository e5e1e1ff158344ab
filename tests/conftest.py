"""
Shared fixtures and test doubles.

No network, no real device: record stores are in-memory, the camera is a
fake that hands out image files created with Pillow under tmp_path.
"""

import asyncio
import os
from pathlib import Path
from typing import Optional

import pytest
from PIL import Image

from src.cleanup import ActiveSlotRegistry, CleanupMarkerStore, ReachabilityCollector
from src.models.assets import AssetSlot
from src.services.device import (
    DeviceCaptureInterface,
    PhotoLibraryInterface,
    UserCancelledError,
)
from src.services.files import LocalFileSystem
from src.services.image import AssetProcessor, EphemeralCache
from src.services.preferences import SettingsStore
from src.services.storage import (
    InMemoryAuditStorage,
    InMemoryIdentityProvider,
    InMemoryRecordStore,
)
from src.audit import AuditLogger


def make_image(
    path: Path,
    size: tuple[int, int] = (640, 480),
    color=(200, 30, 30),
    mode: str = "RGB",
    fmt: str = "JPEG",
) -> str:
    """Write a solid-color image and return its path as a string."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new(mode, size, color).save(path, format=fmt)
    return str(path)


def write_file(path: Path, size_bytes: int) -> str:
    """Write an opaque file of an exact size (content is irrelevant to the collector)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"\xff" * size_bytes)
    return str(path)


class CountingFileSystem(LocalFileSystem):
    """LocalFileSystem that records every call it receives."""

    def __init__(self):
        self.calls: list[tuple[str, str]] = []

    @property
    def mutations(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] in ("copy", "delete", "write_bytes", "make_directory")]

    async def exists(self, path):
        self.calls.append(("exists", path))
        return await super().exists(path)

    async def info(self, path):
        self.calls.append(("info", path))
        return await super().info(path)

    async def list_directory(self, path):
        self.calls.append(("list_directory", path))
        return await super().list_directory(path)

    async def copy(self, source, destination):
        self.calls.append(("copy", destination))
        await super().copy(source, destination)

    async def delete(self, path, recursive=False):
        self.calls.append(("delete", path))
        await super().delete(path, recursive=recursive)

    async def write_bytes(self, path, data):
        self.calls.append(("write_bytes", path))
        await super().write_bytes(path, data)

    async def read_bytes(self, path):
        self.calls.append(("read_bytes", path))
        return await super().read_bytes(path)

    async def make_directory(self, path):
        self.calls.append(("make_directory", path))
        await super().make_directory(path)


class FailingWriteFileSystem(LocalFileSystem):
    """Fails writes (or deletes) of paths containing a marker substring."""

    def __init__(self, fail_write_marker: Optional[str] = None, fail_delete_marker: Optional[str] = None):
        self.fail_write_marker = fail_write_marker
        self.fail_delete_marker = fail_delete_marker

    async def write_bytes(self, path, data):
        if self.fail_write_marker and self.fail_write_marker in os.path.basename(path):
            raise PermissionError(f"Read-only: {path}")
        await super().write_bytes(path, data)

    async def delete(self, path, recursive=False):
        if self.fail_delete_marker and self.fail_delete_marker in os.path.basename(path):
            raise PermissionError(f"Cannot delete: {path}")
        await super().delete(path, recursive=recursive)


class VanishingFileSystem(LocalFileSystem):
    """Removes a matching path on its second info read, i.e. after the scan saw it."""

    def __init__(self, vanish_marker: str):
        self.vanish_marker = vanish_marker
        self.seen: set[str] = set()

    async def info(self, path):
        if self.vanish_marker in os.path.basename(path):
            if path in self.seen and os.path.exists(path):
                os.remove(path)
            self.seen.add(path)
        return await super().info(path)


class FakeDevice(DeviceCaptureInterface):
    """Camera and picker that return a prepared file."""

    def __init__(self, source_path: Optional[str] = None):
        self.source_path = source_path
        self.camera_granted = True
        self.gallery_granted = True
        self.cancel = False
        self.capture_calls = 0

    async def request_camera_permission(self) -> bool:
        return self.camera_granted

    async def request_gallery_permission(self) -> bool:
        return self.gallery_granted

    async def capture(self) -> str:
        self.capture_calls += 1
        if self.cancel:
            raise UserCancelledError("Camera closed")
        return self.source_path

    async def pick_from_gallery(self) -> str:
        if self.cancel:
            raise UserCancelledError("Picker closed")
        return self.source_path


class RecordingPhotoLibrary(PhotoLibraryInterface):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.saved: list[str] = []

    async def save_to_library(self, path: str) -> str:
        if self.fail:
            raise OSError("Photo library unavailable")
        self.saved.append(path)
        return path


class BlockingRecordStore(InMemoryRecordStore):
    """Record store whose receipt read waits until released."""

    def __init__(self):
        super().__init__()
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def list_receipt_paths(self, owner_id):
        self.entered.set()
        await self.release.wait()
        return await super().list_receipt_paths(owner_id)


class Env:
    """Everything a test needs, wired the way create_app_components wires it."""

    def __init__(self, root: Path, filesystem=None, record_store=None, photo_library=None):
        self.root = root
        self.asset_root = root / "assets"
        self.cache_dir = root / "cache"
        self.state_dir = root / "state"
        self.asset_root.mkdir(parents=True, exist_ok=True)

        self.fs = filesystem or LocalFileSystem()
        self.record_store = record_store or InMemoryRecordStore()
        self.identity = InMemoryIdentityProvider()
        self.audit_storage = InMemoryAuditStorage()
        self.audit_logger = AuditLogger(self.audit_storage)
        self.registry = ActiveSlotRegistry()
        self.photo_library = photo_library

        self.settings_store = SettingsStore(
            self.state_dir / "image_settings.json",
            audit_logger=self.audit_logger,
        )
        self.cache = EphemeralCache(
            cache_dir=self.cache_dir,
            asset_root=self.asset_root,
            settings_store=self.settings_store,
            filesystem=self.fs,
            high_water_bytes=1024,
        )
        self.processor = AssetProcessor(
            asset_root=self.asset_root,
            settings_store=self.settings_store,
            filesystem=self.fs,
            photo_library=photo_library,
            audit_logger=self.audit_logger,
        )
        self.markers = CleanupMarkerStore(self.state_dir)
        self.collector = ReachabilityCollector(
            asset_root=self.asset_root,
            record_store=self.record_store,
            settings_store=self.settings_store,
            markers=self.markers,
            registry=self.registry,
            cache=self.cache,
            filesystem=self.fs,
            audit_logger=self.audit_logger,
        )

    def asset(self, name: str, size_bytes: int = 100) -> str:
        return write_file(self.asset_root / name, size_bytes)

    def source(self, name: str = "source.jpg", **kwargs) -> str:
        return make_image(self.root / "camera" / name, **kwargs)

    def event_types(self) -> list[str]:
        return [e.event_type.value for e in self.audit_storage.events]


@pytest.fixture
def env(tmp_path):
    return Env(tmp_path)


@pytest.fixture
def counting_env(tmp_path):
    return Env(tmp_path, filesystem=CountingFileSystem())


def slot_for(owner_id: str, primary_path: str) -> AssetSlot:
    return AssetSlot.from_primary(owner_id, primary_path)
