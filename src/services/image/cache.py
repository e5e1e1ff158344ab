"""
Ephemeral Cache

A scratch directory for transient derived images (display previews).

DESIGN DECISION: Eviction is deliberately coarse. When the cache grows
past the high-water mark the collector clears it entirely; there is no
LRU bookkeeping. Everything in here can be regenerated from the durable
asset directory, which the cache never touches.
"""

import asyncio
import hashlib
import os
from io import BytesIO
from pathlib import Path
from typing import Optional

import structlog
from PIL import Image

from src.services.files import FileSystemInterface, LocalFileSystem
from src.services.preferences import SettingsStore


logger = structlog.get_logger(__name__)

DEFAULT_HIGH_WATER_BYTES = 50 * 1024 * 1024


class CacheError(Exception):
    """Base exception for ephemeral cache operations."""
    pass


def _is_within(path: str, directory: str) -> bool:
    path = os.path.normpath(os.path.abspath(path))
    directory = os.path.normpath(os.path.abspath(directory))
    return path == directory or path.startswith(directory + os.sep)


def get_cache_key(source_path: str, max_dim: int, quality: int) -> str:
    """Cache key for one rendering of a source."""
    return f"{source_path}:{max_dim}:jpeg:{quality}"


class EphemeralCache:
    """
    Bounded scratch directory, separate from the durable asset root.

    Raises:
        CacheError: At construction, if the cache directory and the asset
            root are nested in either direction
    """

    def __init__(
        self,
        cache_dir: Path,
        asset_root: Path,
        settings_store: Optional[SettingsStore] = None,
        filesystem: Optional[FileSystemInterface] = None,
        high_water_bytes: int = DEFAULT_HIGH_WATER_BYTES,
    ):
        self._cache_dir = str(cache_dir)
        if _is_within(self._cache_dir, str(asset_root)) or _is_within(
            str(asset_root), self._cache_dir
        ):
            raise CacheError(
                f"Cache directory {cache_dir} must not overlap the asset root {asset_root}"
            )
        self._settings_store = settings_store
        self._fs = filesystem or LocalFileSystem()
        self.high_water_bytes = high_water_bytes

    @property
    def cache_dir(self) -> str:
        return self._cache_dir

    async def size_bytes(self) -> int:
        """Total size of all files in the cache (0 if the directory is missing)."""
        if not await self._fs.exists(self._cache_dir):
            return 0
        return await self._directory_size(self._cache_dir)

    async def _directory_size(self, directory: str) -> int:
        total = 0
        try:
            entries = await self._fs.list_directory(directory)
        except OSError as e:
            logger.warning("cache_directory_unreadable", path=directory, error=str(e))
            return 0
        for entry in entries:
            path = os.path.join(directory, entry)
            try:
                info = await self._fs.info(path)
            except OSError:
                # Vanished between listing and stat
                continue
            if info.is_directory:
                total += await self._directory_size(path)
            else:
                total += info.size_bytes
        return total

    async def is_over_high_water(self) -> bool:
        return await self.size_bytes() > self.high_water_bytes

    async def clear(self) -> int:
        """
        Delete everything in the cache and recreate the empty directory.

        Returns:
            Bytes freed
        """
        freed = await self.size_bytes()
        await self._fs.delete(self._cache_dir, recursive=True)
        await self._fs.make_directory(self._cache_dir)
        logger.info("cache_cleared", cache_dir=self._cache_dir, freed_bytes=freed)
        return freed

    async def render_preview(
        self,
        source_path: str,
        max_dim: int,
        quality: int = 70,
    ) -> str:
        """
        Path of a downscaled JPEG rendering of source_path.

        Renders on first request and reuses the cached file afterwards.
        With caching disabled in the user settings the source path is
        returned unchanged and nothing is written.
        """
        if self._settings_store is not None:
            settings = await self._settings_store.load()
            if not settings.cache_enabled:
                return source_path

        cache_key = get_cache_key(source_path, max_dim, quality)
        digest = hashlib.sha256(cache_key.encode("utf-8")).hexdigest()[:32]
        preview_path = os.path.join(self._cache_dir, f"preview_{digest}.jpg")

        if await self._fs.exists(preview_path):
            return preview_path

        source_bytes = await self._fs.read_bytes(source_path)
        preview_bytes = await asyncio.to_thread(
            self._render, source_bytes, max_dim, quality
        )
        await self._fs.make_directory(self._cache_dir)
        await self._fs.write_bytes(preview_path, preview_bytes)
        logger.debug("preview_cached", source=source_path, preview_path=preview_path)
        return preview_path

    @staticmethod
    def _render(source_bytes: bytes, max_dim: int, quality: int) -> bytes:
        with Image.open(BytesIO(source_bytes)) as img:
            if img.mode != "RGB":
                img = img.convert("RGB")
            if img.width > max_dim or img.height > max_dim:
                img.thumbnail((max_dim, max_dim), Image.Resampling.LANCZOS)
            output = BytesIO()
            img.save(output, format="JPEG", quality=quality, optimize=True)
            return output.getvalue()
