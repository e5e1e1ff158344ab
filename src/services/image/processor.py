"""
Asset Processor

Turns a captured or picked photo into the durable variant pair:
1. Primary - center-cropped square, at most max_dimension_px, JPEG
2. Thumbnail - exactly thumbnail_size_px square, JPEG

DESIGN DECISION: The pair is written primary first, then thumbnail.
If the thumbnail write fails the primary is removed again, so callers
either get a complete pair or an exception and nothing on disk.

The processor NEVER deletes a previous pair. Retiring old variants is
the Lifecycle Facade's job, after the new pair is published.
"""

import asyncio
import os
import time
from io import BytesIO
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Optional
from uuid import UUID

import structlog
from PIL import Image, ImageOps, UnidentifiedImageError

from src.models.assets import VariantPair, variant_file_names
from src.services.device.interface import PhotoLibraryInterface
from src.services.files import FileSystemInterface, LocalFileSystem
from src.services.preferences import SettingsStore

if TYPE_CHECKING:
    from src.audit.logger import AuditLogger


logger = structlog.get_logger(__name__)

# Used for the primary when the user turned compression off
UNCOMPRESSED_QUALITY = 95


class ProcessingError(Exception):
    """Base exception for variant generation."""
    pass


class SourceUnreadableError(ProcessingError):
    """The source image could not be read or decoded."""
    pass


class DestinationNotWritableError(ProcessingError):
    """A variant could not be written to the asset directory."""
    pass


def _strip_file_scheme(uri: str) -> str:
    return uri[len("file://"):] if uri.startswith("file://") else uri


def _open_normalized(image_bytes: bytes) -> Image.Image:
    """
    Decode, apply EXIF orientation and flatten transparency onto white.

    Raises:
        SourceUnreadableError: If Pillow cannot decode the bytes
    """
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            img = ImageOps.exif_transpose(img)
            if img.mode in ("RGBA", "LA", "P"):
                if img.mode == "P":
                    img = img.convert("RGBA")
                background = Image.new("RGB", img.size, (255, 255, 255))
                background.paste(img, mask=img.split()[-1])
                return background
            if img.mode != "RGB":
                return img.convert("RGB")
            img.load()
            return img.copy()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise SourceUnreadableError(f"Cannot decode source image: {e}") from e


def _encode_square(
    img: Image.Image,
    side: int,
    quality: int,
    optimize: bool,
) -> tuple[bytes, tuple[int, int]]:
    """Center-crop to a square of the given side and encode as JPEG."""
    square = ImageOps.fit(img, (side, side), Image.Resampling.LANCZOS)
    output = BytesIO()
    square.save(output, format="JPEG", quality=quality, optimize=optimize)
    return output.getvalue(), square.size


class AssetProcessor:
    """
    Generates primary + thumbnail variants into the durable asset directory.

    Flow:
    1. Read the source bytes
    2. Render both variants off the event loop
    3. Pick a stamp that collides with no existing pair
    4. Write primary, then thumbnail (rolling back on failure)
    5. Optionally mirror the primary into the photo library
    """

    def __init__(
        self,
        asset_root: Path,
        settings_store: SettingsStore,
        filesystem: Optional[FileSystemInterface] = None,
        photo_library: Optional[PhotoLibraryInterface] = None,
        audit_logger: Optional["AuditLogger"] = None,
        thumbnail_size_px: int = 100,
        thumbnail_quality: int = 80,
        clock: Callable[[], float] = time.time,
    ):
        self._asset_root = str(asset_root)
        self._settings_store = settings_store
        self._fs = filesystem or LocalFileSystem()
        self._photo_library = photo_library
        self._audit = audit_logger
        self._thumbnail_size_px = thumbnail_size_px
        self._thumbnail_quality = thumbnail_quality
        self._clock = clock

    @property
    def asset_root(self) -> str:
        return self._asset_root

    async def generate_variants(
        self,
        source_uri: str,
        prefix: str = "profile",
        correlation_id: Optional[UUID] = None,
    ) -> VariantPair:
        """
        Produce a fresh primary/thumbnail pair from a source image.

        Args:
            source_uri: Local path or file:// URI of the source
            prefix: File name prefix (letters and digits only)
            correlation_id: Ties audit events to one user action

        Raises:
            SourceUnreadableError: Source missing or not an image
            DestinationNotWritableError: Asset directory not writable
        """
        if not prefix.isalnum():
            raise ValueError(f"Variant prefix must be alphanumeric: {prefix!r}")

        settings = await self._settings_store.load()
        source_path = _strip_file_scheme(source_uri)

        try:
            source_bytes = await self._fs.read_bytes(source_path)
        except OSError as e:
            await self._log_failure(source_uri, str(e), correlation_id)
            raise SourceUnreadableError(f"Cannot read source {source_uri}: {e}") from e

        if settings.auto_compress:
            primary_quality, optimize = settings.quality_percent, True
        else:
            primary_quality, optimize = UNCOMPRESSED_QUALITY, False

        try:
            primary, thumbnail = await asyncio.to_thread(
                self._render,
                source_bytes,
                settings.max_dimension_px,
                primary_quality,
                optimize,
            )
        except SourceUnreadableError as e:
            await self._log_failure(source_uri, str(e), correlation_id)
            raise

        primary_bytes, primary_size = primary
        thumbnail_bytes, thumbnail_size = thumbnail

        try:
            await self._fs.make_directory(self._asset_root)
            primary_path, thumbnail_path = await self._reserve_names(prefix)
        except OSError as e:
            await self._log_failure(source_uri, str(e), correlation_id)
            raise DestinationNotWritableError(
                f"Asset directory not usable: {self._asset_root}: {e}"
            ) from e

        await self._write_pair(
            source_uri,
            primary_path,
            primary_bytes,
            thumbnail_path,
            thumbnail_bytes,
            correlation_id,
        )

        pair = VariantPair(
            primary_path=primary_path,
            thumbnail_path=thumbnail_path,
            primary_size_px=primary_size,
            thumbnail_size_px=thumbnail_size,
            primary_bytes=len(primary_bytes),
            thumbnail_bytes=len(thumbnail_bytes),
        )
        logger.info(
            "variants_generated",
            source=source_uri,
            primary_path=primary_path,
            primary_size_px=primary_size,
            total_bytes=pair.primary_bytes + pair.thumbnail_bytes,
        )
        if self._audit:
            await self._audit.log_variants_generated(
                source=source_uri,
                primary_path=primary_path,
                thumbnail_path=thumbnail_path,
                total_bytes=pair.primary_bytes + pair.thumbnail_bytes,
                correlation_id=correlation_id,
            )

        if settings.auto_save_to_gallery and self._photo_library:
            await self._mirror_to_gallery(primary_path, correlation_id)

        return pair

    def _render(
        self,
        source_bytes: bytes,
        max_dimension_px: int,
        primary_quality: int,
        optimize: bool,
    ) -> tuple[tuple[bytes, tuple[int, int]], tuple[bytes, tuple[int, int]]]:
        """CPU-bound part; runs in a worker thread."""
        img = _open_normalized(source_bytes)
        # Never upscale the primary
        side = min(max_dimension_px, img.width, img.height)
        primary = _encode_square(img, side, primary_quality, optimize)
        # The thumbnail comes from the source, not from the encoded primary
        thumbnail = _encode_square(
            img,
            self._thumbnail_size_px,
            self._thumbnail_quality,
            True,
        )
        return primary, thumbnail

    async def _reserve_names(self, prefix: str) -> tuple[str, str]:
        """Epoch-millisecond stamp, bumped until neither file exists."""
        stamp = int(self._clock() * 1000)
        while True:
            primary_name, thumbnail_name = variant_file_names(prefix, stamp)
            primary_path = os.path.join(self._asset_root, primary_name)
            thumbnail_path = os.path.join(self._asset_root, thumbnail_name)
            if not (
                await self._fs.exists(primary_path)
                or await self._fs.exists(thumbnail_path)
            ):
                return primary_path, thumbnail_path
            stamp += 1

    async def _write_pair(
        self,
        source_uri: str,
        primary_path: str,
        primary_bytes: bytes,
        thumbnail_path: str,
        thumbnail_bytes: bytes,
        correlation_id: Optional[UUID],
    ) -> None:
        try:
            await self._fs.write_bytes(primary_path, primary_bytes)
        except OSError as e:
            await self._log_failure(source_uri, str(e), correlation_id)
            raise DestinationNotWritableError(
                f"Cannot write primary variant {primary_path}: {e}"
            ) from e

        try:
            await self._fs.write_bytes(thumbnail_path, thumbnail_bytes)
        except OSError as e:
            # No half pairs: take the primary back out
            try:
                await self._fs.delete(primary_path)
            except OSError as cleanup_error:
                logger.error(
                    "primary_rollback_failed",
                    primary_path=primary_path,
                    error=str(cleanup_error),
                )
            await self._log_failure(source_uri, str(e), correlation_id)
            raise DestinationNotWritableError(
                f"Cannot write thumbnail variant {thumbnail_path}: {e}"
            ) from e

    async def _mirror_to_gallery(
        self,
        primary_path: str,
        correlation_id: Optional[UUID],
    ) -> None:
        """Best effort; the pair is already durable."""
        try:
            await self._photo_library.save_to_library(primary_path)
        except Exception as e:
            logger.warning(
                "gallery_mirror_failed",
                primary_path=primary_path,
                error=str(e),
            )
            if self._audit:
                await self._audit.log_gallery_mirror_failed(
                    path=primary_path,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )

    async def _log_failure(
        self,
        source_uri: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> None:
        logger.warning(
            "variant_generation_failed",
            source=source_uri,
            error=error_message,
        )
        if self._audit:
            await self._audit.log_variant_generation_failed(
                source=source_uri,
                error_message=error_message,
                correlation_id=correlation_id,
            )
