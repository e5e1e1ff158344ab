"""Photo library backed by a plain directory."""

import os
from pathlib import Path
from typing import Optional

import structlog

from src.services.device.interface import PhotoLibraryInterface
from src.services.files import FileSystemInterface, LocalFileSystem


logger = structlog.get_logger(__name__)


class DirectoryPhotoLibrary(PhotoLibraryInterface):
    """Mirrors images into a configured directory, keeping their file names."""

    def __init__(
        self,
        library_dir: Path,
        filesystem: Optional[FileSystemInterface] = None,
    ):
        self._library_dir = str(library_dir)
        self._fs = filesystem or LocalFileSystem()

    async def save_to_library(self, path: str) -> str:
        destination = os.path.join(self._library_dir, os.path.basename(path))
        await self._fs.make_directory(self._library_dir)
        await self._fs.copy(path, destination)
        logger.info("photo_saved_to_library", source=path, destination=destination)
        return destination
