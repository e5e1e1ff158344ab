"""
Filesystem Abstraction

DESIGN DECISION: Every component touches disk through FileSystemInterface.
This lets tests count (or fail) mutations without monkeypatching os,
and keeps blocking calls off the event loop in one place.

Deletes are idempotent: deleting a missing path is a success.
"""

import asyncio
import os
import shutil
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class FileInfo(BaseModel):
    """What we need to know about a path."""

    size_bytes: int = Field(default=0, ge=0)
    is_directory: bool = False
    modified_at: Optional[datetime] = None


class FileSystemError(OSError):
    """Base exception for filesystem operations; an OSError like any other disk failure."""
    pass


class FileSystemInterface(ABC):
    """Async filesystem operations used by the asset lifecycle."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        pass

    @abstractmethod
    async def info(self, path: str) -> FileInfo:
        """
        Raises:
            FileNotFoundError: If the path does not exist
        """
        pass

    @abstractmethod
    async def list_directory(self, path: str) -> list[str]:
        """Entry names (not full paths) of a directory."""
        pass

    @abstractmethod
    async def copy(self, source: str, destination: str) -> None:
        pass

    @abstractmethod
    async def delete(self, path: str, recursive: bool = False) -> None:
        """Delete a file (or a directory tree with recursive=True). Missing paths are ignored."""
        pass

    @abstractmethod
    async def write_bytes(self, path: str, data: bytes) -> None:
        pass

    @abstractmethod
    async def read_bytes(self, path: str) -> bytes:
        pass

    @abstractmethod
    async def make_directory(self, path: str) -> None:
        """Create a directory and its parents; existing directories are fine."""
        pass


class LocalFileSystem(FileSystemInterface):
    """FileSystemInterface over the local disk; blocking calls run in worker threads."""

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(os.path.exists, path)

    async def info(self, path: str) -> FileInfo:
        stat = await asyncio.to_thread(os.stat, path)
        is_directory = os.path.isdir(path)
        return FileInfo(
            size_bytes=0 if is_directory else stat.st_size,
            is_directory=is_directory,
            modified_at=datetime.utcfromtimestamp(stat.st_mtime),
        )

    async def list_directory(self, path: str) -> list[str]:
        entries = await asyncio.to_thread(os.listdir, path)
        return sorted(entries)

    async def copy(self, source: str, destination: str) -> None:
        parent = os.path.dirname(destination)
        if parent:
            await self.make_directory(parent)
        await asyncio.to_thread(shutil.copyfile, source, destination)

    async def delete(self, path: str, recursive: bool = False) -> None:
        def _delete():
            try:
                if os.path.isdir(path) and not os.path.islink(path):
                    if not recursive:
                        raise FileSystemError(
                            f"Refusing to delete directory without recursive=True: {path}"
                        )
                    shutil.rmtree(path)
                else:
                    os.remove(path)
            except FileNotFoundError:
                pass

        await asyncio.to_thread(_delete)

    async def write_bytes(self, path: str, data: bytes) -> None:
        def _write():
            parent = os.path.dirname(path)
            if parent:
                os.makedirs(parent, exist_ok=True)
            with open(path, "wb") as f:
                f.write(data)

        await asyncio.to_thread(_write)

    async def read_bytes(self, path: str) -> bytes:
        def _read():
            with open(path, "rb") as f:
                return f.read()

        return await asyncio.to_thread(_read)

    async def make_directory(self, path: str) -> None:
        await asyncio.to_thread(os.makedirs, path, exist_ok=True)
