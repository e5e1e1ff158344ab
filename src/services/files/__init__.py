"""Filesystem services package."""

from src.services.files.filesystem import (
    FileInfo,
    FileSystemError,
    FileSystemInterface,
    LocalFileSystem,
)

__all__ = [
    "FileInfo",
    "FileSystemError",
    "FileSystemInterface",
    "LocalFileSystem",
]
