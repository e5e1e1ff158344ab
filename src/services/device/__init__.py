"""Device capture and photo library package."""

from src.services.device.interface import (
    CaptureError,
    DeviceCaptureInterface,
    PermissionDeniedError,
    PhotoLibraryInterface,
    UserCancelledError,
)
from src.services.device.library import DirectoryPhotoLibrary

__all__ = [
    "CaptureError",
    "DeviceCaptureInterface",
    "DirectoryPhotoLibrary",
    "PermissionDeniedError",
    "PhotoLibraryInterface",
    "UserCancelledError",
]
