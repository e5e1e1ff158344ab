"""
Device Capture Interfaces

The camera, the gallery picker and the shared photo library are owned by
the host platform. The asset core only sees these interfaces.
"""

from abc import ABC, abstractmethod


class CaptureError(Exception):
    """Base exception for device capture operations."""
    pass


class PermissionDeniedError(CaptureError):
    """The user refused camera or gallery access."""

    def __init__(self, permission: str, message: str = ""):
        self.permission = permission
        super().__init__(message or f"{permission} permission denied")


class UserCancelledError(CaptureError):
    """The user dismissed the camera or picker without choosing a photo."""
    pass


class DeviceCaptureInterface(ABC):
    """
    Camera and gallery access.

    capture() and pick_from_gallery() return a local path (or file:// URI)
    of the chosen image. Cropping happens on the device before we see it.
    """

    @abstractmethod
    async def request_camera_permission(self) -> bool:
        pass

    @abstractmethod
    async def request_gallery_permission(self) -> bool:
        pass

    @abstractmethod
    async def capture(self) -> str:
        """
        Raises:
            UserCancelledError: If the user closed the camera
        """
        pass

    @abstractmethod
    async def pick_from_gallery(self) -> str:
        """
        Raises:
            UserCancelledError: If the user closed the picker
        """
        pass


class PhotoLibraryInterface(ABC):
    """The shared device photo library (used for gallery mirroring)."""

    @abstractmethod
    async def save_to_library(self, path: str) -> str:
        """
        Copy a local image into the library.

        Returns:
            The library location of the copy
        """
        pass
