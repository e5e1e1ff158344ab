"""Services package."""

from src.services.device import (
    CaptureError,
    DeviceCaptureInterface,
    DirectoryPhotoLibrary,
    PermissionDeniedError,
    PhotoLibraryInterface,
    UserCancelledError,
)
from src.services.files import (
    FileInfo,
    FileSystemError,
    FileSystemInterface,
    LocalFileSystem,
)
from src.services.image import (
    AssetProcessor,
    CacheError,
    DestinationNotWritableError,
    EphemeralCache,
    ProcessingError,
    SourceUnreadableError,
)
from src.services.preferences import (
    InvalidSettingsError,
    SettingsStore,
    SettingsStoreError,
)
from src.services.storage import (
    AuditStorageInterface,
    ConnectionError,
    IdentityProviderInterface,
    InMemoryAuditStorage,
    InMemoryIdentityProvider,
    InMemoryRecordStore,
    RecordStoreInterface,
    StorageError,
)

__all__ = [
    # Device services
    "CaptureError",
    "DeviceCaptureInterface",
    "DirectoryPhotoLibrary",
    "PermissionDeniedError",
    "PhotoLibraryInterface",
    "UserCancelledError",
    # Filesystem
    "FileInfo",
    "FileSystemError",
    "FileSystemInterface",
    "LocalFileSystem",
    # Image services
    "AssetProcessor",
    "CacheError",
    "DestinationNotWritableError",
    "EphemeralCache",
    "ProcessingError",
    "SourceUnreadableError",
    # Preferences
    "InvalidSettingsError",
    "SettingsStore",
    "SettingsStoreError",
    # Storage services
    "AuditStorageInterface",
    "ConnectionError",
    "IdentityProviderInterface",
    "InMemoryAuditStorage",
    "InMemoryIdentityProvider",
    "InMemoryRecordStore",
    "RecordStoreInterface",
    "StorageError",
]
