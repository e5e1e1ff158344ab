"""Image processing services package."""

from src.services.image.cache import (
    DEFAULT_HIGH_WATER_BYTES,
    CacheError,
    EphemeralCache,
)
from src.services.image.processor import (
    AssetProcessor,
    DestinationNotWritableError,
    ProcessingError,
    SourceUnreadableError,
)

__all__ = [
    "DEFAULT_HIGH_WATER_BYTES",
    "AssetProcessor",
    "CacheError",
    "DestinationNotWritableError",
    "EphemeralCache",
    "ProcessingError",
    "SourceUnreadableError",
]
