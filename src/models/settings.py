"""
User Image Settings

The knobs a user can change from the image settings screen.

DESIGN DECISION: Out-of-range values are REJECTED, never clamped.
A misconfigured quality or dimension should fail loudly at the moment
it is set, not produce surprising images later.
"""

from pydantic import BaseModel, ConfigDict, Field


class ImageSettings(BaseModel):
    """
    Persisted image-handling preferences.

    Created with fixed defaults on first run; mutated only through
    SettingsStore.update; never deleted (resettable to defaults).
    """
    model_config = ConfigDict(strict=True, frozen=True, extra="forbid")

    quality_percent: int = Field(
        default=80,
        ge=1,
        le=100,
        description="JPEG quality of the primary variant"
    )
    max_dimension_px: int = Field(
        default=1024,
        ge=32,
        le=4096,
        description="Maximum edge length of the primary variant"
    )
    auto_save_to_gallery: bool = Field(
        default=False,
        description="Mirror new primary variants into the shared photo library"
    )
    auto_compress: bool = Field(
        default=True,
        description="Compress primary variants toward quality_percent"
    )
    cache_enabled: bool = Field(
        default=True,
        description="Keep transient derived images in the ephemeral cache"
    )
    auto_cleanup_enabled: bool = Field(
        default=True,
        description="Allow the collector to delete orphaned assets"
    )
    cleanup_interval_days: int = Field(
        default=30,
        ge=0,
        description="Minimum whole days between scheduled cleanup passes"
    )


DEFAULT_IMAGE_SETTINGS = ImageSettings()
