"""
Configuration Management for the Image Asset Lifecycle Manager

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: Deployment configuration (where files live, fixed variant
sizes, backend selection) is centralized here and validated at startup.
User-tunable image knobs (quality, max dimension, cleanup interval...) are NOT
environment settings - they live in the persisted SettingsStore so the user
can change them at runtime.
"""

from functools import lru_cache
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AssetStorageSettings(BaseSettings):
    """Local directories and fixed variant parameters."""

    model_config = SettingsConfigDict(
        env_prefix="ASSETS_",
        extra="ignore"
    )

    asset_root: Path = Field(
        default=Path("data/assets"),
        description="Durable asset directory (primary + thumbnail variants)"
    )
    cache_dir: Path = Field(
        default=Path("data/cache/image_cache"),
        description="Ephemeral cache directory for transient derived images"
    )
    state_dir: Path = Field(
        default=Path("data/state"),
        description="Directory for persisted settings and cleanup markers"
    )
    gallery_dir: Path = Field(
        default=Path("data/gallery"),
        description="Shared photo library directory used for gallery mirroring"
    )

    # Thumbnail variant is fixed, independent of user settings
    thumbnail_size_px: int = Field(
        default=100,
        ge=16,
        le=512,
        description="Square thumbnail edge length in pixels"
    )
    thumbnail_quality: int = Field(
        default=80,
        ge=1,
        le=100,
        description="JPEG quality for thumbnails"
    )

    cache_high_water_mb: int = Field(
        default=50,
        ge=1,
        description="Ephemeral cache is cleared entirely above this size"
    )
    display_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        description="How long the display layer waits before showing the fallback avatar"
    )
    image_extensions: str = Field(
        default="jpg,jpeg,png,gif,bmp,webp",
        description="Comma-separated list of file extensions treated as images"
    )

    @field_validator('image_extensions')
    @classmethod
    def validate_image_extensions(cls, v: str) -> str:
        """At least one extension must be configured."""
        if not [ext for ext in v.split(",") if ext.strip()]:
            raise ValueError("image_extensions must list at least one extension")
        return v

    @property
    def settings_file(self) -> Path:
        """Location of the persisted ImageSettings JSON."""
        return self.state_dir / "image_settings.json"

    @property
    def cache_high_water_bytes(self) -> int:
        return self.cache_high_water_mb * 1024 * 1024

    @property
    def image_extensions_list(self) -> list[str]:
        """Get image extensions as a normalized list (with leading dot)."""
        return [
            "." + ext.strip().lower().lstrip(".")
            for ext in self.image_extensions.split(",")
            if ext.strip()
        ]


class GoogleSheetsSettings(BaseSettings):
    """Google Sheets record store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="GOOGLE_SHEETS_",
        extra="ignore"
    )

    credentials_path: str = Field(
        ...,
        description="Path to Google service account credentials JSON"
    )
    spreadsheet_id: str = Field(
        ...,
        description="ID of the spreadsheet holding transactions and profiles"
    )

    # Sheet names within the spreadsheet
    transactions_sheet_name: str = Field(
        default="Transactions",
        description="Name of the sheet with financial records"
    )
    profiles_sheet_name: str = Field(
        default="Profiles",
        description="Name of the sheet with user profile fields"
    )

    @field_validator('credentials_path')
    @classmethod
    def validate_credentials_path(cls, v: str) -> str:
        """Warn if credentials file doesn't exist (but don't fail - might be mounted later)."""
        if not Path(v).exists():
            import warnings
            warnings.warn(
                f"Google credentials file not found at {v}. "
                "Make sure it exists before running the application."
            )
        return v


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    record_backend: str = Field(
        default="memory",
        pattern="^(memory|google_sheets)$",
        description="Which record store backs receipt and profile lookups"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Sub-settings are built lazily so a missing Google Sheets
    # configuration doesn't block local-only use.

    @property
    def assets(self) -> AssetStorageSettings:
        return AssetStorageSettings()

    @property
    def google_sheets(self) -> GoogleSheetsSettings:
        return GoogleSheetsSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus "<name>_error"
    entries describing failures. Useful for startup checks.
    """
    results = {}
    settings = get_settings()

    for name in ("assets", "google_sheets", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
