"""User preferences package."""

from src.services.preferences.store import (
    InvalidSettingsError,
    SettingsStore,
    SettingsStoreError,
)

__all__ = [
    "InvalidSettingsError",
    "SettingsStore",
    "SettingsStoreError",
]
