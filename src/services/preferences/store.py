"""
Settings Store

Persists the user's ImageSettings as a small JSON document.

DESIGN DECISION: Reads never fail. A missing file means "first run"
(defaults are written), a corrupt or invalid file is logged and defaults
are used. Writes DO fail loudly: an invalid change raises
InvalidSettingsError and leaves both the file and the cached value untouched.
"""

import asyncio
import json
import os
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Optional

import structlog
from pydantic import ValidationError

from src.models.settings import DEFAULT_IMAGE_SETTINGS, ImageSettings

if TYPE_CHECKING:
    from src.audit.logger import AuditLogger


logger = structlog.get_logger(__name__)

SettingsListener = Callable[[ImageSettings], None]


class SettingsStoreError(Exception):
    """Base exception for settings persistence."""
    pass


class InvalidSettingsError(SettingsStoreError, ValueError):
    """Unknown key or out-of-range value in a settings change."""
    pass


class SettingsStore:
    """
    Load/update/reset of the persisted ImageSettings.

    One instance per process; the loaded value is cached in memory and
    every mutation goes through update() or reset().
    """

    def __init__(
        self,
        settings_file: Path,
        audit_logger: Optional["AuditLogger"] = None,
    ):
        self._settings_file = Path(settings_file)
        self._audit = audit_logger
        self._current: Optional[ImageSettings] = None
        self._listeners: list[SettingsListener] = []

    @property
    def settings_file(self) -> Path:
        return self._settings_file

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    async def load(self) -> ImageSettings:
        """
        Current settings.

        The first call reads the file; when nothing is stored yet the
        defaults are persisted and returned.
        """
        if self._current is None:
            self._current = await self._read_from_disk()
        return self._current

    async def reload(self) -> ImageSettings:
        """Drop the cached value and read the file again."""
        self._current = None
        return await self.load()

    async def _read_from_disk(self) -> ImageSettings:
        if not await asyncio.to_thread(self._settings_file.exists):
            try:
                await self._write(DEFAULT_IMAGE_SETTINGS)
            except SettingsStoreError as e:
                logger.warning(
                    "settings_defaults_not_persisted",
                    path=str(self._settings_file),
                    error=str(e),
                )
            return DEFAULT_IMAGE_SETTINGS

        try:
            raw = await asyncio.to_thread(
                self._settings_file.read_text, encoding="utf-8"
            )
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(
                "settings_file_unreadable",
                path=str(self._settings_file),
                error=str(e),
            )
            return DEFAULT_IMAGE_SETTINGS

        if not isinstance(data, dict):
            logger.warning(
                "settings_file_not_an_object",
                path=str(self._settings_file),
            )
            return DEFAULT_IMAGE_SETTINGS

        # Stored values merge over defaults; keys from newer or older
        # versions of the app are dropped.
        known = set(ImageSettings.model_fields)
        merged = DEFAULT_IMAGE_SETTINGS.model_dump()
        merged.update({k: v for k, v in data.items() if k in known})
        try:
            return ImageSettings(**merged)
        except ValidationError as e:
            logger.warning(
                "settings_file_invalid",
                path=str(self._settings_file),
                error=str(e),
            )
            return DEFAULT_IMAGE_SETTINGS

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def update(self, changes: dict[str, Any]) -> ImageSettings:
        """
        Merge a partial change, validate, persist and notify.

        Raises:
            InvalidSettingsError: Unknown key or out-of-range value
            SettingsStoreError: The file could not be written
        """
        unknown = sorted(set(changes) - set(ImageSettings.model_fields))
        if unknown:
            raise InvalidSettingsError(f"Unknown setting(s): {', '.join(unknown)}")

        current = await self.load()
        merged = current.model_dump()
        merged.update(changes)
        try:
            updated = ImageSettings(**merged)
        except ValidationError as e:
            raise InvalidSettingsError(f"Invalid settings change: {e}") from e

        await self._write(updated)
        self._current = updated

        logger.info("settings_updated", changes=changes)
        if self._audit:
            await self._audit.log_settings_changed(changes)
        self._notify(updated)
        return updated

    async def reset(self) -> ImageSettings:
        """Restore and persist the fixed defaults."""
        await self._write(DEFAULT_IMAGE_SETTINGS)
        self._current = DEFAULT_IMAGE_SETTINGS

        logger.info("settings_reset")
        if self._audit:
            await self._audit.log_settings_changed({}, reset=True)
        self._notify(DEFAULT_IMAGE_SETTINGS)
        return DEFAULT_IMAGE_SETTINGS

    async def _write(self, settings: ImageSettings) -> None:
        """Atomic write: temporary file in the same directory, then os.replace."""
        payload = json.dumps(settings.model_dump(), indent=2)
        tmp_path = self._settings_file.with_name(self._settings_file.name + ".tmp")

        def _do_write():
            self._settings_file.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as handle:
                handle.write(payload)
            os.replace(tmp_path, self._settings_file)

        try:
            await asyncio.to_thread(_do_write)
        except OSError as e:
            raise SettingsStoreError(
                f"Failed to write settings to {self._settings_file}: {e}"
            ) from e

    # -------------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------------

    def subscribe(self, listener: SettingsListener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            A function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, settings: ImageSettings) -> None:
        for listener in list(self._listeners):
            try:
                listener(settings)
            except Exception:
                logger.exception("settings_listener_failed")
