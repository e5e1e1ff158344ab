"""
Main Orchestrator for the Image Asset Lifecycle Manager

This module ties together all the components and defines the
end-to-end flows for:
1. Profile photo updates (capture/select → variants → publish → retire old)
2. Profile photo removal (confirm → delete → clear remote)
3. Session start (refresh from the record store → schedule cleanup)

DESIGN DECISION: The orchestrator enforces the boundaries:
- The slot only ever points at a complete variant pair
- The old pair is deleted only AFTER the new one is published
- The record store is written first; the identity hint is best-effort
- Every step is audited
"""

import asyncio
from typing import Awaitable, Callable, Optional
from uuid import UUID

import structlog

from src.audit import AuditLogger, create_correlation_id
from src.cleanup import (
    ActiveSlotRegistry,
    CleanupAlreadyRunningError,
    CleanupMarkerStore,
    ReachabilityCollector,
)
from src.config import get_settings
from src.models.assets import AssetSlot, Avatar, SizeHint, SlotState
from src.services.device import (
    DeviceCaptureInterface,
    DirectoryPhotoLibrary,
    PermissionDeniedError,
    PhotoLibraryInterface,
    UserCancelledError,
)
from src.services.files import FileSystemInterface, LocalFileSystem
from src.services.image import AssetProcessor, EphemeralCache
from src.services.preferences import SettingsStore
from src.services.storage import (
    AuditStorageInterface,
    IdentityProviderInterface,
    InMemoryIdentityProvider,
    InMemoryRecordStore,
    RecordStoreInterface,
    StorageError,
)
from src.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
)


logger = structlog.get_logger(__name__)

ConfirmCallback = Callable[[], Awaitable[bool]]

PHOTO_PREFIX = "profile"


class SlotBusyError(Exception):
    """A capture/select/remove is already in flight for this slot."""
    pass


def _initials(display_name: Optional[str], email: Optional[str]) -> str:
    """First letters of the first and last names, else of the e-mail."""
    words = (display_name or "").split()
    if words:
        letters = words[0][0]
        if len(words) > 1:
            letters += words[-1][0]
        return letters.upper()
    if email:
        return email[0].upper()
    return "?"


def user_message_for(error: Exception) -> Optional[str]:
    """
    Map an exception to the message shown to the user.

    Returns None when nothing should be shown (the user cancelled).
    """
    if isinstance(error, UserCancelledError):
        return None
    if isinstance(error, PermissionDeniedError):
        return (
            f"Please allow {error.permission} access in your device settings "
            "to update your profile photo."
        )
    if isinstance(error, (SlotBusyError, CleanupAlreadyRunningError)):
        return "Another update is in progress. Please try again shortly."
    return "Failed to update profile photo. Please try again."


class ProfilePhotoFlow:
    """
    Orchestrates the profile photo of one user session.

    Owns the session's AssetSlot. State machine:
    EMPTY → PENDING → PRESENT → (PENDING →) EMPTY or PRESENT

    Concurrent mutations are rejected with SlotBusyError, never queued.
    If the new photo cannot be produced the slot keeps its pre-call value.
    """

    def __init__(
        self,
        owner_id: str,
        processor: AssetProcessor,
        collector: ReachabilityCollector,
        record_store: RecordStoreInterface,
        identity_provider: IdentityProviderInterface,
        device: DeviceCaptureInterface,
        registry: ActiveSlotRegistry,
        filesystem: Optional[FileSystemInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        display_timeout_seconds: float = 10.0,
    ):
        self._owner_id = owner_id
        self._processor = processor
        self._collector = collector
        self._record_store = record_store
        self._identity = identity_provider
        self._device = device
        self._registry = registry
        self._fs = filesystem or LocalFileSystem()
        self._audit_logger = audit_logger
        self._display_timeout = display_timeout_seconds

        self._slot = AssetSlot.empty(owner_id)
        self._state = SlotState.EMPTY
        # Bumped on every local swap so a slow refresh can't overwrite it
        self._generation = 0
        self._last_error: Optional[str] = None
        self._display_checks: set[asyncio.Task] = set()

        # Another flow for this owner may already hold a live slot
        if self._registry.get(owner_id) is None:
            self._registry.publish(self._slot)

    @property
    def owner_id(self) -> str:
        return self._owner_id

    @property
    def slot(self) -> AssetSlot:
        return self._slot

    @property
    def state(self) -> SlotState:
        return self._state

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def clear_error(self) -> None:
        self._last_error = None

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def capture(self) -> AssetSlot:
        """
        Take a new photo with the camera and make it the profile photo.

        Raises:
            SlotBusyError: Another mutation is in flight
            PermissionDeniedError: Camera access refused
            UserCancelledError: The user closed the camera
            ProcessingError: The photo could not be turned into variants
            StorageError: The record store write failed (the local slot
                already holds the new photo)
        """
        return await self._acquire_and_replace("camera")

    async def select(self) -> AssetSlot:
        """Pick a photo from the gallery; same contract as capture()."""
        return await self._acquire_and_replace("gallery")

    async def update_from_source(self, source_uri: str) -> AssetSlot:
        """Replace the photo from an already-obtained source (no prompts)."""
        self._begin_mutation()
        correlation_id = create_correlation_id()
        try:
            return await self._replace(source_uri, correlation_id)
        except Exception as e:
            self._record_error(e)
            raise
        finally:
            self._end_mutation()

    async def _acquire_and_replace(self, permission: str) -> AssetSlot:
        self._begin_mutation()
        correlation_id = create_correlation_id()
        try:
            if permission == "camera":
                granted = await self._device.request_camera_permission()
            else:
                granted = await self._device.request_gallery_permission()
            if not granted:
                raise PermissionDeniedError(permission)

            if permission == "camera":
                source_uri = await self._device.capture()
            else:
                source_uri = await self._device.pick_from_gallery()

            return await self._replace(source_uri, correlation_id)
        except Exception as e:
            self._record_error(e)
            raise
        finally:
            self._end_mutation()

    async def _replace(self, source_uri: str, correlation_id: UUID) -> AssetSlot:
        pair = await self._processor.generate_variants(
            source_uri,
            prefix=PHOTO_PREFIX,
            correlation_id=correlation_id,
        )

        previous = self._slot
        new_slot = AssetSlot.from_primary(self._owner_id, pair.primary_path)
        self._swap(new_slot)

        # Old pair goes only after the new one is published
        await self._delete_pair(previous, correlation_id, keep=new_slot.paths())

        await self._write_record(pair.primary_path, correlation_id)
        await self._clear_identity_hint(correlation_id)

        logger.info(
            "profile_photo_replaced",
            owner_id=self._owner_id,
            primary_path=pair.primary_path,
        )
        if self._audit_logger:
            await self._audit_logger.log_photo_replaced(
                owner_id=self._owner_id,
                primary_path=pair.primary_path,
                previous_path=previous.primary_path,
                correlation_id=correlation_id,
            )
        return new_slot

    async def remove(self, confirm: ConfirmCallback) -> bool:
        """
        Remove the profile photo after the user confirms.

        Returns:
            False if the user declined (nothing changes), True otherwise

        Raises:
            SlotBusyError: Another mutation is in flight
            StorageError: The record store could not be cleared
        """
        self._begin_mutation()
        correlation_id = create_correlation_id()
        try:
            if not await confirm():
                return False

            previous = self._slot
            self._swap(AssetSlot.empty(self._owner_id))
            await self._delete_pair(previous, correlation_id)
            await self._write_record(None, correlation_id)
            await self._clear_identity_hint(correlation_id)

            logger.info("profile_photo_removed", owner_id=self._owner_id)
            if self._audit_logger:
                await self._audit_logger.log_photo_removed(
                    owner_id=self._owner_id,
                    removed_path=previous.primary_path,
                    correlation_id=correlation_id,
                )
            return True
        except Exception as e:
            self._record_error(e)
            raise
        finally:
            self._end_mutation()

    def _begin_mutation(self) -> None:
        if self._state == SlotState.PENDING:
            raise SlotBusyError("A profile photo update is already in progress")
        self._state = SlotState.PENDING
        self._registry.mark_pending(self._owner_id)

    def _end_mutation(self) -> None:
        self._state = SlotState.PRESENT if self._slot.has_photo else SlotState.EMPTY
        self._registry.clear_pending(self._owner_id)

    def _swap(self, slot: AssetSlot) -> None:
        self._slot = slot
        self._generation += 1
        self._registry.publish(slot)

    def _record_error(self, error: Exception) -> None:
        if not isinstance(error, UserCancelledError):
            self._last_error = str(error)

    async def _delete_pair(
        self,
        slot: AssetSlot,
        correlation_id: UUID,
        keep: Optional[list[str]] = None,
    ) -> None:
        """Best-effort, idempotent delete of a retired pair."""
        for path in slot.paths():
            if keep and path in keep:
                continue
            try:
                await self._fs.delete(path)
            except OSError as e:
                logger.warning("previous_variant_delete_failed", path=path, error=str(e))
                if self._audit_logger:
                    await self._audit_logger.log_previous_variants_delete_failed(
                        path=path,
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )

    async def _write_record(self, path: Optional[str], correlation_id: UUID) -> None:
        """The authoritative photo field. Failures surface to the caller."""
        try:
            written = await self._record_store.set_profile_photo_path(
                self._owner_id, path
            )
            if not written:
                raise StorageError("Record store rejected the profile photo update")
        except StorageError as e:
            logger.error(
                "profile_record_write_failed",
                owner_id=self._owner_id,
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_photo_update_failed(
                    owner_id=self._owner_id,
                    stage="record_store",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

    async def _clear_identity_hint(self, correlation_id: UUID) -> None:
        try:
            await self._identity.set_photo_hint(self._owner_id, None)
        except Exception as e:
            logger.warning(
                "identity_hint_clear_failed",
                owner_id=self._owner_id,
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_external_service_error(
                    service="identity_provider",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    async def refresh(self) -> AssetSlot:
        """
        Reconcile the slot with the record store.

        A valid local slot is never replaced by an empty or missing remote
        value, and a slot swapped while the remote read was in flight is
        never overwritten.
        """
        if self._state == SlotState.PENDING:
            return self._slot

        if self._slot.has_photo and await self._pair_exists(self._slot):
            return self._slot

        generation = self._generation
        try:
            remote_path = await self._record_store.get_profile_photo_path(self._owner_id)
            if not remote_path:
                remote_path = await self._identity.get_photo_hint(self._owner_id)
        except StorageError as e:
            self._last_error = str(e)
            logger.warning("profile_refresh_failed", owner_id=self._owner_id, error=str(e))
            return self._slot

        candidate = None
        if remote_path:
            if remote_path.startswith("file://"):
                remote_path = remote_path[len("file://"):]
            candidate = AssetSlot.from_primary(self._owner_id, remote_path)
            if not (candidate.has_photo and await self._pair_exists(candidate)):
                candidate = None

        if generation != self._generation or self._state == SlotState.PENDING:
            # Swapped locally while we were reading
            return self._slot

        if candidate is not None:
            self._swap(candidate)
        elif self._slot.paths():
            # Local slot points at files that are gone
            self._swap(AssetSlot.empty(self._owner_id))
        self._state = SlotState.PRESENT if self._slot.has_photo else SlotState.EMPTY
        return self._slot

    async def _pair_exists(self, slot: AssetSlot) -> bool:
        return await self._fs.exists(slot.primary_path) and await self._fs.exists(
            slot.thumbnail_path
        )

    def get_optimized_path(self, size_hint: SizeHint = SizeHint.MEDIUM) -> Optional[str]:
        """Thumbnail for SMALL, primary otherwise; None without a photo."""
        if not self._slot.has_photo:
            return None
        if size_hint == SizeHint.SMALL:
            return self._slot.thumbnail_path
        return self._slot.primary_path

    def get_avatar(
        self,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Avatar:
        return Avatar(
            uri=self.get_optimized_path(SizeHint.MEDIUM),
            initials=_initials(display_name, email),
        )

    async def resolve_display(
        self,
        size_hint: SizeHint = SizeHint.MEDIUM,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Avatar:
        """
        What to render right now.

        Falls back to initials if the file is missing or the check takes
        longer than the display timeout. The check itself keeps running.
        """
        initials = _initials(display_name, email)
        path = self.get_optimized_path(size_hint)
        if not path:
            return Avatar(initials=initials)

        check = asyncio.ensure_future(self._fs.exists(path))
        self._display_checks.add(check)
        check.add_done_callback(self._display_checks.discard)
        try:
            exists = await asyncio.wait_for(asyncio.shield(check), self._display_timeout)
        except asyncio.TimeoutError:
            logger.warning("avatar_display_timeout", owner_id=self._owner_id, path=path)
            return Avatar(initials=initials, timed_out=True)

        return Avatar(uri=path if exists else None, initials=initials)

    async def start_session(self) -> AssetSlot:
        """Refresh the slot, then let the collector run if it's due."""
        slot = await self.refresh()
        await self._collector.schedule_cleanup(self._owner_id)
        return slot


class AppComponents:
    """Process-wide services, built once and shared by every session."""

    def __init__(
        self,
        settings_store: SettingsStore,
        processor: AssetProcessor,
        cache: EphemeralCache,
        collector: ReachabilityCollector,
        registry: ActiveSlotRegistry,
        record_store: RecordStoreInterface,
        identity_provider: IdentityProviderInterface,
        filesystem: FileSystemInterface,
        audit_logger: AuditLogger,
        display_timeout_seconds: float,
    ):
        self.settings_store = settings_store
        self.processor = processor
        self.cache = cache
        self.collector = collector
        self.registry = registry
        self.record_store = record_store
        self.identity_provider = identity_provider
        self.filesystem = filesystem
        self.audit_logger = audit_logger
        self.display_timeout_seconds = display_timeout_seconds

    def create_profile_flow(
        self,
        owner_id: str,
        device: DeviceCaptureInterface,
    ) -> ProfilePhotoFlow:
        return ProfilePhotoFlow(
            owner_id=owner_id,
            processor=self.processor,
            collector=self.collector,
            record_store=self.record_store,
            identity_provider=self.identity_provider,
            device=device,
            registry=self.registry,
            filesystem=self.filesystem,
            audit_logger=self.audit_logger,
            display_timeout_seconds=self.display_timeout_seconds,
        )


def _create_record_store(use_storage: bool) -> RecordStoreInterface:
    if use_storage and get_settings().app.record_backend == "google_sheets":
        try:
            return GoogleSheetsRecordStore(GoogleSheetsClient())
        except Exception as e:
            # Storage not configured - continue without it
            logger.warning("record_store_not_configured", error=str(e))
    return InMemoryRecordStore()


def create_app_components(
    use_storage: bool = True,
    record_store: Optional[RecordStoreInterface] = None,
    identity_provider: Optional[IdentityProviderInterface] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    photo_library: Optional[PhotoLibraryInterface] = None,
    filesystem: Optional[FileSystemInterface] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use the configured remote record backend.
                    Set to False for local-only mode and tests.
        record_store / identity_provider / audit_storage / photo_library /
        filesystem: Explicit collaborators; defaults are built from settings.
    """
    assets = get_settings().assets
    filesystem = filesystem or LocalFileSystem()
    audit_logger = AuditLogger(audit_storage)

    record_store = record_store or _create_record_store(use_storage)
    identity_provider = identity_provider or InMemoryIdentityProvider()
    photo_library = photo_library or DirectoryPhotoLibrary(
        assets.gallery_dir, filesystem=filesystem
    )

    settings_store = SettingsStore(assets.settings_file, audit_logger=audit_logger)
    cache = EphemeralCache(
        cache_dir=assets.cache_dir,
        asset_root=assets.asset_root,
        settings_store=settings_store,
        filesystem=filesystem,
        high_water_bytes=assets.cache_high_water_bytes,
    )
    processor = AssetProcessor(
        asset_root=assets.asset_root,
        settings_store=settings_store,
        filesystem=filesystem,
        photo_library=photo_library,
        audit_logger=audit_logger,
        thumbnail_size_px=assets.thumbnail_size_px,
        thumbnail_quality=assets.thumbnail_quality,
    )
    registry = ActiveSlotRegistry()
    collector = ReachabilityCollector(
        asset_root=assets.asset_root,
        record_store=record_store,
        settings_store=settings_store,
        markers=CleanupMarkerStore(assets.state_dir),
        registry=registry,
        cache=cache,
        filesystem=filesystem,
        audit_logger=audit_logger,
        image_extensions=tuple(assets.image_extensions_list),
    )

    return AppComponents(
        settings_store=settings_store,
        processor=processor,
        cache=cache,
        collector=collector,
        registry=registry,
        record_store=record_store,
        identity_provider=identity_provider,
        filesystem=filesystem,
        audit_logger=audit_logger,
        display_timeout_seconds=assets.display_timeout_seconds,
    )
