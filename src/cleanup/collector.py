"""
Reachability Collector

Reclaims disk space by deleting asset files nothing references anymore.

A pass:
1. Loads the user settings (disabled => skipped run, no disk access)
2. Scans the durable asset directory for image files
3. Builds the reference set from the record store and the active slots
4. Deletes every scanned asset outside the reference set
5. Clears the ephemeral cache if it grew past its high-water mark

CRITICAL: If the reference set cannot be built with certainty (record
store unreachable, or a slot mutation in flight) the pass aborts with
ZERO deletions. Treating "unknown" as "unreferenced" would delete
every receipt and profile photo the user has.

DESIGN DECISION: Single-flight per process. A second pass while one is
running fails immediately with CleanupAlreadyRunningError instead of
queueing.
"""

import asyncio
import math
import os
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import structlog

from src.audit.logger import AuditLogger
from src.cleanup.markers import CleanupMarkerStore
from src.cleanup.references import ActiveSlotRegistry
from src.models.assets import (
    DEFAULT_IMAGE_EXTENSIONS,
    CleanupRun,
    StorageStats,
    StoredAsset,
    normalize_path,
    thumbnail_path_for,
)
from src.services.files import FileSystemInterface, LocalFileSystem
from src.services.image import EphemeralCache
from src.services.preferences import SettingsStore
from src.services.storage import RecordStoreInterface, StorageError


logger = structlog.get_logger(__name__)


class CleanupError(Exception):
    """Base exception for collector passes."""
    pass


class CleanupAlreadyRunningError(CleanupError):
    """Another pass is in flight in this process."""
    pass


class ReferenceReadError(CleanupError):
    """The reference set could not be determined; nothing was deleted."""
    pass


class ReachabilityCollector:
    """
    Garbage collector for the durable asset directory.

    One instance per process; the instance holds the single-flight guard.
    """

    def __init__(
        self,
        asset_root: Path,
        record_store: RecordStoreInterface,
        settings_store: SettingsStore,
        markers: CleanupMarkerStore,
        registry: ActiveSlotRegistry,
        cache: Optional[EphemeralCache] = None,
        filesystem: Optional[FileSystemInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        image_extensions: tuple[str, ...] = DEFAULT_IMAGE_EXTENSIONS,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self._asset_root = str(asset_root)
        self._record_store = record_store
        self._settings_store = settings_store
        self._markers = markers
        self._registry = registry
        self._cache = cache
        self._fs = filesystem or LocalFileSystem()
        self._audit = audit_logger
        self._image_extensions = tuple(ext.lower() for ext in image_extensions)
        self._clock = clock

        self._running = False
        # Strong references to detached passes until they finish
        self._background: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self._running

    # -------------------------------------------------------------------------
    # Passes
    # -------------------------------------------------------------------------

    async def collect_orphans(self, owner_id: str) -> CleanupRun:
        """
        Run one collection pass for an owner.

        Raises:
            CleanupAlreadyRunningError: A pass is already in flight
            ReferenceReadError: References could not be read; nothing deleted
        """
        if self._running:
            raise CleanupAlreadyRunningError("A cleanup pass is already running")

        self._running = True
        try:
            return await self._collect(owner_id)
        finally:
            self._running = False

    async def _collect(self, owner_id: str) -> CleanupRun:
        settings = await self._settings_store.load()
        if not settings.auto_cleanup_enabled:
            now = self._clock()
            run = CleanupRun(
                owner_id=owner_id,
                started_at=now,
                finished_at=now,
                skipped=True,
            )
            logger.info("cleanup_skipped", owner_id=owner_id, reason="disabled")
            if self._audit:
                await self._audit.log_cleanup_skipped(owner_id, "auto cleanup disabled")
            return run

        run = CleanupRun(owner_id=owner_id, started_at=self._clock())
        logger.info("cleanup_started", owner_id=owner_id, asset_root=self._asset_root)

        assets, scan_failures = await self._scan()
        run.scanned_count = len(assets)
        run.failed_paths.extend(scan_failures)

        try:
            references = await self._build_reference_set(owner_id)
        except ReferenceReadError as e:
            logger.warning("cleanup_aborted", owner_id=owner_id, error=str(e))
            if self._audit:
                await self._audit.log_cleanup_aborted(owner_id, str(e))
            raise

        for asset in assets:
            if normalize_path(asset.path) in references:
                continue
            await self._delete_orphan(asset, run)

        await self._trim_cache(run)

        run.finished_at = self._clock()
        logger.info("cleanup_completed", **run.to_log_dict())
        if self._audit:
            await self._audit.log_cleanup_completed(run.to_log_dict())
        return run

    async def _delete_orphan(self, asset: StoredAsset, run: CleanupRun) -> None:
        try:
            # Size may have changed since the scan
            info = await self._fs.info(asset.path)
        except FileNotFoundError:
            # Already gone
            return
        except OSError as e:
            logger.warning("orphan_stat_failed", path=asset.path, error=str(e))
            run.failed_paths.append(asset.path)
            return

        try:
            await self._fs.delete(asset.path)
        except OSError as e:
            logger.warning("orphan_delete_failed", path=asset.path, error=str(e))
            run.failed_paths.append(asset.path)
            return

        run.deleted_paths.append(asset.path)
        run.freed_bytes += info.size_bytes
        logger.debug("orphan_deleted", path=asset.path, size_bytes=info.size_bytes)

    async def _trim_cache(self, run: CleanupRun) -> None:
        if self._cache is None:
            return
        try:
            if not await self._cache.is_over_high_water():
                return
            freed = await self._cache.clear()
        except OSError as e:
            logger.warning("cache_trim_failed", error=str(e))
            return

        run.cache_cleared = True
        run.cache_freed_bytes = freed
        if self._audit:
            await self._audit.log_cache_cleared(freed, reason="high water mark exceeded")

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    async def schedule_cleanup(self, owner_id: str) -> bool:
        """
        Start a detached pass if the owner's interval has elapsed.

        The marker is persisted BEFORE the pass starts, so a crash mid-pass
        does not cause a retry storm on the next launch.

        Returns:
            True if a pass was started
        """
        settings = await self._settings_store.load()
        if not settings.auto_cleanup_enabled:
            return False

        now = self._clock()
        last_run = await self._markers.get_last_run(owner_id)
        if last_run is not None:
            elapsed_days = math.floor(abs((now - last_run).total_seconds()) / 86400)
            if elapsed_days < settings.cleanup_interval_days:
                logger.debug(
                    "cleanup_not_due",
                    owner_id=owner_id,
                    elapsed_days=elapsed_days,
                    interval_days=settings.cleanup_interval_days,
                )
                return False

        try:
            await self._markers.set_last_run(owner_id, now)
        except OSError:
            logger.exception("cleanup_marker_write_failed", owner_id=owner_id)

        if self._audit:
            await self._audit.log_cleanup_scheduled(owner_id, last_run)

        task = asyncio.create_task(self._run_detached(owner_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return True

    async def _run_detached(self, owner_id: str) -> None:
        """Background pass; every outcome is logged, nothing is raised."""
        try:
            await self.collect_orphans(owner_id)
        except CleanupAlreadyRunningError:
            logger.info("scheduled_cleanup_already_running", owner_id=owner_id)
        except ReferenceReadError as e:
            logger.warning("scheduled_cleanup_aborted", owner_id=owner_id, error=str(e))
        except Exception as e:
            logger.exception("scheduled_cleanup_failed", owner_id=owner_id)
            if self._audit:
                await self._audit.log_error(
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"owner_id": owner_id, "stage": "scheduled_cleanup"},
                )

    async def drain(self) -> None:
        """Wait for every detached pass to finish."""
        while self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    async def get_storage_stats(self, owner_id: str) -> StorageStats:
        """
        Read-only view of what a pass would find.

        Raises:
            ReferenceReadError: References could not be read
        """
        assets, _ = await self._scan()
        references = await self._build_reference_set(owner_id)
        orphans = [a for a in assets if normalize_path(a.path) not in references]
        cache_bytes = await self._cache.size_bytes() if self._cache else 0

        return StorageStats(
            total_images=len(assets),
            total_bytes=sum(a.size_bytes for a in assets),
            orphaned_images=len(orphans),
            orphaned_bytes=sum(a.size_bytes for a in orphans),
            cache_bytes=cache_bytes,
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _is_image(self, path: str) -> bool:
        return os.path.splitext(path)[1].lower() in self._image_extensions

    async def _scan(self) -> tuple[list[StoredAsset], list[str]]:
        """
        Recursively list image files under the asset root.

        Returns:
            (assets, paths whose info could not be read)
        """
        assets: list[StoredAsset] = []
        failures: list[str] = []
        if not await self._fs.exists(self._asset_root):
            return assets, failures

        pending = [self._asset_root]
        while pending:
            directory = pending.pop()
            try:
                entries = await self._fs.list_directory(directory)
            except OSError as e:
                logger.warning("asset_directory_unreadable", path=directory, error=str(e))
                continue

            for entry in entries:
                path = os.path.join(directory, entry)
                try:
                    info = await self._fs.info(path)
                except FileNotFoundError:
                    continue
                except OSError as e:
                    logger.warning("asset_info_failed", path=path, error=str(e))
                    failures.append(path)
                    continue

                if info.is_directory:
                    pending.append(path)
                elif self._is_image(path):
                    assets.append(StoredAsset(path=path, size_bytes=info.size_bytes))

        return assets, failures

    async def _build_reference_set(self, owner_id: str) -> frozenset[str]:
        """
        Every path that must survive this pass, normalized.

        Raises:
            ReferenceReadError: On any read failure or in-flight slot mutation
        """
        if self._registry.has_pending:
            raise ReferenceReadError("A photo update is in flight")

        try:
            receipt_paths = await self._record_store.list_receipt_paths(owner_id)
            profile_path = await self._record_store.get_profile_photo_path(owner_id)
        except StorageError as e:
            raise ReferenceReadError(f"Could not read records: {e}") from e

        # A swap may have started while the records were being read
        if self._registry.has_pending:
            raise ReferenceReadError("A photo update is in flight")

        paths = list(receipt_paths)
        if profile_path:
            paths.append(profile_path)
        paths.extend(self._registry.referenced_paths())

        references = set()
        for path in paths:
            if not path:
                continue
            references.add(normalize_path(path))
            thumbnail = thumbnail_path_for(path)
            if thumbnail:
                references.add(normalize_path(thumbnail))
        return frozenset(references)
