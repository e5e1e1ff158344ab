"""Persisted last-cleanup timestamps, one small text file per owner."""

import asyncio
import hashlib
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import structlog


logger = structlog.get_logger(__name__)


class CleanupMarkerStore:
    """
    Stores the start time of each owner's last scheduled pass.

    Owner ids are hashed into file names so arbitrary identifiers are
    safe on any filesystem. A missing, unreadable or corrupt marker reads
    as "never ran".
    """

    def __init__(self, state_dir: Path):
        self._directory = Path(state_dir) / "cleanup"

    def marker_path(self, owner_id: str) -> Path:
        digest = hashlib.sha256(owner_id.encode("utf-8")).hexdigest()[:16]
        return self._directory / f"last_cleanup_{digest}.txt"

    async def get_last_run(self, owner_id: str) -> Optional[datetime]:
        path = self.marker_path(owner_id)
        try:
            raw = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("cleanup_marker_unreadable", path=str(path), error=str(e))
            return None

        try:
            when = datetime.fromisoformat(raw.strip())
        except ValueError:
            logger.warning("cleanup_marker_corrupt", path=str(path), content=raw[:64])
            return None
        # Markers are naive UTC
        if when.tzinfo is not None:
            when = when.astimezone(timezone.utc).replace(tzinfo=None)
        return when

    async def set_last_run(self, owner_id: str, when: datetime) -> None:
        """
        Raises:
            OSError: If the marker cannot be written
        """
        path = self.marker_path(owner_id)

        def _write():
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(when.isoformat(), encoding="utf-8")

        await asyncio.to_thread(_write)
