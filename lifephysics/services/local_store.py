"""
Local device store for guest trackers.

One JSON file per identity under ``Config.DATA_DIR``, named
``{STORAGE_PREFIX}{identity}.json``. Files are replaced atomically so a
crash mid-write leaves the previous snapshot intact.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Optional

from lifephysics.core.config.config import Config
from lifephysics.core.logging.logger import get_logger
from lifephysics.domain.defaults import initial_tasks
from lifephysics.domain.models.avatar import AvatarWardrobe
from lifephysics.domain.models.progression import ProgressionLedger
from lifephysics.services.tracker_service import TrackerSnapshot

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9_.-]")


class LocalStateStore:
    def __init__(self, data_dir: Optional[Path] = None, prefix: Optional[str] = None) -> None:
        self.data_dir = Path(data_dir) if data_dir is not None else Config.DATA_DIR
        self.prefix = prefix if prefix is not None else Config.STORAGE_PREFIX

    def path_for(self, identity: str) -> Path:
        safe = _UNSAFE_CHARS.sub("_", identity)
        return self.data_dir / f"{self.prefix}{safe}.json"

    def exists(self, identity: str) -> bool:
        return self.path_for(identity).exists()

    def load(self, identity: str) -> Optional[TrackerSnapshot]:
        """
        Read the stored snapshot, or None when nothing is stored.

        Raises ``ValueError`` (``json.JSONDecodeError``) for a corrupt file.
        """
        path = self.path_for(identity)
        if not path.exists():
            return None

        with open(path, "r", encoding="utf-8") as handle:
            data = json.load(handle)

        snapshot = TrackerSnapshot.from_dict(data)
        logger.debug(
            "Local snapshot loaded",
            extra={"user_id": identity, "task_count": len(snapshot.tasks)},
        )
        return snapshot

    def load_or_seed(self, identity: str) -> TrackerSnapshot:
        """Stored snapshot, or a fresh one holding the onboarding task."""
        snapshot = self.load(identity)
        if snapshot is not None:
            return snapshot

        logger.info("Seeding new local tracker", extra={"user_id": identity})
        return TrackerSnapshot(
            user_id=identity,
            tasks=[task.to_dict() for task in initial_tasks()],
            progression=ProgressionLedger(identity).to_dict(),
            wardrobe=AvatarWardrobe(identity).to_dict(),
        )

    def save(self, snapshot: TrackerSnapshot) -> Path:
        path = self.path_for(snapshot.user_id)
        path.parent.mkdir(parents=True, exist_ok=True)

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(snapshot.to_dict(), handle, ensure_ascii=False, default=str)
            os.replace(tmp_name, path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

        logger.debug("Local snapshot saved", extra={"user_id": snapshot.user_id, "path": str(path)})
        return path

    def clear(self, identity: str) -> bool:
        """Remove the stored snapshot. Returns False when there was none."""
        path = self.path_for(identity)
        if not path.exists():
            return False
        path.unlink()
        logger.info("Local snapshot cleared", extra={"user_id": identity})
        return True
