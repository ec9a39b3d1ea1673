"""TTL-based purge of persisted artifacts and staged session leftovers."""
import logging
import os
import shutil
from collections import defaultdict
from typing import Callable, Optional

from facestage.core.context import StageContext
from facestage.core.storage import ArtifactStore
from facestage.util.paths import PENDING_DIR, SIDECAR_EXTENSION

log = logging.getLogger("facestage.retention")


class RetentionPolicy:
    """Deletes artifacts whose sidecar says they have expired.

    An artifact without a readable sidecar, or a sidecar without its
    artifact, is never trusted and is deleted as well.
    """

    def __init__(
        self,
        ctx: StageContext,
        store: ArtifactStore,
        on_purge: Optional[Callable[[str], None]] = None,
    ):
        self._ctx = ctx
        self._store = store
        self._on_purge = on_purge
        self._next_run_ms: Optional[float] = None

    def run(self) -> int:
        """One full sweep. Returns the number of artifacts purged."""
        now = self._ctx.clock.wall()
        purged = 0
        for directory in (self._store.stills_dir, self._store.sessions_dir):
            purged += self._sweep(directory, now)
        self._next_run_ms = self._ctx.now_ms() + self._ctx.settings.retention_interval_s * 1000.0
        if purged:
            log.info("Retention purged %d artifacts", purged)
        return purged

    def maybe_run(self, now_ms: float) -> int:
        if self._next_run_ms is None or now_ms >= self._next_run_ms:
            return self.run()
        return 0

    def purge_pending(self) -> int:
        """Remove staged session data that was never kept (crash or shutdown)."""
        removed = 0
        pending = self._store.pending_dir
        for name in os.listdir(pending):
            path = os.path.join(pending, name)
            try:
                if os.path.isdir(path):
                    shutil.rmtree(path)
                else:
                    os.remove(path)
                removed += 1
            except OSError as e:
                log.error("Failed to remove staged %s: %s", path, e)
        if removed:
            log.info("Purged %d staged session leftovers", removed)
        return removed

    def _sweep(self, directory: str, now: float) -> int:
        groups: dict[str, dict[str, str]] = defaultdict(dict)
        for name in os.listdir(directory):
            if name == PENDING_DIR:
                continue
            path = os.path.join(directory, name)
            stem, ext = os.path.splitext(name)
            if ext == SIDECAR_EXTENSION:
                groups[stem]["sidecar"] = path
            elif ext == ".tmp":
                groups[name]["stray"] = path
            else:
                groups[stem]["artifact"] = path

        purged = 0
        for stem, entry in groups.items():
            artifact = entry.get("artifact")
            sidecar = entry.get("sidecar")
            if "stray" in entry:
                reason = "leftover temporary file"
                target = entry["stray"]
            elif artifact is None:
                reason = "sidecar without artifact"
                target = sidecar
            elif sidecar is None:
                reason = "artifact without expiry record"
                target = artifact
            else:
                data = self._store.read_sidecar(sidecar)
                if data is None:
                    reason = "unreadable expiry record"
                elif float(data["expires_at"]) <= now:
                    reason = "expired"
                else:
                    continue
                target = artifact

            log.info("Purging %s (%s)", target, reason)
            if self._delete(target):
                purged += 1
                if target == artifact and self._on_purge:
                    self._on_purge(artifact)
        return purged

    def _delete(self, path: str) -> bool:
        if path.endswith((SIDECAR_EXTENSION, ".tmp")):
            try:
                os.remove(path)
                return True
            except OSError as e:
                log.error("Failed to delete %s: %s", path, e)
                return False
        return self._store.delete(path)
