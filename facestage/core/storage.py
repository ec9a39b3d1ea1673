"""Artifact store: the single place where pixels reach the disk.

Every write path (still images and recording frames) goes through
``ArtifactStore``, which reads the consent flag fresh on each call.
"""
import json
import logging
import os
import shutil
import uuid
from datetime import datetime, timezone
from typing import Optional

import cv2
from PIL import Image

from facestage.core.context import StageContext
from facestage.core.errors import ConsentRequired, StorageWriteFailure
from facestage.core.models import PersistedArtifact
from facestage.util.paths import (
    STILL_EXTENSION, get_pending_dir, get_sessions_dir, get_stills_dir,
    resolve_collision, sidecar_path,
)

log = logging.getLogger("facestage.storage")


class ArtifactStore:
    def __init__(self, output_root: str, ctx: StageContext):
        self.output_root = output_root
        self._ctx = ctx
        self.stills_dir = get_stills_dir(output_root)
        self.sessions_dir = get_sessions_dir(output_root)
        self.pending_dir = get_pending_dir(output_root)

    def _require_consent(self):
        if not self._ctx.consent.granted:
            log.warning("Write refused: consent not granted")
            raise ConsentRequired()

    # ── Stills ───────────────────────────────────────────

    def save_still(self, pixels) -> PersistedArtifact:
        """Write a BGR frame as PNG plus its expiry sidecar.

        Either both files exist afterwards or neither does.
        """
        self._require_consent()

        created = self._ctx.clock.wall()
        stamp = datetime.fromtimestamp(created, tz=timezone.utc).strftime("%Y%m%d_%H%M%S")
        name = f"still_{stamp}_{uuid.uuid4().hex[:6]}"
        dest = resolve_collision(os.path.join(self.stills_dir, name + STILL_EXTENSION))
        tmp = dest + ".tmp"

        try:
            img = Image.fromarray(cv2.cvtColor(pixels, cv2.COLOR_BGR2RGB))
            img.save(tmp, "PNG")
            os.replace(tmp, dest)
        except (OSError, ValueError) as e:
            self._remove_quietly(tmp)
            self._remove_quietly(dest)
            log.error("Failed to write still %s: %s", dest, e)
            raise StorageWriteFailure(str(e)) from e

        artifact = PersistedArtifact(
            path=dest,
            created_at=created,
            expires_at=created + self._ctx.settings.still_ttl_seconds,
            kind="still",
        )
        try:
            self.write_sidecar(artifact)
        except OSError as e:
            self._remove_quietly(dest)
            log.error("Failed to write sidecar for %s: %s", dest, e)
            raise StorageWriteFailure(str(e)) from e

        log.info("Saved still %s (expires %s)", dest,
                 datetime.fromtimestamp(artifact.expires_at, tz=timezone.utc).isoformat())
        return artifact

    # ── Recording frames ─────────────────────────────────

    def write_frame(self, sink, frame):
        """Hand one frame to a recording backend, gated on consent."""
        self._require_consent()
        try:
            sink.write(frame)
        except (OSError, cv2.error) as e:
            log.error("Frame write failed: %s", e)
            raise StorageWriteFailure(str(e)) from e

    def pending_path(self, session_id: str, extension: str = "") -> str:
        return os.path.join(self.pending_dir, f"session_{session_id}{extension}")

    def materialize(self, pending_path: str, ttl_seconds: float) -> PersistedArtifact:
        """Move a finished session out of staging and give it an expiry record."""
        dest = resolve_collision(
            os.path.join(self.sessions_dir, os.path.basename(pending_path))
        )
        created = self._ctx.clock.wall()
        artifact = PersistedArtifact(
            path=dest, created_at=created,
            expires_at=created + ttl_seconds, kind="recording",
        )
        try:
            shutil.move(pending_path, dest)
            self.write_sidecar(artifact)
        except OSError as e:
            self.delete(dest)
            self.delete(pending_path)
            log.error("Failed to materialize %s: %s", pending_path, e)
            raise StorageWriteFailure(str(e)) from e
        log.info("Session materialized at %s", dest)
        return artifact

    # ── Sidecars ─────────────────────────────────────────

    def write_sidecar(self, artifact: PersistedArtifact):
        path = sidecar_path(artifact.path)
        tmp = path + ".tmp"
        data = {
            "kind": artifact.kind,
            "artifact": os.path.basename(artifact.path),
            "created_at": artifact.created_at,
            "expires_at": artifact.expires_at,
            "expires_at_iso": datetime.fromtimestamp(
                artifact.expires_at, tz=timezone.utc).isoformat(),
        }
        try:
            with open(tmp, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp, path)
        except OSError:
            self._remove_quietly(tmp)
            raise

    @staticmethod
    def read_sidecar(path: str) -> Optional[dict]:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            float(data["expires_at"])
            return data
        except (OSError, ValueError, KeyError, TypeError) as e:
            log.debug("Unreadable sidecar %s: %s", path, e)
            return None

    # ── Deletion ─────────────────────────────────────────

    def delete(self, path: str) -> bool:
        """Delete an artifact (file or frame directory) and its sidecar.

        Returns False if anything could not be removed.
        """
        ok = True
        try:
            if os.path.isdir(path):
                shutil.rmtree(path)
            elif os.path.exists(path):
                os.remove(path)
        except OSError as e:
            log.error("Failed to delete %s: %s", path, e)
            ok = False

        side = sidecar_path(path)
        if os.path.exists(side):
            try:
                os.remove(side)
            except OSError as e:
                log.error("Failed to delete sidecar %s: %s", side, e)
                ok = False
        return ok

    @staticmethod
    def _remove_quietly(path: str):
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError as e:
            log.debug("Cleanup of %s failed: %s", path, e)
