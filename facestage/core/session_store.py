"""SQLite persistence for settings and recording metadata (never pixels)."""
import os
import sqlite3
import logging
from contextlib import contextmanager
from dataclasses import fields
from typing import Optional

from facestage.core.models import (
    BackendKind, RecordingRecord, SessionStatus, Settings,
)

log = logging.getLogger("facestage.session_store")

SCHEMA_VERSION = 1

SCHEMA_V1 = """
CREATE TABLE IF NOT EXISTS settings (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS recordings (
    id TEXT PRIMARY KEY,
    started_at TEXT NOT NULL,
    finished_at TEXT NOT NULL,
    frames_written INTEGER DEFAULT 0,
    status TEXT NOT NULL,
    backend TEXT NOT NULL DEFAULT 'video',
    kept_path TEXT
);

CREATE INDEX IF NOT EXISTS idx_recordings_status ON recordings(status);
"""

# Never persisted: these describe the machine, not the installation
_VOLATILE_SETTINGS = frozenset({"output_root"})


class SessionStore:
    def __init__(self, db_path: str):
        self.db_path = db_path
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.row_factory = sqlite3.Row
        self._init_schema()

    def _init_schema(self):
        version = self._conn.execute("PRAGMA user_version").fetchone()[0]
        if version == 0:
            self._conn.executescript(SCHEMA_V1)
            self._conn.commit()
        elif version > SCHEMA_VERSION:
            log.warning("Database schema v%d is newer than supported v%d",
                        version, SCHEMA_VERSION)
        self._conn.execute(f"PRAGMA user_version={SCHEMA_VERSION}")
        self._conn.commit()

    def close(self):
        self._conn.close()

    @contextmanager
    def _transaction(self):
        self._conn.execute("BEGIN IMMEDIATE")
        try:
            yield self._conn
            self._conn.commit()
        except Exception:
            self._conn.rollback()
            raise

    # ── Settings ─────────────────────────────────────────

    def save_settings(self, settings: Settings):
        rows = []
        for f in fields(Settings):
            if f.name in _VOLATILE_SETTINGS:
                continue
            value = getattr(settings, f.name)
            if isinstance(value, bool):
                value = int(value)
            rows.append((f.name, str(value)))
        with self._transaction() as conn:
            conn.executemany(
                "INSERT OR REPLACE INTO settings (key, value) VALUES (?, ?)", rows
            )

    def load_settings(self, base: Optional[Settings] = None) -> Settings:
        """Overlay stored values onto ``base`` (defaults if omitted)."""
        settings = base or Settings()
        stored = {
            r["key"]: r["value"]
            for r in self._conn.execute("SELECT key, value FROM settings").fetchall()
        }
        defaults = Settings()
        for f in fields(Settings):
            if f.name not in stored or f.name in _VOLATILE_SETTINGS:
                continue
            kind = type(getattr(defaults, f.name))
            raw = stored[f.name]
            try:
                if kind is bool:
                    value = raw not in ("0", "", "False", "false")
                else:
                    value = kind(raw)
            except ValueError:
                log.warning("Ignoring invalid stored setting %s=%r", f.name, raw)
                continue
            setattr(settings, f.name, value)
        return settings

    # ── Recordings ───────────────────────────────────────

    def record_recording(self, record: RecordingRecord):
        self._conn.execute(
            """INSERT OR REPLACE INTO recordings
               (id, started_at, finished_at, frames_written, status, backend, kept_path)
               VALUES (?,?,?,?,?,?,?)""",
            (record.id, record.started_at, record.finished_at,
             record.frames_written, record.status.value, record.backend.value,
             record.kept_path),
        )
        self._conn.commit()

    def get_recordings(self, status: Optional[SessionStatus] = None) -> list[RecordingRecord]:
        if status is None:
            rows = self._conn.execute(
                "SELECT * FROM recordings ORDER BY started_at"
            ).fetchall()
        else:
            rows = self._conn.execute(
                "SELECT * FROM recordings WHERE status=? ORDER BY started_at",
                (status.value,),
            ).fetchall()
        return [self._row_to_recording(r) for r in rows]

    def forget_missing_recordings(self) -> int:
        """Clear kept paths whose files were removed while the app was not running."""
        missing = [
            r.kept_path for r in self.get_recordings(SessionStatus.KEPT)
            if r.kept_path and not os.path.exists(r.kept_path)
        ]
        for path in missing:
            self.clear_kept_path(path)
        if missing:
            log.info("Forgot %d recordings no longer on disk", len(missing))
        return len(missing)

    def clear_kept_path(self, kept_path: str):
        """Called when retention removes a kept recording."""
        self._conn.execute(
            "UPDATE recordings SET kept_path=NULL WHERE kept_path=?", (kept_path,)
        )
        self._conn.commit()

    @staticmethod
    def _row_to_recording(row: sqlite3.Row) -> RecordingRecord:
        return RecordingRecord(
            id=row["id"],
            started_at=row["started_at"],
            finished_at=row["finished_at"],
            frames_written=row["frames_written"],
            status=SessionStatus(row["status"]),
            backend=BackendKind(row["backend"]),
            kept_path=row["kept_path"],
        )
