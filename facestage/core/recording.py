"""Recording session manager: one live session, gated frame writes,
keep/discard review with a fail-safe deadline."""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from facestage.core.context import StageContext
from facestage.core.encoder import StillSequenceBackend, VideoFileBackend
from facestage.core.errors import BackendUnavailable, ConsentRequired, StorageWriteFailure
from facestage.core.events import EventKind
from facestage.core.models import (
    FaceTrackState, RecordingRecord, RecordingSession, SessionStatus,
)
from facestage.core.storage import ArtifactStore

log = logging.getLogger("facestage.recording")


class RecordingManager:
    def __init__(
        self,
        ctx: StageContext,
        store: ArtifactStore,
        session_log=None,
        backend_factory=VideoFileBackend,
        fallback_factory=StillSequenceBackend,
    ):
        self._ctx = ctx
        self._store = store
        self._session_log = session_log
        self._backend_factory = backend_factory
        self._fallback_factory = fallback_factory
        self._backend = None
        self.session: Optional[RecordingSession] = None
        self.last_session: Optional[RecordingSession] = None

    @property
    def live(self) -> bool:
        return self.session is not None and self.session.is_live

    @property
    def status(self) -> Optional[SessionStatus]:
        return self.session.status if self.session else None

    def _make_backend(self, factory, session_id: str):
        path = self._store.pending_path(session_id, factory.extension)
        return factory(path, self._ctx.settings.recording_fps)

    # ── Lifecycle ────────────────────────────────────────

    def start(self) -> Optional[RecordingSession]:
        with self._ctx.lock:
            if self.live:
                log.info("Start ignored: session %s is %s", self.session.id, self.session.status.value)
                return None
            session_id = uuid.uuid4().hex[:12]
            self._backend = self._make_backend(self._backend_factory, session_id)
            self.session = RecordingSession(
                id=session_id,
                started_at=self._ctx.clock.wall(),
                backend=self._backend.kind,
            )
            log.info("Recording session %s opened", session_id)
            self._ctx.notify("Recording")
            return self.session

    def stop(self) -> Optional[RecordingSession]:
        with self._ctx.lock:
            session = self.session
            if session is None or session.status != SessionStatus.OPEN:
                log.info("Stop ignored: no open session")
                return None
            self._backend.close()
            session.status = SessionStatus.STOPPED

            if session.frames_written == 0:
                self._backend.discard()
                self._finish(SessionStatus.DISCARDED)
                self._ctx.notify("Empty session discarded")
                return session

            timeout = self._ctx.settings.review_timeout_ms
            session.status = SessionStatus.PENDING_REVIEW
            session.deadline = self._ctx.now_ms() + timeout
            log.info("Session %s stopped with %d frames, awaiting review",
                     session.id, session.frames_written)
            self._ctx.notify(
                f"Keep or discard this recording? Discarded automatically in {timeout / 1000:g} s"
            )
            return session

    def keep(self) -> Optional[RecordingSession]:
        with self._ctx.lock:
            session = self.session
            if session is None or session.status != SessionStatus.PENDING_REVIEW:
                log.info("Keep ignored: nothing pending review")
                return None
            try:
                artifact = self._store.materialize(
                    self._backend.path, self._ctx.settings.recording_ttl_seconds
                )
            except StorageWriteFailure:
                self._finish(SessionStatus.DISCARDED)
                raise
            session.kept_path = artifact.path
            self._finish(SessionStatus.KEPT)
            self._ctx.notify("Recording kept")
            return session

    def discard(self, reason: str = "Recording discarded") -> Optional[RecordingSession]:
        with self._ctx.lock:
            session = self.session
            if session is None or not session.is_live:
                return None
            self._backend.discard()
            self._finish(SessionStatus.DISCARDED)
            self._ctx.notify(reason)
            return session

    def abort(self):
        """Consent revocation: whatever is live ends in discard, never in review."""
        if self.live:
            log.info("Aborting session %s on consent revocation", self.session.id)
            self.discard("Recording discarded because consent was revoked")

    def poll(self, now: float):
        session = self.session
        if (session is not None
                and session.status == SessionStatus.PENDING_REVIEW
                and now >= session.deadline):
            log.info("Session %s review timed out", session.id)
            self.discard("No decision made, recording discarded")

    def _finish(self, status: SessionStatus):
        session = self.session
        session.status = status
        session.deadline = None
        self._backend = None
        self.session = None
        self.last_session = session
        log.info("Session %s finished: %s (%d frames)",
                 session.id, status.value, session.frames_written)
        if self._session_log is not None:
            self._session_log.record_recording(RecordingRecord(
                id=session.id,
                started_at=datetime.fromtimestamp(session.started_at, tz=timezone.utc).isoformat(),
                finished_at=datetime.fromtimestamp(self._ctx.clock.wall(), tz=timezone.utc).isoformat(),
                frames_written=session.frames_written,
                status=status,
                backend=session.backend,
                kept_path=session.kept_path,
            ))

    # ── Per-frame ────────────────────────────────────────

    def on_frame(self, frame, face_present: bool) -> bool:
        """Attempt to persist one frame. Returns True if it was written.

        Consent is enforced by the store on every call; the face condition
        is evaluated here, fresh for this frame.
        """
        with self._ctx.lock:
            session = self.session
            if session is None or session.status != SessionStatus.OPEN or frame is None:
                return False
            s = self._ctx.settings
            if s.face_gate_enabled and not face_present and not s.avatar_mode:
                return False
            try:
                self._write(frame)
            except ConsentRequired:
                return False
            except StorageWriteFailure:
                log.error("Session %s aborted after a write failure", session.id)
                self._backend.discard()
                self._finish(SessionStatus.DISCARDED)
                raise
            session.frames_written += 1
            return True

    def _write(self, frame):
        try:
            self._store.write_frame(self._backend, frame)
        except BackendUnavailable as e:
            log.warning("Encoder unavailable (%s), falling back to still frames", e)
            self._backend.discard()
            self._backend = self._make_backend(self._fallback_factory, self.session.id)
            self.session.backend = self._backend.kind
            self._ctx.notify(BackendUnavailable.user_message, "warning")
            self._store.write_frame(self._backend, frame)

    def auto_event(self, track: FaceTrackState) -> Optional[EventKind]:
        """Debounced auto start/stop driven by face streaks."""
        s = self._ctx.settings
        if not s.auto_record:
            return None
        if track.present_streak == s.auto_start_streak and not self.live:
            return EventKind.RECORD_START
        if (track.missing_streak == s.auto_stop_streak
                and self.session is not None
                and self.session.status == SessionStatus.OPEN):
            return EventKind.RECORD_STOP
        return None
