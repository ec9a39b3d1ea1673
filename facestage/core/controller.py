"""Top-level controller: owns the context and every component, serializes
event handlers against the frame tick, and turns errors into notices."""
import logging
from typing import Optional

from facestage.core.camera import Camera
from facestage.core.capture import CapturePipeline
from facestage.core.compositing import Compositor, load_background
from facestage.core.consent import ConsentGate
from facestage.core.context import NoticeCallback, StageContext
from facestage.core.errors import (
    FaceStageError, HardwareUnavailable, ProtocolParseError, StorageWriteFailure,
)
from facestage.core.events import Channel, EventKind, InputEvent, parse_token
from facestage.core.faces import FaceTracker
from facestage.core.models import AcquireStatus, Origin, SessionStatus, Settings, StageSnapshot
from facestage.core.recording import RecordingManager
from facestage.core.retention import RetentionPolicy
from facestage.core.storage import ArtifactStore

log = logging.getLogger("facestage.controller")


class StageController:
    def __init__(
        self,
        settings: Settings,
        camera: Camera,
        detector,
        clock=None,
        session_log=None,
        compositor: Optional[Compositor] = None,
        on_notice: Optional[NoticeCallback] = None,
        backend_factory=None,
    ):
        self.ctx = StageContext(settings, clock=clock, on_notice=on_notice)
        self.camera = camera
        self.detector = detector
        self.compositor = compositor or Compositor(load_background(settings.background_path))
        self.tracker = FaceTracker(settings.smoothing_alpha, settings.grace_frames)
        self.store = ArtifactStore(settings.output_root, self.ctx)

        self.consent = ConsentGate(self.ctx, camera)
        self.capture = CapturePipeline(self.ctx, self.store, self.current_frame)
        recording_kwargs = {"session_log": session_log}
        if backend_factory is not None:
            recording_kwargs["backend_factory"] = backend_factory
        self.recording = RecordingManager(self.ctx, self.store, **recording_kwargs)
        self.retention = RetentionPolicy(
            self.ctx, self.store,
            on_purge=session_log.clear_kept_path if session_log is not None else None,
        )

        self.consent.on_revoke(self.recording.abort)
        self.consent.on_revoke(self.capture.discard_review)
        self.consent.on_revoke(self.tracker.reset)
        self.consent.on_revoke(self._clear_frame)

        self.camera_status = AcquireStatus.PENDING
        self.hardware_failed = False
        self.composed = None

    # ── Lifecycle ────────────────────────────────────────

    def startup(self):
        with self.ctx.lock:
            log.info("Startup: purging staged and expired data")
            self.retention.purge_pending()
            self.retention.run()

    def shutdown(self):
        with self.ctx.lock:
            log.info("Shutdown: discarding live data, releasing camera")
            self.capture.discard_review()
            if self.recording.live:
                self.recording.discard("Recording discarded on shutdown")
            self.camera.release()
            self.retention.purge_pending()

    # ── Frame tick ───────────────────────────────────────

    def current_frame(self):
        """The composed frame a save would capture, or None when not ready."""
        return self.composed

    def _clear_frame(self):
        self.composed = None
        self.camera_status = AcquireStatus.PENDING

    def _ready_for_frames(self) -> bool:
        if not self.ctx.consent.granted:
            return False
        status = self.camera.acquire()
        if status == AcquireStatus.FAILED and not self.hardware_failed:
            self.hardware_failed = True
            if self.ctx.settings.avatar_mode:
                log.info("No camera, avatar continues without tracking")
            else:
                self._report(HardwareUnavailable())
        elif status != AcquireStatus.FAILED:
            self.hardware_failed = False
        self.camera_status = status
        return status == AcquireStatus.READY

    def tick(self):
        """One frame: read, track, compose, auto-record, write, poll deadlines."""
        with self.ctx.lock:
            s = self.ctx.settings
            raw = self.camera.current_frame() if self._ready_for_frames() else None

            if raw is not None:
                track = self.tracker.update(self.detector.detect(raw))
            else:
                track = self.tracker.state

            if raw is not None or s.avatar_mode:
                self.composed = self.compositor.compose(raw, track.smoothed_box, s.avatar_mode)
            else:
                self.composed = None

            if raw is not None:
                auto = self.recording.auto_event(track)
                if auto is not None:
                    self.dispatch(auto, Channel.AUTO)

            try:
                self.recording.on_frame(self.composed, track.present)
            except FaceStageError as e:
                self._report(e)

            now = self.ctx.now_ms()
            self.capture.poll(now)
            self.recording.poll(now)
            self.retention.maybe_run(now)

    # ── Events ───────────────────────────────────────────

    def handle_token(self, line: str) -> Optional[EventKind]:
        """Serial input. Unknown tokens are logged and dropped."""
        try:
            kind = parse_token(line)
        except ProtocolParseError as e:
            log.warning("%s", e)
            return None
        self.dispatch(kind, Channel.SERIAL)
        return kind

    def handle_input(self, event: Optional[InputEvent]):
        if event is not None:
            self.dispatch(event.kind, event.channel)

    def dispatch(self, kind: EventKind, channel: Channel = Channel.BUTTON):
        with self.ctx.lock:
            log.debug("Event %s from %s", kind.value, channel.value)
            try:
                self._route(kind, channel)
            except FaceStageError as e:
                self._report(e)

    def _route(self, kind: EventKind, channel: Channel):
        if kind == EventKind.CONSENT_TOGGLE:
            self.consent.toggle()

        elif kind in (EventKind.SAVE_TAP, EventKind.SAVE_DOUBLE_TAP):
            origin = Origin.EXTERNAL if channel == Channel.SERIAL else Origin.MANUAL
            self.capture.tap(origin)

        elif kind == EventKind.REVIEW_CONFIRM:
            if self.capture.review_open:
                self.capture.confirm_save()
            elif self.recording.status == SessionStatus.PENDING_REVIEW:
                self.recording.keep()

        elif kind == EventKind.REVIEW_DISCARD:
            if self.capture.review_open:
                self.capture.discard_review()
            elif self.recording.status == SessionStatus.PENDING_REVIEW:
                self.recording.discard()

        elif kind == EventKind.RECORD_START:
            self.recording.start()

        elif kind == EventKind.RECORD_STOP:
            self.recording.stop()

        elif kind == EventKind.RECORD_TOGGLE:
            status = self.recording.status
            if status == SessionStatus.OPEN:
                self.recording.stop()
            elif status == SessionStatus.PENDING_REVIEW:
                self.recording.keep()
            else:
                self.recording.start()

    def set_consent(self, granted: bool):
        with self.ctx.lock:
            self.consent.set(granted)

    def _report(self, error: FaceStageError):
        level = "error" if isinstance(error, (HardwareUnavailable, StorageWriteFailure)) else "warning"
        log.log(logging.ERROR if level == "error" else logging.WARNING,
                "%s: %s", type(error).__name__, error)
        self.ctx.notify(error.user_message, level)

    # ── Presentation ─────────────────────────────────────

    def snapshot(self) -> StageSnapshot:
        with self.ctx.lock:
            session = self.recording.session
            seconds_left = None
            if session is not None and session.deadline is not None:
                seconds_left = max(0.0, (session.deadline - self.ctx.now_ms()) / 1000.0)
            review = self.capture.review
            return StageSnapshot(
                consent=self.ctx.consent.granted,
                camera=self.camera_status,
                hardware_failed=self.hardware_failed,
                review_open=review is not None,
                review_origin=review.origin if review else None,
                session_status=session.status if session else None,
                frames_written=session.frames_written if session else 0,
                review_seconds_left=seconds_left,
                face_present=self.tracker.state.present,
                last_notice=self.ctx.last_notice,
            )
