"""Capture/review pipeline: one in-memory snapshot awaiting a keep/discard decision."""
import logging
from typing import Callable, Optional

from facestage.core.context import StageContext
from facestage.core.errors import ConsentRequired, NotReady
from facestage.core.models import Origin, PersistedArtifact, ReviewBuffer, TapState
from facestage.core.storage import ArtifactStore

log = logging.getLogger("facestage.capture")

FrameSource = Callable[[], Optional[object]]


class CapturePipeline:
    """Owns the single ReviewBuffer and the double-tap window.

    A request while a review is open replaces the buffer with a fresh frame,
    whichever channel opened the earlier one.
    """

    def __init__(self, ctx: StageContext, store: ArtifactStore, frame_source: FrameSource):
        self._ctx = ctx
        self._store = store
        self._frame_source = frame_source
        self.review: Optional[ReviewBuffer] = None
        self.tap_state = TapState()

    @property
    def review_open(self) -> bool:
        return self.review is not None

    def _grab(self):
        frame = self._frame_source()
        if frame is None:
            raise NotReady()
        return frame.copy()

    def _clear(self):
        self.review = None
        self.tap_state.clear()

    def _tap_window_open(self, now: float) -> bool:
        if self.tap_state.pending_origin is None:
            return False
        return now - self.tap_state.opened_at <= self._ctx.settings.double_tap_window_ms

    # ── Operations ───────────────────────────────────────

    def request_save(self, origin: Origin = Origin.MANUAL) -> ReviewBuffer:
        with self._ctx.lock:
            pixels = self._grab()
            now = self._ctx.now_ms()
            if self.review is not None:
                log.info("Replacing open %s review with a fresh frame", self.review.origin.value)
            self.review = ReviewBuffer(pixels=pixels, origin=origin, opened_at=now)
            if origin == Origin.EXTERNAL:
                self.tap_state.pending_origin = origin
                self.tap_state.opened_at = now
            else:
                self.tap_state.clear()
            self._ctx.notify("Keep this picture? Confirm to save, discard to drop it")
            return self.review

    def confirm_save(self) -> Optional[PersistedArtifact]:
        """Persist the open buffer. ConsentRequired and StorageWriteFailure
        propagate and leave the buffer open."""
        with self._ctx.lock:
            if self.review is None:
                log.info("Confirm ignored: no review open")
                return None
            artifact = self._store.save_still(self.review.pixels)
            self._clear()
            self._saved_notice()
            return artifact

    def discard_review(self) -> bool:
        with self._ctx.lock:
            if self.review is None:
                return False
            self._clear()
            log.info("Review discarded")
            self._ctx.notify("Discarded, nothing was saved")
            return True

    def tap(self, origin: Origin) -> Optional[PersistedArtifact]:
        """A save press. A second external press inside the window saves a
        fresh frame straight away; without consent it falls back to an
        ordinary review and ConsentRequired is raised to explain why."""
        with self._ctx.lock:
            now = self._ctx.now_ms()
            if origin == Origin.EXTERNAL and self._tap_window_open(now):
                self.tap_state.clear()
                pixels = self._grab()
                try:
                    artifact = self._store.save_still(pixels)
                except ConsentRequired:
                    self.review = ReviewBuffer(pixels=pixels, origin=origin, opened_at=now)
                    log.info("Double tap downgraded to review: no consent")
                    raise
                self._clear()
                log.info("Double tap saved %s", artifact.path)
                self._saved_notice()
                return artifact

            self.request_save(origin)
            return None

    def poll(self, now: float):
        if self.tap_state.pending_origin is not None and not self._tap_window_open(now):
            log.debug("Double-tap window expired")
            self.tap_state.clear()

    def _saved_notice(self):
        hours = self._ctx.settings.still_ttl_seconds / 3600.0
        self._ctx.notify(f"Saved. It will be deleted automatically in {hours:g} h")
