"""Background camera bring-up and frame grabbing."""
import logging
import threading

import cv2
from PySide6.QtCore import QThread, Signal

from facestage.core.camera import Camera, RetryPolicy
from facestage.core.models import AcquireStatus

log = logging.getLogger("facestage.camera_worker")

MAX_READ_FAILURES = 30


class CameraWorker(QThread):
    status_changed = Signal(str)    # AcquireStatus value

    def __init__(self, index: int, policy: RetryPolicy):
        super().__init__()
        self.index = index
        self.policy = policy
        self._lock = threading.Lock()
        self._frame = None
        self._status = AcquireStatus.PENDING
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def status(self) -> AcquireStatus:
        with self._lock:
            return self._status

    def latest_frame(self):
        with self._lock:
            return self._frame

    def _set_status(self, status: AcquireStatus):
        with self._lock:
            if status == self._status:
                return
            self._status = status
        log.info("Camera %d: %s", self.index, status.value)
        self.status_changed.emit(status.value)

    def _sleep(self, seconds: float):
        remaining = int(seconds * 1000)
        while remaining > 0 and not self._cancelled:
            step = min(remaining, 50)
            self.msleep(step)
            remaining -= step

    def _open_with_retries(self):
        for attempt in range(1, self.policy.max_attempts + 1):
            if self._cancelled:
                return None
            cap = cv2.VideoCapture(self.index)
            if cap.isOpened():
                ok, frame = cap.read()
                if ok:
                    with self._lock:
                        self._frame = frame
                    return cap
            cap.release()
            log.warning("Camera %d not producing frames (attempt %d/%d)",
                        self.index, attempt, self.policy.max_attempts)
            if attempt < self.policy.max_attempts:
                self._sleep(self.policy.delay_for(attempt))
        return None

    def run(self):
        cap = self._open_with_retries()
        if cap is None:
            if not self._cancelled:
                log.error("Camera %d gave up after %d attempts", self.index, self.policy.max_attempts)
                self._set_status(AcquireStatus.FAILED)
            return

        self._set_status(AcquireStatus.READY)
        failures = 0
        try:
            while not self._cancelled:
                ok, frame = cap.read()
                if not ok:
                    failures += 1
                    if failures > MAX_READ_FAILURES:
                        log.error("Camera %d stopped delivering frames", self.index)
                        self._set_status(AcquireStatus.FAILED)
                        break
                    self.msleep(20)
                    continue
                failures = 0
                with self._lock:
                    self._frame = frame
        finally:
            cap.release()
            with self._lock:
                self._frame = None
            log.info("Camera %d released", self.index)


class QtCamera(Camera):
    """Camera collaborator backed by a CameraWorker thread.

    ``acquire`` starts bring-up once and afterwards only reports progress;
    FAILED is terminal until ``release``. ``release`` only cancels: a worker
    still stuck opening the device is kept referenced until it finishes.
    """

    def __init__(self, index: int = 0, policy: RetryPolicy = RetryPolicy(),
                 worker_factory=CameraWorker):
        self.index = index
        self.policy = policy
        self._worker_factory = worker_factory
        self._worker = None
        self._retired = []

    def _prune_retired(self):
        self._retired = [w for w in self._retired if not w.isFinished()]

    def acquire(self) -> AcquireStatus:
        self._prune_retired()
        if self._worker is None:
            self._worker = self._worker_factory(self.index, self.policy)
            self._worker.start()
            return AcquireStatus.PENDING
        return self._worker.status

    def current_frame(self):
        if self._worker is None or self._worker.status != AcquireStatus.READY:
            return None
        return self._worker.latest_frame()

    def release(self):
        self._prune_retired()
        if self._worker is None:
            return
        worker, self._worker = self._worker, None
        worker.cancel()
        if not worker.isFinished():
            log.info("Camera %d worker still shutting down", self.index)
            self._retired.append(worker)

    def wait_idle(self, timeout_ms: int) -> bool:
        workers = self._retired + ([self._worker] if self._worker else [])
        done = all([w.wait(timeout_ms) for w in workers])
        self._prune_retired()
        if not done:
            log.warning("Camera %d worker did not stop within %d ms", self.index, timeout_ms)
        return done
