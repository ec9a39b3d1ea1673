"""Recording backends: an OpenCV video file, or a still-frame sequence fallback."""
import logging
import os
import shutil

import cv2

from facestage.core.errors import BackendUnavailable, StorageWriteFailure
from facestage.core.models import BackendKind
from facestage.util.paths import VIDEO_EXTENSION

log = logging.getLogger("facestage.encoder")

VIDEO_FOURCC = "mp4v"


class VideoFileBackend:
    """Writes frames into a single MP4 via ``cv2.VideoWriter``.

    The writer is opened lazily on the first frame because the frame size is
    only known then. Opening failures raise ``BackendUnavailable``.
    """

    kind = BackendKind.VIDEO
    extension = VIDEO_EXTENSION

    def __init__(self, path: str, fps: float):
        self.path = path
        self.fps = fps
        self._writer = None

    def _open(self, frame):
        h, w = frame.shape[:2]
        fourcc = cv2.VideoWriter_fourcc(*VIDEO_FOURCC)
        writer = cv2.VideoWriter(self.path, fourcc, self.fps, (w, h))
        if not writer.isOpened():
            writer.release()
            self._remove_partial()
            raise BackendUnavailable(f"VideoWriter could not open {self.path} ({VIDEO_FOURCC})")
        log.info("Video writer opened: %s (%dx%d @ %.1f fps)", self.path, w, h, self.fps)
        self._writer = writer

    def write(self, frame):
        if self._writer is None:
            self._open(frame)
        self._writer.write(frame)

    def close(self):
        if self._writer is not None:
            self._writer.release()
            self._writer = None

    def discard(self):
        self.close()
        self._remove_partial()

    def _remove_partial(self):
        try:
            if os.path.exists(self.path):
                os.remove(self.path)
        except OSError as e:
            log.error("Could not remove %s: %s", self.path, e)


class StillSequenceBackend:
    """Fallback: one PNG per frame inside a session-scoped directory."""

    kind = BackendKind.STILLS
    extension = ""

    def __init__(self, path: str, fps: float = 0.0):
        self.path = path
        self._index = 0

    def write(self, frame):
        if self._index == 0:
            os.makedirs(self.path, exist_ok=True)
        dest = os.path.join(self.path, f"frame_{self._index:06d}.png")
        if not cv2.imwrite(dest, frame):
            raise StorageWriteFailure(f"imwrite failed for {dest}")
        self._index += 1

    def close(self):
        pass

    def discard(self):
        if os.path.isdir(self.path):
            try:
                shutil.rmtree(self.path)
            except OSError as e:
                log.error("Could not remove %s: %s", self.path, e)
