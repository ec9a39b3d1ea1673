"""Face detection (mediapipe Tasks API) and per-frame face tracking."""
import logging
import os
import tempfile
import urllib.request
from typing import Optional

import cv2
import numpy as np

from facestage.core.models import BoundingBox, FaceTrackState

log = logging.getLogger("facestage.faces")

_MODEL = {
    "url": (
        "https://storage.googleapis.com/mediapipe-models/"
        "face_detector/blaze_face_short_range/float16/latest/"
        "blaze_face_short_range.tflite"
    ),
    "filename": "blaze_face_short_range.tflite",
}


def _get_model_path(cache_dir: Optional[str] = None) -> str:
    """Download the model if not cached, return local path.

    The download lands in a temporary file first so an interrupted transfer
    never leaves a truncated model behind.
    """
    cache_dir = cache_dir or os.path.join(tempfile.gettempdir(), "facestage_models")
    os.makedirs(cache_dir, exist_ok=True)
    model_path = os.path.join(cache_dir, _MODEL["filename"])
    if not os.path.exists(model_path):
        log.info("Downloading face detector model...")
        tmp = model_path + ".tmp"
        try:
            urllib.request.urlretrieve(_MODEL["url"], tmp)
            os.replace(tmp, model_path)
        finally:
            if os.path.exists(tmp):
                os.remove(tmp)
        log.info("Model saved to %s", model_path)
    return model_path


class MediapipeDetector:
    """BlazeFace short-range detector. Stateless per call; boxes in pixels.

    Call ``load()`` before the frame loop starts. A failed load is final:
    ``detect`` then reports no faces instead of retrying on every frame.
    """

    def __init__(self, min_confidence: float = 0.5, cache_dir: Optional[str] = None):
        self.min_confidence = min_confidence
        self.cache_dir = cache_dir
        self._detector = None
        self._failed = False

    def load(self) -> bool:
        if self._detector is None and not self._failed:
            try:
                model_path = _get_model_path(self.cache_dir)
                import mediapipe as mp
                opts = mp.tasks.vision.FaceDetectorOptions(
                    base_options=mp.tasks.BaseOptions(model_asset_path=model_path),
                    min_detection_confidence=self.min_confidence,
                )
                self._detector = mp.tasks.vision.FaceDetector.create_from_options(opts)
            except (OSError, RuntimeError, ValueError) as e:
                self._failed = True
                log.error("Face detector unavailable, running without tracking: %s", e)
        return self._detector is not None

    def detect(self, frame) -> list[BoundingBox]:
        if not self.load():
            return []

        import mediapipe as mp
        try:
            rgb = np.ascontiguousarray(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
            mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb)
            result = self._detector.detect(mp_image)
        except (RuntimeError, ValueError, cv2.error) as e:
            log.warning("Face detection failed: %s", e)
            return []

        boxes = []
        for det in result.detections or []:
            bb = det.bounding_box
            boxes.append(BoundingBox(bb.origin_x, bb.origin_y, bb.width, bb.height))
        return boxes

    def close(self):
        if self._detector is not None:
            try:
                self._detector.close()
            except RuntimeError as e:
                log.debug("Error closing detector (ignored): %s", e)
            self._detector = None


def pick_largest(boxes: list[BoundingBox]) -> Optional[BoundingBox]:
    """Largest area wins; the first encountered wins a tie."""
    best = None
    for box in boxes:
        if best is None or box.area > best.area:
            best = box
    return best


class FaceTracker:
    """Smooths the primary face and debounces its presence.

    On first sight the smoothed box snaps to the raw box; afterwards center
    and size follow ``s += alpha * (raw - s)``. ``present`` survives up to
    ``grace_frames`` consecutive misses.
    """

    def __init__(self, alpha: float = 0.25, grace_frames: int = 3):
        self.alpha = alpha
        self.grace_frames = grace_frames
        self.state = FaceTrackState()

    def reset(self):
        self.state = FaceTrackState()

    def update(self, boxes: list[BoundingBox]) -> FaceTrackState:
        s = self.state
        raw = pick_largest(boxes)

        if raw is None:
            s.missing_streak += 1
            s.present_streak = 0
            if s.present and s.missing_streak > self.grace_frames:
                s.present = False
                s.smoothed_box = None
            elif not s.present:
                s.smoothed_box = None
            return s

        s.missing_streak = 0
        s.present_streak += 1
        s.present = True

        if s.smoothed_box is None:
            s.smoothed_box = raw
        else:
            a = self.alpha
            cx, cy = s.smoothed_box.center
            rx, ry = raw.center
            cx += a * (rx - cx)
            cy += a * (ry - cy)
            w = s.smoothed_box.width + a * (raw.width - s.smoothed_box.width)
            h = s.smoothed_box.height + a * (raw.height - s.smoothed_box.height)
            s.smoothed_box = BoundingBox.from_center(cx, cy, w, h)
        return s
