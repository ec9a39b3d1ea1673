"""Compose the tracked face (or an abstract avatar) into the background scene."""
import logging
import os
from typing import Optional

import cv2
import numpy as np

from facestage.core.models import BoundingBox

log = logging.getLogger("facestage.compositing")

DEFAULT_SIZE = (640, 480)   # width, height
FACE_PADDING = 0.5          # fraction of box size added on each side
FACE_TARGET_FRACTION = 0.45 # placed face height relative to scene height


def gradient_background(size: tuple[int, int] = DEFAULT_SIZE) -> np.ndarray:
    """A vertical dusk gradient used when no background image is configured."""
    w, h = size
    t = np.linspace(0.0, 1.0, h, dtype=np.float32)[:, None]
    top = np.array([90, 40, 30], dtype=np.float32)      # BGR
    bottom = np.array([40, 120, 220], dtype=np.float32)
    column = (top * (1.0 - t) + bottom * t).astype(np.uint8)
    return np.repeat(column[:, None, :], w, axis=1).reshape(h, w, 3)


def load_background(path: str, size: tuple[int, int] = DEFAULT_SIZE) -> np.ndarray:
    if path and os.path.isfile(path):
        img = cv2.imread(path)
        if img is not None:
            return cv2.resize(img, size, interpolation=cv2.INTER_AREA)
        log.warning("Cannot read background %s, using gradient", path)
    return gradient_background(size)


class Compositor:
    def __init__(self, background: np.ndarray):
        self.background = background

    @property
    def size(self) -> tuple[int, int]:
        h, w = self.background.shape[:2]
        return w, h

    def compose(
        self,
        frame: Optional[np.ndarray],
        face: Optional[BoundingBox],
        avatar_mode: bool = False,
    ) -> np.ndarray:
        out = self.background.copy()
        if avatar_mode:
            self._draw_avatar(out, frame, face)
        elif frame is not None and face is not None:
            self._paste_face(out, frame, face)
        return out

    def _paste_face(self, out: np.ndarray, frame: np.ndarray, face: BoundingBox):
        fh, fw = frame.shape[:2]
        pad_w = face.width * FACE_PADDING
        pad_h = face.height * FACE_PADDING
        x1 = int(max(0, face.x - pad_w))
        y1 = int(max(0, face.y - pad_h))
        x2 = int(min(fw, face.x + face.width + pad_w))
        y2 = int(min(fh, face.y + face.height + pad_h))
        crop = frame[y1:y2, x1:x2]
        if crop.size == 0:
            return

        bh, bw = out.shape[:2]
        scale = (bh * FACE_TARGET_FRACTION) / max(crop.shape[0], 1)
        new_w = max(1, min(bw, int(crop.shape[1] * scale)))
        new_h = max(1, min(bh, int(crop.shape[0] * scale)))
        crop = cv2.resize(crop, (new_w, new_h), interpolation=cv2.INTER_LINEAR)

        mask = np.zeros((new_h, new_w), dtype=np.uint8)
        cv2.ellipse(mask, (new_w // 2, new_h // 2), (new_w // 2, new_h // 2),
                    0, 0, 360, 255, -1)
        mask = cv2.GaussianBlur(mask, (0, 0), sigmaX=max(new_w, new_h) / 30.0 + 1)
        alpha = (mask.astype(np.float32) / 255.0)[:, :, None]

        ox = (bw - new_w) // 2
        oy = (bh - new_h) // 2
        region = out[oy:oy + new_h, ox:ox + new_w].astype(np.float32)
        blended = crop.astype(np.float32) * alpha + region * (1.0 - alpha)
        out[oy:oy + new_h, ox:ox + new_w] = blended.astype(np.uint8)

    def _draw_avatar(self, out: np.ndarray, frame: Optional[np.ndarray],
                     face: Optional[BoundingBox]):
        bh, bw = out.shape[:2]
        if face is not None and frame is not None:
            fh, fw = frame.shape[:2]
            cx, cy = face.center
            cx = int(cx / max(fw, 1) * bw)
            cy = int(cy / max(fh, 1) * bh)
            radius = int(max(face.width / max(fw, 1) * bw, 20) / 2)
        else:
            cx, cy, radius = bw // 2, bh // 2, bh // 8

        cv2.circle(out, (cx, cy), radius, (230, 200, 120), -1, cv2.LINE_AA)
        eye_dx = radius // 3
        eye_r = max(2, radius // 8)
        cv2.circle(out, (cx - eye_dx, cy - radius // 5), eye_r, (40, 40, 40), -1, cv2.LINE_AA)
        cv2.circle(out, (cx + eye_dx, cy - radius // 5), eye_r, (40, 40, 40), -1, cv2.LINE_AA)
        cv2.ellipse(out, (cx, cy + radius // 4), (radius // 2, radius // 4),
                    0, 10, 170, (40, 40, 40), max(1, radius // 15), cv2.LINE_AA)
