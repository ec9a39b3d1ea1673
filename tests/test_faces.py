import os
import urllib.request

import numpy as np
import pytest

from facestage.core.compositing import Compositor, gradient_background
from facestage.core.faces import FaceTracker, MediapipeDetector, pick_largest
from facestage.core.models import BoundingBox


def test_pick_largest_prefers_area_then_first():
    a = BoundingBox(0, 0, 10, 10)
    b = BoundingBox(50, 50, 20, 5)      # same area as a
    c = BoundingBox(5, 5, 30, 30)
    assert pick_largest([]) is None
    assert pick_largest([a, b]) is a
    assert pick_largest([b, a]) is b
    assert pick_largest([a, c, b]) is c


def test_tracker_snaps_then_smooths():
    tracker = FaceTracker(alpha=0.25)
    state = tracker.update([BoundingBox(0, 0, 100, 100)])
    assert state.present
    assert state.smoothed_box == BoundingBox(0, 0, 100, 100)

    state = tracker.update([BoundingBox(100, 0, 100, 100)])
    assert state.smoothed_box.center == pytest.approx((75.0, 50.0))
    assert state.smoothed_box.width == pytest.approx(100.0)

    state = tracker.update([BoundingBox(75 - 100, 50 - 100, 200, 200)])
    # center unchanged, size moves a quarter of the way
    assert state.smoothed_box.center == pytest.approx((75.0, 50.0))
    assert state.smoothed_box.width == pytest.approx(125.0)


def test_tracker_grace_window():
    tracker = FaceTracker(grace_frames=3)
    tracker.update([BoundingBox(0, 0, 10, 10)])
    for _ in range(3):
        state = tracker.update([])
        assert state.present
        assert state.smoothed_box is not None
    state = tracker.update([])
    assert not state.present
    assert state.smoothed_box is None
    assert state.missing_streak == 4 and state.present_streak == 0


def test_tracker_streaks_reset():
    tracker = FaceTracker()
    for _ in range(4):
        tracker.update([BoundingBox(0, 0, 10, 10)])
    assert tracker.state.present_streak == 4
    tracker.update([])
    assert tracker.state.present_streak == 0
    tracker.update([BoundingBox(0, 0, 10, 10)])
    assert tracker.state.missing_streak == 0

    tracker.reset()
    assert not tracker.state.present and tracker.state.present_streak == 0


def test_compose_without_face_is_background():
    background = gradient_background((64, 48))
    compositor = Compositor(background)
    frame = np.zeros((48, 64, 3), dtype=np.uint8)

    out = compositor.compose(frame, None)
    assert out.shape == (48, 64, 3)
    assert np.array_equal(out, background)
    assert out is not background


def test_compose_pastes_face_and_leaves_background_untouched():
    background = gradient_background((320, 240))
    original = background.copy()
    compositor = Compositor(background)
    frame = np.full((240, 320, 3), 255, dtype=np.uint8)

    out = compositor.compose(frame, BoundingBox(120, 80, 80, 80))
    assert not np.array_equal(out, original)
    assert np.array_equal(background, original)


def test_avatar_needs_no_camera_frame():
    compositor = Compositor(gradient_background((320, 240)))
    out = compositor.compose(None, None, avatar_mode=True)
    assert out.shape == (240, 320, 3)
    assert not np.array_equal(out, compositor.background)


def test_detector_download_failure_is_not_retried(tmp_path, monkeypatch):
    attempts = []

    def offline(url, filename):
        attempts.append(url)
        with open(filename, "wb") as f:
            f.write(b"trunc")
        raise OSError("network unreachable")

    monkeypatch.setattr(urllib.request, "urlretrieve", offline)
    detector = MediapipeDetector(cache_dir=str(tmp_path))
    frame = np.zeros((48, 64, 3), dtype=np.uint8)

    for _ in range(30):
        assert detector.detect(frame) == []

    assert len(attempts) == 1
    assert not detector.load()
    # no truncated model is left behind to be trusted next start
    assert os.listdir(tmp_path) == []
