"""Shared fixtures: fake clock, camera and detector so no hardware is needed."""
import os

import numpy as np
import pytest

from facestage.core.camera import Camera
from facestage.core.context import StageContext
from facestage.core.controller import StageController
from facestage.core.encoder import StillSequenceBackend
from facestage.core.models import AcquireStatus, BoundingBox, Settings
from facestage.core.session_store import SessionStore
from facestage.core.storage import ArtifactStore


class FakeClock:
    def __init__(self, start_ms: float = 10_000.0, start_wall: float = 1_700_000_000.0):
        self.ms = start_ms
        self.epoch = start_wall

    def monotonic_ms(self) -> float:
        return self.ms

    def wall(self) -> float:
        return self.epoch

    def advance(self, ms: float):
        self.ms += ms
        self.epoch += ms / 1000.0


class FakeCamera(Camera):
    def __init__(self, status: AcquireStatus = AcquireStatus.READY):
        self.status = status
        self.acquired = False
        self.acquire_calls = 0
        self.release_calls = 0
        self.frame = make_frame()

    def acquire(self) -> AcquireStatus:
        self.acquire_calls += 1
        self.acquired = True
        return self.status

    def current_frame(self):
        if not self.acquired or self.status != AcquireStatus.READY:
            return None
        return self.frame

    def release(self):
        self.release_calls += 1
        self.acquired = False


class FakeDetector:
    def __init__(self, boxes=None):
        self.boxes = list(boxes or [])

    def detect(self, frame):
        return list(self.boxes)


FACE = BoundingBox(270, 190, 100, 100)


def make_frame(value: int = 120, width: int = 640, height: int = 480) -> np.ndarray:
    frame = np.full((height, width, 3), value, dtype=np.uint8)
    frame[:, :, 0] = (np.arange(width) % 256).astype(np.uint8)[None, :]
    return frame


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings(tmp_path):
    return Settings(output_root=str(tmp_path / "out"))


@pytest.fixture
def ctx(settings, clock):
    return StageContext(settings, clock=clock)


@pytest.fixture
def store(ctx, settings):
    return ArtifactStore(settings.output_root, ctx)


@pytest.fixture
def session_log(tmp_path):
    db = SessionStore(str(tmp_path / "facestage.db"))
    yield db
    db.close()


@pytest.fixture
def camera():
    return FakeCamera()


@pytest.fixture
def detector():
    return FakeDetector([FACE])


@pytest.fixture
def notices():
    return []


@pytest.fixture
def make_controller(settings, camera, detector, clock, session_log, notices):
    """Build a controller; recording uses the frame-sequence backend so no
    video codec is needed."""
    def _make(**overrides):
        kwargs = dict(
            clock=clock,
            session_log=session_log,
            on_notice=notices.append,
            backend_factory=StillSequenceBackend,
        )
        kwargs.update(overrides)
        controller = StageController(settings, camera, detector, **kwargs)
        controller.startup()
        return controller
    return _make


@pytest.fixture
def controller(make_controller):
    return make_controller()


def files_in(directory) -> list[str]:
    """Visible entries of a directory, staging area excluded."""
    if not os.path.isdir(directory):
        return []
    return sorted(n for n in os.listdir(directory) if not n.startswith("."))
