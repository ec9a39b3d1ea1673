import pytest

from facestage.core.camera import Camera, NullCamera, RetryPolicy
from facestage.core.models import AcquireStatus
from facestage.workers.camera_worker import QtCamera


def test_retry_policy_backoff():
    policy = RetryPolicy(max_attempts=5, base_delay_s=0.5)
    assert [policy.delay_for(i) for i in range(1, 5)] == [0.5, 1.0, 2.0, 4.0]
    capped = RetryPolicy(max_attempts=10, base_delay_s=1.0, max_delay_s=8.0)
    assert capped.delay_for(9) == 8.0


def test_incomplete_camera_fails_at_construction():
    class NoRelease(Camera):
        def acquire(self):
            return AcquireStatus.READY

        def current_frame(self):
            return None

    with pytest.raises(TypeError):
        NoRelease()
    assert NullCamera().acquire() == AcquireStatus.FAILED


class _StuckWorker:
    """Stands in for a CameraWorker blocked inside the device open."""

    instances = []

    def __init__(self, index, policy):
        self.status = AcquireStatus.PENDING
        self.running = False
        self.cancelled = False
        self.wait_calls = []
        _StuckWorker.instances.append(self)

    def start(self):
        self.running = True

    def cancel(self):
        self.cancelled = True

    def isFinished(self):
        return not self.running

    def wait(self, timeout_ms):
        self.wait_calls.append(timeout_ms)
        return not self.running

    def latest_frame(self):
        return None


@pytest.fixture
def qt_camera():
    _StuckWorker.instances = []
    return QtCamera(0, RetryPolicy(), worker_factory=_StuckWorker)


def test_release_does_not_block_on_stuck_worker(qt_camera):
    assert qt_camera.acquire() == AcquireStatus.PENDING
    worker = _StuckWorker.instances[0]

    qt_camera.release()
    assert worker.cancelled
    assert worker.wait_calls == []
    assert qt_camera._retired == [worker]


def test_retired_worker_dropped_once_finished(qt_camera):
    qt_camera.acquire()
    old = _StuckWorker.instances[0]
    qt_camera.release()

    # consent comes back while the old thread is still unwinding
    qt_camera.acquire()
    assert len(_StuckWorker.instances) == 2
    assert qt_camera._retired == [old]

    old.running = False
    qt_camera.acquire()
    assert qt_camera._retired == []


def test_wait_idle_waits_for_every_worker(qt_camera):
    qt_camera.acquire()
    qt_camera.release()
    qt_camera.acquire()
    first, second = _StuckWorker.instances

    assert qt_camera.wait_idle(100) is False
    assert first.wait_calls == [100] and second.wait_calls == [100]

    first.running = second.running = False
    assert qt_camera.wait_idle(100) is True
