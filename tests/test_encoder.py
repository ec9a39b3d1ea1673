"""Recording through the real OpenCV video writer."""
import os

import cv2
import pytest

from conftest import files_in, make_frame
from facestage.core.encoder import StillSequenceBackend, VideoFileBackend
from facestage.core.errors import BackendUnavailable
from facestage.core.events import EventKind
from facestage.core.models import BackendKind, SessionStatus


def _require_video(session):
    if session.backend != BackendKind.VIDEO:
        pytest.skip("this OpenCV build has no mp4v encoder")


@pytest.fixture
def video_controller(make_controller):
    controller = make_controller(backend_factory=VideoFileBackend)
    controller.set_consent(True)
    return controller


def test_video_writer_opens_on_first_frame(tmp_path):
    path = str(tmp_path / "session_x.mp4")
    backend = VideoFileBackend(path, 15.0)
    assert not os.path.exists(path)

    try:
        backend.write(make_frame())
    except BackendUnavailable as e:
        pytest.skip(f"VideoWriter unavailable: {e}")
    backend.write(make_frame(30))
    backend.close()
    assert os.path.getsize(path) > 0

    backend.discard()
    assert not os.path.exists(path)


def test_kept_video_is_single_file_with_sidecar(video_controller, clock):
    video_controller.dispatch(EventKind.RECORD_START)
    for _ in range(8):
        video_controller.tick()
    session = video_controller.recording.session
    _require_video(session)
    assert session.frames_written == 8

    video_controller.dispatch(EventKind.RECORD_STOP)
    clock.advance(2000)
    video_controller.dispatch(EventKind.REVIEW_CONFIRM)

    kept = video_controller.recording.last_session
    assert kept.status == SessionStatus.KEPT
    name = f"session_{kept.id}"
    assert kept.kept_path.endswith(name + ".mp4")
    assert files_in(video_controller.store.sessions_dir) == [name + ".json", name + ".mp4"]
    assert os.listdir(video_controller.store.pending_dir) == []

    cap = cv2.VideoCapture(kept.kept_path)
    try:
        ok, frame = cap.read()
    finally:
        cap.release()
    assert ok and frame.shape[:2] == (480, 640)


def test_timed_out_video_leaves_no_file(video_controller, clock):
    video_controller.dispatch(EventKind.RECORD_START)
    for _ in range(4):
        video_controller.tick()
    _require_video(video_controller.recording.session)

    video_controller.dispatch(EventKind.RECORD_STOP)
    clock.advance(15_000)
    video_controller.tick()

    assert video_controller.recording.last_session.status == SessionStatus.DISCARDED
    assert files_in(video_controller.store.sessions_dir) == []
    assert os.listdir(video_controller.store.pending_dir) == []


def test_revoked_video_leaves_no_partial_file(video_controller):
    video_controller.dispatch(EventKind.RECORD_START)
    for _ in range(3):
        video_controller.tick()
    _require_video(video_controller.recording.session)
    assert any(n.endswith(".mp4") for n in os.listdir(video_controller.store.pending_dir))

    video_controller.set_consent(False)
    assert os.listdir(video_controller.store.pending_dir) == []
    assert files_in(video_controller.store.sessions_dir) == []


def test_still_sequence_discard_removes_directory(tmp_path):
    path = str(tmp_path / "session_y")
    backend = StillSequenceBackend(path)
    backend.write(make_frame())
    backend.write(make_frame(10))
    assert sorted(os.listdir(path)) == ["frame_000000.png", "frame_000001.png"]

    backend.discard()
    assert not os.path.exists(path)
