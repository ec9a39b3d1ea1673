import json
import os

import pytest

from conftest import files_in, make_frame
from facestage.core.retention import RetentionPolicy
from facestage.util.paths import sidecar_path


@pytest.fixture
def purged():
    return []


@pytest.fixture
def retention(ctx, store, purged):
    ctx.consent.granted = True
    return RetentionPolicy(ctx, store, on_purge=purged.append)


def _touch(path, content=b"x"):
    with open(path, "wb") as f:
        f.write(content)


def test_expired_still_is_purged(retention, store, clock, settings, purged):
    artifact = store.save_still(make_frame())

    clock.advance(settings.still_ttl_seconds * 1000 - 1000)
    assert retention.run() == 0
    assert os.path.isfile(artifact.path)

    clock.advance(1000)
    assert retention.run() == 1
    assert files_in(store.stills_dir) == []
    assert purged == [artifact.path]


def test_inconsistent_pairs_are_purged(retention, store):
    kept = store.save_still(make_frame())
    orphan_image = os.path.join(store.stills_dir, "still_orphan.png")
    orphan_sidecar = os.path.join(store.stills_dir, "still_ghost.json")
    broken = os.path.join(store.stills_dir, "still_broken.png")
    stray = os.path.join(store.stills_dir, "still_half.png.tmp")
    _touch(orphan_image)
    _touch(orphan_sidecar, b"{}")
    _touch(broken)
    _touch(sidecar_path(broken), b"not json")
    _touch(stray)

    retention.run()
    assert files_in(store.stills_dir) == sorted([
        os.path.basename(kept.path),
        os.path.basename(sidecar_path(kept.path)),
    ])


def test_kept_recording_directory_is_purged(retention, store, clock):
    session_dir = os.path.join(store.sessions_dir, "session_abc")
    os.makedirs(session_dir)
    _touch(os.path.join(session_dir, "frame_000000.png"))
    with open(sidecar_path(session_dir), "w", encoding="utf-8") as f:
        json.dump({"kind": "recording", "expires_at": clock.wall() + 10}, f)

    assert retention.run() == 0
    clock.advance(10_000)
    assert retention.run() == 1
    assert files_in(store.sessions_dir) == []


def test_purge_pending(retention, store):
    os.makedirs(os.path.join(store.pending_dir, "session_1"))
    _touch(os.path.join(store.pending_dir, "session_2.mp4"))
    assert retention.purge_pending() == 2
    assert os.listdir(store.pending_dir) == []
    assert os.path.isdir(store.pending_dir)


def test_maybe_run_follows_interval(retention, store, clock, settings):
    retention.run()
    _touch(os.path.join(store.stills_dir, "still_orphan.png"))

    clock.advance(settings.retention_interval_s * 1000 - 1)
    assert retention.maybe_run(clock.monotonic_ms()) == 0
    clock.advance(1)
    assert retention.maybe_run(clock.monotonic_ms()) == 1
