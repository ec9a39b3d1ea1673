"""Path utilities for FaceStage."""
import os

FACESTAGE_DIR = ".facestage"
STILLS_DIR = "stills"
SESSIONS_DIR = "sessions"
PENDING_DIR = ".pending"
LOGS_DIR = "logs"
DB_FILENAME = "facestage.db"

STILL_EXTENSION = ".png"
SIDECAR_EXTENSION = ".json"
VIDEO_EXTENSION = ".mp4"


def default_output_root() -> str:
    return os.path.join(os.path.expanduser("~"), "FaceStage")


def get_facestage_dir(output_root: str) -> str:
    path = os.path.join(output_root, FACESTAGE_DIR)
    os.makedirs(path, exist_ok=True)
    return path


def get_db_path(output_root: str) -> str:
    return os.path.join(get_facestage_dir(output_root), DB_FILENAME)


def get_log_dir(output_root: str) -> str:
    path = os.path.join(get_facestage_dir(output_root), LOGS_DIR)
    os.makedirs(path, exist_ok=True)
    return path


def get_stills_dir(output_root: str) -> str:
    path = os.path.join(output_root, STILLS_DIR)
    os.makedirs(path, exist_ok=True)
    return path


def get_sessions_dir(output_root: str) -> str:
    path = os.path.join(output_root, SESSIONS_DIR)
    os.makedirs(path, exist_ok=True)
    return path


def get_pending_dir(output_root: str) -> str:
    path = os.path.join(get_sessions_dir(output_root), PENDING_DIR)
    os.makedirs(path, exist_ok=True)
    return path


def sidecar_path(artifact_path: str) -> str:
    # Frame-sequence directories carry no extension, so this covers them too
    stem, _ = os.path.splitext(artifact_path.rstrip(os.sep))
    return stem + SIDECAR_EXTENSION


def resolve_collision(dest_path: str) -> str:
    if not os.path.exists(dest_path):
        return dest_path
    stem, ext = os.path.splitext(dest_path)
    counter = 1
    while True:
        candidate = f"{stem}_{counter}{ext}"
        if not os.path.exists(candidate):
            return candidate
        counter += 1
