"""Data models for FaceStage."""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class Origin(Enum):
    MANUAL = "manual"         # on-screen button or keyboard
    EXTERNAL = "external"     # serial push-button device


class SessionStatus(Enum):
    OPEN = "OPEN"
    STOPPED = "STOPPED"
    PENDING_REVIEW = "PENDING_REVIEW"
    KEPT = "KEPT"
    DISCARDED = "DISCARDED"


class AcquireStatus(Enum):
    READY = "ready"
    PENDING = "pending"
    FAILED = "failed"


class BackendKind(Enum):
    VIDEO = "video"
    STILLS = "stills"


@dataclass(frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float

    @property
    def area(self) -> float:
        return self.width * self.height

    @property
    def center(self) -> tuple[float, float]:
        return self.x + self.width / 2.0, self.y + self.height / 2.0

    @classmethod
    def from_center(cls, cx: float, cy: float, w: float, h: float) -> "BoundingBox":
        return cls(cx - w / 2.0, cy - h / 2.0, w, h)


@dataclass
class ConsentState:
    granted: bool = False


@dataclass
class ReviewBuffer:
    pixels: Any
    origin: Origin
    opened_at: float


@dataclass
class TapState:
    pending_origin: Optional[Origin] = None
    opened_at: float = 0.0

    def clear(self):
        self.pending_origin = None
        self.opened_at = 0.0


@dataclass
class RecordingSession:
    id: str
    started_at: float
    frames_written: int = 0
    status: SessionStatus = SessionStatus.OPEN
    deadline: Optional[float] = None
    backend: BackendKind = BackendKind.VIDEO
    kept_path: Optional[str] = None

    @property
    def is_live(self) -> bool:
        return self.status in (SessionStatus.OPEN, SessionStatus.PENDING_REVIEW)


@dataclass
class PersistedArtifact:
    path: str
    created_at: float
    expires_at: float
    kind: str = "still"


@dataclass
class FaceTrackState:
    present: bool = False
    present_streak: int = 0
    missing_streak: int = 0
    smoothed_box: Optional[BoundingBox] = None


@dataclass
class RecordingRecord:
    id: str
    started_at: str
    finished_at: str
    frames_written: int
    status: SessionStatus
    backend: BackendKind
    kept_path: Optional[str] = None


@dataclass
class Notice:
    level: str      # "info", "warning", "error"
    message: str


@dataclass
class Settings:
    output_root: str = ""
    still_ttl_seconds: float = 24 * 3600.0
    recording_ttl_seconds: float = 24 * 3600.0
    double_tap_window_ms: int = 1000
    review_timeout_ms: int = 15000
    retention_interval_s: float = 60.0
    face_gate_enabled: bool = True
    avatar_mode: bool = False
    auto_record: bool = False
    auto_start_streak: int = 6
    auto_stop_streak: int = 12
    grace_frames: int = 3
    smoothing_alpha: float = 0.25
    recording_fps: float = 15.0
    camera_index: int = 0
    serial_port: str = ""
    serial_baud: int = 115200
    retry_attempts: int = 5
    retry_base_delay_s: float = 0.5
    background_path: str = ""


@dataclass(frozen=True)
class StageSnapshot:
    consent: bool
    camera: AcquireStatus
    hardware_failed: bool
    review_open: bool
    review_origin: Optional[Origin]
    session_status: Optional[SessionStatus]
    frames_written: int
    review_seconds_left: Optional[float]
    face_present: bool
    last_notice: Optional[Notice]
