"""Imaging hardware interface and bring-up retry policy."""
import logging
import os
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass

from facestage.core.models import AcquireStatus

log = logging.getLogger("facestage.camera")


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff for device bring-up."""

    max_attempts: int = 5
    base_delay_s: float = 0.5
    factor: float = 2.0
    max_delay_s: float = 8.0

    def delay_for(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (1-based)."""
        return min(self.base_delay_s * (self.factor ** (attempt - 1)), self.max_delay_s)


class Camera(ABC):
    """Collaborator interface. ``acquire`` and ``release`` never block;
    ``acquire`` is idempotent and reports where bring-up currently stands."""

    @abstractmethod
    def acquire(self) -> AcquireStatus:
        ...

    @abstractmethod
    def current_frame(self):
        ...

    @abstractmethod
    def release(self):
        ...

    def wait_idle(self, timeout_ms: int) -> bool:
        """Block until background bring-up has stopped. Only for process exit."""
        return True


class NullCamera(Camera):
    """Used in avatar mode when no device is configured."""

    def acquire(self) -> AcquireStatus:
        return AcquireStatus.FAILED

    def current_frame(self):
        return None

    def release(self):
        pass


def camera_present(index: int) -> bool:
    """Cheap existence check that does not open the device.

    Only Linux exposes a reliable node to look at; elsewhere we assume the
    device exists and let bring-up report failures.
    """
    if sys.platform.startswith("linux"):
        present = os.path.exists(f"/dev/video{index}")
        if not present:
            log.error("No video device at /dev/video%d", index)
        return present
    return True
