"""Shared, injectable state passed to every core component."""
import logging
import threading
import time
from typing import Callable, Optional

from facestage.core.models import ConsentState, Notice, Settings

log = logging.getLogger("facestage.context")

NoticeCallback = Callable[[Notice], None]


class SystemClock:
    """Monotonic milliseconds for deadlines, epoch seconds for expiry records."""

    def monotonic_ms(self) -> float:
        return time.monotonic() * 1000.0

    def wall(self) -> float:
        return time.time()


class StageContext:
    """Consent flag, settings, clock and the notice sink.

    The lock serializes event handlers against the frame tick; it is
    re-entrant so a handler may call another handler.
    """

    def __init__(
        self,
        settings: Settings,
        clock=None,
        on_notice: Optional[NoticeCallback] = None,
    ):
        self.settings = settings
        self.clock = clock or SystemClock()
        self.consent = ConsentState()
        self.lock = threading.RLock()
        self.last_notice: Optional[Notice] = None
        self._on_notice = on_notice

    def now_ms(self) -> float:
        return self.clock.monotonic_ms()

    def notify(self, message: str, level: str = "info"):
        notice = Notice(level, message)
        self.last_notice = notice
        log.log(logging.WARNING if level in ("warning", "error") else logging.INFO,
                "Notice [%s]: %s", level, message)
        if self._on_notice:
            self._on_notice(notice)
