"""Background reader for the push-button serial device."""
import logging
import re
from typing import Optional

import serial
import serial.tools.list_ports
from PySide6.QtCore import QThread, Signal

from facestage.core.camera import RetryPolicy
from facestage.core.events import LineDecoder

log = logging.getLogger("facestage.serial_worker")

AUTO_PORT = "auto"
_USB_SERIAL = re.compile(r"(ttyACM|ttyUSB|usbmodem|usbserial|^COM\d+)", re.IGNORECASE)


def resolve_port(port: str) -> Optional[str]:
    """Return ``port`` as-is, or the first USB serial port for ``auto``."""
    if port and port != AUTO_PORT:
        return port
    for info in serial.tools.list_ports.comports():
        if _USB_SERIAL.search(info.device):
            log.info("Auto-selected serial port %s (%s)", info.device, info.description)
            return info.device
    return None


class SerialWorker(QThread):
    token_received = Signal(str)
    status_changed = Signal(str)     # "connected", "disconnected", "failed"

    def __init__(self, port: str, baudrate: int, policy: RetryPolicy):
        super().__init__()
        self.port = port
        self.baudrate = baudrate
        self.policy = policy
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    def _sleep(self, seconds: float):
        remaining = int(seconds * 1000)
        while remaining > 0 and not self._cancelled:
            step = min(remaining, 50)
            self.msleep(step)
            remaining -= step

    def _connect(self) -> Optional[serial.Serial]:
        for attempt in range(1, self.policy.max_attempts + 1):
            if self._cancelled:
                return None
            port = resolve_port(self.port)
            if port is not None:
                try:
                    conn = serial.Serial(port=port, baudrate=self.baudrate, timeout=0.2)
                    log.info("Connected to button device on %s @ %d", port, self.baudrate)
                    self.status_changed.emit("connected")
                    return conn
                except serial.SerialException as e:
                    log.warning("Cannot open %s (attempt %d/%d): %s",
                                port, attempt, self.policy.max_attempts, e)
            else:
                log.warning("No serial device found (attempt %d/%d)",
                            attempt, self.policy.max_attempts)
            if attempt < self.policy.max_attempts:
                self._sleep(self.policy.delay_for(attempt))
        return None

    def run(self):
        while not self._cancelled:
            conn = self._connect()
            if conn is None:
                if not self._cancelled:
                    log.error("Button device unavailable, giving up")
                    self.status_changed.emit("failed")
                return

            decoder = LineDecoder()
            try:
                while not self._cancelled:
                    data = conn.read(conn.in_waiting or 1)
                    for line in decoder.feed(data):
                        log.debug("Serial token %r", line)
                        self.token_received.emit(line)
            except serial.SerialException as e:
                log.warning("Serial connection lost: %s", e)
                self.status_changed.emit("disconnected")
            finally:
                conn.close()
