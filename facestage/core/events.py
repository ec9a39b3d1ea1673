"""Input event vocabulary and normalization of buttons, keys and serial tokens."""
import logging
from dataclasses import dataclass
from enum import Enum

from facestage.core.errors import ProtocolParseError

log = logging.getLogger("facestage.events")


class EventKind(Enum):
    CONSENT_TOGGLE = "CONSENT_TOGGLE"
    SAVE_TAP = "SAVE_TAP"
    SAVE_DOUBLE_TAP = "SAVE_DOUBLE_TAP"
    RECORD_TOGGLE = "RECORD_TOGGLE"
    RECORD_START = "RECORD_START"
    RECORD_STOP = "RECORD_STOP"
    REVIEW_CONFIRM = "REVIEW_CONFIRM"
    REVIEW_DISCARD = "REVIEW_DISCARD"


class Channel(Enum):
    BUTTON = "button"
    KEYBOARD = "keyboard"
    SERIAL = "serial"
    AUTO = "auto"       # emitted by the recording manager itself


@dataclass(frozen=True)
class InputEvent:
    kind: EventKind
    channel: Channel


SERIAL_TOKENS = {
    "SAVE": EventKind.SAVE_TAP,
    "SAVE_DBL": EventKind.SAVE_DOUBLE_TAP,
    "REC": EventKind.RECORD_TOGGLE,
    "REC START": EventKind.RECORD_START,
    "REC STOP": EventKind.RECORD_STOP,
    "CONSENT_TOGGLE": EventKind.CONSENT_TOGGLE,
}

KEY_BINDINGS = {
    "c": EventKind.CONSENT_TOGGLE,
    "s": EventKind.SAVE_TAP,
    " ": EventKind.SAVE_TAP,
    "y": EventKind.REVIEW_CONFIRM,
    "n": EventKind.REVIEW_DISCARD,
    "r": EventKind.RECORD_TOGGLE,
}

BUTTON_BINDINGS = {
    "consent": EventKind.CONSENT_TOGGLE,
    "save": EventKind.SAVE_TAP,
    "confirm": EventKind.REVIEW_CONFIRM,
    "discard": EventKind.REVIEW_DISCARD,
    "record": EventKind.RECORD_TOGGLE,
}


def parse_token(line: str) -> EventKind:
    """Map one serial line to an event.

    Whitespace runs collapse to one space and case is ignored, so
    ``" rec   start\\r"`` parses as ``REC START``.
    """
    token = " ".join(line.split()).upper()
    try:
        return SERIAL_TOKENS[token]
    except KeyError:
        raise ProtocolParseError(f"Unrecognized token: {line!r}") from None


def key_event(text: str) -> InputEvent | None:
    kind = KEY_BINDINGS.get(text.lower())
    return InputEvent(kind, Channel.KEYBOARD) if kind else None


def button_event(name: str) -> InputEvent:
    return InputEvent(BUTTON_BINDINGS[name], Channel.BUTTON)


class LineDecoder:
    """Reassemble newline-terminated ASCII lines from arbitrary byte chunks."""

    MAX_LINE = 256

    def __init__(self):
        self._buf = bytearray()

    def feed(self, chunk: bytes) -> list[str]:
        self._buf.extend(chunk)
        lines = []
        while True:
            idx = self._buf.find(b"\n")
            if idx < 0:
                break
            raw = bytes(self._buf[:idx])
            del self._buf[:idx + 1]
            text = raw.decode("ascii", errors="replace").strip()
            if text:
                lines.append(text)
        if len(self._buf) > self.MAX_LINE:
            # Device is spewing garbage without newlines
            log.warning("Dropping %d undelimited bytes from serial stream", len(self._buf))
            self._buf.clear()
        return lines
