import pytest

from facestage.core.errors import ProtocolParseError
from facestage.core.events import (
    Channel, EventKind, LineDecoder, button_event, key_event, parse_token,
)


@pytest.mark.parametrize("line,kind", [
    ("SAVE", EventKind.SAVE_TAP),
    ("save_dbl", EventKind.SAVE_DOUBLE_TAP),
    ("REC", EventKind.RECORD_TOGGLE),
    ("  rec   start\r", EventKind.RECORD_START),
    ("Rec Stop", EventKind.RECORD_STOP),
    ("CONSENT_TOGGLE", EventKind.CONSENT_TOGGLE),
])
def test_parse_token(line, kind):
    assert parse_token(line) == kind


@pytest.mark.parametrize("line", ["", "SAVE NOW", "RECSTART", "DELETE_ALL"])
def test_parse_token_rejects_unknown(line):
    with pytest.raises(ProtocolParseError):
        parse_token(line)


def test_line_decoder_reassembles_partial_reads():
    decoder = LineDecoder()
    assert decoder.feed(b"SA") == []
    assert decoder.feed(b"VE\r\nREC ST") == ["SAVE"]
    assert decoder.feed(b"OP\n\n  \r\n") == ["REC STOP"]


def test_line_decoder_drops_runaway_garbage():
    decoder = LineDecoder()
    assert decoder.feed(b"x" * (LineDecoder.MAX_LINE + 1)) == []
    assert decoder.feed(b"SAVE\n") == ["SAVE"]


def test_key_bindings():
    ev = key_event("S")
    assert ev.kind == EventKind.SAVE_TAP and ev.channel == Channel.KEYBOARD
    assert key_event("c").kind == EventKind.CONSENT_TOGGLE
    assert key_event("q") is None
    assert key_event("") is None


def test_button_bindings():
    ev = button_event("record")
    assert ev.kind == EventKind.RECORD_TOGGLE and ev.channel == Channel.BUTTON
