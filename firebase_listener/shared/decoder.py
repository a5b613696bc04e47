"""
MODULE OVERVIEW:
Turns one event frame (event line + payload) into a typed event.

WHAT IS HAPPENING HERE:
The database streams frames like:

    event: put
    data: {"path": "/", "data": {"a": 1}}

The event line is matched byte for byte, newline included, against the two kinds
the protocol defines. A relaxed prefix check would quietly accept framing the
server never sends. Anything else becomes `Unknown`, which is a diagnostic and
never stops the stream.
"""
import json
from typing import Optional

from shared.errors import FrameDecodeError
from shared.models import DecodedEvent, KeepAlive, Put, Unknown

KEEP_ALIVE_EVENT = b"event: keep-alive\n"
PUT_EVENT = b"event: put\n"


def trim_value(line: bytes) -> bytes:
    """Drop the `key:` prefix of a payload line and trim whitespace. No `:` (or `:` first) means no value."""
    index = line.find(b":")
    if index <= 0:
        return b""
    return line[index + 1:].strip()


def event_name(event_line: bytes) -> str:
    text = event_line.decode("utf-8", errors="replace").strip()
    key, sep, value = text.partition(":")
    if sep and key.strip() == "event":
        return value.strip()
    return text


def parse_put(payload: bytes) -> Put:
    value = trim_value(payload)
    try:
        document = json.loads(value)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise FrameDecodeError(f"malformed put data: {e}", payload=value) from e
    if not isinstance(document, dict):
        raise FrameDecodeError(
            f"put data is not a JSON object (got {type(document).__name__})", payload=value
        )
    return Put(document=document)


def decode_frame(event_line: bytes | None, payload: bytes) -> Optional[DecodedEvent]:
    """
    Classify one frame. Returns None when there is no event line this read cycle.
    Raises FrameDecodeError for a put whose payload is not an object-rooted document.
    """
    if not event_line:
        return None

    if event_line == KEEP_ALIVE_EVENT:
        # keep-alive carries no meaning in its payload, whatever it holds
        return KeepAlive()
    if event_line == PUT_EVENT:
        return parse_put(payload)
    return Unknown(raw_event_name=event_name(event_line))
