"""Exceptions raised by the listener and its sessions."""


class ListenerError(Exception):
    """Base class for every error raised by this package."""


class FrameDecodeError(ListenerError, ValueError):
    """A put frame whose payload is not an object-rooted JSON document."""

    def __init__(self, reason: str, payload: bytes = b""):
        super().__init__(reason)
        self.reason = reason
        self.payload = payload


class SessionStateError(ListenerError, RuntimeError):
    """An operation was attempted in a session state that does not allow it."""


class StreamClosedError(ListenerError, ConnectionError):
    """The event stream ended; raised by owners that want to reconnect."""
