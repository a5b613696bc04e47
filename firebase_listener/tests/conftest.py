"""Test fixtures shared by the client, decoder and emulator tests."""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Callable

import httpx
import pytest

from shared.events import EventSink
from shared.models import SessionState


class RecordingSink(EventSink):
    """Sink that remembers every notification in arrival order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, Any]] = []

    async def on_keep_alive(self) -> None:
        self.calls.append(("keep-alive", None))

    async def on_put(self, document: dict[str, Any]) -> None:
        self.calls.append(("put", document))

    async def on_unknown_event(self, raw_event_name: str) -> None:
        self.calls.append(("unknown", raw_event_name))

    async def on_decode_error(self, reason: str) -> None:
        self.calls.append(("decode-error", reason))

    async def on_state_change(self, state: SessionState) -> None:
        self.calls.append(("state", state))

    @property
    def events(self) -> list[tuple[str, Any]]:
        return [c for c in self.calls if c[0] != "state"]

    @property
    def states(self) -> list[SessionState]:
        return [c[1] for c in self.calls if c[0] == "state"]


async def chunked(chunks: list[bytes], hold: asyncio.Event | None = None) -> AsyncIterator[bytes]:
    """Response body delivered as separate reads; optionally stalls until `hold` is set."""
    for chunk in chunks:
        yield chunk
        await asyncio.sleep(0)
    if hold is not None:
        await hold.wait()


def stream_response(chunks: list[bytes], hold: asyncio.Event | None = None) -> httpx.Response:
    return httpx.Response(
        200, headers={"Content-Type": "text/event-stream"}, content=chunked(chunks, hold)
    )


def mock_client(handler: Callable[[httpx.Request], httpx.Response]) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
