"""
MODULE OVERVIEW:
The owner of a StreamSession: keeps one database location streaming for as long as asked.

WHAT IS HAPPENING HERE:
A StreamSession never reconnects on its own; a closed stream simply ends up CLOSED.
This listener is where the reconnect policy lives. Each `connect()` opens the
session and waits for it to close, then raises StreamClosedError so `with_reconnect`
backs off and tries again. The backoff counter resets as soon as a reopened
stream reaches STREAMING, so one bad minute does not slow down the next outage.
"""
import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

import httpx

from client.stream_session import StreamSession
from shared.client_utils import BackoffPolicy, make_client_stats, with_reconnect
from shared.errors import StreamClosedError
from shared.events import EventSink
from shared.models import DecodeFailure, KeepAlive, Put, ResourceLocator, SessionState, StreamNotice, Unknown
from shared.paths import render


class DatabaseListener(EventSink):
    def __init__(
        self,
        locator: ResourceLocator,
        client: httpx.AsyncClient | None = None,
        policy: BackoffPolicy | None = None,
        max_redirects: int | None = None,
    ):
        self.locator = locator
        self.policy = policy or BackoffPolicy()
        self.session = StreamSession(self, client, max_redirects=max_redirects)

        self.on_event_callback: Callable[[StreamNotice], Awaitable[None]] | None = None
        self.on_status_change_callback: Callable[[str], Awaitable[None]] | None = None

        self.stats = make_client_stats()

    @property
    def label(self) -> str:
        return render(self.locator)

    @property
    def events_received(self): return self.stats["events_received"]

    @property
    def reconnect_count(self): return self.stats["reconnect_count"]

    def set_callbacks(self, on_event, on_status_change):
        self.on_event_callback = on_event
        self.on_status_change_callback = on_status_change

    async def _emit_status(self, status: str):
        if self.on_status_change_callback:
            await self.on_status_change_callback(status)

    async def _emit(self, notice: StreamNotice, counter: str):
        self.stats[counter] += 1
        self.stats["events_received"] += 1
        self.stats["last_event_at"] = datetime.now(timezone.utc).isoformat()
        self.stats["bytes_received"] = self.session.bytes_received
        if self.on_event_callback:
            await self.on_event_callback(notice)

    # ==========================
    # SINK
    # ==========================
    async def on_keep_alive(self) -> None:
        await self._emit(KeepAlive(), "keep_alives")

    async def on_put(self, document: dict[str, Any]) -> None:
        await self._emit(Put(document=document), "puts")

    async def on_unknown_event(self, raw_event_name: str) -> None:
        await self._emit(Unknown(raw_event_name=raw_event_name), "unknown_events")

    async def on_decode_error(self, reason: str) -> None:
        self.stats["decode_errors"] += 1
        if self.on_event_callback:
            await self.on_event_callback(DecodeFailure(reason=reason))

    async def on_state_change(self, state: SessionState) -> None:
        if state is SessionState.STREAMING:
            self.policy.reset()
        elif state is SessionState.REDIRECTING:
            self.stats["redirect_count"] += 1
        await self._emit_status(state.value)

    # ==========================
    # LIFECYCLE
    # ==========================
    async def connect(self) -> None:
        await self.session.open(self.locator)
        await self.session.wait_closed()
        raise StreamClosedError(f"stream closed url={self.session.url}")

    async def disconnect(self) -> None:
        await self.session.aclose()

    async def run(self, duration_s: float | None = None) -> None:
        try:
            await with_reconnect(
                self.connect,
                self.stats,
                duration_s,
                policy=self.policy,
                label=self.label,
            )
        except asyncio.CancelledError:
            pass
        finally:
            await self.disconnect()
