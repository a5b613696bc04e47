"""
MODULE OVERVIEW:
One long-lived event stream against the database, as an explicit state machine.

WHAT IS HAPPENING HERE:
We use HTTPX `stream()` to keep the response body open and feed every chunk into
a LineFramer. Each read is one decode cycle: one event line, then everything
else that arrived as its payload.

The network task never touches session state directly. It only calls the three
notification handlers (`on_response`, `on_data`, `on_finished`), so the whole
state machine can be driven by hand in tests:

    IDLE/CLOSED --open--> CONNECTING --data--> STREAMING --finished--> CLOSED
                                   \\------redirect--> REDIRECTING --> CONNECTING

All handlers run on one event loop, so the framer buffer is never mutated
concurrently. A connection superseded by a redirect or `close()` is tagged with
an old generation number and can no longer deliver anything.
"""
import asyncio

import httpx
from loguru import logger

from shared.config import settings
from shared.decoder import decode_frame
from shared.errors import FrameDecodeError, SessionStateError
from shared.events import EventSink
from shared.framing import LineFramer
from shared.models import KeepAlive, Put, ResourceLocator, SessionState
from shared.paths import render

STREAM_HEADERS = {"Accept": "text/event-stream"}


def make_stream_client() -> httpx.AsyncClient:
    timeout = httpx.Timeout(settings.REQUEST_TIMEOUT_S, read=settings.STREAM_READ_TIMEOUT_S)
    return httpx.AsyncClient(timeout=timeout, follow_redirects=False)


class StreamSession:
    def __init__(
        self,
        sink: EventSink,
        client: httpx.AsyncClient | None = None,
        max_redirects: int | None = None,
    ):
        self.sink = sink
        self._owns_client = client is None
        self.client = client if client is not None else make_stream_client()
        self.max_redirects = settings.MAX_REDIRECTS if max_redirects is None else max_redirects

        self.state = SessionState.IDLE
        self.url: str | None = None
        self.redirect_count = 0
        self.bytes_received = 0

        self._framer = LineFramer()
        self._pending_event_line: bytes | None = None
        self._task: asyncio.Task | None = None
        self._generation = 0
        self._closed = asyncio.Event()

    @property
    def is_live(self) -> bool:
        return self.state in (SessionState.CONNECTING, SessionState.STREAMING, SessionState.REDIRECTING)

    async def _set_state(self, state: SessionState) -> None:
        if state is self.state:
            return
        logger.debug(f"url={self.url} event=state from={self.state.value} to={state.value}")
        self.state = state
        if state is SessionState.CLOSED:
            self._closed.set()
        await self.sink.on_state_change(state)

    # ==========================
    # OWNER API
    # ==========================
    async def open(self, target: ResourceLocator | str) -> None:
        """
        Issue the streaming GET and return immediately; events arrive through the sink.
        Only valid from IDLE or CLOSED: a session carries one live connection at most.
        """
        if self.is_live:
            raise SessionStateError(f"cannot open a session that is {self.state.value}; close it first")
        self.redirect_count = 0
        await self._connect(target)

    async def close(self) -> None:
        """Tear down the live connection, if any. Always ends in CLOSED."""
        self._generation += 1
        task, self._task = self._task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._reset_buffer()
        await self._set_state(SessionState.CLOSED)

    async def aclose(self) -> None:
        await self.close()
        if self._owns_client:
            await self.client.aclose()

    async def wait_closed(self) -> None:
        await self._closed.wait()

    # ==========================
    # CONNECTION
    # ==========================
    def _reset_buffer(self) -> None:
        self._framer = LineFramer()
        self._pending_event_line = None

    async def _connect(self, target: ResourceLocator | str) -> None:
        url = render(target) if isinstance(target, ResourceLocator) else str(target)
        previous = self._task
        if previous is not None and not previous.done() and previous is not asyncio.current_task():
            previous.cancel()

        self.url = url
        self._reset_buffer()
        self._closed.clear()
        self._generation += 1
        await self._set_state(SessionState.CONNECTING)
        logger.info(f"url={url} event=connect")
        self._task = asyncio.create_task(self._run(url, self._generation))

    async def _run(self, url: str, generation: int) -> None:
        redirect_target: str | None = None
        try:
            async with self.client.stream("GET", url, headers=STREAM_HEADERS) as response:
                if generation != self._generation:
                    return
                redirect_target = await self.on_response(response)
                if redirect_target is None and response.is_success:
                    async for chunk in response.aiter_bytes():
                        if generation != self._generation:
                            return
                        await self.on_data(chunk)
        except httpx.HTTPError as e:
            logger.warning(f"url={url} event=error reason='{e}'")
        except Exception as e:
            # a broken sink must not leave the session stuck in STREAMING
            logger.exception(f"url={url} event=crashed reason='{e}'")

        if generation == self._generation:
            await self.on_finished(redirect_target)

    # ==========================
    # NOTIFICATIONS
    # ==========================
    async def on_response(self, response: httpx.Response) -> str | None:
        """Inspect response headers. Returns the redirect target, if the server sent one."""
        if response.is_redirect:
            location = response.headers["Location"]
            return str(response.url.join(location))
        if not response.is_success:
            logger.error(f"url={self.url} event=rejected status={response.status_code}")
        return None

    async def on_data(self, chunk: bytes) -> None:
        if self.state is SessionState.CONNECTING:
            await self._set_state(SessionState.STREAMING)
        elif self.state is not SessionState.STREAMING:
            logger.debug(f"url={self.url} event=ignored_data state={self.state.value}")
            return

        self.bytes_received += len(chunk)
        self._framer.feed(chunk)

        if self._pending_event_line is not None:
            event_line, self._pending_event_line = self._pending_event_line, None
        else:
            event_line = self._framer.next_line()
            while event_line is not None and not event_line.strip():
                # frame terminator that landed in its own read
                event_line = self._framer.next_line()
            if not event_line:
                # only part of the event line so far
                return

        payload = self._framer.take_rest()
        if not payload and event_line.startswith(b"event:"):
            # the data line follows in a later read
            self._pending_event_line = event_line
            return

        await self._dispatch(event_line, payload)

    async def on_finished(self, redirect_target: str | None = None) -> None:
        if redirect_target:
            if self.redirect_count >= self.max_redirects:
                logger.error(
                    f"url={self.url} event=redirect_limit target={redirect_target} limit={self.max_redirects}"
                )
                self._reset_buffer()
                await self._set_state(SessionState.CLOSED)
                return
            self.redirect_count += 1
            await self._set_state(SessionState.REDIRECTING)
            logger.info(f"url={self.url} event=redirect target={redirect_target}")
            # A redirect is a fresh stream origin: the old buffer is dropped, not resumed.
            await self._connect(redirect_target)
            return

        logger.info(f"url={self.url} event=closed bytes_received={self.bytes_received}")
        self._reset_buffer()
        await self._set_state(SessionState.CLOSED)

    async def _dispatch(self, event_line: bytes, payload: bytes) -> None:
        try:
            event = decode_frame(event_line, payload)
        except FrameDecodeError as e:
            logger.warning(f"url={self.url} event=dropped reason='{e.reason}' data={e.payload[:80]!r}")
            await self.sink.on_decode_error(e.reason)
            return

        if event is None:
            return
        if isinstance(event, KeepAlive):
            await self.sink.on_keep_alive()
        elif isinstance(event, Put):
            await self.sink.on_put(event.document)
        else:
            logger.warning(f"url={self.url} event=unknown name={event.raw_event_name!r}")
            await self.sink.on_unknown_event(event.raw_event_name)
