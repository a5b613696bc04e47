"""
MODULE OVERVIEW:
The consumer-facing side of a stream: the `EventSink` interface and a fan-out bus.

WHAT IS HAPPENING HERE:
A StreamSession talks to exactly one sink. How those notifications reach the rest
of the program is the sink's business. `EventBus` is the stock answer: it turns
each notification into a model from `shared.models` and publishes it to every
subscriber, so a dashboard, a logger and application code can all listen to one
stream.
"""
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, List

from loguru import logger

from shared.models import (
    DecodeFailure,
    KeepAlive,
    Put,
    SessionState,
    StateChanged,
    StreamNotice,
    Unknown,
)


class EventSink(ABC):
    @abstractmethod
    async def on_keep_alive(self) -> None:
        pass

    @abstractmethod
    async def on_put(self, document: dict[str, Any]) -> None:
        pass

    @abstractmethod
    async def on_unknown_event(self, raw_event_name: str) -> None:
        pass

    @abstractmethod
    async def on_decode_error(self, reason: str) -> None:
        pass

    async def on_state_change(self, state: SessionState) -> None:
        """Optional hook; most sinks only care about events."""
        pass


class EventBus(EventSink):
    """
    A minimal pub/sub bus that fans one stream out to any number of async subscribers.
    A failing subscriber is logged and does not stop delivery to the others.
    """
    def __init__(self):
        self._subscribers: List[Callable[[StreamNotice], Awaitable[None]]] = []

    def subscribe(self, callback: Callable[[StreamNotice], Awaitable[None]]):
        self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[StreamNotice], Awaitable[None]]):
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    async def publish(self, notice: StreamNotice):
        for sub in list(self._subscribers):
            try:
                await sub(notice)
            except Exception as e:
                logger.error(f"Error in subscriber during publish: {e}")

    async def on_keep_alive(self) -> None:
        await self.publish(KeepAlive())

    async def on_put(self, document: dict[str, Any]) -> None:
        await self.publish(Put(document=document))

    async def on_unknown_event(self, raw_event_name: str) -> None:
        await self.publish(Unknown(raw_event_name=raw_event_name))

    async def on_decode_error(self, reason: str) -> None:
        await self.publish(DecodeFailure(reason=reason))

    async def on_state_change(self, state: SessionState) -> None:
        await self.publish(StateChanged(state=state))
