"""
MODULE OVERVIEW:
The strictly typed data structures shared by the stream client, the REST glue
and the local emulator, powered by Pydantic v2.

WHAT IS HAPPENING HERE:
A decoded frame is exactly one of `KeepAlive`, `Put` or `Unknown`, told apart by
the `kind` discriminator. `DecodeFailure` and `StateChanged` are not frames; they
are notices the fan-out bus publishes next to them so one subscriber can watch
everything that happens on a stream.
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class SessionState(str, Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    STREAMING = "STREAMING"
    REDIRECTING = "REDIRECTING"
    CLOSED = "CLOSED"


# WHAT IS HAPPENING HERE:
# The request target is a value. Changing the host or query builds a new locator;
# nothing ever edits one in place.
class ResourceLocator(BaseModel):
    model_config = ConfigDict(frozen=True)

    host: str
    suffix: str
    query: str = ""

    @property
    def base(self) -> str:
        return self.host + self.suffix


class KeepAlive(BaseModel):
    kind: Literal["keep-alive"] = "keep-alive"


class Put(BaseModel):
    kind: Literal["put"] = "put"
    document: dict[str, Any]

    @property
    def path(self) -> str | None:
        return self.document.get("path")

    @property
    def data(self) -> Any:
        return self.document.get("data")


class Unknown(BaseModel):
    kind: Literal["unknown"] = "unknown"
    raw_event_name: str


DecodedEvent = Annotated[Union[KeepAlive, Put, Unknown], Field(discriminator="kind")]


class DecodeFailure(BaseModel):
    kind: Literal["decode-error"] = "decode-error"
    reason: str


class StateChanged(BaseModel):
    kind: Literal["state"] = "state"
    state: SessionState


StreamNotice = Annotated[
    Union[KeepAlive, Put, Unknown, DecodeFailure, StateChanged],
    Field(discriminator="kind"),
]


class EmulatorStats(BaseModel):
    active_streams: int
    total_events_dispatched: int
    uptime_s: float
    server_time: datetime
