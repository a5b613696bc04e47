"""
MODULE OVERVIEW:
The REST + event-stream surface of the local emulator.

WHAT IS HAPPENING HERE:
Every location is `/<path>.json`. A GET with `Accept: text/event-stream` turns into
a long-lived stream: first a put of the current value at "/", then one put per
change, with keep-alive frames in between. Frames use a bare "\\n" separator,
which is what the client's exact-match framing expects.
"""
import json
from json import JSONDecodeError
from typing import Any

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse, ServerSentEvent

from server.store import store
from shared.config import settings
from shared.route_utils import log_connection, new_stream_id, parse_resource_path

router = APIRouter()

EVENT_STREAM = "text/event-stream"


def keep_alive_frame() -> ServerSentEvent:
    return ServerSentEvent(data="null", event="keep-alive", sep="\n")


def _parts(path: str) -> list[str]:
    parts = parse_resource_path(path)
    if parts is None:
        raise HTTPException(status_code=404, detail="Locations must end in .json")
    return parts


async def _body(request: Request) -> Any:
    try:
        return await request.json()
    except (JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="Invalid data; couldn't parse JSON object")


async def put_stream(stream_id: str, parts: list[str]):
    queue = store.subscribe(stream_id, parts)
    await log_connection("stream:connect", stream_id, {"path": "/" + "/".join(parts)})
    try:
        while True:
            change = await queue.get()
            yield ServerSentEvent(data=json.dumps(change), event="put", sep="\n")
    finally:
        store.unsubscribe(stream_id)
        await log_connection("stream:disconnect", stream_id)


@router.get("/{path:path}")
async def read(path: str, request: Request):
    parts = _parts(path)
    if EVENT_STREAM in request.headers.get("accept", ""):
        return EventSourceResponse(
            put_stream(new_stream_id(), parts),
            ping=settings.EMULATOR_KEEP_ALIVE_INTERVAL_S,
            ping_message_factory=keep_alive_frame,
            sep="\n",
        )
    return JSONResponse(store.get(parts))


@router.put("/{path:path}")
async def write(path: str, request: Request):
    parts = _parts(path)
    return JSONResponse(store.set(parts, await _body(request)))


@router.patch("/{path:path}")
async def update(path: str, request: Request):
    parts = _parts(path)
    children = await _body(request)
    if not isinstance(children, dict):
        raise HTTPException(status_code=400, detail="PATCH data must be a JSON object")
    return JSONResponse(store.update(parts, children))


@router.post("/{path:path}")
async def push(path: str, request: Request):
    parts = _parts(path)
    return JSONResponse({"name": store.push(parts, await _body(request))})


@router.delete("/{path:path}")
async def delete(path: str):
    store.delete(_parts(path))
    return JSONResponse(None)
