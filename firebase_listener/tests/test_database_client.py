"""Tests for the REST facade: paths, writes, reads, function calls and listening."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from client.database_client import DatabaseClient
from conftest import mock_client, stream_response
from shared.models import Put, SessionState, StateChanged


def make_client(handler, **kwargs) -> DatabaseClient:
    return DatabaseClient(
        "https://db.example.com",
        function_host="https://fn.example.com/",
        db_path="users/ada",
        client=mock_client(handler),
        **kwargs,
    )


def test_get_path_renders_locator_and_query() -> None:
    client = make_client(lambda r: httpx.Response(200))

    assert client.get_path() == "https://db.example.com/users/ada.json"
    assert client.get_path("shallow=true") == "https://db.example.com/users/ada.json?shallow=true"


@pytest.mark.asyncio
async def test_set_value_defaults_to_patch_with_compact_json():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["method"] = request.method
        captured["url"] = str(request.url)
        captured["body"] = request.content
        captured["content_type"] = request.headers["content-type"]
        return httpx.Response(200, json={"age": 36})

    client = make_client(handler)
    result = await client.set_value({"age": 36}, query_string="print=pretty")

    assert captured["method"] == "PATCH"
    assert captured["url"] == "https://db.example.com/users/ada.json?print=pretty"
    assert captured["body"] == b'{"age":36}'
    assert captured["content_type"] == "application/json"
    assert result == {"age": 36}
    await client.aclose()


@pytest.mark.asyncio
async def test_set_value_accepts_each_write_verb():
    methods = []

    def handler(request: httpx.Request) -> httpx.Response:
        methods.append((request.method, request.content, request.headers.get("content-type")))
        if request.method == "DELETE":
            return httpx.Response(200, json=None)
        return httpx.Response(200, json={"name": "-abc"} if request.method == "POST" else {})

    client = make_client(handler)
    await client.set_value({"a": 1}, "put")
    pushed = await client.set_value({"a": 1}, "POST")
    deleted = await client.set_value(None, "DELETE")

    assert [m for m, _, _ in methods] == ["PUT", "POST", "DELETE"]
    assert methods[0][2] == "application/json"
    assert methods[2][1:] == (b"", None)
    assert pushed == {"name": "-abc"}
    assert deleted is None
    await client.aclose()


@pytest.mark.asyncio
async def test_set_value_rejects_unknown_verb():
    client = make_client(lambda r: httpx.Response(200))

    with pytest.raises(ValueError):
        await client.set_value({"a": 1}, "GET")
    await client.aclose()


@pytest.mark.asyncio
async def test_get_value_raises_on_error_status():
    client = make_client(lambda r: httpx.Response(401, json={"error": "Permission denied"}))

    with pytest.raises(httpx.HTTPStatusError):
        await client.get_value()
    await client.aclose()


@pytest.mark.asyncio
async def test_get_value_returns_document():
    client = make_client(lambda r: httpx.Response(200, json={"name": "Ada"}))

    assert await client.get_value() == {"name": "Ada"}
    await client.aclose()


@pytest.mark.asyncio
async def test_call_function_returns_raw_bytes():
    captured = []

    def handler(request: httpx.Request) -> httpx.Response:
        captured.append(str(request.url))
        return httpx.Response(200, content=b"pong")

    client = make_client(handler)

    assert await client.call_function("ping") == b"pong"
    assert captured == ["https://fn.example.com/ping"]
    await client.aclose()


@pytest.mark.asyncio
async def test_listen_events_publishes_on_the_bus():
    received = []
    requested = []

    def stream_handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        return stream_response([b'event: put\ndata: {"path":"/","data":{"name":"Ada"}}\n\n'])

    client = make_client(lambda r: httpx.Response(200), stream_client=mock_client(stream_handler))

    async def collect(notice):
        received.append(notice)

    client.events.subscribe(collect)
    session = await client.listen_events("shallow=true")
    await asyncio.wait_for(session.wait_closed(), 2.0)

    assert requested == ["https://db.example.com/users/ada.json?shallow=true"]
    assert Put(document={"path": "/", "data": {"name": "Ada"}}) in received
    assert received[-1] == StateChanged(state=SessionState.CLOSED)
    await client.aclose()


@pytest.mark.asyncio
async def test_set_host_closes_stream_and_retargets():
    hold = asyncio.Event()
    client = make_client(
        lambda r: httpx.Response(200),
        stream_client=mock_client(lambda r: stream_response([], hold)),
    )
    session = await client.listen_events()

    await client.set_host("https://other.example.com/", "rooms")

    assert session.state is SessionState.CLOSED
    assert client.get_path() == "https://other.example.com/rooms.json"
    await client.aclose()
