"""Tests for the reconnecting listener and its backoff policy."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from client.listener import DatabaseListener
from conftest import mock_client, stream_response
from shared.client_utils import BackoffPolicy, make_client_stats, with_reconnect
from shared.models import DecodeFailure, Put, SessionState
from shared.paths import normalize_host

PUT = b'event: put\ndata: {"path":"/","data":{"n":1}}\n\n'


def fast_policy() -> BackoffPolicy:
    return BackoffPolicy(base_delay_s=0.001, max_delay_s=0.002, jitter=0.0)


def test_backoff_doubles_up_to_the_cap_and_resets() -> None:
    policy = BackoffPolicy(base_delay_s=1.0, max_delay_s=32.0, jitter=0.0)

    assert [policy.next_delay() for _ in range(6)] == [2.0, 4.0, 8.0, 16.0, 32.0, 32.0]
    policy.reset()
    assert policy.next_delay() == 2.0


def test_backoff_jitter_stays_within_bounds() -> None:
    policy = BackoffPolicy(base_delay_s=1.0, max_delay_s=32.0, jitter=0.1)

    delay = policy.next_delay()
    assert 2.0 <= delay <= 2.2


@pytest.mark.asyncio
async def test_with_reconnect_backs_off_until_duration_elapses():
    stats = make_client_stats()
    attempts = []

    async def always_fails():
        attempts.append(1)
        raise ConnectionError("refused")

    await with_reconnect(always_fails, stats, duration_s=0.05, policy=fast_policy())

    assert len(attempts) >= 2
    assert stats["reconnect_count"] == len(attempts)


@pytest.mark.asyncio
async def test_listener_reopens_closed_streams_and_counts_events():
    requests = []
    seen = []
    statuses = []
    done = asyncio.Event()

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return stream_response([PUT])

    async def on_event(notice):
        seen.append(notice)
        if len(seen) >= 3:
            done.set()

    async def on_status(status):
        statuses.append(status)

    listener = DatabaseListener(
        normalize_host("https://db.example.com", "counters"),
        client=mock_client(handler),
        policy=fast_policy(),
    )
    listener.set_callbacks(on_event, on_status)

    task = asyncio.create_task(listener.run())
    await asyncio.wait_for(done.wait(), 2.0)
    task.cancel()
    await task

    assert len(requests) >= 3
    assert all(isinstance(n, Put) for n in seen)
    assert listener.stats["puts"] >= 3
    assert listener.reconnect_count >= 2
    assert statuses[:3] == ["CONNECTING", "STREAMING", "CLOSED"]
    assert listener.session.state is SessionState.CLOSED


@pytest.mark.asyncio
async def test_listener_resets_backoff_once_streaming():
    listener = DatabaseListener(normalize_host("https://db.example.com", ""), client=mock_client(lambda r: stream_response([PUT])))
    listener.policy.attempt = 5

    await listener.on_state_change(SessionState.STREAMING)

    assert listener.policy.attempt == 0


@pytest.mark.asyncio
async def test_listener_reports_decode_failures_separately():
    seen = []

    async def on_event(notice):
        seen.append(notice)

    async def on_status(status):
        pass

    listener = DatabaseListener(normalize_host("https://db.example.com", ""), client=mock_client(lambda r: stream_response([PUT])))
    listener.set_callbacks(on_event, on_status)

    await listener.on_decode_error("malformed put data")
    await listener.on_keep_alive()

    assert seen[0] == DecodeFailure(reason="malformed put data")
    assert listener.stats["decode_errors"] == 1
    assert listener.stats["keep_alives"] == 1
    assert listener.events_received == 1
