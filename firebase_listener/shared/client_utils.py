import asyncio
import random
from dataclasses import dataclass
from typing import Callable, Awaitable
from loguru import logger
from datetime import datetime, timezone

import httpx

from shared.config import settings

def make_client_stats() -> dict:
    """
    Returns a fresh stats dictionary with zeroed counters.
    Every listener calls this once in __init__.
    Keys: events_received, puts, keep_alives, unknown_events, decode_errors,
          reconnect_count, redirect_count, bytes_received, last_event_at, connected_at.
    """
    return {
        "events_received": 0,
        "puts": 0,
        "keep_alives": 0,
        "unknown_events": 0,
        "decode_errors": 0,
        "reconnect_count": 0,
        "redirect_count": 0,
        "bytes_received": 0,
        "last_event_at": None,
        "connected_at": datetime.now(timezone.utc).isoformat()
    }

@dataclass
class BackoffPolicy:
    """Exponential backoff with jitter. Owners call `reset()` once a connection proves healthy."""
    base_delay_s: float = settings.RECONNECT_BASE_DELAY_S
    max_delay_s: float = settings.RECONNECT_MAX_DELAY_S
    jitter: float = settings.RECONNECT_JITTER
    attempt: int = 0

    def next_delay(self) -> float:
        self.attempt += 1
        delay = min(self.base_delay_s * (2 ** self.attempt), self.max_delay_s)
        return delay + random.uniform(0, delay * self.jitter)

    def reset(self) -> None:
        self.attempt = 0

async def with_reconnect(
    connect_fn: Callable[[], Awaitable[None]],
    stats: dict,
    duration_s: float | None = None,
    policy: BackoffPolicy | None = None,
    label: str = "unknown",
) -> None:
    """
    Wraps any async connect function with automatic reconnection.
    `duration_s=None` keeps reconnecting until the caller cancels.
    """
    policy = policy or BackoffPolicy()
    loop = asyncio.get_running_loop()
    start_time = loop.time()

    def remaining() -> float | None:
        if duration_s is None:
            return None
        return duration_s - (loop.time() - start_time)

    while True:
        left = remaining()
        if left is not None and left <= 0:
            break

        try:
            # We want to wait for connect_fn, but cap it at the remaining duration
            await asyncio.wait_for(connect_fn(), timeout=left)
            policy.reset()
        except asyncio.TimeoutError:
            # Reached max duration normally
            break
        except (ConnectionError, OSError, httpx.HTTPError) as e:
            delay = policy.next_delay()
            stats["reconnect_count"] += 1
            logger.warning(
                f"listener={label} attempt={policy.attempt} delay={delay:.2f}s error='{e}'"
            )
            left = remaining()
            if left is not None and left <= 0:
                break
            try:
                await asyncio.wait_for(asyncio.sleep(delay), timeout=left)
            except asyncio.TimeoutError:
                break
