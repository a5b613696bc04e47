"""
MODULE OVERVIEW:
The in-memory database behind the local emulator, plus its stream registry.

WHAT IS HAPPENING HERE:
The whole database is one JSON tree. Writes replace subtrees copy-on-write, so a
value handed out earlier never changes under its reader. Empty objects and nulls
are pruned the way the real service prunes them: a location holding nothing is
simply absent.

Every open event stream gets its own bounded asyncio.Queue. After each write we
work out which streams can see the change and queue a put for them:
  - a write at or below the stream's location is sent with a path relative to it;
  - a write above the stream's location resends the stream's whole value at "/".
"""

import asyncio
import itertools
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from loguru import logger

from shared.config import settings
from shared.models import EmulatorStats

Parts = List[str]


def split_path(path: str) -> Parts:
    return [p for p in path.strip("/").split("/") if p]


def prune(value: Any) -> Any:
    if isinstance(value, dict):
        cleaned = {k: prune(v) for k, v in value.items()}
        cleaned = {k: v for k, v in cleaned.items() if v is not None}
        return cleaned or None
    if isinstance(value, list):
        return [prune(v) for v in value] or None
    return value


def _get(node: Any, parts: Parts) -> Any:
    for part in parts:
        if not isinstance(node, dict):
            return None
        node = node.get(part)
    return node


def _set(node: Any, parts: Parts, value: Any) -> Any:
    if not parts:
        return value
    node = dict(node) if isinstance(node, dict) else {}
    child = _set(node.get(parts[0]), parts[1:], value)
    if child is None:
        node.pop(parts[0], None)
    else:
        node[parts[0]] = child
    return node or None


class DatabaseStore:
    def __init__(self, queue_size: int = settings.EMULATOR_QUEUE_SIZE):
        self.root: Any = None
        self.queue_size = queue_size
        self.streams: Dict[str, Tuple[Parts, asyncio.Queue[dict]]] = {}
        self.total_events_dispatched = 0
        self.startup_time = datetime.now(timezone.utc)
        self._push_counter = itertools.count()

    # ==========================
    # TREE
    # ==========================
    def get(self, parts: Parts) -> Any:
        return _get(self.root, parts)

    def set(self, parts: Parts, value: Any) -> Any:
        value = prune(value)
        self.root = _set(self.root, parts, value)
        self._broadcast(parts, value)
        return value

    def update(self, parts: Parts, children: dict[str, Any]) -> dict[str, Any]:
        """Merge `children` into the location; each child is written (and announced) on its own."""
        for key, child in children.items():
            self.set(parts + split_path(key), child)
        return children

    def push(self, parts: Parts, value: Any) -> str:
        # time-ordered keys so pushed children sort in insertion order
        key = f"-{int(time.time() * 1000):011x}{next(self._push_counter) % 0xFFFF:04x}"
        self.set(parts + [key], value)
        return key

    def delete(self, parts: Parts) -> None:
        self.set(parts, None)

    # ==========================
    # STREAMS
    # ==========================
    def subscribe(self, stream_id: str, parts: Parts) -> asyncio.Queue[dict]:
        # Size-bounded so a stalled reader cannot grow memory without limit.
        queue: asyncio.Queue[dict] = asyncio.Queue(maxsize=self.queue_size)
        queue.put_nowait({"path": "/", "data": self.get(parts)})
        self.streams[stream_id] = (parts, queue)
        logger.info(f"stream_id={stream_id} path=/{'/'.join(parts)} event=connect reason=subscribed")
        return queue

    def unsubscribe(self, stream_id: str):
        if stream_id in self.streams:
            del self.streams[stream_id]
            logger.info(f"stream_id={stream_id} event=disconnect reason=cleanup")

    def _broadcast(self, written: Parts, value: Any):
        for stream_id, (watched, queue) in self.streams.items():
            if written[:len(watched)] == watched:
                relative = written[len(watched):]
                event = {"path": "/" + "/".join(relative), "data": value}
            elif watched[:len(written)] == written:
                event = {"path": "/", "data": self.get(watched)}
            else:
                continue
            try:
                queue.put_nowait(event)
                self.total_events_dispatched += 1
            except asyncio.QueueFull:
                logger.warning(f"stream_id={stream_id} event=dropped reason=queue_full")

    # ==========================
    # METRICS
    # ==========================
    def get_stats(self) -> EmulatorStats:
        return EmulatorStats(
            active_streams=len(self.streams),
            total_events_dispatched=self.total_events_dispatched,
            uptime_s=(datetime.now(timezone.utc) - self.startup_time).total_seconds(),
            server_time=datetime.now(timezone.utc)
        )

# Global singleton instance
store = DatabaseStore()
