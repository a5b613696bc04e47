"""
MODULE OVERVIEW:
The one-shot REST side of the database: read, write, call a function, and start a stream.

WHAT IS HAPPENING HERE:
Everything here is plain request/response with HTTPX. The only stateful piece is
`listen_events()`, which hands the rendered URL to a StreamSession whose events are
fanned out on `self.events`. Subscribe to that bus before listening.
"""
import json
from typing import Any

import httpx
from loguru import logger

from client.stream_session import StreamSession
from shared.config import settings
from shared.events import EventBus
from shared.paths import normalize_host, render

WRITE_VERBS = ("PUT", "POST", "PATCH", "DELETE")


class DatabaseClient:
    def __init__(
        self,
        host_name: str = "",
        function_host: str = "",
        db_path: str = "",
        client: httpx.AsyncClient | None = None,
        stream_client: httpx.AsyncClient | None = None,
    ):
        self.function_host = function_host
        self.locator = normalize_host(host_name, db_path)
        self.client = client if client is not None else httpx.AsyncClient(timeout=settings.REQUEST_TIMEOUT_S)
        self.events = EventBus()
        self.session = StreamSession(self.events, stream_client)

    @classmethod
    def from_settings(cls) -> "DatabaseClient":
        return cls(settings.DATABASE_HOST, settings.FUNCTION_HOST, settings.DATABASE_PATH)

    def get_path(self, query_string: str = "") -> str:
        """The URL a request with this query string would use."""
        return render(self.locator, query_string)

    async def set_value(self, document: Any, verb: str = "PATCH", query_string: str = "") -> Any:
        verb = verb.upper()
        if verb not in WRITE_VERBS:
            raise ValueError(f"unsupported write verb {verb!r}; expected one of {', '.join(WRITE_VERBS)}")

        url = self.get_path(query_string)
        content = None if verb == "DELETE" else json.dumps(document, separators=(",", ":"))
        headers = {"Content-Type": "application/json"} if content is not None else None
        response = await self.client.request(verb, url, content=content, headers=headers)
        logger.debug(f"verb={verb} url={url} status={response.status_code}")
        response.raise_for_status()
        return response.json() if response.content else None

    async def get_value(self, query_string: str = "") -> Any:
        url = self.get_path(query_string)
        response = await self.client.get(url)
        logger.debug(f"verb=GET url={url} status={response.status_code}")
        response.raise_for_status()
        return response.json()

    async def call_function(self, function: str) -> bytes:
        url = self.function_host + function
        response = await self.client.get(url)
        logger.debug(f"function={function} url={url} status={response.status_code}")
        response.raise_for_status()
        return response.content

    async def listen_events(self, query_string: str = "") -> StreamSession:
        await self.session.open(self.get_path(query_string))
        return self.session

    async def set_host(self, host_name: str, db_path: str = "") -> None:
        """Drop any live stream and point the client at a new location. Call `listen_events` again to resume."""
        await self.session.close()
        self.locator = normalize_host(host_name, db_path)

    async def aclose(self) -> None:
        await self.session.aclose()
        await self.client.aclose()
