"""Stream supervisor — push channels to the current node.

``StreamSupervisor.open_stream()`` opens one Server-Sent-Events channel
against whichever node is current at call time.  There is no automatic
failover: when a channel errors or closes it is up to the consumer to
open a new one, possibly after ``switch_to()`` picked another node.

Usage::

    async with supervisor.open_stream("/api/metrics/raft/events/stream") as channel:
        async for event in channel:
            handle(event.event, event.data)
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

import httpx

from src.core.errors import StreamError
from src.resilience.node_pool import NodePool
from src.resilience.registry import NodeDescriptor
from src.transport import HttpTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServerSentEvent:
    event: str = "message"
    data: str = ""
    id: str | None = None
    retry: int | None = None


class SSEDecoder:
    """Incremental ``text/event-stream`` decoder, fed one line at a time."""

    def __init__(self) -> None:
        self._event = ""
        self._data: list[str] = []
        self._last_event_id: str | None = None
        self._retry: int | None = None

    def decode(self, line: str) -> ServerSentEvent | None:
        """Consume *line* (without its newline); return an event on a blank line."""
        if not line:
            return self._dispatch()
        if line.startswith(":"):
            return None

        name, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]

        if name == "event":
            self._event = value
        elif name == "data":
            self._data.append(value)
        elif name == "id":
            if "\0" not in value:
                self._last_event_id = value
        elif name == "retry":
            if value.isdigit():
                self._retry = int(value)
        return None

    def _dispatch(self) -> ServerSentEvent | None:
        if not self._data:
            self._event = ""
            return None
        event = ServerSentEvent(
            event=self._event or "message",
            data="\n".join(self._data),
            id=self._last_event_id,
            retry=self._retry,
        )
        self._event = ""
        self._data = []
        return event


class EventChannel:
    """One open SSE channel to a single node.

    Use as an async context manager; iterate to receive events.  Transport
    failures during reading surface as ``StreamError``.
    """

    def __init__(
        self,
        transport: HttpTransport,
        node: NodeDescriptor,
        path: str,
        *,
        connect_timeout: float,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.node = node
        self.url = node.url_for(path)
        self._transport = transport
        self._connect_timeout = connect_timeout
        self._headers = {"Accept": "text/event-stream", "Cache-Control": "no-cache", **(headers or {})}
        self._response: httpx.Response | None = None
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._response is not None and not self._closed

    async def open(self) -> EventChannel:
        if self._closed:
            raise StreamError(self.url, "channel already closed")
        if self._response is None:
            logger.info("Opening event stream on node %d: %s", self.node.index, self.url)
            try:
                self._response = await self._transport.open_stream(
                    self.url,
                    connect_timeout=self._connect_timeout,
                    headers=self._headers,
                )
            except StreamError as exc:
                logger.warning("Event stream error on %s: %s", self.url, exc)
                raise
        return self

    async def events(self) -> AsyncIterator[ServerSentEvent]:
        """Yield events until the server closes the stream."""
        await self.open()
        decoder = SSEDecoder()
        try:
            async for line in self._response.aiter_lines():
                event = decoder.decode(line.rstrip("\r\n"))
                if event is not None:
                    yield event
        except httpx.RequestError as exc:
            logger.warning("Event stream error on %s: %s", self.url, exc)
            raise StreamError(self.url, f"{type(exc).__name__}: {exc}") from exc
        else:
            logger.info("Event stream closed by node %d: %s", self.node.index, self.url)
        finally:
            await self.aclose()

    def __aiter__(self) -> AsyncIterator[ServerSentEvent]:
        return self.events()

    async def aclose(self) -> None:
        self._closed = True
        if self._response is not None:
            await self._response.aclose()

    async def __aenter__(self) -> EventChannel:
        return await self.open()

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class StreamSupervisor:
    """Opens event channels against the pool's current node.

    Args:
        pool:            Shared node pool (only read, never mutated).
        transport:       HTTP transport providing streaming requests.
        connect_timeout: Seconds allowed to establish a channel.
    """

    def __init__(self, pool: NodePool, transport: HttpTransport, *, connect_timeout: float = 5.0) -> None:
        self._pool = pool
        self._transport = transport
        self.connect_timeout = connect_timeout

    def open_stream(self, path: str, headers: dict[str, str] | None = None) -> EventChannel:
        """Return a channel bound to the current node; opened on first use."""
        return EventChannel(
            self._transport,
            self._pool.current_node,
            path,
            connect_timeout=self.connect_timeout,
            headers=headers,
        )
