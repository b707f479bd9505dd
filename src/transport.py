"""HTTP transport — one attempt against one node.

``HttpTransport.send()`` performs a single bounded request and returns a
``TransportResponse``.  Every low-level failure (refused connection, DNS,
reset, protocol error, timeout) is translated into ``TransportError`` so
the router only ever has to distinguish "reached the node" from "did not".
A single ``httpx.AsyncClient`` is shared by every node for connection
pooling.
"""

from __future__ import annotations

import asyncio
import json as _json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from src.core.errors import NodeTimeoutError, StreamError, TransportError

logger = logging.getLogger(__name__)


@dataclass
class TransportResponse:
    """Fully-read response from a node.

    Attributes:
        status_code: HTTP status code.
        content:     Raw body bytes.
        headers:     Response headers as a plain dict.
        elapsed_ms:  Round-trip time in milliseconds.
        url:         The absolute URL that was requested.
    """

    status_code: int
    content: bytes = b""
    headers: dict[str, str] = field(default_factory=dict)
    elapsed_ms: float = 0.0
    url: str = ""

    @property
    def text(self) -> str:
        return self.content.decode("utf-8", errors="replace")

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 400

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500

    def json(self) -> Any:
        return _json.loads(self.content) if self.content else None


class Transport(Protocol):
    async def send(
        self,
        method: str,
        url: str,
        *,
        timeout: float,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
        content: bytes | str | None = None,
    ) -> TransportResponse: ...


class HttpTransport:
    """``Transport`` implementation on top of ``httpx.AsyncClient``.

    Args:
        client: Optional pre-built client (tests inject one wrapping
                ``httpx.MockTransport``).  Closed by ``aclose()``.
    """

    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        self._client = client if client is not None else httpx.AsyncClient()

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client

    async def send(
        self,
        method: str,
        url: str,
        *,
        timeout: float,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
        content: bytes | str | None = None,
    ) -> TransportResponse:
        """Send one request, bounded end-to-end by *timeout* seconds.

        Redirects are followed, so a 3xx only comes back when it carries no
        ``Location``.

        Raises:
            NodeTimeoutError: If the attempt exceeds *timeout*.
            TransportError:   If the node cannot be reached or its body
                              cannot be decoded.
        """
        start = time.monotonic()
        try:
            async with asyncio.timeout(timeout):
                response = await self._client.request(
                    method.upper(),
                    url,
                    headers=headers,
                    params=params,
                    json=json,
                    content=content,
                    timeout=timeout,
                    follow_redirects=True,
                )
        except (TimeoutError, httpx.TimeoutException):
            raise NodeTimeoutError(url, timeout) from None
        except httpx.RequestError as exc:
            raise TransportError(url, f"{type(exc).__name__}: {exc}") from exc

        elapsed_ms = (time.monotonic() - start) * 1000
        return TransportResponse(
            status_code=response.status_code,
            content=response.content,
            headers=dict(response.headers),
            elapsed_ms=round(elapsed_ms, 2),
            url=url,
        )

    async def open_stream(
        self,
        url: str,
        *,
        connect_timeout: float,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Open a streaming GET and return the un-read response.

        Only connecting is bounded; reads wait indefinitely for the next
        event.  The caller owns the response and must ``aclose()`` it.

        Raises:
            StreamError: On connection failure or a non-2xx status.
        """
        request = self._client.build_request(
            "GET",
            url,
            headers=headers,
            timeout=httpx.Timeout(connect_timeout, read=None),
        )
        try:
            response = await self._client.send(request, stream=True)
        except httpx.RequestError as exc:
            raise StreamError(url, f"{type(exc).__name__}: {exc}") from exc

        if not response.is_success:
            await response.aclose()
            raise StreamError(url, f"HTTP {response.status_code}")
        return response

    async def aclose(self) -> None:
        """Close the pooled httpx client."""
        await self._client.aclose()
