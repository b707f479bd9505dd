"""Shared fixtures for unit tests.

Nodes are simulated with ``httpx.MockTransport``: each node address gets a
scripted behaviour (a status code, ``"refuse"``, ``"timeout"`` or
``"corrupt"`` for a body that fails gzip decoding) and every
request that reaches the mock is recorded.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import httpx
import pytest

from src.core.config import Settings
from src.failover_client import FailoverClient
from src.transport import HttpTransport

NODES = ["http://node-a:8080", "http://node-b:8080", "http://node-c:8080"]


class ManualClock:
    """Clock that only moves when ``advance()`` is called."""

    def __init__(self) -> None:
        self._elapsed = 0.0
        self._epoch = datetime(2024, 1, 1, tzinfo=UTC)

    def monotonic(self) -> float:
        return self._elapsed

    def now(self) -> datetime:
        return self._epoch + timedelta(seconds=self._elapsed)

    def advance(self, seconds: float) -> None:
        self._elapsed += seconds


class FakeNodes:
    """Scripted node behaviours for ``httpx.MockTransport``."""

    def __init__(self) -> None:
        self.behaviours: dict[str, int | str] = {}
        self.calls: list[httpx.Request] = []

    def set(self, address: str, behaviour: int | str) -> None:
        self.behaviours[address] = behaviour

    def calls_to(self, address: str, path: str | None = None) -> int:
        return sum(
            1
            for r in self.calls
            if f"{r.url.scheme}://{r.url.host}:{r.url.port}" == address and (path is None or r.url.path == path)
        )

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        address = f"{request.url.scheme}://{request.url.host}:{request.url.port}"
        behaviour = self.behaviours.get(address, 200)
        if behaviour == "refuse":
            raise httpx.ConnectError("Connection refused", request=request)
        if behaviour == "timeout":
            raise httpx.ReadTimeout("read timed out", request=request)
        if behaviour == "corrupt":
            return httpx.Response(200, headers={"Content-Encoding": "gzip"}, content=b"not-gzip")
        return httpx.Response(behaviour, json={"node": address, "path": request.url.path})


def make_settings(addresses: list[str], **overrides) -> Settings:
    return Settings(
        API_BASE_URL=addresses[0],
        API_BACKUP_URLS=",".join(addresses[1:]),
        **overrides,
    )


@pytest.fixture
def nodes() -> list[str]:
    return list(NODES)


@pytest.fixture
def settings_for():
    return make_settings


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def fake_nodes() -> FakeNodes:
    return FakeNodes()


@pytest.fixture
async def transport(fake_nodes: FakeNodes):
    transport = HttpTransport(httpx.AsyncClient(transport=httpx.MockTransport(fake_nodes)))
    yield transport
    await transport.aclose()


@pytest.fixture
def make_client(transport: HttpTransport, clock: ManualClock):
    """Factory building a ``FailoverClient`` over the fake nodes."""

    def _make(addresses: list[str] | None = None, **overrides) -> FailoverClient:
        return FailoverClient(make_settings(addresses or NODES, **overrides), transport=transport, clock=clock)

    return _make
