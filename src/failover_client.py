"""FailoverClient — the backend-access entry point.

Wires the node registry, the shared ``NodePool`` coordinator, the health
tracker, the failover router and the stream supervisor around one
``HttpTransport``.  Consumers receive a ``FailoverClient`` instance
explicitly; there is no module-level client.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any

from src.core.clock import Clock
from src.core.config import Settings
from src.core.errors import ClientError
from src.resilience.failover_router import FailoverRouter
from src.resilience.health_tracker import HealthReport, HealthTracker
from src.resilience.node_pool import NodePool, NodeSnapshot
from src.resilience.registry import NodeDescriptor, NodeRegistry
from src.resilience.results import AttemptResult
from src.stream_supervisor import EventChannel, StreamSupervisor
from src.transport import HttpTransport, TransportResponse

logger = logging.getLogger(__name__)

HeaderProvider = Callable[[], Mapping[str, str]]


class FailoverClient:
    """Routes requests across a pool of equivalent backend nodes.

    Args:
        settings:        Node addresses, timeouts and probe interval.
        transport:       Optional transport (tests inject a mocked one).
        clock:           Optional time source for probe throttling.
        header_provider: Called per request; its headers are sent with
                         every routed request and stream (e.g. user id).
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: HttpTransport | None = None,
        clock: Clock | None = None,
        header_provider: HeaderProvider | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.registry = NodeRegistry.from_settings(self.settings)
        self.pool = NodePool(self.registry, clock=clock)
        self._transport = transport or HttpTransport()
        self._header_provider = header_provider

        self.health = HealthTracker(
            self.pool,
            self._transport,
            probe_timeout=self.settings.PROBE_TIMEOUT_SECONDS,
            probe_interval=self.settings.PROBE_INTERVAL_SECONDS,
            health_path=self.settings.HEALTH_PATH,
        )
        self.router = FailoverRouter(
            self.pool,
            self._transport,
            self.health,
            request_timeout=self.settings.REQUEST_TIMEOUT_SECONDS,
        )
        self.streams = StreamSupervisor(
            self.pool,
            self._transport,
            connect_timeout=self.settings.REQUEST_TIMEOUT_SECONDS,
        )
        logger.info("Failover client initialised with %d node(s): %s", len(self.registry), self.registry)

    def _headers(self, extra: Mapping[str, str] | None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._header_provider is not None:
            headers.update(self._header_provider())
        if extra:
            headers.update(extra)
        return headers

    # ── Requests ─────────────────────────────────────────────────────

    async def route(
        self,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str] | None = None,
        **options: Any,
    ) -> TransportResponse:
        """Send *method* *path* with failover.

        Keyword options (``params``, ``json``, ``content``, ``timeout``)
        are passed through to each attempt.  4xx responses are returned.

        Raises:
            AggregateFailoverError: If every node failed.
        """
        return await self.router.route(method, path, headers=self._headers(headers), **options)

    async def attempt(
        self,
        method: str,
        path: str,
        *,
        headers: Mapping[str, str] | None = None,
        **options: Any,
    ) -> AttemptResult:
        """Like ``route()`` but returns ``Success`` / ``Failure`` instead of raising."""
        return await self.router.attempt(method, path, headers=self._headers(headers), **options)

    async def request_json(self, method: str, path: str, **options: Any) -> Any:
        """Route a request and decode its JSON body.

        Raises:
            ClientError:            If the final response is a 4xx.
            AggregateFailoverError: If every node failed.
        """
        response = await self.route(method, path, **options)
        if not response.is_success:
            raise ClientError(response.url or path, response.status_code, response.text[:200])
        return response.json()

    def open_stream(self, path: str, headers: Mapping[str, str] | None = None) -> EventChannel:
        """Open a push channel on the current node (no automatic failover)."""
        return self.streams.open_stream(path, headers=self._headers(headers))

    # ── Monitoring / operator actions ────────────────────────────────

    @property
    def current_node(self) -> NodeDescriptor:
        return self.pool.current_node

    def get_health_snapshot(self) -> list[NodeSnapshot]:
        return self.health.get_health_snapshot()

    async def check_all_nodes(self) -> HealthReport:
        return await self.health.check_all_nodes()

    def switch_to(self, index: int) -> bool:
        return self.router.switch_to(index)

    def reset_failures(self) -> None:
        self.router.reset_failures()

    # ── Lifecycle ────────────────────────────────────────────────────

    async def aclose(self) -> None:
        await self._transport.aclose()

    async def __aenter__(self) -> FailoverClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
