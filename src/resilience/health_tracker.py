"""Health tracker — throttled re-admission of failed nodes.

``probe()`` is called lazily at the start of every routed request rather
than from a background timer, so an idle client does no work.  It runs at
most once per ``probe_interval`` and only touches nodes currently in the
failed set.  Probe failures are recorded, never raised.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from src.core.errors import TransportError
from src.resilience.node_pool import NodePool, NodeSnapshot, NodeStatus
from src.transport import Transport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HealthReport:
    """Result of an active check of every node."""

    current_node: int
    nodes: list[NodeSnapshot]

    def to_dict(self) -> dict:
        return {
            "current_node": self.current_node,
            "nodes": [node.to_dict() for node in self.nodes],
        }


class HealthTracker:
    """Probes failed nodes and exposes the health snapshot.

    Args:
        pool:           Shared node pool.
        transport:      Transport used for liveness calls.
        probe_timeout:  Seconds allowed per liveness call.
        probe_interval: Minimum seconds between two probe rounds.
        health_path:    Liveness path on every node.
    """

    def __init__(
        self,
        pool: NodePool,
        transport: Transport,
        *,
        probe_timeout: float = 3.0,
        probe_interval: float = 30.0,
        health_path: str = "/api/health",
    ) -> None:
        self._pool = pool
        self._transport = transport
        self.probe_timeout = probe_timeout
        self.probe_interval = probe_interval
        self.health_path = health_path
        self._last_probe_at: float | None = None

        # Metrics
        self.total_probe_rounds = 0
        self.total_node_probes = 0

    def probe_due(self) -> bool:
        if self._last_probe_at is None:
            return True
        return self._pool.clock.monotonic() - self._last_probe_at >= self.probe_interval

    async def probe(self) -> int:
        """Re-check every failed node if the throttle interval has elapsed.

        Returns:
            Number of nodes probed (0 when throttled or nothing is failed).
        """
        if not self.probe_due():
            return 0
        self._last_probe_at = self._pool.clock.monotonic()
        self.total_probe_rounds += 1

        failed = sorted(self._pool.failed_indices)
        if not failed:
            return 0

        logger.info("Probing %d failed node(s): %s", len(failed), failed)
        await asyncio.gather(*(self._probe_node(index) for index in failed))
        return len(failed)

    async def _probe_node(self, index: int) -> None:
        healthy, elapsed_ms = await self._liveness(index)
        self._pool.record_probe(index, healthy, elapsed_ms)

    async def _liveness(self, index: int) -> tuple[bool, float | None]:
        """Call the liveness path on *index*; return (healthy, latency)."""
        node = self._pool.registry[index]
        self.total_node_probes += 1
        try:
            response = await self._transport.send(
                "GET",
                node.url_for(self.health_path),
                timeout=self.probe_timeout,
            )
        except TransportError as exc:
            logger.debug("Liveness check failed for node %d: %s", index, exc)
            return False, None
        return 200 <= response.status_code < 300, response.elapsed_ms

    async def check_all_nodes(self) -> HealthReport:
        """Actively check every node, ignoring the throttle.

        Statuses in the report reflect this check only; the failed set is
        left alone and only timestamps and latencies are stored.
        """
        indices = [node.index for node in self._pool.registry]
        results = await asyncio.gather(*(self._liveness(index) for index in indices))

        nodes = []
        for index, (healthy, elapsed_ms) in zip(indices, results):
            self._pool.record_check(index, elapsed_ms)
            node = self._pool.registry[index]
            state = self._pool.health_of(index)
            nodes.append(
                NodeSnapshot(
                    index=index,
                    address=node.address,
                    status=NodeStatus.HEALTHY if healthy else NodeStatus.FAILED,
                    last_checked_at=state.last_checked_at,
                    response_time_ms=elapsed_ms,
                )
            )
        return HealthReport(current_node=self._pool.current_index, nodes=nodes)

    def get_health_snapshot(self) -> list[NodeSnapshot]:
        """Return the current snapshot; no side effects."""
        return self._pool.snapshot()
