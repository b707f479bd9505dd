"""Node pool coordinator — shared router and health state.

``NodePool`` is the single owner of the mutable failover state:

    RouterState      current node index + set of failed indices
    NodeHealthState  one per node: status, last check time, latency

Per-node status transitions:

    UNKNOWN  →  (first successful use or probe)        →  HEALTHY
    HEALTHY  →  (transport failure or 5xx)             →  FAILED
    FAILED   →  (probe, switch, reset, use after fail-open) →  HEALTHY

No state is terminal.  Concurrent ``route()`` calls mutate the pool
without a lock: ``mark_failed`` is idempotent and the current index only
moves forward (modulo pool size), so interleavings converge.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum

from src.core.clock import Clock, SystemClock
from src.core.errors import UnknownNodeError
from src.resilience.registry import NodeDescriptor, NodeRegistry

logger = logging.getLogger(__name__)


class NodeStatus(str, Enum):
    """Advisory node status shown to monitoring."""

    HEALTHY = "healthy"
    FAILED = "failed"
    UNKNOWN = "unknown"


@dataclass
class NodeHealthState:
    status: NodeStatus = NodeStatus.UNKNOWN
    last_checked_at: datetime | None = None
    response_time_ms: float | None = None


@dataclass
class RouterState:
    current_node_index: int = 0
    failed_set: set[int] = field(default_factory=set)


@dataclass(frozen=True)
class NodeSnapshot:
    """Read-only view of one node for monitoring surfaces."""

    index: int
    address: str
    status: NodeStatus
    last_checked_at: datetime | None
    response_time_ms: float | None

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        data["last_checked_at"] = self.last_checked_at.isoformat() if self.last_checked_at else None
        return data


class NodePool:
    """Owns ``RouterState`` and the per-node ``NodeHealthState`` map.

    Args:
        registry: The fixed node registry.
        clock:    Time source for health timestamps.
    """

    def __init__(self, registry: NodeRegistry, clock: Clock | None = None) -> None:
        self.registry = registry
        self.clock: Clock = clock or SystemClock()
        self._state = RouterState()
        self._health: dict[int, NodeHealthState] = {node.index: NodeHealthState() for node in registry}

    # ── Public properties ────────────────────────────────────────────

    @property
    def current_index(self) -> int:
        return self._state.current_node_index

    @property
    def current_node(self) -> NodeDescriptor:
        return self.registry[self._state.current_node_index]

    @property
    def failed_indices(self) -> frozenset[int]:
        return frozenset(self._state.failed_set)

    def is_failed(self, index: int) -> bool:
        return index in self._state.failed_set

    def health_of(self, index: int) -> NodeHealthState:
        """Return a copy of the health state for *index*."""
        state = self._health_for(index)
        return NodeHealthState(state.status, state.last_checked_at, state.response_time_ms)

    def _health_for(self, index: int) -> NodeHealthState:
        if not self.registry.contains(index):
            raise UnknownNodeError(index, len(self.registry))
        return self._health[index]

    # ── Failover transitions ─────────────────────────────────────────

    def next_healthy_index(self) -> int | None:
        """First index not in the failed set, scanning up from the current one."""
        size = len(self.registry)
        for offset in range(size):
            index = (self._state.current_node_index + offset) % size
            if index not in self._state.failed_set:
                return index
        return None

    def mark_failed(self, index: int) -> None:
        """Record *index* as failed and move the current node forward.

        Idempotent.  When every node ends up failed the failed set is
        cleared and routing restarts at node 0 (fail-open reset).  Their
        health stays FAILED until a success, probe, switch or reset.
        """
        node = self.registry[index]
        health = self._health[index]
        health.status = NodeStatus.FAILED
        health.last_checked_at = self.clock.now()

        if index not in self._state.failed_set:
            self._state.failed_set.add(index)
            logger.warning("Node %d (%s) marked as failed", index, node.address)

        if len(self._state.failed_set) >= len(self.registry):
            logger.error(
                "All %d nodes marked as failed; clearing failures and restarting at node 0",
                len(self.registry),
            )
            self._state.failed_set.clear()
            self._state.current_node_index = 0
            return

        next_index = self.next_healthy_index()
        if next_index is not None and next_index != self._state.current_node_index:
            self._state.current_node_index = next_index
            logger.info("Switched to node %d (%s)", next_index, self.current_node.address)

    def record_success(self, index: int, response_time_ms: float) -> None:
        """Note a successful request on *index*.

        A node that a concurrent call has just marked failed stays failed
        until a probe or an operator re-admits it.
        """
        health = self._health_for(index)
        if index in self._state.failed_set:
            return
        health.status = NodeStatus.HEALTHY
        health.last_checked_at = self.clock.now()
        health.response_time_ms = response_time_ms

    def record_probe(self, index: int, healthy: bool, response_time_ms: float | None = None) -> None:
        """Apply the outcome of a liveness probe on *index*."""
        node = self.registry[index]
        health = self._health[index]
        health.last_checked_at = self.clock.now()
        if not healthy:
            return
        health.status = NodeStatus.HEALTHY
        health.response_time_ms = response_time_ms
        if index in self._state.failed_set:
            self._state.failed_set.discard(index)
            logger.info("Node %d (%s) is available again", index, node.address)

    def record_check(self, index: int, response_time_ms: float | None) -> None:
        """Store the timestamp and latency of an advisory full health check."""
        health = self._health_for(index)
        health.last_checked_at = self.clock.now()
        if response_time_ms is not None:
            health.response_time_ms = response_time_ms

    # ── Operator actions ─────────────────────────────────────────────

    def switch_to(self, index: int) -> bool:
        """Force routing to *index* and re-admit it.  ``False`` if out of range."""
        if not self.registry.contains(index):
            return False
        node = self.registry[index]
        logger.info("Manual switch to node %d (%s)", index, node.address)
        self._state.current_node_index = index
        self._state.failed_set.discard(index)
        self._health[index].status = NodeStatus.HEALTHY
        return True

    def reset_failures(self) -> None:
        """Clear every recorded failure without probing.

        Routing restarts from the primary so registry order applies again.
        """
        logger.info("Resetting failed node state (%d failed)", len(self._state.failed_set))
        self._state.failed_set.clear()
        self._state.current_node_index = 0
        for health in self._health.values():
            health.status = NodeStatus.HEALTHY

    # ── Read-only views ──────────────────────────────────────────────

    def snapshot(self) -> list[NodeSnapshot]:
        """Return a snapshot of every node, in registry order."""
        return [
            NodeSnapshot(
                index=node.index,
                address=node.address,
                status=self._health[node.index].status,
                last_checked_at=self._health[node.index].last_checked_at,
                response_time_ms=self._health[node.index].response_time_ms,
            )
            for node in self.registry
        ]
