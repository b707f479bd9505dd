"""Resilience patterns — node registry, health tracking and failover routing.

Keeps a pool of interchangeable backend nodes, routes each request to the
current node, fails over on transport errors and 5xx responses, and
re-admits recovered nodes through throttled liveness probes.
"""

from src.resilience.failover_router import FailoverRouter
from src.resilience.health_tracker import HealthReport, HealthTracker
from src.resilience.node_pool import NodeHealthState, NodePool, NodeSnapshot, NodeStatus, RouterState
from src.resilience.registry import NodeDescriptor, NodeRegistry
from src.resilience.results import AttemptResult, Failure, FailureKind, Success

__all__ = [
    "AttemptResult",
    "Failure",
    "FailureKind",
    "FailoverRouter",
    "HealthReport",
    "HealthTracker",
    "NodeDescriptor",
    "NodeHealthState",
    "NodePool",
    "NodeRegistry",
    "NodeSnapshot",
    "NodeStatus",
    "RouterState",
    "Success",
]
