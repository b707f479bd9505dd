"""Tagged outcome of a routed request: ``Success | Failure``."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Literal

from src.resilience.registry import NodeDescriptor
from src.transport import TransportResponse


class FailureKind(str, Enum):
    TRANSPORT = "transport"  # node unreachable or timed out
    SERVER = "server"  # 5xx
    CLIENT = "client"  # 4xx, returned as-is
    EXHAUSTED = "exhausted"  # every node failed


@dataclass(frozen=True)
class Success:
    response: TransportResponse
    node: NodeDescriptor
    attempts: int = 1
    ok: Literal[True] = True


@dataclass(frozen=True)
class Failure:
    """A failed attempt or call.

    ``cause`` is the matching ``NodeRouterError``; ``response`` is set for
    SERVER and CLIENT failures, ``node`` for every kind but EXHAUSTED.
    """

    kind: FailureKind
    cause: Exception
    node: NodeDescriptor | None = None
    response: TransportResponse | None = None
    attempts: int = 1
    ok: Literal[False] = False

    @property
    def triggers_failover(self) -> bool:
        return self.kind in (FailureKind.TRANSPORT, FailureKind.SERVER)


AttemptResult = Success | Failure
