"""Failover router — sends a request to the current node, failing over.

For one logical request the router tries nodes strictly one after the
other, starting at the pool's current node:

    2xx / 3xx        →  Success, node recorded healthy
    4xx              →  returned as-is, no failover, node not penalized
    5xx / transport  →  node marked failed, next healthy node tried

Each node is tried at most once per call, so at most N attempts are made
for an N-node pool.  When every candidate has failed the call ends with
``AggregateFailoverError`` wrapping the last underlying error.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

from src.core.errors import AggregateFailoverError, ClientError, ServerError, TransportError
from src.resilience.health_tracker import HealthTracker
from src.resilience.node_pool import NodePool
from src.resilience.registry import NodeDescriptor
from src.resilience.results import AttemptResult, Failure, FailureKind, Success
from src.transport import Transport, TransportResponse

logger = logging.getLogger(__name__)

# Max characters of a 4xx/5xx body carried into error messages
_MAX_DETAIL_LEN = 200


class FailoverRouter:
    """Routes requests across the node pool.

    Args:
        pool:            Shared node pool (router + health state).
        transport:       Transport used for every attempt.
        tracker:         Health tracker, probed lazily before each call.
        request_timeout: Default per-attempt timeout in seconds.
    """

    def __init__(
        self,
        pool: NodePool,
        transport: Transport,
        tracker: HealthTracker,
        *,
        request_timeout: float = 5.0,
    ) -> None:
        self._pool = pool
        self._transport = transport
        self._tracker = tracker
        self.request_timeout = request_timeout

    # ── Core routing ─────────────────────────────────────────────────

    async def attempt(
        self,
        method: str,
        path: str,
        *,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        json: Any = None,
        content: bytes | str | None = None,
        timeout: float | None = None,
    ) -> AttemptResult:
        """Route one request and return a tagged result instead of raising.

        Returns:
            ``Success`` for a 2xx/3xx answer, ``Failure(CLIENT)`` for a 4xx
            answer, ``Failure(EXHAUSTED)`` once every node has failed.
        """
        await self._tracker.probe()

        max_attempts = len(self._pool.registry)
        tried: set[int] = set()
        last_error: Exception | None = None

        for attempt in range(max_attempts):
            node = self._pool.current_node
            if node.index in tried:
                break
            tried.add(node.index)

            logger.debug(
                "Attempt %d/%d: %s %s on node %d",
                attempt + 1,
                max_attempts,
                method.upper(),
                node.url_for(path),
                node.index,
            )
            outcome = await self._attempt_node(
                node,
                method,
                path,
                headers=headers,
                params=params,
                json=json,
                content=content,
                timeout=self.request_timeout if timeout is None else timeout,
            )
            if not (isinstance(outcome, Failure) and outcome.triggers_failover):
                return dataclasses.replace(outcome, attempts=len(tried))

            last_error = outcome.cause
            self._pool.mark_failed(node.index)

        logger.error("All nodes unavailable for %s %s (%d attempted)", method.upper(), path, len(tried))
        return Failure(
            kind=FailureKind.EXHAUSTED,
            cause=AggregateFailoverError(len(tried), last_error),
            attempts=len(tried),
        )

    async def route(self, method: str, path: str, **options: Any) -> TransportResponse:
        """Route one request; return the response or raise.

        4xx responses are returned, not raised.

        Raises:
            AggregateFailoverError: If every node failed.
        """
        result = await self.attempt(method, path, **options)
        if isinstance(result, Success):
            return result.response
        if result.kind is FailureKind.CLIENT and result.response is not None:
            return result.response
        raise result.cause

    async def _attempt_node(
        self,
        node: NodeDescriptor,
        method: str,
        path: str,
        *,
        timeout: float,
        **request: Any,
    ) -> AttemptResult:
        """Execute a single attempt against *node* and classify it."""
        try:
            response = await self._transport.send(method, node.url_for(path), timeout=timeout, **request)
        except TransportError as exc:
            logger.warning("Node %d (%s) failed: %s", node.index, node.address, exc)
            return Failure(FailureKind.TRANSPORT, exc, node=node)

        if response.is_server_error:
            exc = ServerError(node.address, response.status_code, response.text[:_MAX_DETAIL_LEN])
            logger.warning("Node %d (%s) failed: %s", node.index, node.address, exc)
            return Failure(FailureKind.SERVER, exc, node=node, response=response)

        if response.is_client_error:
            logger.info("Client error %d from node %d, no failover", response.status_code, node.index)
            exc = ClientError(node.address, response.status_code, response.text[:_MAX_DETAIL_LEN])
            return Failure(FailureKind.CLIENT, exc, node=node, response=response)

        self._pool.record_success(node.index, response.elapsed_ms)
        logger.info("Request succeeded on node %d (%s)", node.index, node.address)
        return Success(response, node)

    # ── State operations ─────────────────────────────────────────────

    def mark_failed(self, index: int) -> None:
        """Mark *index* failed and advance the current node (fail-open when all fail)."""
        self._pool.mark_failed(index)

    def switch_to(self, index: int) -> bool:
        """Operator override: route to *index* from now on."""
        return self._pool.switch_to(index)

    def reset_failures(self) -> None:
        """Operator action: forget every recorded failure."""
        self._pool.reset_failures()

    @property
    def current_node(self) -> NodeDescriptor:
        return self._pool.current_node
