"""Structured errors for the node router.

Custom exception hierarchy for the failover client.  Transport and
server failures make the router move to the next node; client errors
are surfaced to the caller untouched; ``AggregateFailoverError`` is the
only error a caller of ``route()`` sees when the whole pool is down.
"""

from pydantic import BaseModel


class NodeRouterError(Exception):
    """Base exception for all node-router errors."""


class TransportError(NodeRouterError):
    """Raised when a node cannot be reached (refused, DNS, reset, timeout).

    Triggers failover to the next node.
    """

    def __init__(self, address: str, detail: str = "") -> None:
        self.address = address
        self.detail = detail
        msg = f"Node unavailable: {address}"
        if detail:
            msg += f" — {detail}"
        super().__init__(msg)


class NodeTimeoutError(TransportError):
    """Raised when a single attempt exceeds its timeout."""

    def __init__(self, address: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(address, f"timed out after {timeout_seconds}s")


class ServerError(NodeRouterError):
    """Raised for a 5xx response.  Triggers failover."""

    def __init__(self, address: str, status_code: int, detail: str = "") -> None:
        self.address = address
        self.status_code = status_code
        self.detail = detail
        msg = f"Server error {status_code} from {address}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class ClientError(NodeRouterError):
    """A 4xx response.  Never triggers failover and never penalizes the node."""

    def __init__(self, address: str, status_code: int, detail: str = "") -> None:
        self.address = address
        self.status_code = status_code
        self.detail = detail
        msg = f"Client error {status_code} from {address}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class AggregateFailoverError(NodeRouterError):
    """Raised once every node has been tried and failed for a single call.

    Attributes:
        attempts:   Number of nodes tried during the call.
        last_error: The most recent ``TransportError`` / ``ServerError``.
    """

    def __init__(self, attempts: int, last_error: Exception | None) -> None:
        self.attempts = attempts
        self.last_error = last_error
        msg = f"All nodes unavailable after {attempts} attempt(s)"
        if last_error is not None:
            msg += f". Last error: {last_error}"
        super().__init__(msg)
        self.__cause__ = last_error


class UnknownNodeError(NodeRouterError, LookupError):
    """Raised when a node index is outside the registry."""

    def __init__(self, index: int, node_count: int) -> None:
        self.index = index
        self.node_count = node_count
        super().__init__(f"Node index {index} out of range (pool has {node_count} node(s))")


class StreamError(NodeRouterError):
    """Raised when an event stream cannot be opened or breaks mid-read.

    Streams are not failed over automatically; the consumer reopens.
    """

    def __init__(self, address: str, detail: str = "") -> None:
        self.address = address
        self.detail = detail
        msg = f"Event stream error on {address}"
        if detail:
            msg += f" — {detail}"
        super().__init__(msg)


class StructuredErrorResponse(BaseModel):
    """Structured error response.

    Returns ``{"error": str, "code": str, "request_id": str}`` — no stack traces.
    """

    error: str
    code: str
    request_id: str

    @classmethod
    def from_exception(cls, exc: Exception, request_id: str) -> "StructuredErrorResponse":
        """Create from an exception, mapping to machine-readable codes.

        Never leaks internal details for unhandled exceptions.
        """
        if isinstance(exc, AggregateFailoverError):
            return cls(error=str(exc), code="ALL_NODES_FAILED", request_id=request_id)
        if isinstance(exc, TransportError):
            return cls(error=str(exc), code="NODE_UNAVAILABLE", request_id=request_id)
        if isinstance(exc, ServerError):
            return cls(error=str(exc), code="NODE_SERVER_ERROR", request_id=request_id)
        if isinstance(exc, ClientError):
            return cls(error=str(exc), code="CLIENT_ERROR", request_id=request_id)
        if isinstance(exc, UnknownNodeError):
            return cls(error=str(exc), code="NODE_NOT_FOUND", request_id=request_id)
        if isinstance(exc, StreamError):
            return cls(error=str(exc), code="STREAM_ERROR", request_id=request_id)
        if isinstance(exc, NodeRouterError):
            return cls(error=str(exc), code="ROUTER_ERROR", request_id=request_id)
        # Unhandled — never expose internal details
        return cls(
            error="An internal error occurred",
            code="INTERNAL_ERROR",
            request_id=request_id,
        )
