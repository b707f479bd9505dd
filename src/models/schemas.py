"""Response models for the monitoring API."""

from datetime import datetime

from pydantic import BaseModel, Field

from src.resilience.node_pool import NodeSnapshot, NodeStatus


class HealthResponse(BaseModel):
    """Response model for GET /health."""

    service: str
    version: str
    status: str
    uptime_seconds: float
    current_node: int
    failed_nodes: list[int]


class NodeStatusModel(BaseModel):
    index: int = Field(..., ge=0)
    address: str
    status: NodeStatus
    last_checked_at: datetime | None = None
    response_time_ms: float | None = None

    @classmethod
    def from_snapshot(cls, snapshot: NodeSnapshot) -> "NodeStatusModel":
        return cls(
            index=snapshot.index,
            address=snapshot.address,
            status=snapshot.status,
            last_checked_at=snapshot.last_checked_at,
            response_time_ms=snapshot.response_time_ms,
        )


class NodesResponse(BaseModel):
    """Response model for GET /nodes and POST /nodes/check."""

    current_node: int
    nodes: list[NodeStatusModel]


class SwitchResponse(BaseModel):
    switched: bool
    current_node: int
