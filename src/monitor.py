"""Node monitoring routes — pool status and operator actions.

    GET  /nodes                 snapshot of every node + current index
    POST /nodes/check           actively check every node
    POST /nodes/{index}/switch  force routing to one node
    POST /nodes/reset           clear every recorded failure

The ``FailoverClient`` is read from ``app.state.failover_client``.
"""

from fastapi import APIRouter, Request

from src.core.errors import UnknownNodeError
from src.failover_client import FailoverClient
from src.models.schemas import NodesResponse, NodeStatusModel, SwitchResponse

router = APIRouter(prefix="/nodes", tags=["nodes"])


def _client(request: Request) -> FailoverClient:
    return request.app.state.failover_client


@router.get("", response_model=NodesResponse)
async def list_nodes(request: Request) -> NodesResponse:
    client = _client(request)
    return NodesResponse(
        current_node=client.current_node.index,
        nodes=[NodeStatusModel.from_snapshot(s) for s in client.get_health_snapshot()],
    )


@router.post("/check", response_model=NodesResponse)
async def check_nodes(request: Request) -> NodesResponse:
    report = await _client(request).check_all_nodes()
    return NodesResponse(
        current_node=report.current_node,
        nodes=[NodeStatusModel.from_snapshot(s) for s in report.nodes],
    )


@router.post("/{index}/switch", response_model=SwitchResponse)
async def switch_node(index: int, request: Request) -> SwitchResponse:
    client = _client(request)
    if not client.switch_to(index):
        raise UnknownNodeError(index, len(client.registry))
    return SwitchResponse(switched=True, current_node=client.current_node.index)


@router.post("/reset", response_model=NodesResponse)
async def reset_nodes(request: Request) -> NodesResponse:
    client = _client(request)
    client.reset_failures()
    return NodesResponse(
        current_node=client.current_node.index,
        nodes=[NodeStatusModel.from_snapshot(s) for s in client.get_health_snapshot()],
    )
