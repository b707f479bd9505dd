"""End-to-end scenarios for FailoverClient over simulated nodes.

Covers:
- Scenario: [A, B, C] with A and C down, B up
- Scenario: single node answering 500
- Scenario: [X, Y] sticky failover, then reset back to X
- Header provider, JSON helper, tagged results, lifecycle
"""

from __future__ import annotations

import httpx
import pytest

from src.core.errors import AggregateFailoverError, ClientError
from src.failover_client import FailoverClient
from src.resilience.node_pool import NodeStatus
from src.resilience.results import FailureKind, Success
from src.transport import HttpTransport

PATH = "/api/providers"


class TestScenarios:
    async def test_routes_around_dead_nodes(self, make_client, fake_nodes, nodes):
        fake_nodes.set(nodes[0], "refuse")
        fake_nodes.set(nodes[2], "refuse")
        client = make_client()

        response = await client.route("GET", PATH)

        assert response.json()["node"] == nodes[1]
        snapshot = {s.index: s.status for s in client.get_health_snapshot()}
        assert snapshot[0] == NodeStatus.FAILED
        assert snapshot[1] == NodeStatus.HEALTHY
        # C was never contacted; an active check reveals it is down
        assert snapshot[2] == NodeStatus.UNKNOWN
        report = await client.check_all_nodes()
        assert report.nodes[2].status == NodeStatus.FAILED

    async def test_single_node_500_raises_after_one_attempt(self, make_client, fake_nodes):
        solo = "http://solo:8080"
        fake_nodes.set(solo, 500)
        client = make_client([solo])

        with pytest.raises(AggregateFailoverError) as exc_info:
            await client.route("GET", PATH)

        assert exc_info.value.attempts == 1
        assert fake_nodes.calls_to(solo, PATH) == 1
        assert [s.status for s in client.get_health_snapshot()] == [NodeStatus.FAILED]

    async def test_sticky_failover_then_reset(self, make_client, fake_nodes):
        x, y = "http://node-x:8080", "http://node-y:8080"
        fake_nodes.set(x, "refuse")
        client = make_client([x, y])

        first = await client.route("GET", PATH)
        second = await client.route("GET", PATH)

        assert first.json()["node"] == y
        assert second.json()["node"] == y
        assert fake_nodes.calls_to(x, PATH) == 1

        fake_nodes.set(x, 200)
        client.reset_failures()
        third = await client.route("GET", PATH)

        assert third.json()["node"] == x
        assert fake_nodes.calls_to(x, PATH) == 2

    async def test_nodes_before_last_fail(self, make_client, fake_nodes, nodes):
        fake_nodes.set(nodes[0], 502)
        fake_nodes.set(nodes[1], "timeout")
        client = make_client()

        response = await client.route("GET", PATH)

        assert response.json()["node"] == nodes[2]
        statuses = [s.status for s in client.get_health_snapshot()]
        assert statuses[:2] == [NodeStatus.FAILED, NodeStatus.FAILED]


class TestOperatorActions:
    async def test_reset_reports_all_healthy_without_probing(self, make_client, fake_nodes, nodes):
        fake_nodes.set(nodes[0], "refuse")
        client = make_client()
        await client.route("GET", PATH)
        calls_before = len(fake_nodes.calls)

        client.reset_failures()

        assert {s.status for s in client.get_health_snapshot()} == {NodeStatus.HEALTHY}
        assert len(fake_nodes.calls) == calls_before

    async def test_switch_to(self, make_client):
        client = make_client()
        assert client.switch_to(1) is True
        assert client.switch_to(1) is True
        assert client.current_node.index == 1
        assert client.switch_to(5) is False


class TestRequestHelpers:
    async def test_header_provider_applied(self, transport, fake_nodes, clock, settings_for, nodes):
        client = FailoverClient(
            settings_for(nodes),
            transport=transport,
            clock=clock,
            header_provider=lambda: {"X-User-Id": "u1", "X-User-Role": "ADMIN"},
        )
        await client.route("GET", PATH, headers={"X-User-Role": "USER"})
        request = fake_nodes.calls[-1]
        assert request.headers["X-User-Id"] == "u1"
        assert request.headers["X-User-Role"] == "USER"

    async def test_request_json_decodes_body(self, make_client, nodes):
        client = make_client()
        assert await client.request_json("GET", PATH) == {"node": nodes[0], "path": PATH}

    async def test_request_json_raises_on_client_error(self, make_client, fake_nodes, nodes):
        fake_nodes.set(nodes[0], 404)
        client = make_client()
        with pytest.raises(ClientError) as exc_info:
            await client.request_json("GET", PATH)
        assert exc_info.value.status_code == 404

    async def test_attempt_returns_tagged_result(self, make_client, fake_nodes, nodes):
        client = make_client()
        result = await client.attempt("GET", PATH)
        assert isinstance(result, Success)
        assert result.node.index == 0

        for address in nodes:
            fake_nodes.set(address, "refuse")
        result = await client.attempt("GET", PATH)
        assert result.kind is FailureKind.EXHAUSTED

    async def test_open_stream_bound_to_current_node(self, make_client, fake_nodes, nodes):
        fake_nodes.set(nodes[0], "refuse")
        client = make_client()
        await client.route("GET", PATH)
        channel = client.open_stream("/api/metrics/vcube/events/stream")
        assert channel.node.index == 1
        assert channel.url == f"{nodes[1]}/api/metrics/vcube/events/stream"


class TestLifecycle:
    async def test_async_context_manager_closes_transport(self, settings_for, nodes):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        async with FailoverClient(settings_for(nodes), transport=HttpTransport(http_client)) as client:
            await client.route("GET", PATH)
        assert http_client.is_closed
