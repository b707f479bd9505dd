"""Integration test configuration.

Shared fixtures for tests requiring a live node pool.
All integration tests are marked with ``@pytest.mark.integration``.
Run them with: ``INTEGRATION=1 pytest tests/integration/ -m integration``
"""

import os

import httpx
import pytest

from src.core.config import Settings
from src.failover_client import FailoverClient

# ── Auto-skip when INTEGRATION env not set ──────────────────────────────────


def pytest_collection_modifyitems(config, items):
    """Auto-skip integration tests when INTEGRATION env var is not set."""
    if os.environ.get("INTEGRATION", "").lower() in ("1", "true", "yes"):
        return
    skip_marker = pytest.mark.skip(reason="Set INTEGRATION=1 to run integration tests with live nodes")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_marker)


# ── Fixtures ────────────────────────────────────────────────────────────────


@pytest.fixture
def settings() -> Settings:
    """Real settings from NODE_ROUTER_* env vars (localhost pool by default)."""
    return Settings()


@pytest.fixture
async def failover_client(settings):
    """Real FailoverClient with a live HTTP client."""
    async with FailoverClient(settings) as client:
        yield client


async def node_is_up(url: str, timeout: float = 3.0) -> bool:
    """Return True if a health endpoint responds with 2xx."""
    try:
        async with httpx.AsyncClient() as client:
            resp = await client.get(url, timeout=timeout)
            return resp.is_success
    except httpx.HTTPError:
        return False


@pytest.fixture
async def live_nodes(settings) -> list[int]:
    """Indices of pool nodes whose health endpoint answers; skip if none."""
    up = [
        index
        for index, address in enumerate(settings.node_addresses())
        if await node_is_up(f"{address.rstrip('/')}{settings.HEALTH_PATH}")
    ]
    if not up:
        pytest.skip("No node in the configured pool is reachable")
    return up
