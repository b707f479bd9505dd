"""Settings for the node router.

Centralized configuration for the failover client and its monitoring API.
All settings are loaded from environment variables with the NODE_ROUTER_ prefix.

The node pool is fixed at construction: ``API_BASE_URL`` is the primary
node (index 0) and ``API_BACKUP_URLS`` lists the backups in failover order.
"""

from __future__ import annotations

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Node router configuration.

    All fields can be overridden by environment variables prefixed with
    ``NODE_ROUTER_``.  For example, ``NODE_ROUTER_API_BACKUP_URLS=http://b:8080``
    replaces the default backup list.
    """

    # ── Service identity ────────────────────────────────────────────
    SERVICE_NAME: str = "node-router"
    SERVICE_VERSION: str = "0.1.0"
    HOST: str = "0.0.0.0"
    PORT: int = 8090

    # ── Node pool ───────────────────────────────────────────────────
    API_BASE_URL: str = "http://localhost:8080"
    API_BACKUP_URLS: str = "http://localhost:8081,http://localhost:8082"  # Comma-separated

    # ── Timeouts / probing ──────────────────────────────────────────
    REQUEST_TIMEOUT_SECONDS: float = 5.0  # Per-attempt bound
    PROBE_TIMEOUT_SECONDS: float = 3.0  # Liveness probe bound
    PROBE_INTERVAL_SECONDS: float = 30.0  # Minimum gap between probe rounds
    HEALTH_PATH: str = "/api/health"

    # ── Monitoring API ──────────────────────────────────────────────
    MONITOR_ENABLED: bool = True

    model_config = {
        "env_prefix": "NODE_ROUTER_",
    }

    @field_validator("REQUEST_TIMEOUT_SECONDS", "PROBE_TIMEOUT_SECONDS", "PROBE_INTERVAL_SECONDS")
    @classmethod
    def _must_be_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("HEALTH_PATH")
    @classmethod
    def _leading_slash(cls, v: str) -> str:
        return v if v.startswith("/") else f"/{v}"

    def node_addresses(self) -> list[str]:
        """Return the primary URL followed by every non-blank backup URL."""
        backups = [url.strip() for url in self.API_BACKUP_URLS.split(",")]
        return [self.API_BASE_URL.strip(), *(url for url in backups if url)]
