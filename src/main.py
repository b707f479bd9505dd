"""FastAPI application entrypoint — node monitoring surface.

Provides the ``/health`` endpoint, request-ID middleware, structured
error responses, and the ``/nodes`` monitoring router backed by a single
``FailoverClient`` stored on ``app.state``.
"""

import logging
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from src.core.config import Settings
from src.core.errors import NodeRouterError, StructuredErrorResponse, UnknownNodeError
from src.failover_client import FailoverClient
from src.models.schemas import HealthResponse
from src.monitor import router as nodes_router

logger = logging.getLogger(__name__)

# NodeRouterError subclass → HTTP status; anything else maps to 502
_ERROR_STATUS: dict[type[NodeRouterError], int] = {
    UnknownNodeError: 404,
}


def create_app(settings: Settings | None = None, client: FailoverClient | None = None) -> FastAPI:
    """Build the monitoring app around one ``FailoverClient``.

    Args:
        settings: Application settings (defaults loaded from the environment).
        client:   Pre-built client; tests inject one with a mocked transport.
    """
    settings = settings or Settings()
    failover_client = client or FailoverClient(settings)
    start_time = time.monotonic()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await failover_client.aclose()

    app = FastAPI(
        title=settings.SERVICE_NAME,
        version=settings.SERVICE_VERSION,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.failover_client = failover_client

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next) -> Response:
        """Assign or preserve a unique request ID on every request."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response

    @app.exception_handler(NodeRouterError)
    async def node_router_error_handler(request: Request, exc: NodeRouterError) -> JSONResponse:
        request_id = getattr(request.state, "request_id", "") or str(uuid.uuid4())
        body = StructuredErrorResponse.from_exception(exc, request_id)
        status_code = _ERROR_STATUS.get(type(exc), 502)
        logger.warning("Request %s failed with %s: %s", request_id, body.code, exc)
        return JSONResponse(status_code=status_code, content=body.model_dump())

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Return service health with name, version, uptime and current node."""
        return HealthResponse(
            service=settings.SERVICE_NAME,
            version=settings.SERVICE_VERSION,
            status="healthy",
            uptime_seconds=round(time.monotonic() - start_time, 2),
            current_node=failover_client.current_node.index,
            failed_nodes=sorted(failover_client.pool.failed_indices),
        )

    if settings.MONITOR_ENABLED:
        app.include_router(nodes_router)
        logger.info("Node monitor mounted at /nodes for %d node(s)", len(failover_client.registry))
    else:
        logger.warning("Node monitor disabled — /nodes not mounted")

    return app


app = create_app()
