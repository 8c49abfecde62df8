"""FastAPI application entrypoint.

Application startup order:
1. Load settings (from environment)
2. Configure structured logging
3. Validate the shard topology and build the connection registry
   (a ConfigurationError here aborts startup)
4. Optionally create missing tables on every shard master
5. Register middleware and routers

Shutdown order:
1. Dispose every shard engine
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from postshard import __version__
from postshard.api.router import api_v1_router, public_router
from postshard.config import Settings, get_settings
from postshard.core.exceptions import CancellationError, ConnectivityError, RoutingError
from postshard.services.orchestrator import ShardedDataAccess
from postshard.sharding import build_registry
from postshard.telemetry.logging import RequestIdMiddleware, configure_logging

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: build the shard registry, dispose it on exit."""
    settings: Settings = app.state.settings

    configure_logging(
        json_logs=settings.is_prod,
        log_level="DEBUG" if settings.debug else "INFO",
    )

    log.info("app.starting", environment=settings.environment)

    registry = build_registry(settings)
    data_access = ShardedDataAccess(registry, default_timeout=settings.query_timeout_seconds)

    try:
        if settings.auto_create_schema:
            await data_access.ensure_schema()

        app.state.data_access = data_access
        log.info("app.ready", shard_count=registry.shard_count)
        yield
    finally:
        app.state.data_access = None
        await registry.dispose()
        log.info("app.shutdown")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Application factory."""
    settings = settings or get_settings()

    app = FastAPI(
        title="postshard",
        description=(
            "Posts sharded by category across master/slave database pairs. "
            "Writes go to the owning shard's master, reads to its slave."
        ),
        version=__version__,
        docs_url="/docs" if settings.is_dev else None,
        redoc_url="/redoc" if settings.is_dev else None,
        openapi_url="/openapi.json" if settings.is_dev else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.data_access = None

    # Unique request ID for log correlation
    app.add_middleware(RequestIdMiddleware)

    # ------------------------------------------------------------------ #
    # Routers
    # ------------------------------------------------------------------ #
    app.include_router(public_router)
    app.include_router(api_v1_router)

    # ------------------------------------------------------------------ #
    # Exception handlers
    # ------------------------------------------------------------------ #

    @app.exception_handler(ConnectivityError)
    async def connectivity_error_handler(request: Request, exc: ConnectivityError) -> JSONResponse:
        return JSONResponse(
            status_code=503,
            content={
                "detail": "Shard connection unavailable",
                "error": "connectivity",
                "shard_index": exc.shard_index,
                "role": str(exc.role),
            },
        )

    @app.exception_handler(CancellationError)
    async def cancellation_error_handler(request: Request, exc: CancellationError) -> JSONResponse:
        return JSONResponse(
            status_code=504,
            content={
                "detail": "Shard operation timed out",
                "error": "cancelled",
                "shard_index": exc.shard_index,
                "role": str(exc.role),
                "timeout": exc.timeout,
            },
        )

    @app.exception_handler(RoutingError)
    async def routing_error_handler(request: Request, exc: RoutingError) -> JSONResponse:
        log.error("app.routing_error", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=500,
            content={"detail": "Shard routing failed", "error": "routing"},
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        log.error(
            "app.unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error"},
        )

    return app


def main() -> None:
    """Run the service with uvicorn (console script entry point)."""
    import uvicorn

    uvicorn.run("postshard.main:create_app", factory=True, host="0.0.0.0", port=8000)
