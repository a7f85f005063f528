"""
FastAPI application factory.
"""

import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from devdigest import __version__
from devdigest.api.dependencies import cleanup_dependencies
from devdigest.api.routes import content, health, refresh, sources
from devdigest.observability.logging import setup_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    logger.info("DevDigest API starting up")
    yield
    logger.info("DevDigest API shutting down")
    await cleanup_dependencies()


def create_app(configure_logging: bool = True) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application
    """
    if configure_logging:
        setup_logging()

    openapi_tags = [
        {"name": "health", "description": "Service health checks"},
        {"name": "refresh", "description": "Run and monitor aggregation passes"},
        {"name": "sources", "description": "Source catalog and fetch statistics"},
        {"name": "content", "description": "Aggregated content"},
    ]

    app = FastAPI(
        title="DevDigest API",
        description="Aggregates tech and startup content from Reddit, RSS feeds and JSON APIs.",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
        openapi_tags=openapi_tags,
    )

    # Request logging and correlation ID
    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start_time = time.perf_counter()

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time
            response.headers["X-Request-ID"] = request_id

            logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )
            return response
        finally:
            structlog.contextvars.clear_contextvars()

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error_type": "internal"},
        )

    app.include_router(health.router, tags=["health"])
    app.include_router(refresh.router, tags=["refresh"])
    app.include_router(sources.router, tags=["sources"])
    app.include_router(content.router, tags=["content"])

    return app
