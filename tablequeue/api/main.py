"""
FastAPI application entry point.
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from tablequeue import __version__
from tablequeue.api.routes import health_router, jobs_router
from tablequeue.config import get_settings
from tablequeue.db import close_db, get_engine, init_db
from tablequeue.errors import StorageFailure
from tablequeue.observability.logging import setup_logging
from tablequeue.observability.metrics import setup_metrics
from tablequeue.observability.tracing import (
    instrument_fastapi,
    instrument_sqlalchemy,
    setup_tracing,
)
from tablequeue.types.api import ErrorResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    settings = get_settings()

    # Startup
    setup_logging()
    setup_metrics()
    setup_tracing()
    await init_db()
    if settings.otel_enabled:
        instrument_sqlalchemy(get_engine())

    logger.info("Application started")

    yield

    # Shutdown
    queue = getattr(app.state, "queue", None)
    if queue is not None:
        await queue.close()
    await close_db()
    logger.info("Application shutdown")


async def storage_failure_handler(request: Request, exc: StorageFailure) -> JSONResponse:
    """Report database failures as 503 so clients retry later."""
    logger.error("Storage failure", extra={"path": request.url.path, "error": str(exc)})
    body = ErrorResponse(error="storage_unavailable", detail=str(exc))
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body.model_dump(),
    )


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: The configured application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Table Queue API",
        description="Push jobs to and inspect a table-backed job queue",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    app.add_exception_handler(StorageFailure, storage_failure_handler)

    # Include routers
    app.include_router(health_router)
    app.include_router(jobs_router)

    if settings.otel_enabled:
        instrument_fastapi(app)

    return app


def run() -> None:
    """Run the API server."""
    settings = get_settings()
    app = create_app()

    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
