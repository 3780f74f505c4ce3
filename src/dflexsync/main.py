"""
Dflex Sync application entry point.

Run with ``uvicorn dflexsync.main:app``.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dflexsync.api.v1 import router as v1_router
from dflexsync.core.config import settings
from dflexsync.core.exceptions import DflexSyncException
from dflexsync.core.logging import get_logger, setup_logging
from dflexsync.db.session import AsyncSessionLocal, close_db, init_db
from dflexsync.services.nv_terminados import FinishedOrders
from dflexsync.services.sync_queue import SyncQueue

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup checks the database; shutdown lets the sync queue drain
    before the connection pool is closed.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version} ({settings.environment})")
    await init_db()

    yield

    queue: SyncQueue = app.state.sync_queue
    if queue.is_running:
        logger.info(f"Waiting for the sync queue to drain ({queue.pending_count} pending)")
        await queue.join()
    await close_db()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    The sync queue and the finished-orders list live on ``app.state`` for
    the lifetime of the app; handlers reach them through ``api.deps``.
    """
    setup_logging(
        log_level=settings.log_level,
        json_logs=settings.environment == "production",
    )

    app = FastAPI(
        title=settings.app_name,
        description="Pre-production rows: ERP snapshot, manual overrides and column formulas",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.sync_queue = SyncQueue(session_factory=AsyncSessionLocal)
    app.state.finished_orders = FinishedOrders(settings.nv_terminados_path)

    register_exception_handlers(app)
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app


def _error_response(
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error})


def register_exception_handlers(app: FastAPI) -> None:
    """Map exceptions to the ``{"error": {...}}`` response shape."""

    @app.exception_handler(DflexSyncException)
    async def dflexsync_exception_handler(request: Request, exc: DflexSyncException) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
        return _error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "VALIDATION_ERROR",
            "Request validation failed",
            {"errors": errors},
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(f"Unexpected error on {request.method} {request.url.path}: {exc}")
        # Internal details stay out of production responses
        message = "An unexpected error occurred" if settings.environment == "production" else str(exc)
        return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", message)


app = create_app()


@app.get("/", include_in_schema=False)
async def root() -> dict:
    """Basic service info."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs" if settings.debug else None,
    }
