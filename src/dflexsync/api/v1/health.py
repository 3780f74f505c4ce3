"""
Health check endpoints.

Provides endpoints for monitoring application health and readiness.
"""

from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

from dflexsync.api.deps import DbSession, SyncQueueDep
from dflexsync.core.config import settings
from dflexsync.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    environment: str
    version: str


class ReadinessResponse(BaseModel):
    """Readiness check response model."""

    status: str
    database: str
    sync_pending: int
    sync_running: bool


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns application status without checking dependencies.
    """
    return HealthResponse(
        status="ok",
        environment=settings.environment,
        version=settings.app_version,
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(db: DbSession, queue: SyncQueueDep) -> ReadinessResponse:
    """Check the database and report the sync queue backlog."""
    try:
        await db.execute(text("SELECT 1"))
        db_status = "connected"
        status = "ready"
    except Exception as e:
        logger.warning(f"Database readiness check failed: {e}")
        db_status = f"error: {e}"
        status = "unhealthy"

    return ReadinessResponse(
        status=status,
        database=db_status,
        sync_pending=queue.pending_count,
        sync_running=queue.is_running,
    )
