"""
FastAPI dependency injection functions.

Provides reusable dependencies for database sessions and the
application-scoped sync queue.
"""

from typing import Annotated

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dflexsync.db.session import get_db
from dflexsync.services.nv_terminados import FinishedOrders
from dflexsync.services.sync_queue import SyncQueue


def get_sync_queue(request: Request) -> SyncQueue:
    """The queue created by ``create_app``."""
    return request.app.state.sync_queue


def get_finished_orders(request: Request) -> FinishedOrders:
    """Finished NV list loaded for the app's lifetime."""
    return request.app.state.finished_orders


# Type aliases for common dependencies
DbSession = Annotated[AsyncSession, Depends(get_db)]
SyncQueueDep = Annotated[SyncQueue, Depends(get_sync_queue)]
FinishedOrdersDep = Annotated[FinishedOrders, Depends(get_finished_orders)]
