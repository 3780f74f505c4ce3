"""Database layer for Dflex Sync."""

from dflexsync.db.base import Base
from dflexsync.db.session import (
    AsyncSessionLocal,
    engine,
    get_db,
    get_db_context,
    init_db,
)

__all__ = [
    "Base",
    "AsyncSessionLocal",
    "engine",
    "get_db",
    "get_db_context",
    "init_db",
]
