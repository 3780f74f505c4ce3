"""
Async engine and session factory.

One engine per process. Sessions come from ``AsyncSessionLocal``, either
through the ``get_db`` FastAPI dependency or ``get_db_context`` for work
outside a request (the sync queue).
"""

import ssl
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from dflexsync.core.config import settings
from dflexsync.core.logging import get_logger
from dflexsync.db.base import Base

logger = get_logger(__name__)

# Query parameters understood by libpq but rejected by asyncpg
_LIBPQ_ONLY = frozenset(
    {
        "sslmode",
        "channel_binding",
        "sslcert",
        "sslkey",
        "sslrootcert",
        "target_session_attrs",
        "options",
        "application_name",
    }
)


def split_connect_args(database_url: str) -> tuple[str, dict[str, Any]]:
    """
    Turn a Supabase/libpq style URL into an asyncpg URL plus ``connect_args``.

    ``sslmode=require`` becomes an SSL context without certificate checks;
    ``verify-ca`` and ``verify-full`` keep the default verification.

    Returns:
        Tuple of (URL without libpq-only parameters, connect_args)
    """
    parsed = urlparse(database_url)
    params = parse_qs(parsed.query)
    sslmode = (params.get("sslmode") or [None])[0]

    kept = {key: values for key, values in params.items() if key not in _LIBPQ_ONLY}
    url = urlunparse(parsed._replace(query=urlencode(kept, doseq=True)))

    connect_args: dict[str, Any] = {}
    if sslmode in ("require", "verify-ca", "verify-full"):
        context = ssl.create_default_context()
        if sslmode == "require":
            context.check_hostname = False
            context.verify_mode = ssl.CERT_NONE
        connect_args["ssl"] = context

    return url, connect_args


def create_engine() -> AsyncEngine:
    """Build the engine from settings; tests get a NullPool."""
    url, connect_args = split_connect_args(settings.database_url)

    options: dict[str, Any] = {"echo": settings.debug and settings.environment == "development"}
    if connect_args:
        options["connect_args"] = connect_args

    if settings.environment == "test":
        options["poolclass"] = NullPool
    else:
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_timeout=settings.db_pool_timeout,
            pool_pre_ping=True,
        )

    return create_async_engine(url, **options)


engine = create_engine()

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """
    Session scope: commit when the block succeeds, roll back when it raises.

    Usage:
        async with get_db_context() as db:
            await PreproduccionService(db).sync_rows(rows)
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request-scoped session."""
    async with get_db_context() as session:
        yield session


async def init_db() -> None:
    """
    Check the database at startup.

    With ``db_create_tables`` the pre-production tables are created first.
    """
    import dflexsync.models  # noqa: F401  registers the tables on Base.metadata

    try:
        async with engine.begin() as conn:
            if settings.db_create_tables:
                await conn.run_sync(Base.metadata.create_all)
                logger.info("Pre-production tables ensured")
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Database is not reachable: {e}")
        raise
    logger.info("Database connection established")


async def close_db() -> None:
    """Dispose the connection pool at shutdown."""
    await engine.dispose()
    logger.info("Database connections closed")
