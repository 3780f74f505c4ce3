"""
Pytest configuration and fixtures for Dflex Sync tests.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import dflexsync.models  # noqa: F401
from dflexsync.api.deps import get_finished_orders, get_sync_queue
from dflexsync.db.base import Base
from dflexsync.db.session import get_db
from dflexsync.main import app
from dflexsync.services.nv_terminados import FinishedOrders
from dflexsync.services.sync_queue import SyncQueue


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path: Path):
    """File-backed SQLite engine per test; separate sessions see each other's commits."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'dflex.db'}",
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    async with session_factory() as session:
        yield session
        # Rollback any uncommitted changes
        await session.rollback()


@pytest_asyncio.fixture
async def sync_queue(session_factory) -> AsyncGenerator[SyncQueue, None]:
    """Sync queue writing through the test database."""
    queue = SyncQueue(session_factory=session_factory)
    yield queue
    await queue.join()


@pytest_asyncio.fixture
async def finished_orders(tmp_path: Path) -> FinishedOrders:
    """Finished orders file listing NV 900 and 901."""
    path = tmp_path / "nv_terminados.txt"
    path.write_text("900\n901\n\n", encoding="utf-8")
    return FinishedOrders(path)


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession,
    sync_queue: SyncQueue,
    finished_orders: FinishedOrders,
) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_sync_queue] = lambda: sync_queue
    app.dependency_overrides[get_finished_orders] = lambda: finished_orders

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
