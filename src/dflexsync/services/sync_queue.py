"""
Background sync queue with per-NV deduplication.

Incoming rows are keyed by NV; a newer row for a pending NV replaces the
older one. A single drain task processes pending rows in batches until
the queue is empty, so bursts of identical syncs collapse into one write
per NV.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from dflexsync.core.logging import get_logger
from dflexsync.services.derived_fields import parse_nv
from dflexsync.services.preproduccion import PreproduccionService, SyncResult

logger = get_logger(__name__)

SessionFactory = Callable[[], Any]
BatchHandler = Callable[[list[dict[str, Any]]], Awaitable[SyncResult]]


class SyncQueue:
    """
    Coalescing queue in front of :meth:`PreproduccionService.sync_rows`.

    At most one drain task runs at a time. A failing batch is logged and
    the drain goes on with whatever was enqueued meanwhile.
    """

    def __init__(
        self,
        session_factory: SessionFactory | None = None,
        handler: BatchHandler | None = None,
    ) -> None:
        """
        Initialize queue.

        Args:
            session_factory: Callable returning an ``AsyncSession`` context manager
            handler: Batch processor; defaults to syncing through a new session
        """
        if handler is None and session_factory is None:
            raise ValueError("Either session_factory or handler is required")
        self._session_factory = session_factory
        self._handler = handler or self._sync_batch
        self._pending: dict[int, dict[str, Any]] = {}
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def is_running(self) -> bool:
        return self._running

    def enqueue(self, rows: list[dict[str, Any]]) -> int:
        """
        Add rows to the pending set and make sure a drain task is running.

        Rows without a valid NV are dropped.

        Returns:
            Number of rows accepted
        """
        accepted = 0
        for row in rows:
            nv = parse_nv(row.get("NV"))
            if nv is None:
                continue
            self._pending[nv] = row
            accepted += 1

        if self._pending and not self._running:
            self._running = True
            self._task = asyncio.get_running_loop().create_task(self._drain())

        return accepted

    async def join(self) -> None:
        """Wait for the current drain task to finish."""
        if self._task is not None:
            await self._task

    async def _drain(self) -> None:
        try:
            while self._pending:
                batch = list(self._pending.values())
                self._pending.clear()
                try:
                    result = await self._handler(batch)
                    logger.info(
                        f"Sync batch done: {result.synced} synced, {result.skipped} skipped",
                        extra={"batch_size": len(batch)},
                    )
                except Exception as e:
                    logger.exception(f"Sync batch of {len(batch)} rows failed: {e}")
        finally:
            self._running = False

    async def _sync_batch(self, rows: list[dict[str, Any]]) -> SyncResult:
        session: AsyncSession
        async with self._session_factory() as session:
            return await PreproduccionService(session).sync_rows(rows)
