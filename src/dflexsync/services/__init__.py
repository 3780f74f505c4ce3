"""Business logic services."""

from dflexsync.services.formula import FormulaService
from dflexsync.services.nv_terminados import FinishedOrders
from dflexsync.services.preproduccion import PreproduccionService, SyncResult
from dflexsync.services.sync_queue import SyncQueue

__all__ = [
    "FinishedOrders",
    "FormulaService",
    "PreproduccionService",
    "SyncQueue",
    "SyncResult",
]
