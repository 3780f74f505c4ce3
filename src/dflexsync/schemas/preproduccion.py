"""Pre-production schemas for request/response validation."""

from datetime import date
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator


class DefinitiveRowsQuery(BaseModel):
    """Filters for the definitive (merged) row set."""

    nv: Optional[int] = Field(None, gt=0, description="Order number")
    partida: Optional[str] = Field(None, description="PARTIDA grouping value")
    fecha_desde: Optional[date] = Field(None, description="Production date, inclusive lower bound")
    fecha_hasta: Optional[date] = Field(None, description="Production date, inclusive upper bound")

    @model_validator(mode="after")
    def check_date_range(self) -> "DefinitiveRowsQuery":
        """Reject an inverted date range."""
        if self.fecha_desde and self.fecha_hasta and self.fecha_desde > self.fecha_hasta:
            raise ValueError("fecha_desde must not be after fecha_hasta")
        return self

    @property
    def has_date_range(self) -> bool:
        return self.fecha_desde is not None or self.fecha_hasta is not None


class RowListResponse(BaseModel):
    """Rows as flat mappings, each carrying ``NV``."""

    count: int
    rows: list[dict[str, Any]]


class SyncRequest(BaseModel):
    """Raw ERP rows to synchronise."""

    rows: list[dict[str, Any]] = Field(default_factory=list, description="Pre_Produccion rows")


class SyncAcceptedResponse(BaseModel):
    """Rows handed to the background sync queue."""

    accepted: int
    finished: int = Field(0, description="Rows dropped because the NV is finished")
    pending: int


class BulkUpdateItem(BaseModel):
    """
    Manual edits for one NV.

    Both fields are loosely typed: an unparseable NV or a non-object
    ``changes`` is counted as skipped rather than rejected.
    """

    nv: Any = None
    changes: Any = None


class BulkUpdateRequest(BaseModel):
    """Schema for bulk overlay edits."""

    updates: list[BulkUpdateItem] = Field(default_factory=list)


class BulkUpdateResponse(BaseModel):
    """Outcome of a committed bulk edit."""

    success: bool = True
    applied: int
    skipped: int
