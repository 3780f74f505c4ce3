"""
Pre-production endpoints.

Handles ERP row ingestion, the definitive (merged) row set and manual edits.
"""

from datetime import date
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query, status

from dflexsync.api.deps import DbSession, FinishedOrdersDep, SyncQueueDep
from dflexsync.core.exceptions import BadRequestError
from dflexsync.core.logging import get_logger
from dflexsync.schemas.preproduccion import (
    BulkUpdateRequest,
    BulkUpdateResponse,
    DefinitiveRowsQuery,
    RowListResponse,
    SyncAcceptedResponse,
    SyncRequest,
)
from dflexsync.services.preproduccion import PreproduccionService

router = APIRouter()
logger = get_logger(__name__)

# =============================================================================
# Dependencies
# =============================================================================


def get_preproduccion_service(db: DbSession) -> PreproduccionService:
    """Get pre-production service instance."""
    return PreproduccionService(db)


PreproduccionServiceDep = Annotated[PreproduccionService, Depends(get_preproduccion_service)]


# =============================================================================
# Ingestion
# =============================================================================


@router.post(
    "/sync/pre-produccion",
    response_model=SyncAcceptedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def sync_pre_produccion(
    payload: SyncRequest,
    queue: SyncQueueDep,
    finished_orders: FinishedOrdersDep,
) -> SyncAcceptedResponse:
    """
    Queue ERP rows for synchronisation.

    Rows of finished orders are dropped. The rest are processed in the
    background; ingestion failures are logged, never returned.
    """
    rows, finished = finished_orders.filter_rows(payload.rows)
    accepted = queue.enqueue(rows)
    logger.info(
        f"Queued {accepted} pre-production rows",
        extra={"received": len(payload.rows), "finished": finished},
    )
    return SyncAcceptedResponse(
        accepted=accepted,
        finished=finished,
        pending=queue.pending_count,
    )


# =============================================================================
# Read path
# =============================================================================


@router.get("/pre-produccion-valores", response_model=RowListResponse)
async def list_definitive_rows(
    service: PreproduccionServiceDep,
    nv: Annotated[Optional[int], Query(gt=0, description="Order number")] = None,
    partida: Annotated[Optional[str], Query(description="PARTIDA value")] = None,
    fecha_desde: Annotated[Optional[date], Query(description="From production date")] = None,
    fecha_hasta: Annotated[Optional[date], Query(description="To production date")] = None,
) -> RowListResponse:
    """Raw snapshot rows with manual edits and computed columns applied."""
    try:
        query = DefinitiveRowsQuery(
            nv=nv, partida=partida, fecha_desde=fecha_desde, fecha_hasta=fecha_hasta
        )
    except ValueError as e:
        raise BadRequestError(str(e), code="INVALID_DATE_RANGE") from e

    rows = await service.get_definitive_rows(query)
    return RowListResponse(count=len(rows), rows=rows)


@router.get("/pre-produccion-sql", response_model=RowListResponse)
async def list_raw_rows(
    service: PreproduccionServiceDep,
    nv: Annotated[Optional[int], Query(gt=0, description="Order number")] = None,
    partida: Annotated[Optional[str], Query(description="PARTIDA value")] = None,
) -> RowListResponse:
    """Raw ERP snapshot rows, as last synchronised."""
    rows = await service.get_raw_rows(nv=nv, partida=partida)
    return RowListResponse(count=len(rows), rows=rows)


# =============================================================================
# Manual edits
# =============================================================================


@router.post("/pre-produccion-valores/bulk-update", response_model=BulkUpdateResponse)
async def bulk_update(
    payload: BulkUpdateRequest,
    service: PreproduccionServiceDep,
) -> BulkUpdateResponse:
    """
    Apply manual edits to several NVs in one transaction.

    Either every valid item is applied or none is.
    """
    if not payload.updates:
        raise BadRequestError("updates must be a non-empty list", code="EMPTY_UPDATES")

    applied, skipped = await service.bulk_update(payload.updates)
    return BulkUpdateResponse(applied=applied, skipped=skipped)
