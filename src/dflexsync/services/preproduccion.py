"""Pre-production service: ingestion, reconciliation and the definitive read path."""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from functools import cmp_to_key
from typing import Any

import orjson
from sqlalchemy import String, cast, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from dflexsync.core.config import settings
from dflexsync.core.exceptions import BulkUpdateError, DatabaseError
from dflexsync.core.logging import get_logger
from dflexsync.db.upsert import upsert
from dflexsync.formula import FormulaSet
from dflexsync.models.preproduccion import PreproduccionSql, PreproduccionValores
from dflexsync.schemas.preproduccion import BulkUpdateItem, DefinitiveRowsQuery
from dflexsync.services.derived_fields import add_derived_fields, parse_nv
from dflexsync.services.formula import FormulaService
from dflexsync.services.reconciler import reconcile_overlay

logger = get_logger(__name__)

FORBIDDEN_KEYS = frozenset({"__proto__", "constructor", "prototype"})

StoreModel = type[PreproduccionSql] | type[PreproduccionValores]


@dataclass
class SyncResult:
    """Outcome of one ingestion batch."""

    synced: int = 0
    skipped: int = 0


def sanitize_changes(changes: Any, max_key_length: int = 200) -> dict[str, Any]:
    """
    Keep only safe column names from a manual edit.

    Drops non-string or empty keys, prototype-pollution names and keys
    longer than ``max_key_length``. Anything but a mapping gives ``{}``.
    """
    if not isinstance(changes, dict):
        return {}
    out = {}
    for key, value in changes.items():
        if not key or not isinstance(key, str):
            continue
        if key in FORBIDDEN_KEYS or len(key) > max_key_length:
            continue
        out[key] = value
    return out


def _json_compatible(row: dict[str, Any]) -> dict[str, Any]:
    """Round-trip through JSON so dates and decimals from the ERP can be stored."""
    return orjson.loads(orjson.dumps(row, default=str))


def _nv_as_int(value: Any) -> int | None:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def _compare_nv(a: dict[str, Any], b: dict[str, Any]) -> int:
    na, nb = _nv_as_int(a.get("NV")), _nv_as_int(b.get("NV"))
    if na is not None and nb is not None:
        return (na > nb) - (na < nb)
    sa = "" if a.get("NV") is None else str(a.get("NV"))
    sb = "" if b.get("NV") is None else str(b.get("NV"))
    return (sa > sb) - (sa < sb)


def merge_definitive_rows(
    raw_rows: Iterable[dict[str, Any]],
    overlay_rows: Iterable[dict[str, Any]],
) -> list[dict[str, Any]]:
    """
    Apply overlays on top of raw rows, matched by stringified NV.

    Overlay values win on every key; overlays without a raw row are
    appended as they are. The result is sorted by NV, numerically when
    both sides parse as integers, as text otherwise.
    """
    raw_rows = list(raw_rows)
    overlay_by_nv: dict[str, dict[str, Any]] = {}
    for over in overlay_rows:
        if over.get("NV") is not None:
            overlay_by_nv[str(over["NV"])] = over

    merged = []
    raw_keys = set()
    for base in raw_rows:
        key = str(base["NV"]) if base.get("NV") is not None else None
        raw_keys.add(key)
        over = overlay_by_nv.get(key) if key else None
        merged.append({**base, **over} if over else base)

    for key, over in overlay_by_nv.items():
        if key not in raw_keys:
            merged.append(over)

    return sorted(merged, key=cmp_to_key(_compare_nv))


def _as_date(value: Any) -> date | None:
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or len(value) < 10:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        return None


class PreproduccionService:
    """Service for the raw snapshot and overlay stores."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db

    # -------------------------------------------------------------------------
    # Ingestion
    # -------------------------------------------------------------------------

    async def upsert_raw_row(self, row: dict[str, Any]) -> int | None:
        """
        Store a raw ERP row as the snapshot of its NV, replacing the previous one.

        Returns:
            The NV, or None when the row has no valid NV (nothing stored)
        """
        nv = parse_nv(row.get("NV"))
        if nv is None:
            return None

        await upsert(
            self.db,
            PreproduccionSql,
            {"nv": nv, "erp_id": _nv_as_int(row.get("ID")), "data": _json_compatible(row)},
            index_elements=["nv"],
        )
        return nv

    async def _read_data_or_none(self, model: StoreModel, nv: int) -> dict[str, Any] | None:
        """Read one row's data; a store failure counts as "no data"."""
        try:
            result = await self.db.execute(select(model.data).where(model.nv == nv))
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.warning(f"Could not read {model.__tablename__} for NV {nv}: {e}")
            await self.db.rollback()
            return None

    async def reconcile_row(
        self,
        row: dict[str, Any],
        formula_set: FormulaSet,
    ) -> dict[str, Any] | None:
        """
        Rebuild the overlay of one NV after its snapshot changed.

        Must be called without pending writes: a failed read rolls the
        session back before carrying on with empty data.

        Args:
            row: Ingested ERP row, derived fields already attached
            formula_set: Compiled formulas

        Returns:
            The stored overlay payload, or None when the row has no valid NV
        """
        nv = parse_nv(row.get("NV"))
        if nv is None:
            return None

        base = await self._read_data_or_none(PreproduccionSql, nv) or _json_compatible(row)
        existing = await self._read_data_or_none(PreproduccionValores, nv) or {}

        result = reconcile_overlay(
            base,
            existing,
            row,
            formula_set.compiled,
            formula_columns=formula_set.defined_columns,
        )

        await upsert(
            self.db,
            PreproduccionValores,
            {"nv": nv, "data": _json_compatible(result.payload)},
            index_elements=["nv"],
        )
        logger.debug(
            f"Reconciled NV {nv}",
            extra={"overrides": len(result.manual_overrides), "computed": len(result.computed)},
        )
        return result.payload

    async def sync_rows(self, rows: list[dict[str, Any]]) -> SyncResult:
        """
        Ingest a batch of ERP rows, one NV after the other.

        Formulas are compiled once for the batch. Each row commits on its
        own; a failing row is rolled back, logged and skipped.
        """
        result = SyncResult()
        if not rows:
            return result

        formula_set = await FormulaService(self.db).load_formula_set()

        for row in rows:
            nv = parse_nv(row.get("NV"))
            if nv is None:
                logger.debug(f"Skipping row without a valid NV: {row.get('NV')!r}")
                result.skipped += 1
                continue

            try:
                ingested = add_derived_fields(dict(row))
                await self.upsert_raw_row(ingested)
                await self.db.commit()
                await self.reconcile_row(ingested, formula_set)
                await self.db.commit()
                result.synced += 1
            except Exception as e:
                await self.db.rollback()
                logger.error(f"Failed to sync NV {nv}: {e}")
                result.skipped += 1

        logger.info(
            f"Synced {result.synced} pre-production rows",
            extra={"synced": result.synced, "skipped": result.skipped},
        )
        return result

    # -------------------------------------------------------------------------
    # Read path
    # -------------------------------------------------------------------------

    @staticmethod
    def _partida_expr(model: StoreModel) -> Any:
        return cast(
            func.coalesce(*[model.data[name].as_string() for name in settings.partida_fields]),
            String,
        )

    @staticmethod
    def _date_expr(model: StoreModel) -> Any:
        return func.substr(model.data[settings.production_date_field].as_string(), 1, 10)

    async def _fetch_rows(self, model: StoreModel, *conditions: Any) -> list[dict[str, Any]]:
        stmt = select(model.nv, model.data).where(*conditions).order_by(model.nv)
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(f"Failed to read {model.__tablename__}: {e}")
            raise DatabaseError("Could not read pre-production rows") from e
        rows = []
        for nv, data in result.all():
            obj = data if isinstance(data, dict) else {}
            rows.append({**obj, "NV": nv})
        return rows

    async def _matching_nvs(self, model: StoreModel, *conditions: Any) -> set[int]:
        try:
            result = await self.db.execute(select(model.nv).where(*conditions))
        except SQLAlchemyError as e:
            logger.error(f"Failed to read {model.__tablename__} keys: {e}")
            raise DatabaseError("Could not read pre-production rows") from e
        return set(result.scalars().all())

    def _filters(self, model: StoreModel, nv: int | None, partida: str | None) -> list[Any]:
        conditions = []
        if nv is not None:
            conditions.append(model.nv == nv)
        if partida:
            conditions.append(self._partida_expr(model) == partida)
        return conditions

    async def get_raw_rows(
        self, nv: int | None = None, partida: str | None = None
    ) -> list[dict[str, Any]]:
        """
        Raw snapshot rows, each with ``NV``, ordered by NV.

        Raises:
            DatabaseError: If the store query fails
        """
        partida = partida.strip() if partida else None
        return await self._fetch_rows(PreproduccionSql, *self._filters(PreproduccionSql, nv, partida))

    async def get_overlay_rows(
        self, nv: int | None = None, partida: str | None = None
    ) -> list[dict[str, Any]]:
        """Overlay rows, each with ``NV``, ordered by NV."""
        partida = partida.strip() if partida else None
        return await self._fetch_rows(
            PreproduccionValores, *self._filters(PreproduccionValores, nv, partida)
        )

    async def _nvs_in_date_range(self, model: StoreModel, query: DefinitiveRowsQuery) -> set[int]:
        date_expr = self._date_expr(model)
        conditions = [date_expr.is_not(None)]
        if query.nv is not None:
            conditions.append(model.nv == query.nv)
        if query.fecha_desde:
            conditions.append(date_expr >= query.fecha_desde.isoformat())
        if query.fecha_hasta:
            conditions.append(date_expr <= query.fecha_hasta.isoformat())
        return await self._matching_nvs(model, *conditions)

    @staticmethod
    def _in_date_range(row: dict[str, Any], query: DefinitiveRowsQuery) -> bool:
        value = _as_date(row.get(settings.production_date_field))
        if value is None:
            return False
        if query.fecha_desde and value < query.fecha_desde:
            return False
        if query.fecha_hasta and value > query.fecha_hasta:
            return False
        return True

    @staticmethod
    def _partida_of(row: dict[str, Any]) -> str | None:
        for name in settings.partida_fields:
            if row.get(name) is not None:
                return str(row[name])
        return None

    async def get_definitive_rows(self, query: DefinitiveRowsQuery) -> list[dict[str, Any]]:
        """
        Merged rows: raw snapshot with the overlay applied on top.

        The production date usually lives only in the overlay, and an
        overlay may move an NV to another PARTIDA. So a date or PARTIDA
        filter first collects candidate NVs matching on either store,
        both stores are fetched by key, and the filters are checked again
        on the merged row.

        Raises:
            DatabaseError: If either store query fails
        """
        partida = query.partida.strip() if query.partida else None

        if query.has_date_range:
            keys = await self._nvs_in_date_range(PreproduccionValores, query)
            keys |= await self._nvs_in_date_range(PreproduccionSql, query)
        elif partida:
            keys = await self._matching_nvs(
                PreproduccionValores, *self._filters(PreproduccionValores, query.nv, partida)
            )
            keys |= await self._matching_nvs(
                PreproduccionSql, *self._filters(PreproduccionSql, query.nv, partida)
            )
        else:
            raw_rows = await self._fetch_rows(
                PreproduccionSql, *self._filters(PreproduccionSql, query.nv, None)
            )
            overlay_rows = await self._fetch_rows(
                PreproduccionValores, *self._filters(PreproduccionValores, query.nv, None)
            )
            return merge_definitive_rows(raw_rows, overlay_rows)

        if not keys:
            return []
        raw_rows = await self._fetch_rows(PreproduccionSql, PreproduccionSql.nv.in_(keys))
        overlay_rows = await self._fetch_rows(
            PreproduccionValores, PreproduccionValores.nv.in_(keys)
        )

        merged = merge_definitive_rows(raw_rows, overlay_rows)
        if query.has_date_range:
            merged = [row for row in merged if self._in_date_range(row, query)]
        if partida:
            merged = [row for row in merged if self._partida_of(row) == partida]
        return merged

    # -------------------------------------------------------------------------
    # Manual edits
    # -------------------------------------------------------------------------

    async def bulk_update(self, updates: list[BulkUpdateItem]) -> tuple[int, int]:
        """
        Shallow-merge manual edits into the overlay of several NVs, atomically.

        Items with an invalid NV or no usable changes are skipped. Any store
        error rolls back every item of the request.

        Returns:
            Tuple of (applied, skipped)

        Raises:
            BulkUpdateError: If the transaction was rolled back
        """
        applied = 0
        skipped = 0
        max_key_length = settings.bulk_update_max_key_length

        try:
            for item in updates:
                nv = parse_nv(item.nv)
                changes = sanitize_changes(item.changes, max_key_length)
                if nv is None or not changes:
                    skipped += 1
                    continue

                overlay = await self.db.get(PreproduccionValores, nv, with_for_update=True)
                if overlay is None:
                    self.db.add(PreproduccionValores(nv=nv, data=changes))
                else:
                    overlay.data = {**(overlay.data or {}), **changes}
                await self.db.flush()
                applied += 1

            await self.db.commit()
        except Exception as e:
            await self.db.rollback()
            logger.error(f"Bulk update rolled back after {applied} item(s): {e}")
            raise BulkUpdateError() from e

        logger.info(
            f"Bulk update applied to {applied} NV(s)",
            extra={"applied": applied, "skipped": skipped},
        )
        return applied, skipped
