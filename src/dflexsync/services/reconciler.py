"""Override reconciliation between a raw snapshot and its overlay.

The overlay row of an NV holds manual edits plus computed columns. When a
fresh snapshot arrives, the manual edits are kept, the computed columns
are thrown away and recomputed from ``snapshot + manual edits``.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from dflexsync.formula.row_evaluator import RowFormula, compute_formula_values
from dflexsync.services.derived_fields import DERIVED_COLUMNS

_MISSING = object()


@dataclass
class ReconcileResult:
    """Overlay payload and how it was built."""

    payload: dict[str, Any]
    manual_overrides: dict[str, Any]
    computed: dict[str, Any]


def _differs(value: Any, base_value: Any) -> bool:
    """
    Strict inequality.

    A missing base column differs from everything, None included, and a
    boolean never equals a number.
    """
    if base_value is _MISSING:
        return True
    if isinstance(value, bool) != isinstance(base_value, bool):
        return True
    return value != base_value


def find_manual_overrides(
    base: Mapping[str, Any],
    existing: Mapping[str, Any],
    protected: Iterable[str],
) -> dict[str, Any]:
    """
    Overlay columns that hold a manual edit.

    A column counts as an edit when it is not protected (formula or
    derived column) and its value differs from the snapshot.
    """
    protected = set(protected)
    overrides = {}
    for key, value in existing.items():
        if key in protected:
            continue
        if _differs(value, base.get(key, _MISSING)):
            overrides[key] = value
    return overrides


def reconcile_overlay(
    base: Mapping[str, Any],
    existing: Mapping[str, Any],
    ingested: Mapping[str, Any],
    formulas: Mapping[str, RowFormula],
    formula_columns: Iterable[str] | None = None,
) -> ReconcileResult:
    """
    Build the new overlay payload for one NV.

    Args:
        base: Current raw snapshot (or the ingested row when there is none)
        existing: Current overlay data (empty when there is none)
        ingested: The row just read from the ERP, with derived fields
        formulas: Compiled formulas by column
        formula_columns: Columns owned by formulas; defaults to ``formulas``' keys

    Returns:
        ReconcileResult whose payload is ``{**manual_overrides, **computed}``;
        snapshot columns are not copied into the overlay
    """
    protected = set(formula_columns if formula_columns is not None else formulas)
    protected |= DERIVED_COLUMNS

    manual_overrides = find_manual_overrides(base, existing, protected)
    effective_row = {**base, **manual_overrides}

    computed = compute_formula_values(effective_row, formulas) if formulas else {}

    for column in sorted(DERIVED_COLUMNS):
        value = ingested.get(column)
        if value is not None:
            computed[column] = value

    return ReconcileResult(
        payload={**manual_overrides, **computed},
        manual_overrides=manual_overrides,
        computed=computed,
    )
