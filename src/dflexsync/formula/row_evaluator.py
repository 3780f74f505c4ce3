"""Dependency-aware evaluation of every formula column of a row."""

import math
from collections.abc import Callable, Iterator, Mapping
from typing import Any

RowFormula = Callable[[Mapping[str, Any]], Any]


class _ResolvingRow(Mapping):
    """
    Row view handed to formulas.

    Reading a formula column re-enters the evaluator; any other column
    comes straight from the row.
    """

    def __init__(self, evaluator: "_RowEvaluator") -> None:
        self._evaluator = evaluator

    def __getitem__(self, key: str) -> Any:
        if key in self._evaluator.compiled:
            return self._evaluator.evaluate(key)
        return self._evaluator.row[key]

    def __contains__(self, key: object) -> bool:
        return key in self._evaluator.compiled or key in self._evaluator.row

    def __iter__(self) -> Iterator[str]:
        yield from self._evaluator.row
        for key in self._evaluator.compiled:
            if key not in self._evaluator.row:
                yield key

    def __len__(self) -> int:
        return sum(1 for _ in self)


class _RowEvaluator:
    """
    Memoising per-column evaluator with an in-progress set for cycles.

    A column read again while its own formula is running gets its raw
    cell value, and that column then settles on the raw value as well:
    with ``A = B + 1`` and ``B = A + 1``, evaluating ``A`` first yields
    the raw ``A`` and ``B = raw A + 1``.
    """

    def __init__(self, row: Mapping[str, Any], compiled: Mapping[str, RowFormula]) -> None:
        self.row = row
        self.compiled = compiled
        self._cache: dict[str, Any] = {}
        self._evaluating: set[str] = set()
        self._reentered: set[str] = set()
        self._view = _ResolvingRow(self)

    def evaluate(self, column: str) -> Any:
        if column in self._cache:
            return self._cache[column]

        # Cycle: best effort is the raw cell value
        if column in self._evaluating:
            self._reentered.add(column)
            return self.row.get(column)

        formula = self.compiled.get(column)
        if formula is None:
            return self.row.get(column)

        self._evaluating.add(column)
        try:
            result = formula(self._view)
        except Exception:
            result = None
        finally:
            self._evaluating.discard(column)

        if column in self._reentered:
            self._reentered.discard(column)
            result = self.row.get(column)

        self._cache[column] = result
        return result


def _has_value(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    return True


def compute_formula_values(
    row: Mapping[str, Any],
    compiled: Mapping[str, RowFormula],
) -> dict[str, Any]:
    """
    Evaluate every formula column of one row.

    A formula that reads another formula column sees that column's
    computed value, not the raw one. Columns whose result is None or NaN
    are left out of the returned mapping.

    Args:
        row: Column values (raw snapshot plus manual overrides)
        compiled: Column name -> callable taking a row mapping

    Returns:
        Only the formula columns that produced a value
    """
    evaluator = _RowEvaluator(row, compiled)
    out: dict[str, Any] = {}
    for column in compiled:
        value = evaluator.evaluate(column)
        if _has_value(value):
            out[column] = value
    return out
