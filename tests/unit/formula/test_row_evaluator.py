"""Unit tests for dependency-aware row evaluation."""

from dflexsync.formula.compiler import compile_formulas
from dflexsync.formula.row_evaluator import compute_formula_values


def compiled(definitions):
    return compile_formulas(definitions).compiled


class TestComputeFormulaValues:
    """Tests for compute_formula_values()."""

    def test_simple_formula(self):
        """Total = Precio * Cantidad."""
        result = compute_formula_values(
            {"Precio": 10, "Cantidad": 3},
            compiled({"Total": "Precio * Cantidad"}),
        )
        assert result == {"Total": 30}

    def test_formula_reads_computed_value_of_other_formula(self):
        """A formula sees another formula column's computed value, not the raw one."""
        result = compute_formula_values(
            {"Precio": 10, "Cantidad": 3, "Subtotal": 999},
            compiled({"Total": "Subtotal * 2", "Subtotal": "Precio * Cantidad"}),
        )
        assert result == {"Subtotal": 30, "Total": 60}

    def test_chained_formulas_in_any_order(self):
        result = compute_formula_values(
            {"a": 1},
            compiled({"d": "c + 1", "c": "b + 1", "b": "a + 1"}),
        )
        assert result == {"b": 2, "c": 3, "d": 4}

    def test_mutual_cycle_terminates_with_raw_value(self):
        """A = B + 1, B = A + 1 with {A: 5, B: 10}: A settles on its raw value."""
        result = compute_formula_values(
            {"A": 5, "B": 10},
            compiled({"A": "B + 1", "B": "A + 1"}),
        )
        assert result["A"] == 5
        assert result["B"] == 6

    def test_self_reference_terminates(self):
        result = compute_formula_values({"A": 2}, compiled({"A": "A * 10"}))
        assert result == {"A": 2}

    def test_cycle_without_raw_value_is_omitted(self):
        result = compute_formula_values({}, compiled({"A": "A + 1"}))
        assert result == {}

    def test_none_and_nan_results_are_omitted(self):
        result = compute_formula_values(
            {"x": 0, "y": float("nan")},
            compiled({"Div": "1 / x", "Missing": "Nope", "Nan": "y", "Ok": "1"}),
        )
        assert result == {"Ok": 1}

    def test_runtime_error_only_affects_its_column(self):
        result = compute_formula_values(
            {"a": 2},
            compiled({"Bad": "NOPE(a)", "Good": "a * 2", "Uses": "Bad || 7"}),
        )
        assert result == {"Good": 4, "Uses": 7}

    def test_falsy_values_are_kept(self):
        result = compute_formula_values({"a": 0}, compiled({"Zero": "a * 5", "Vacio": "''"}))
        assert result == {"Zero": 0, "Vacio": ""}

    def test_row_is_not_modified(self):
        row = {"Precio": 10, "Cantidad": 3}
        compute_formula_values(row, compiled({"Total": "Precio * Cantidad"}))
        assert row == {"Precio": 10, "Cantidad": 3}

    def test_no_formulas(self):
        assert compute_formula_values({"a": 1}, {}) == {}
