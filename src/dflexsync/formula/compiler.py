"""Formula compilation.

Turns the stored ``column -> expression`` definitions into callables
over a row. A syntax error only disables its own column.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any

from dflexsync.core.logging import get_logger
from dflexsync.formula.dependencies import FormulaDependencyGraph
from dflexsync.formula.evaluator import FormulaEvaluator
from dflexsync.formula.parser import FormulaParser, collect_field_references

logger = get_logger(__name__)


@lru_cache(maxsize=1)
def get_parser() -> FormulaParser:
    """Shared parser; building the LALR tables is the expensive part."""
    return FormulaParser()


class CompiledFormula:
    """
    A parsed expression callable as ``formula(row) -> value``.

    Any runtime failure (missing column, type mismatch, unknown function)
    yields None instead of raising.
    """

    def __init__(self, column: str, expression: str, ast: Any) -> None:
        self.column = column
        self.expression = expression
        self.ast = ast
        refs: set[str] = set()
        collect_field_references(ast, refs)
        self.references = frozenset(refs)

    def __call__(self, row: Mapping[str, Any]) -> Any:
        try:
            return FormulaEvaluator(row).evaluate(self.ast)
        except Exception as e:
            logger.debug(f"Formula for {self.column!r} failed: {e}")
            return None

    def __repr__(self) -> str:
        return f"<CompiledFormula {self.column}={self.expression!r}>"


def compile_formula(column: str, expression: str) -> CompiledFormula:
    """
    Compile one expression.

    Raises:
        ValueError: If the expression has a syntax error
    """
    expr = expression.strip()
    if not expr:
        raise ValueError("Empty expression")
    return CompiledFormula(column, expr, get_parser().parse(expr))


@dataclass
class FormulaSet:
    """Result of compiling every stored formula definition."""

    compiled: dict[str, CompiledFormula] = field(default_factory=dict)
    errors: dict[str, str] = field(default_factory=dict)
    cyclic_columns: list[str] = field(default_factory=list)

    @property
    def defined_columns(self) -> set[str]:
        """Columns with a non-empty expression, including ones that failed to compile."""
        return set(self.compiled) | set(self.errors)


def compile_formulas(definitions: Mapping[str, str | None]) -> FormulaSet:
    """
    Compile a ``column -> expression`` mapping.

    Empty expressions are passthrough and skipped. Compile errors are
    collected per column and logged; the remaining columns still compile.
    """
    result = FormulaSet()
    graph = FormulaDependencyGraph()

    for column, expression in definitions.items():
        expr = (expression or "").strip()
        if not expr:
            continue
        try:
            formula = compile_formula(column, expr)
        except ValueError as e:
            logger.error(f"Could not compile formula for column {column}: {e}")
            result.errors[column] = str(e)
            continue
        result.compiled[column] = formula
        graph.add_formula_column(column, set(formula.references))

    result.cyclic_columns = [
        column for column in graph.find_cyclic_columns() if column in result.compiled
    ]
    if result.cyclic_columns:
        logger.warning(
            "Circular formula references; raw values are used inside the cycle",
            extra={"columns": result.cyclic_columns},
        )

    return result
