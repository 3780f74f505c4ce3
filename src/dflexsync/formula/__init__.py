"""Formula engine for Dflex Sync.

Column formulas are spreadsheet-style expressions over the other columns
of a pre-production row:

- Arithmetic, comparison, logical and ternary operators
- Column references as bare identifiers or {Column Name}
- Built-in functions (ROUND, MAX, CONCAT, Math.max, parseFloat, ...)
"""

from dflexsync.formula.compiler import (
    CompiledFormula,
    FormulaSet,
    compile_formula,
    compile_formulas,
)
from dflexsync.formula.dependencies import FormulaDependencyGraph
from dflexsync.formula.evaluator import FormulaEvaluator
from dflexsync.formula.functions import FORMULA_FUNCTIONS, register_function
from dflexsync.formula.parser import FormulaParser
from dflexsync.formula.row_evaluator import compute_formula_values

__all__ = [
    "CompiledFormula",
    "FormulaSet",
    "compile_formula",
    "compile_formulas",
    "FormulaDependencyGraph",
    "FormulaEvaluator",
    "FORMULA_FUNCTIONS",
    "register_function",
    "FormulaParser",
    "compute_formula_values",
]
