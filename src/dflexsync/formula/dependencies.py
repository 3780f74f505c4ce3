"""Formula dependency tracking.

Records which columns each formula reads, so cycles can be reported when
the formula set is compiled. Evaluation never relies on this graph:
cycles are resolved at evaluation time by falling back to the raw cell
value.
"""

from collections import defaultdict


class FormulaDependencyGraph:
    """Formula column -> columns its expression references."""

    def __init__(self) -> None:
        self.references: dict[str, set[str]] = defaultdict(set)

    def add_formula_column(self, column: str, depends_on: set[str]) -> None:
        """
        Register (or replace) the references of a formula column.

        Args:
            column: Target column of the formula
            depends_on: Columns the expression references
        """
        self.references[column] = set(depends_on)

    def is_cyclic(self, column: str) -> bool:
        """Check whether ``column`` can reach itself through formula references."""
        visited: set[str] = set()
        to_check = list(self.references.get(column, ()))

        while to_check:
            current = to_check.pop()
            if current == column:
                return True
            if current in visited:
                continue
            visited.add(current)
            to_check.extend(self.references.get(current, ()))

        return False

    def find_cyclic_columns(self) -> list[str]:
        """All formula columns that take part in a reference cycle, sorted."""
        return sorted(column for column in list(self.references) if self.is_cyclic(column))

    def __repr__(self) -> str:
        return (
            f"FormulaDependencyGraph("
            f"columns={len(self.references)}, "
            f"edges={sum(len(deps) for deps in self.references.values())})"
        )
