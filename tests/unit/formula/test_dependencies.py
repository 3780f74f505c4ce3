"""Unit tests for FormulaDependencyGraph."""

from dflexsync.formula.dependencies import FormulaDependencyGraph


class TestFormulaDependencyGraph:
    """Tests for FormulaDependencyGraph class."""

    def test_initialization(self):
        """Test that graph initializes empty."""
        graph = FormulaDependencyGraph()
        assert len(graph.references) == 0
        assert graph.find_cyclic_columns() == []

    def test_replace_formula_column(self):
        """Test that re-adding a column drops its old references."""
        graph = FormulaDependencyGraph()
        graph.add_formula_column("A", {"B"})
        graph.add_formula_column("B", {"A"})
        assert graph.is_cyclic("A") is True

        graph.add_formula_column("B", {"Precio"})
        assert graph.references["B"] == {"Precio"}
        assert graph.is_cyclic("A") is False

    def test_self_reference_is_cyclic(self):
        """Test detecting a self-referencing formula."""
        graph = FormulaDependencyGraph()
        graph.add_formula_column("A", {"A"})
        assert graph.is_cyclic("A") is True

    def test_mutual_reference_is_cyclic(self):
        """Test detecting an A -> B -> A cycle."""
        graph = FormulaDependencyGraph()
        graph.add_formula_column("A", {"B"})
        graph.add_formula_column("B", {"A"})
        graph.add_formula_column("C", {"A"})
        assert graph.find_cyclic_columns() == ["A", "B"]
        assert graph.is_cyclic("C") is False

    def test_acyclic_chain(self):
        """Test that a plain chain has no cycles."""
        graph = FormulaDependencyGraph()
        graph.add_formula_column("B", {"A"})
        graph.add_formula_column("C", {"B"})
        assert graph.find_cyclic_columns() == []

    def test_repr(self):
        graph = FormulaDependencyGraph()
        graph.add_formula_column("A", {"B", "C"})
        assert repr(graph) == "FormulaDependencyGraph(columns=1, edges=2)"
