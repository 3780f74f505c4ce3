"""Formula evaluator.

Evaluates parsed formula ASTs against a row mapping.
"""

import math
from collections.abc import Mapping
from typing import Any

from dflexsync.formula.functions import FORMULA_FUNCTIONS, is_truthy, to_number
from dflexsync.formula.parser import (
    BinaryOpNode,
    BooleanNode,
    FieldRefNode,
    FunctionCallNode,
    NumberNode,
    StringNode,
    TernaryNode,
    UnaryOpNode,
)


class FormulaEvaluator:
    """
    Evaluates formula ASTs against row data.

    Column lookups go through ``Mapping.get`` so a lazily resolving view
    can stand in for a plain dict. Unknown columns evaluate to None.
    """

    def __init__(self, fields: Mapping[str, Any] | None = None):
        """
        Initialize evaluator with optional row values.

        Args:
            fields: Mapping of column names to their values
        """
        self._fields: Mapping[str, Any] = fields if fields is not None else {}

    def evaluate(
        self,
        ast: Any,
        fields: Mapping[str, Any] | None = None,
    ) -> Any:
        """
        Evaluate an AST node.

        Args:
            ast: AST node to evaluate
            fields: Optional row values (overrides constructor values)

        Returns:
            Evaluation result

        Raises:
            ValueError: For unknown functions or operators
        """
        if fields is not None:
            self._fields = fields

        return self._eval(ast)

    def _eval(self, node: Any) -> Any:
        """Recursively evaluate an AST node."""
        if isinstance(node, (NumberNode, StringNode, BooleanNode)):
            return node.value

        if isinstance(node, FieldRefNode):
            return self._fields.get(node.field_name)

        if isinstance(node, FunctionCallNode):
            return self._eval_function(node)

        if isinstance(node, TernaryNode):
            if is_truthy(self._eval(node.condition)):
                return self._eval(node.if_true)
            return self._eval(node.if_false)

        if isinstance(node, BinaryOpNode):
            return self._eval_binary(node)

        if isinstance(node, UnaryOpNode):
            return self._eval_unary(node)

        raise ValueError(f"Unknown node type: {type(node).__name__}")

    def _eval_function(self, node: FunctionCallNode) -> Any:
        """Evaluate a function call."""
        func = FORMULA_FUNCTIONS.get(node.name)
        if func is None:
            raise ValueError(f"Unknown function: {node.name}")

        args = [self._eval(arg) for arg in node.arguments]
        return func(*args)

    def _eval_binary(self, node: BinaryOpNode) -> Any:
        """Evaluate a binary operation."""
        op = node.operator

        # Short-circuit; the deciding operand is returned, as in `x || 0`
        if op == "AND":
            left = self._eval(node.left)
            return self._eval(node.right) if is_truthy(left) else left
        if op == "OR":
            left = self._eval(node.left)
            return left if is_truthy(left) else self._eval(node.right)

        left = self._eval(node.left)
        right = self._eval(node.right)

        if op == "+":
            return self._add(left, right)
        if op == "-":
            return self._arithmetic(left, right, lambda a, b: a - b)
        if op == "*":
            return self._arithmetic(left, right, lambda a, b: a * b)
        if op == "/":
            return self._divide(left, right)
        if op == "%":
            return self._modulo(left, right)
        if op == "^":
            return self._arithmetic(left, right, lambda a, b: a**b)

        if op == "&":
            return self._concat(left, right)

        if op == "=":
            return self._equal(left, right)
        if op == "!=":
            return not self._equal(left, right)
        if op == "<":
            return self._compare(left, right, lambda a, b: a < b)
        if op == ">":
            return self._compare(left, right, lambda a, b: a > b)
        if op == "<=":
            return self._compare(left, right, lambda a, b: a <= b)
        if op == ">=":
            return self._compare(left, right, lambda a, b: a >= b)

        raise ValueError(f"Unknown operator: {op}")

    def _eval_unary(self, node: UnaryOpNode) -> Any:
        """Evaluate a unary operation."""
        operand = self._eval(node.operand)
        op = node.operator

        if op == "NOT":
            return not is_truthy(operand)

        number = to_number(operand)
        if number is None:
            return None
        if op == "-":
            return -number
        if op == "+":
            return number

        raise ValueError(f"Unknown unary operator: {op}")

    # ==========================================================================
    # Operator Implementations
    # ==========================================================================

    def _add(self, left: Any, right: Any) -> Any:
        """Addition; a text operand turns it into concatenation."""
        if left is None and right is None:
            return None
        if left is None:
            return right
        if right is None:
            return left

        if isinstance(left, str) or isinstance(right, str):
            return self._concat(left, right)

        return self._arithmetic(left, right, lambda a, b: a + b)

    def _arithmetic(self, left: Any, right: Any, op: Any) -> Any:
        """Apply a numeric operator; ints stay ints."""
        a = to_number(left)
        b = to_number(right)
        if a is None or b is None:
            return None
        return op(a, b)

    def _divide(self, left: Any, right: Any) -> Any:
        """Division; by zero gives None."""
        a = to_number(left)
        b = to_number(right)
        if a is None or b is None or b == 0:
            return None
        result = a / b
        if isinstance(a, int) and isinstance(b, int) and result.is_integer():
            return int(result)
        return result

    def _modulo(self, left: Any, right: Any) -> Any:
        """Modulo with the sign of the dividend; by zero gives None."""
        a = to_number(left)
        b = to_number(right)
        if a is None or b is None or b == 0:
            return None
        if isinstance(a, int) and isinstance(b, int):
            return int(math.fmod(a, b))
        return math.fmod(a, b)

    def _concat(self, left: Any, right: Any) -> str:
        """String concatenation."""
        l = "" if left is None else self._to_text(left)
        r = "" if right is None else self._to_text(right)
        return l + r

    @staticmethod
    def _to_text(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        return str(value)

    def _equal(self, left: Any, right: Any) -> bool:
        """Equality comparison with numeric coercion."""
        if left is None and right is None:
            return True
        if left is None or right is None:
            return False

        if isinstance(left, (int, float)) or isinstance(right, (int, float)):
            a = to_number(left)
            b = to_number(right)
            if a is not None and b is not None:
                return a == b

        return left == right

    def _compare(self, left: Any, right: Any, op: Any) -> bool:
        """Ordering comparison: numeric when both sides are numbers, else text."""
        if left is None or right is None:
            return False
        a = to_number(left)
        b = to_number(right)
        if a is not None and b is not None:
            return op(a, b)
        return op(str(left), str(right))
