"""Formula parser.

Parses formula strings into an AST using the Lark LALR parser.
"""

from dataclasses import dataclass
from typing import Any

from lark import Lark, Token, Transformer, v_args
from lark.exceptions import LarkError

from dflexsync.formula.grammar import FORMULA_GRAMMAR

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", '"': '"', "'": "'"}


# AST Node types
@dataclass
class NumberNode:
    value: float | int


@dataclass
class StringNode:
    value: str


@dataclass
class BooleanNode:
    value: bool | None  # None represents null/undefined/blank


@dataclass
class FieldRefNode:
    field_name: str


@dataclass
class FunctionCallNode:
    name: str
    arguments: list[Any]


@dataclass
class BinaryOpNode:
    operator: str
    left: Any
    right: Any


@dataclass
class UnaryOpNode:
    operator: str
    operand: Any


@dataclass
class TernaryNode:
    condition: Any
    if_true: Any
    if_false: Any


def _unquote(raw: str) -> str:
    """Strip the surrounding quotes and resolve backslash escapes."""
    body = raw[1:-1]
    if "\\" not in body:
        return body
    out = []
    chars = iter(body)
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, "")
            out.append(_ESCAPES.get(nxt, nxt))
        else:
            out.append(ch)
    return "".join(out)


class FormulaTransformer(Transformer):
    """Transform Lark parse tree into AST nodes."""

    @v_args(inline=True)
    def number(self, token: Token) -> NumberNode:
        value = float(token)
        # Keep as int if no decimal
        if value.is_integer() and "." not in token and "e" not in token.lower():
            return NumberNode(int(value))
        return NumberNode(value)

    @v_args(inline=True)
    def string(self, token: Token) -> StringNode:
        return StringNode(_unquote(str(token)))

    @v_args(inline=True)
    def boolean(self, token: Token) -> BooleanNode:
        val = str(token).lower()
        if val == "true":
            return BooleanNode(True)
        if val == "false":
            return BooleanNode(False)
        return BooleanNode(None)

    @v_args(inline=True)
    def field_ref(self, token: Token) -> FieldRefNode:
        # {Field Name} -> Field Name
        return FieldRefNode(str(token)[1:-1].strip())

    @v_args(inline=True)
    def identifier(self, token: Token) -> FieldRefNode:
        return FieldRefNode(str(token))

    def function_call(self, items: list[Any]) -> FunctionCallNode:
        name = str(items[0]).upper()
        args = list(items[1]) if len(items) > 1 and items[1] else []
        return FunctionCallNode(name, args)

    def arguments(self, items: list[Any]) -> list[Any]:
        return list(items)

    @v_args(inline=True)
    def ternary(self, condition: Any, if_true: Any, if_false: Any) -> TernaryNode:
        return TernaryNode(condition, if_true, if_false)

    # Binary operators
    @v_args(inline=True)
    def add(self, left, right):
        return BinaryOpNode("+", left, right)

    @v_args(inline=True)
    def sub(self, left, right):
        return BinaryOpNode("-", left, right)

    @v_args(inline=True)
    def mul(self, left, right):
        return BinaryOpNode("*", left, right)

    @v_args(inline=True)
    def div(self, left, right):
        return BinaryOpNode("/", left, right)

    @v_args(inline=True)
    def mod(self, left, right):
        return BinaryOpNode("%", left, right)

    @v_args(inline=True)
    def pow(self, left, right):
        return BinaryOpNode("^", left, right)

    @v_args(inline=True)
    def string_concat(self, left, right):
        return BinaryOpNode("&", left, right)

    # Comparison operators
    @v_args(inline=True)
    def eq(self, left, right):
        return BinaryOpNode("=", left, right)

    @v_args(inline=True)
    def ne(self, left, right):
        return BinaryOpNode("!=", left, right)

    @v_args(inline=True)
    def lt(self, left, right):
        return BinaryOpNode("<", left, right)

    @v_args(inline=True)
    def gt(self, left, right):
        return BinaryOpNode(">", left, right)

    @v_args(inline=True)
    def le(self, left, right):
        return BinaryOpNode("<=", left, right)

    @v_args(inline=True)
    def ge(self, left, right):
        return BinaryOpNode(">=", left, right)

    # Logical operators
    @v_args(inline=True)
    def and_op(self, left, right):
        return BinaryOpNode("AND", left, right)

    @v_args(inline=True)
    def or_op(self, left, right):
        return BinaryOpNode("OR", left, right)

    @v_args(inline=True)
    def not_op(self, operand):
        return UnaryOpNode("NOT", operand)

    # Unary operators
    @v_args(inline=True)
    def neg(self, operand):
        return UnaryOpNode("-", operand)

    @v_args(inline=True)
    def pos(self, operand):
        return UnaryOpNode("+", operand)


class FormulaParser:
    """
    Parser for column formulas.

    Parses formula strings into an AST that can be evaluated.
    """

    def __init__(self) -> None:
        self._parser = Lark(
            FORMULA_GRAMMAR,
            parser="lalr",
            transformer=FormulaTransformer(),
        )

    def parse(self, formula: str) -> Any:
        """
        Parse a formula string into an AST.

        Args:
            formula: Formula string to parse

        Returns:
            AST root node

        Raises:
            ValueError: If formula syntax is invalid
        """
        try:
            return self._parser.parse(formula)
        except LarkError as e:
            raise ValueError(f"Invalid formula syntax: {e}") from e


def collect_field_references(node: Any, fields: set[str]) -> None:
    """Recursively collect column references from an AST."""
    if isinstance(node, FieldRefNode):
        fields.add(node.field_name)
    elif isinstance(node, BinaryOpNode):
        collect_field_references(node.left, fields)
        collect_field_references(node.right, fields)
    elif isinstance(node, UnaryOpNode):
        collect_field_references(node.operand, fields)
    elif isinstance(node, TernaryNode):
        collect_field_references(node.condition, fields)
        collect_field_references(node.if_true, fields)
        collect_field_references(node.if_false, fields)
    elif isinstance(node, FunctionCallNode):
        for arg in node.arguments:
            collect_field_references(arg, fields)
