"""Lark grammar definition for column formulas.

Formulas are written the way users type them in the pre-production table
header, with column names as bare identifiers:

- Arithmetic: +, -, *, /, %, ^ and ** (power)
- Comparison: =, ==, ===, !=, !==, <>, <, >, <=, >=
- String concatenation: &
- Logical: && || ! and the keywords AND, OR, NOT
- Conditional: cond ? a : b
- Column references: Precio, PARANTES_Descripcion, {Column with spaces}
- Function calls: ROUND(x, 2), Math.max(a, b)
- Literals: numbers, strings, true/false/null/undefined/blank
"""

FORMULA_GRAMMAR = r"""
    ?start: expression

    ?expression: conditional

    ?conditional: or_expr
        | or_expr "?" conditional ":" conditional -> ternary

    ?or_expr: and_expr
        | or_expr _OR and_expr -> or_op

    ?and_expr: not_expr
        | and_expr _AND not_expr -> and_op

    ?not_expr: comparison
        | _NOT not_expr -> not_op

    ?comparison: concat
        | comparison ("=" | "==" | "===") concat -> eq
        | comparison ("!=" | "!==" | "<>") concat -> ne
        | comparison "<" concat -> lt
        | comparison ">" concat -> gt
        | comparison "<=" concat -> le
        | comparison ">=" concat -> ge

    ?concat: additive
        | concat "&" additive -> string_concat

    ?additive: multiplicative
        | additive "+" multiplicative -> add
        | additive "-" multiplicative -> sub

    ?multiplicative: power
        | multiplicative "*" power -> mul
        | multiplicative "/" power -> div
        | multiplicative "%" power -> mod

    ?power: unary
        | unary ("^" | "**") power -> pow

    ?unary: atom
        | "-" unary -> neg
        | "+" unary -> pos

    ?atom: NUMBER -> number
        | STRING -> string
        | BOOLEAN -> boolean
        | FIELD_REF -> field_ref
        | NAME -> identifier
        | function_call
        | "(" expression ")"

    function_call: NAME "(" [arguments] ")"

    arguments: expression ("," expression)*

    // Keywords outrank NAME; \b keeps "notas" or "order" as identifiers
    _OR.3: "||" | /or\b/i
    _AND.3: "&&" | /and\b/i
    _NOT.3: "!" | /not\b/i
    BOOLEAN.3: /(true|false|null|undefined|blank)\b/i

    // Column reference for names with spaces: {Largo Parantes}
    FIELD_REF.1: "{" /[^}]+/ "}"

    // Bare identifier, optionally dotted (Math.max); accented letters allowed
    NAME: /[A-Za-z_À-ɏ][A-Za-z0-9_À-ɏ]*(\.[A-Za-z_][A-Za-z0-9_]*)*/

    // String literals (single or double quotes, backslash escapes)
    STRING: /"(?:[^"\\]|\\.)*"/ | /'(?:[^'\\]|\\.)*'/

    // Negative sign is handled by the unary operator
    NUMBER: /(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?/

    %import common.WS
    %ignore WS
"""
