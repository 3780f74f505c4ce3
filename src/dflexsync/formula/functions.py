"""Formula functions.

Built-in functions callable from column formulas. Names are matched
case-insensitively; the JS-style aliases (``Math.max``, ``parseFloat``...)
keep formulas written for the old spreadsheet view working.
"""

import math
import re
from typing import Any, Callable

# Type alias for formula functions
FormulaFunction = Callable[..., Any]

# Registry of formula functions
FORMULA_FUNCTIONS: dict[str, FormulaFunction] = {}

_LEADING_NUMBER = re.compile(r"^\s*([+-]?(?:\d+(?:[.,]\d*)?|[.,]\d+)(?:[eE][+-]?\d+)?)")


def register_function(name: str) -> Callable[[FormulaFunction], FormulaFunction]:
    """Decorator to register a formula function."""

    def decorator(func: FormulaFunction) -> FormulaFunction:
        FORMULA_FUNCTIONS[name.upper()] = func
        return func

    return decorator


def to_number(value: Any) -> int | float | None:
    """
    Coerce a cell value to a number.

    Numbers pass through, booleans become 0/1, numeric strings are parsed
    (a decimal comma is accepted). Anything else gives None.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        s = value.strip().replace(",", ".")
        if not s:
            return 0
        try:
            return int(s)
        except ValueError:
            pass
        try:
            return float(s)
        except ValueError:
            return None
    return None


def _flatten(args: tuple[Any, ...]) -> list[Any]:
    values: list[Any] = []
    for arg in args:
        if isinstance(arg, (list, tuple)):
            values.extend(arg)
        else:
            values.append(arg)
    return values


# =============================================================================
# Text Functions
# =============================================================================


@register_function("CONCAT")
@register_function("CONCATENATE")
def func_concat(*args: Any) -> str:
    """Concatenate values into a string."""
    return "".join(str(a) if a is not None else "" for a in args)


@register_function("LEFT")
def func_left(text: Any, count: int = 1) -> str:
    """Return leftmost characters."""
    if text is None:
        return ""
    return str(text)[: int(count)]


@register_function("RIGHT")
def func_right(text: Any, count: int = 1) -> str:
    """Return rightmost characters."""
    if text is None:
        return ""
    return str(text)[-int(count) :] if count > 0 else ""


@register_function("MID")
def func_mid(text: Any, start: int, count: int) -> str:
    """Return substring from middle (1-indexed)."""
    if text is None:
        return ""
    start = max(1, int(start))
    return str(text)[start - 1 : start - 1 + int(count)]


@register_function("LEN")
def func_len(text: Any) -> int:
    """Return length of text."""
    if text is None:
        return 0
    return len(str(text))


@register_function("TRIM")
def func_trim(text: Any) -> str:
    """Remove leading/trailing whitespace."""
    if text is None:
        return ""
    return str(text).strip()


@register_function("LOWER")
def func_lower(text: Any) -> str:
    """Convert to lowercase."""
    if text is None:
        return ""
    return str(text).lower()


@register_function("UPPER")
def func_upper(text: Any) -> str:
    """Convert to uppercase."""
    if text is None:
        return ""
    return str(text).upper()


@register_function("SUBSTITUTE")
def func_substitute(text: Any, old: str, new: str) -> str:
    """Replace every occurrence of ``old`` with ``new``."""
    if text is None:
        return ""
    return str(text).replace(str(old), str(new))


@register_function("STRING")
def func_string(value: Any) -> str:
    """JS ``String(x)``: None becomes an empty string."""
    return "" if value is None else str(value)


# =============================================================================
# Numeric Functions
# =============================================================================


@register_function("VALUE")
@register_function("NUMBER")
def func_value(value: Any) -> int | float | None:
    """Convert a cell value to a number."""
    return to_number(value)


@register_function("PARSEFLOAT")
def func_parse_float(value: Any) -> float | None:
    """Parse the leading number of a text, e.g. ``"40,5 mm"`` -> 40.5."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if value is None:
        return None
    match = _LEADING_NUMBER.match(str(value))
    if not match:
        return None
    return float(match.group(1).replace(",", "."))


@register_function("PARSEINT")
def func_parse_int(value: Any) -> int | None:
    """Parse the leading integer of a text."""
    number = func_parse_float(value)
    if number is None:
        return None
    return int(number)


@register_function("SUM")
def func_sum(*args: Any) -> int | float:
    """Sum of numeric values, ignoring blanks and text."""
    total: int | float = 0
    for arg in _flatten(args):
        number = to_number(arg)
        if number is not None:
            total += number
    return total


@register_function("MIN")
@register_function("MATH.MIN")
def func_min(*args: Any) -> int | float | None:
    """Minimum numeric value."""
    numbers = [n for n in (to_number(a) for a in _flatten(args)) if n is not None]
    return min(numbers) if numbers else None


@register_function("MAX")
@register_function("MATH.MAX")
def func_max(*args: Any) -> int | float | None:
    """Maximum numeric value."""
    numbers = [n for n in (to_number(a) for a in _flatten(args)) if n is not None]
    return max(numbers) if numbers else None


@register_function("ROUND")
def func_round(value: Any, decimals: int = 0) -> int | float | None:
    """Round half away from zero to the given decimals."""
    number = to_number(value)
    if number is None:
        return None
    multiplier = 10 ** int(decimals)
    rounded = math.floor(abs(number) * multiplier + 0.5) / multiplier
    rounded = math.copysign(rounded, number)
    return int(rounded) if int(decimals) <= 0 else rounded


@register_function("MATH.ROUND")
def func_math_round(value: Any) -> int | None:
    """JS ``Math.round``: halves round towards +infinity."""
    number = to_number(value)
    if number is None:
        return None
    return math.floor(number + 0.5)


@register_function("CEILING")
def func_ceiling(value: Any, significance: float = 1) -> int | float | None:
    """Round up to the nearest multiple of ``significance``."""
    number = to_number(value)
    step = to_number(significance)
    if number is None or step is None:
        return None
    if step == 0:
        return 0
    return math.ceil(number / step) * step


@register_function("FLOOR")
def func_floor(value: Any, significance: float = 1) -> int | float | None:
    """Round down to the nearest multiple of ``significance``."""
    number = to_number(value)
    step = to_number(significance)
    if number is None or step is None:
        return None
    if step == 0:
        return 0
    return math.floor(number / step) * step


@register_function("MATH.CEIL")
def func_math_ceil(value: Any) -> int | None:
    number = to_number(value)
    return None if number is None else math.ceil(number)


@register_function("MATH.FLOOR")
def func_math_floor(value: Any) -> int | None:
    number = to_number(value)
    return None if number is None else math.floor(number)


@register_function("ABS")
@register_function("MATH.ABS")
def func_abs(value: Any) -> int | float | None:
    """Absolute value."""
    number = to_number(value)
    return None if number is None else abs(number)


@register_function("INT")
def func_int(value: Any) -> int | None:
    """Round down to the nearest integer."""
    number = to_number(value)
    return None if number is None else math.floor(number)


# =============================================================================
# Logical Functions
# =============================================================================


@register_function("IF")
def func_if(condition: Any, if_true: Any, if_false: Any = None) -> Any:
    """Return ``if_true`` when the condition is truthy, else ``if_false``."""
    return if_true if is_truthy(condition) else if_false


@register_function("ISBLANK")
def func_isblank(value: Any) -> bool:
    """Check for None or empty text."""
    return value is None or value == ""


def is_truthy(value: Any) -> bool:
    """Spreadsheet truthiness: None, False, 0, NaN and "" are false."""
    if value is None:
        return False
    if isinstance(value, float) and math.isnan(value):
        return False
    return bool(value)
