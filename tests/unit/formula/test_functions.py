"""Unit tests for formula functions."""

import math

import pytest
from dflexsync.formula.functions import (
    FORMULA_FUNCTIONS,
    is_truthy,
    register_function,
    to_number,
)


def call(name, *args):
    return FORMULA_FUNCTIONS[name](*args)


class TestToNumber:
    """Tests for value coercion."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            (3, 3),
            (2.5, 2.5),
            (True, 1),
            ("12", 12),
            (" 1,5 ", 1.5),
            ("", 0),
            ("abc", None),
            (None, None),
            ([1], None),
        ],
    )
    def test_to_number(self, value, expected):
        assert to_number(value) == expected


class TestTextFunctions:
    """Tests for text functions."""

    def test_concat(self):
        assert call("CONCAT", "a", 1, None, "b") == "a1b"

    def test_left_right_mid(self):
        assert call("LEFT", "abcdef", 2) == "ab"
        assert call("RIGHT", "abcdef", 2) == "ef"
        assert call("MID", "abcdef", 2, 3) == "bcd"

    def test_len_trim_case(self):
        assert call("LEN", "hola") == 4
        assert call("TRIM", "  x  ") == "x"
        assert call("UPPER", "abc") == "ABC"
        assert call("LOWER", "ABC") == "abc"

    def test_substitute(self):
        assert call("SUBSTITUTE", "40x60", "x", " x ") == "40 x 60"

    def test_none_text(self):
        assert call("LEN", None) == 0
        assert call("STRING", None) == ""


class TestNumericFunctions:
    """Tests for numeric functions."""

    def test_parse_float_and_int(self):
        assert call("PARSEFLOAT", "40,5 mm") == 40.5
        assert call("PARSEINT", "12.9x") == 12
        assert call("PARSEFLOAT", "mm") is None

    def test_sum_ignores_text(self):
        assert call("SUM", 1, "2", None, "x") == 3

    def test_min_max(self):
        assert call("MAX", 1, "7", 3) == 7
        assert call("MATH.MIN", 4, 2) == 2
        assert call("MAX") is None

    @pytest.mark.parametrize(
        "value,decimals,expected",
        [(2.5, 0, 3), (-2.5, 0, -3), (1.25, 1, 1.3), (1234, -2, 1200)],
    )
    def test_round_half_away_from_zero(self, value, decimals, expected):
        assert call("ROUND", value, decimals) == expected

    def test_math_round_rounds_halves_up(self):
        assert call("MATH.ROUND", 2.5) == 3
        assert call("MATH.ROUND", -2.5) == -2

    def test_ceiling_floor(self):
        assert call("CEILING", 2.1) == 3
        assert call("FLOOR", 2.9, 0.5) == 2.5
        assert call("MATH.CEIL", 1.2) == 2
        assert call("MATH.FLOOR", 1.8) == 1

    def test_abs_int(self):
        assert call("ABS", -3) == 3
        assert call("INT", 3.7) == 3


class TestLogicalFunctions:
    """Tests for logical functions."""

    def test_if(self):
        assert call("IF", 1, "a", "b") == "a"
        assert call("IF", 0, "a", "b") == "b"
        assert call("IF", "", "a") is None

    def test_isblank(self):
        assert call("ISBLANK", None) is True
        assert call("ISBLANK", "") is True
        assert call("ISBLANK", 0) is False

    def test_is_truthy(self):
        assert is_truthy(float("nan")) is False
        assert is_truthy("0") is True
        assert is_truthy(0) is False


class TestRegisterFunction:
    """Tests for the function registry."""

    def test_register_custom_function(self):
        @register_function("double_it")
        def double_it(value):
            return value * 2

        try:
            assert FORMULA_FUNCTIONS["DOUBLE_IT"](4) == 8
        finally:
            FORMULA_FUNCTIONS.pop("DOUBLE_IT")

    def test_registry_has_aliases(self):
        for name in ("MATH.MAX", "NUMBER", "PARSEFLOAT", "CONCATENATE"):
            assert name in FORMULA_FUNCTIONS

    def test_value_passes_nan_through(self):
        assert math.isnan(call("VALUE", float("nan")))
