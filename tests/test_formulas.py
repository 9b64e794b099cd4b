"""Tests for the formula dialect: parser, evaluator and ceiling."""

from __future__ import annotations

import math
from typing import Any

import pytest

from stagecalc.formulas import (
    FormulaFunctionError,
    FormulaParseError,
    FormulaRefError,
    ceiling,
    default_functions,
    evaluate_expression,
    parse_expression,
    split_cell_ref,
    tokenize,
)


# ────────────────────────────────────────────────────────────────
# Helpers
# ────────────────────────────────────────────────────────────────


def _eval(expr: str, scope: dict[str, Any] | None = None) -> Any:
    """Parse and evaluate an expression with the default bindings."""
    full = default_functions()
    full.update(scope or {})
    return evaluate_expression(parse_expression(expr), full)


# ────────────────────────────────────────────────────────────────
# Parser
# ────────────────────────────────────────────────────────────────


class TestParser:
    def test_arithmetic_precedence(self) -> None:
        assert _eval("2 + 3 * 4") == 14

    def test_exponentiation_right_associative(self) -> None:
        assert _eval("2^3^2") == 512

    def test_unary_minus_with_exponent(self) -> None:
        """-2^2 = -(2^2) = -4."""
        assert _eval("-2^2") == -4

    def test_negative_exponent(self) -> None:
        assert _eval("10^(-3)") == pytest.approx(1e-3)
        assert _eval("2^-1") == 0.5

    def test_exponent_notation(self) -> None:
        assert _eval("1e-6 * 2") == pytest.approx(2e-6)
        assert _eval("1.5E+3") == 1500

    def test_parenthesized_expression(self) -> None:
        assert _eval("(1 + 2) * 3") == 9

    def test_syntax_error(self) -> None:
        with pytest.raises(FormulaParseError):
            parse_expression("1 +")

    def test_unbalanced(self) -> None:
        with pytest.raises(FormulaParseError):
            parse_expression("(1 + 2")

    def test_foreign_character(self) -> None:
        with pytest.raises(FormulaParseError):
            tokenize("B1 & B2")

    def test_cell_ref_tokens(self) -> None:
        kinds = [t.type for t in tokenize("B12*$D$7+C3")]
        assert kinds.count("CELL_REF") == 3

    def test_long_row_number_is_not_a_cell(self) -> None:
        kinds = [t.type for t in tokenize("B1234 + AB12")]
        assert "CELL_REF" not in kinds

    def test_split_cell_ref(self) -> None:
        assert split_cell_ref("$D$7") == ("D", 7)
        with pytest.raises(FormulaParseError, match="not a cell reference"):
            split_cell_ref("pi")

    def test_parse_error_names_text_and_column(self) -> None:
        with pytest.raises(FormulaParseError) as exc_info:
            tokenize("B1 & B2")
        err = exc_info.value
        assert err.text == "B1 & B2"
        assert err.position == 4
        assert "'&'" in str(err)

    def test_parse_error_at_end(self) -> None:
        with pytest.raises(FormulaParseError, match="ends early") as exc_info:
            parse_expression("1 +")
        assert exc_info.value.position is None


# ────────────────────────────────────────────────────────────────
# Evaluator
# ────────────────────────────────────────────────────────────────


class TestEvaluator:
    def test_scope_names(self) -> None:
        assert _eval("(v_a / 0.001) * 2", {"v_a": 0.02}) == pytest.approx(40)

    def test_pi(self) -> None:
        assert _eval("pi") == math.pi

    def test_ceiling_call(self) -> None:
        assert _eval("ceiling(7, 5)") == 10

    def test_unknown_name(self) -> None:
        with pytest.raises(FormulaRefError, match="v_missing"):
            _eval("v_missing + 1")

    def test_function_is_not_a_value(self) -> None:
        with pytest.raises(FormulaRefError):
            _eval("ceiling + 1")

    def test_unknown_function(self) -> None:
        with pytest.raises(FormulaFunctionError, match="sqrt"):
            _eval("sqrt(4)")

    def test_wrong_arity(self) -> None:
        with pytest.raises(FormulaFunctionError, match="1 argument"):
            _eval("ceiling(4)")

    def test_literals_are_doubles(self) -> None:
        assert isinstance(_eval("7"), float)
        assert isinstance(_eval("2^3"), float)

    def test_division_by_zero_is_signed_infinity(self) -> None:
        assert _eval("1 / 0") == math.inf
        assert _eval("-1 / 0") == -math.inf
        assert _eval("1 / x", {"x": -0.0}) == -math.inf

    def test_zero_over_zero_is_nan(self) -> None:
        assert math.isnan(_eval("0 / 0"))
        assert math.isnan(_eval("x / 0", {"x": math.nan}))

    def test_power_overflow_saturates(self) -> None:
        assert _eval("10^9999999") == math.inf
        assert _eval("(-10)^999") == -math.inf
        assert _eval("(-10)^1000") == math.inf
        assert _eval("0.1^-400") == math.inf

    def test_zero_to_negative_power(self) -> None:
        assert _eval("0^-1") == math.inf

    def test_raw_cell_ref_is_unresolved(self) -> None:
        with pytest.raises(FormulaRefError):
            _eval("B3 + 1")


class TestCeiling:
    @pytest.mark.parametrize(
        "x, sig, expected",
        [(7, 5, 10), (10, 5, 10), (0.01, 0.25, 0.25), (0, 5, 0), (-7, 5, -5), (2.1, 1, 3)],
    )
    def test_rounds_up_to_multiple(self, x, sig, expected) -> None:
        assert ceiling(x, sig) == pytest.approx(expected)

    @pytest.mark.parametrize("x", [0, 7, -3.5, 1e9])
    def test_zero_significance(self, x) -> None:
        assert math.isnan(ceiling(x, 0))

    @pytest.mark.parametrize("x, sig", [(math.inf, 1), (math.nan, 1), (1, math.inf), (1, math.nan)])
    def test_non_finite(self, x, sig) -> None:
        assert math.isnan(ceiling(x, sig))
