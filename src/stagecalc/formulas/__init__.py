"""Spreadsheet formula dialect: parsing, translation, evaluation, display.

Public API::

    from stagecalc.formulas import translate_formula, parse_expression, evaluate_expression
"""

from stagecalc.formulas.errors import (
    FormulaError,
    FormulaFunctionError,
    FormulaParseError,
    FormulaRefError,
)
from stagecalc.formulas.evaluator import ceiling, default_functions, evaluate_expression
from stagecalc.formulas.parser import (
    parse_expression,
    split_cell_ref,
    tokenize,
)
from stagecalc.formulas.readable import readable_formula
from stagecalc.formulas.translator import (
    FACTOR_COLUMN,
    VALUE_COLUMN,
    Translation,
    UnresolvedRef,
    normalize_formula,
    scope_key,
    translate_formula,
)

__all__ = [
    "FACTOR_COLUMN",
    "FormulaError",
    "FormulaFunctionError",
    "FormulaParseError",
    "FormulaRefError",
    "Translation",
    "UnresolvedRef",
    "VALUE_COLUMN",
    "ceiling",
    "default_functions",
    "evaluate_expression",
    "normalize_formula",
    "parse_expression",
    "readable_formula",
    "scope_key",
    "split_cell_ref",
    "tokenize",
    "translate_formula",
]
