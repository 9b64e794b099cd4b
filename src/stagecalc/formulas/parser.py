"""Lark-based parser for the calculator's formula dialect.

Supports:
- Numbers, including exponent notation (``1e-6``)
- Arithmetic ``+ - * /``, exponentiation ``^`` and unary ``+``/``-``
- Function calls (``ceiling(x, 5)``) and bare names (``pi``, ``v_row``)
- Cell references: one column letter and a 1-3 digit row number,
  with optional ``$`` markers (``B12``, ``$D$7``)
"""

from __future__ import annotations

import re

from lark import Lark, Token, Tree
from lark.exceptions import LarkError

from stagecalc.formulas.errors import FormulaParseError

# LALR(1) grammar for the formula dialect.
# Operator precedence (lowest to highest):
#   1. Addition/subtraction: + -
#   2. Multiplication/division: * /
#   3. Unary plus/minus: + -
#   4. Exponentiation: ^ (right-associative)
#   5. Atoms: number, function call, cell reference, name, parenthesized expr
GRAMMAR = r"""
start: expr

?expr: addition

?addition: multiplication
    | addition "+" multiplication  -> add
    | addition "-" multiplication  -> sub

?multiplication: unary
    | multiplication "*" unary  -> mul
    | multiplication "/" unary  -> div

?unary: exponentiation
    | "-" unary  -> neg
    | "+" unary  -> pos

?exponentiation: atom
    | atom "^" unary  -> pow

?atom: NUMBER                   -> number
    | NAME "(" args ")"         -> func_call
    | CELL_REF                  -> cell_ref
    | NAME                      -> ref
    | "(" expr ")"

args: expr ("," expr)*
    |

// Cell ref: B12, $D$7 (single uppercase column letter, 1-3 digit row)
CELL_REF.2: /\$?[A-Z]\$?[0-9]{1,3}(?![0-9A-Za-z_])/

NAME.1: /[A-Za-z_][A-Za-z0-9_]*/

%import common.NUMBER
%import common.WS
%ignore WS
"""

_parser = Lark(GRAMMAR, parser="lalr", lexer="basic", start="start")

_CELL_RE = re.compile(r"^\$?([A-Z])\$?([0-9]{1,3})$")


def _parse_error(text: str, exc: LarkError) -> FormulaParseError:
    """Describe a lark failure in terms of the formula text."""
    column = getattr(exc, "column", None)
    if not isinstance(column, int) or column < 1:
        column = None
    char = getattr(exc, "char", None)
    token = getattr(exc, "token", None)
    if char is not None:
        detail = f"unexpected character {char!r}"
    elif isinstance(token, Token) and token.type != "$END":
        detail = f"unexpected {str(token)!r}"
    else:
        detail = "formula ends early"
        column = None
    return FormulaParseError(text, column, detail)


def parse_expression(text: str) -> Tree:
    """Parse an expression (no leading ``=``) into a Lark Tree.

    Args:
        text: The expression text, e.g. ``"(v_exposure / 1) * 2"``.

    Returns:
        A Lark parse tree.

    Raises:
        FormulaParseError: If the expression has invalid syntax.
    """
    try:
        return _parser.parse(text)
    except LarkError as exc:
        raise _parse_error(text, exc) from exc


def tokenize(text: str) -> list[Token]:
    """Split an expression into dialect tokens, whitespace dropped.

    Raises:
        FormulaParseError: On a character outside the dialect.
    """
    try:
        return list(_parser.lex(text))
    except LarkError as exc:
        raise _parse_error(text, exc) from exc


def split_cell_ref(token: str) -> tuple[str, int]:
    """Split a CELL_REF token into ``(column, row_number)``.

    ``"$D$7"`` -> ``("D", 7)``
    """
    m = _CELL_RE.match(token.strip())
    if m is None:
        raise FormulaParseError(token, detail="not a cell reference")
    return m.group(1), int(m.group(2))
