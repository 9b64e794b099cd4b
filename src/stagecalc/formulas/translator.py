"""Rewrite spreadsheet formulas into base-unit expressions.

Formulas are authored against the spreadsheet's *display* values.  Two
reference columns matter:

- the value column (``B``): ``B12`` becomes ``(v_<id> / <factor>)``, the
  owning row's base value scaled back to its spreadsheet display unit;
- the factor column (``D``): ``D12`` becomes the literal factor of the
  row at ``B12``.

Any other column reads as a blank cell (``0``).  The whole expression is
then multiplied by the owning row's factor so it yields a base value.
"""

from __future__ import annotations

import re
from typing import Sequence

from pydantic import BaseModel, Field

from stagecalc.formulas.parser import split_cell_ref, tokenize
from stagecalc.logging.events import UNKNOWN_ADDRESS, UNMODELED_COLUMN
from stagecalc.registry import RowDefinition

VALUE_COLUMN = "B"
FACTOR_COLUMN = "D"

_PI_RE = re.compile(r"\bPI\(\s*\)", re.IGNORECASE)
_NEG_EXP_RE = re.compile(r"(\d+(?:\.\d+)?)\^-(\d+(?:\.\d+)?)")
_CEILING_RE = re.compile(r"\bCEILING\(", re.IGNORECASE)
_SCOPE_KEY_RE = re.compile(r"[^A-Za-z0-9]")


class UnresolvedRef(BaseModel):
    """A reference that was replaced by a blank-cell zero."""

    address: str
    reason: str  # UNKNOWN_ADDRESS | UNMODELED_COLUMN


class Translation(BaseModel):
    """Result of translating one formula."""

    expression: str
    unresolved: list[UnresolvedRef] = Field(default_factory=list)


def _escape_scope_char(m: re.Match) -> str:
    ch = m.group(0)
    return "__" if ch == "_" else f"_{ord(ch):x}_"


def scope_key(row_id: str) -> str:
    """Variable name holding a row's base value in the evaluation scope.

    ASCII letters and digits pass through, ``_`` is doubled and any other
    character becomes ``_<hex codepoint>_``, so distinct ids never share
    a variable: ``"a-b"`` -> ``v_a_2d_b``, ``"a_b"`` -> ``v_a__b``.
    """
    return "v_" + _SCOPE_KEY_RE.sub(_escape_scope_char, row_id)


def format_number(value: float) -> str:
    """Render a factor as a literal the parser reads back exactly."""
    if float(value).is_integer() and abs(value) < 1e15:
        return str(int(value))
    return repr(float(value))


def normalize_formula(formula: str) -> str:
    """Textual clean-up applied before references are rewritten.

    Strips one leading ``=``, turns ``PI()`` into ``pi``, parenthesizes
    negative exponents (``10^-6`` -> ``10^(-6)``) and lowercases
    ``CEILING(``.
    """
    s = formula.strip()
    if s.startswith("="):
        s = s[1:]
    s = _PI_RE.sub("pi", s)
    s = _NEG_EXP_RE.sub(r"\1^(-\2)", s)
    s = _CEILING_RE.sub("ceiling(", s)
    return s.strip()


def _join(pieces: list[str], glued: list[bool]) -> str:
    out = ""
    for piece, glue in zip(pieces, glued):
        if glue or not out or out.endswith("(") or piece in (")", ","):
            out += piece
        else:
            out += " " + piece
    return out


def translate_formula(
    formula: str,
    owner: RowDefinition,
    rows: Sequence[RowDefinition],
    *,
    value_column: str = VALUE_COLUMN,
    factor_column: str = FACTOR_COLUMN,
) -> Translation:
    """Translate *formula* (owned by *owner*) into a base-unit expression.

    Args:
        formula: Raw spreadsheet formula, e.g. ``"=B12*D12*2"``.
        owner: The output row the formula belongs to.
        rows: Every row in the registry.
        value_column: Column letter of value references.
        factor_column: Column letter of conversion-factor references.

    Returns:
        The expression and any references that resolved to blank zero.

    Raises:
        FormulaParseError: If the formula contains characters outside the
            dialect.
    """
    by_address = {r.source_cell: r for r in rows}
    unresolved: list[UnresolvedRef] = []
    pieces: list[str] = []
    glued: list[bool] = []

    prev_type = None
    for tok in tokenize(normalize_formula(formula)):
        # Function-call parens stay attached to the name
        glued.append(str(tok) == "(" and prev_type == "NAME")
        prev_type = tok.type
        if tok.type != "CELL_REF":
            pieces.append(str(tok))
            continue

        column, number = split_cell_ref(str(tok))
        target = by_address.get(f"{value_column}{number}")
        if column == value_column:
            if target is None:
                unresolved.append(UnresolvedRef(address=f"{column}{number}", reason=UNKNOWN_ADDRESS))
                pieces.append("0")
            else:
                pieces.append(
                    f"({scope_key(target.id)} / {format_number(target.canonical_factor)})"
                )
        elif column == factor_column:
            factor = target.canonical_factor if target is not None else 1.0
            if target is None:
                unresolved.append(UnresolvedRef(address=f"{column}{number}", reason=UNKNOWN_ADDRESS))
            pieces.append(f"({format_number(factor)})")
        else:
            unresolved.append(UnresolvedRef(address=f"{column}{number}", reason=UNMODELED_COLUMN))
            pieces.append("0")

    body = _join(pieces, glued) or "0"
    expression = f"({body}) * ({format_number(owner.canonical_factor)})"
    return Translation(expression=expression, unresolved=unresolved)
