"""Human-readable rendering of spreadsheet formulas.

Value references become row labels, conversion-factor references are
hidden, and redundant grouping and spacing are tidied.  Labels are held
as placeholders while the text is rewritten so their own characters
are never mistaken for operators or parentheses.
"""

from __future__ import annotations

import re
from typing import Sequence

from stagecalc.formulas.translator import FACTOR_COLUMN, VALUE_COLUMN
from stagecalc.registry import RowDefinition

_OPEN = "\ue000"
_CLOSE = "\ue001"
_PLACEHOLDER_RE = re.compile(f"{_OPEN}(\\d+){_CLOSE}")

_PI_RE = re.compile(r"\bPI\(\s*\)", re.IGNORECASE)
_CEILING_RE = re.compile(r"\bCEILING\(", re.IGNORECASE)
_MUL_ONE_RE = re.compile(r"\*\s*1(?![\w.])")
_DIV_ONE_RE = re.compile(r"/\s*1(?![\w.])")

# A single token: placeholder, number, identifier or π.  Parens directly
# after an identifier belong to a function call and are kept.
_SINGLE_TOKEN_PARENS_RE = re.compile(
    f"(?<![\\w{_CLOSE}])\\(\\s*({_OPEN}\\d+{_CLOSE}|[A-Za-z0-9_.%µ²³#π]+)\\s*\\)"
)
_OPERATOR_RE = re.compile(r"\s*([+*/^=])\s*")
_BINARY_MINUS_RE = re.compile(f"(?<=[0-9)%²³π{_CLOSE}])\\s*-\\s*")
_COMMA_RE = re.compile(r"\s*,\s*")
_SPACE_RE = re.compile(r"\s+")


def _label_pattern(labels: Sequence[str]) -> re.Pattern | None:
    """Match any known label as written, longest first."""
    parts = []
    for label in sorted({lab for lab in labels if lab.strip()}, key=len, reverse=True):
        part = re.escape(label)
        if re.match(r"\w", label):
            part = r"(?<!\w)" + part
        if re.search(r"\w$", label):
            part += r"(?!\w)"
        parts.append(part)
    return re.compile("|".join(parts)) if parts else None


def _ref_pattern(column: str) -> str:
    col = re.escape(column)
    return f"(?<![A-Za-z0-9_$])\\$?{col}\\$?(\\d{{1,3}})(?![0-9A-Za-z_])"


def has_wrapping_parens(expr: str) -> bool:
    """True when one parenthesis pair encloses the whole of *expr*."""
    if not (expr.startswith("(") and expr.endswith(")")):
        return False
    depth = 0
    for i, ch in enumerate(expr):
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
        if depth == 0 and i < len(expr) - 1:
            return False
    return depth == 0


def readable_formula(
    formula: str,
    rows: Sequence[RowDefinition],
    *,
    value_column: str = VALUE_COLUMN,
    factor_column: str = FACTOR_COLUMN,
) -> str:
    """Render *formula* for display, e.g. ``=B12*D12*2`` -> ``Exposure * 2``.

    Rendering its own output again returns it unchanged: labels already
    present in *formula* are held verbatim like freshly substituted ones.
    """
    labels = {r.source_cell: r.label for r in rows}
    shown: list[str] = []

    def _hold(text: str) -> str:
        shown.append(text)
        return f"{_OPEN}{len(shown) - 1}{_CLOSE}"

    s = formula.strip()
    if s.startswith("="):
        s = s[1:]

    label_re = _label_pattern(list(labels.values()))
    if label_re is not None:
        s = label_re.sub(lambda m: _hold(m.group(0)), s)

    # Unit-scaling cells are an implementation detail of the sheet
    factor_ref = _ref_pattern(factor_column)
    s = re.sub(r"\*\s*" + factor_ref, "", s)
    s = re.sub(r"/\s*" + factor_ref, "", s)

    def _label(m: re.Match) -> str:
        addr = f"{value_column}{int(m.group(1))}"
        return _hold(labels.get(addr, addr))

    s = re.sub(_ref_pattern(value_column), _label, s)
    s = re.sub(factor_ref, "1", s)
    s = _MUL_ONE_RE.sub("", s)
    s = _DIV_ONE_RE.sub("", s)
    s = _PI_RE.sub("π", s)
    s = _CEILING_RE.sub("ceiling(", s)

    prev = None
    while prev != s:
        prev = s
        s = _SINGLE_TOKEN_PARENS_RE.sub(r"\1", s)

    s = s.strip()
    while has_wrapping_parens(s):
        s = s[1:-1].strip()

    s = _OPERATOR_RE.sub(r" \1 ", s)
    s = _BINARY_MINUS_RE.sub(" - ", s)
    s = _COMMA_RE.sub(", ", s)
    s = _SPACE_RE.sub(" ", s).strip()

    return _PLACEHOLDER_RE.sub(lambda m: shown[int(m.group(1))], s)
