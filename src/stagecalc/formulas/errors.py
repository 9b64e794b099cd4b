"""Error types for formula parsing and evaluation.

The engine turns any of these into a NaN row value plus a diagnostic,
so messages are written for whoever maintains the sheet's formulas.
"""

from __future__ import annotations


class FormulaError(Exception):
    """A formula could not be read or evaluated."""


class FormulaParseError(FormulaError):
    """Formula text outside the supported dialect.

    Attributes:
        text: The expression that was being read.
        position: 1-based column of the offending character, if known.
    """

    def __init__(self, text: str, position: int | None = None, detail: str | None = None) -> None:
        self.text = text
        self.position = position
        msg = f"Cannot read formula {text!r}"
        if position is not None:
            msg += f" at column {position}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class FormulaRefError(FormulaError):
    """A name or cell address with no value bound in the scope.

    Attributes:
        ref_name: The reference as written in the expression.
        cell: True when the reference is a raw spreadsheet address.
    """

    def __init__(self, ref_name: str, *, cell: bool = False) -> None:
        self.ref_name = ref_name
        self.cell = cell
        if cell:
            msg = f"Cell {ref_name} was never resolved to a row"
        else:
            msg = f"{ref_name!r} is neither a row value nor a constant"
        super().__init__(msg)


class FormulaFunctionError(FormulaError):
    """Call to a function the dialect lacks, or with the wrong arguments.

    Attributes:
        func_name: The function as written in the expression.
    """

    def __init__(self, func_name: str, message: str | None = None) -> None:
        self.func_name = func_name
        super().__init__(message or f"Function {func_name!r} is not supported; only ceiling(x, significance) is")
