"""Full recompute of every row's base value by bounded relaxation.

Output formulas may reference each other in any order, so instead of
sorting them the engine sweeps every output repeatedly, writing results
into a shared scope, until a sweep changes nothing or the pass budget
runs out.  Cycles are not detected: a cyclic sheet simply stops after
``max_passes`` with whatever the last sweep produced.
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Sequence

import polars as pl
from lark import Tree
from pydantic import BaseModel, Field

from stagecalc.formulas.errors import FormulaError
from stagecalc.formulas.evaluator import default_functions, evaluate_expression
from stagecalc.formulas.parser import parse_expression
from stagecalc.formulas.translator import (
    FACTOR_COLUMN,
    VALUE_COLUMN,
    normalize_formula,
    scope_key,
    translate_formula,
)
from stagecalc.logging import EventType, emit_info, emit_warning
from stagecalc.logging.events import EVAL_FAILED, NOT_CONVERGED
from stagecalc.registry import RowDefinition, address_index
from stagecalc.state import ValueState, display_values, to_base_value

MAX_PASSES = 10


class Diagnostic(BaseModel):
    """A non-fatal problem found while computing."""

    row_id: str | None = None
    code: str
    message: str


class ComputeResult(BaseModel):
    """Base values for every row plus how the relaxation went."""

    base_values: dict[str, float]
    address_to_id: dict[str, str]
    passes: int = 0
    converged: bool = True
    diagnostics: list[Diagnostic] = Field(default_factory=list)


def _same(a: float, b: float) -> bool:
    return a == b or (math.isnan(a) and math.isnan(b))


def _as_number(value: Any) -> float:
    """Coerce an evaluation result to float; non-numeric results are NaN."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return math.nan
    return float(value)


def _compile(
    rows: Sequence[RowDefinition],
    value_column: str,
    factor_column: str,
    diagnostics: list[Diagnostic],
) -> list[tuple[RowDefinition, Tree | None]]:
    """Translate and parse every output formula once for this call.

    A ``None`` tree marks a formula that cannot be parsed; it evaluates
    to NaN on every pass.
    """
    compiled: list[tuple[RowDefinition, Tree | None]] = []
    for row in rows:
        if row.is_input or not row.formula or not normalize_formula(row.formula):
            continue
        try:
            translation = translate_formula(
                row.formula,
                row,
                rows,
                value_column=value_column,
                factor_column=factor_column,
            )
            tree: Tree | None = parse_expression(translation.expression)
        except FormulaError as exc:
            diagnostics.append(Diagnostic(row_id=row.id, code=EVAL_FAILED, message=str(exc)))
            compiled.append((row, None))
            continue
        for ref in translation.unresolved:
            diagnostics.append(
                Diagnostic(
                    row_id=row.id,
                    code=ref.reason,
                    message=f"{ref.address} in {row.formula!r} reads as 0",
                )
            )
        compiled.append((row, tree))
    return compiled


def compute_all(
    rows: Sequence[RowDefinition],
    state: Mapping[str, ValueState],
    *,
    max_passes: int = MAX_PASSES,
    value_column: str = VALUE_COLUMN,
    factor_column: str = FACTOR_COLUMN,
) -> ComputeResult:
    """Compute every row's base-unit value from the current state.

    Never raises for formula problems: a row whose formula cannot be
    evaluated becomes NaN and the pass carries on with the other rows.

    Args:
        rows: The row registry, in configuration order.
        state: Current display values and units for every row.
        max_passes: Relaxation budget.
        value_column: Column letter of value references.
        factor_column: Column letter of conversion-factor references.

    Returns:
        A ``ComputeResult``; ``base_values`` holds every row id.
    """
    diagnostics: list[Diagnostic] = []
    compiled = _compile(rows, value_column, factor_column, diagnostics)

    scope: dict[str, Any] = {}
    for r in rows:
        scope[scope_key(r.id)] = to_base_value(state[r.id])
    scope.update(default_functions())

    failures: dict[str, str] = {}
    passes = 0
    converged = False
    for _ in range(max_passes):
        passes += 1
        changed = False
        for row, tree in compiled:
            if tree is None:
                base_val = math.nan
            else:
                try:
                    base_val = _as_number(evaluate_expression(tree, scope))
                    failures.pop(row.id, None)
                except (FormulaError, ArithmeticError, ValueError, TypeError) as exc:
                    base_val = math.nan
                    failures[row.id] = str(exc)
            key = scope_key(row.id)
            if not _same(scope[key], base_val):
                scope[key] = base_val
                changed = True
        if not changed:
            converged = True
            break

    for row_id, message in sorted(failures.items()):
        diagnostics.append(Diagnostic(row_id=row_id, code=EVAL_FAILED, message=message))
        emit_warning(
            EventType.formula_eval_error,
            f"Row {row_id!r} evaluated to NaN: {message}",
            {"row_id": row_id},
            error_code=EVAL_FAILED,
        )
    for d in diagnostics:
        if d.code != EVAL_FAILED:
            emit_warning(
                EventType.unresolved_reference,
                d.message,
                {"row_id": d.row_id},
                error_code=d.code,
            )
    if not converged:
        message = f"No fixed point after {max_passes} passes"
        diagnostics.append(Diagnostic(code=NOT_CONVERGED, message=message))
        emit_warning(
            EventType.compute_not_converged,
            message,
            {"max_passes": max_passes},
            error_code=NOT_CONVERGED,
        )

    base_values = {r.id: scope[scope_key(r.id)] for r in rows}
    emit_info(
        EventType.compute_completed,
        f"Computed {len(rows)} rows in {passes} passes",
        {"rows": len(rows), "passes": passes, "converged": converged},
    )
    return ComputeResult(
        base_values=base_values,
        address_to_id=address_index(rows),
        passes=passes,
        converged=converged,
        diagnostics=diagnostics,
    )


def results_frame(
    rows: Sequence[RowDefinition],
    state: Mapping[str, ValueState],
    result: ComputeResult,
) -> pl.DataFrame:
    """One line per row: identity, selected unit, display and base values."""
    shown = display_values(state, result.base_values)
    return pl.DataFrame(
        {
            "id": [r.id for r in rows],
            "label": [r.label for r in rows],
            "section": [r.section for r in rows],
            "kind": [r.kind.value for r in rows],
            "unit": [state[r.id].unit_label for r in rows],
            "display_value": [shown[r.id] for r in rows],
            "base_value": [result.base_values[r.id] for r in rows],
        },
        schema={
            "id": pl.Utf8,
            "label": pl.Utf8,
            "section": pl.Utf8,
            "kind": pl.Utf8,
            "unit": pl.Utf8,
            "display_value": pl.Float64,
            "base_value": pl.Float64,
        },
    )
