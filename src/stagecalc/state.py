"""Per-row evaluation state: the value the user sees and its unit.

State is a plain ``dict`` of row id to ``ValueState``.  The helpers here
never mutate the mapping they are given; they return an updated copy.
"""

from __future__ import annotations

import math
from typing import Any, Mapping, Sequence

from pydantic import BaseModel, ConfigDict

from stagecalc.registry import RowDefinition, rows_by_id
from stagecalc.units import find_unit_option, from_base, to_base

EvaluationState = dict[str, "ValueState"]


class ValueState(BaseModel):
    """A row's display value in its currently selected unit."""

    model_config = ConfigDict(frozen=True)

    display_value: float
    unit_label: str | None = None
    to_base: float | None = None


def to_base_value(v: ValueState) -> float:
    """The row's value in its base unit."""
    return to_base(v.display_value, v.to_base)


def build_initial_state(rows: Sequence[RowDefinition]) -> EvaluationState:
    """Seed display values and units from row defaults.

    Inputs start at their default display value (0 when absent); outputs
    start at 0 until the engine derives them.
    """
    state: EvaluationState = {}
    for r in rows:
        dv = r.default_display_value if r.is_input and r.default_display_value is not None else 0.0
        state[r.id] = ValueState(
            display_value=dv,
            unit_label=r.display_unit,
            to_base=r.to_base_factor,
        )
    return state


def parse_display_value(raw: Any) -> float:
    """Coerce user input to a float; anything unparseable becomes NaN."""
    if isinstance(raw, bool):
        return math.nan
    if isinstance(raw, (int, float)):
        return float(raw)
    try:
        return float(str(raw).strip().replace(",", ""))
    except ValueError:
        return math.nan


def set_display_value(
    state: Mapping[str, ValueState],
    rows: Sequence[RowDefinition],
    row_id: str,
    raw: Any,
) -> EvaluationState:
    """Set an input row's display value.

    Raises:
        ValueError: If *row_id* is unknown or names an output row.
    """
    row = rows_by_id(rows).get(row_id)
    if row is None:
        raise ValueError(f"Unknown row: {row_id!r}")
    if not row.is_input:
        raise ValueError(f"Row {row_id!r} is an output; its value is derived")
    updated = dict(state)
    updated[row_id] = state[row_id].model_copy(update={"display_value": parse_display_value(raw)})
    return updated


def set_unit(
    state: Mapping[str, ValueState],
    rows: Sequence[RowDefinition],
    row_id: str,
    unit_label: str,
) -> EvaluationState:
    """Switch a row's display unit, keeping its base-unit quantity.

    Raises:
        ValueError: If *row_id* is unknown or its base unit does not
            offer *unit_label*.
    """
    row = rows_by_id(rows).get(row_id)
    if row is None:
        raise ValueError(f"Unknown row: {row_id!r}")
    option = find_unit_option(row.base_unit, unit_label)
    if option is None:
        raise ValueError(f"Unit {unit_label!r} is not available for row {row_id!r}")

    current = state[row_id]
    base = to_base_value(current)
    updated = dict(state)
    updated[row_id] = ValueState(
        display_value=from_base(base, option.to_base),
        unit_label=option.label,
        to_base=option.to_base,
    )
    return updated


def display_values(
    state: Mapping[str, ValueState],
    base_values: Mapping[str, float],
) -> dict[str, float]:
    """Convert computed base values back to each row's display unit."""
    return {
        row_id: from_base(base_values[row_id], vs.to_base)
        for row_id, vs in state.items()
        if row_id in base_values
    }
