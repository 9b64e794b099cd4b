"""Tests for evaluation state seeding and the two UI mutations."""

from __future__ import annotations

import math

import pytest

from stagecalc.registry import RowDefinition
from stagecalc.state import (
    ValueState,
    build_initial_state,
    display_values,
    parse_display_value,
    set_display_value,
    set_unit,
    to_base_value,
)
from stagecalc.units import to_base


def _rows() -> list[RowDefinition]:
    return [
        RowDefinition(
            id="exposure", label="Exposure time", kind="input", display_unit="ms",
            base_unit="s", to_base_factor=1e-3, default_display_value=20, source_cell="B4",
        ),
        RowDefinition(id="frames", label="Frames", kind="input", source_cell="B3"),
        RowDefinition(
            id="total", label="Total", kind="output", display_unit="minutes",
            base_unit="s", to_base_factor=60, source_cell="B9", formula="=B3*B4",
            default_display_value=99,
        ),
    ]


class TestInitialState:
    def test_inputs_take_defaults(self) -> None:
        state = build_initial_state(_rows())
        assert state["exposure"] == ValueState(display_value=20, unit_label="ms", to_base=1e-3)

    def test_missing_default_is_zero(self) -> None:
        state = build_initial_state(_rows())
        assert state["frames"].display_value == 0
        assert state["frames"].unit_label is None
        assert state["frames"].to_base is None

    def test_outputs_start_at_zero(self) -> None:
        state = build_initial_state(_rows())
        assert state["total"].display_value == 0
        assert state["total"].to_base == 60

    def test_to_base_value(self) -> None:
        state = build_initial_state(_rows())
        assert to_base_value(state["exposure"]) == pytest.approx(0.02)
        assert to_base_value(state["frames"]) == 0


class TestSetDisplayValue:
    def test_sets_input(self) -> None:
        rows = _rows()
        state = build_initial_state(rows)
        updated = set_display_value(state, rows, "frames", "250")
        assert updated["frames"].display_value == 250
        assert state["frames"].display_value == 0

    def test_malformed_input_is_nan(self) -> None:
        rows = _rows()
        updated = set_display_value(build_initial_state(rows), rows, "frames", "12 frames")
        assert math.isnan(updated["frames"].display_value)

    def test_rejects_output(self) -> None:
        rows = _rows()
        with pytest.raises(ValueError, match="output"):
            set_display_value(build_initial_state(rows), rows, "total", 5)

    def test_rejects_unknown_row(self) -> None:
        rows = _rows()
        with pytest.raises(ValueError, match="Unknown row"):
            set_display_value(build_initial_state(rows), rows, "nope", 5)

    @pytest.mark.parametrize(
        "raw, expected",
        [(3, 3.0), (2.5, 2.5), (" 7 ", 7.0), ("1,000", 1000.0), ("1e-3", 0.001)],
    )
    def test_parse_display_value(self, raw, expected) -> None:
        assert parse_display_value(raw) == expected

    @pytest.mark.parametrize("raw", ["", "abc", None, True])
    def test_parse_display_value_nan(self, raw) -> None:
        assert math.isnan(parse_display_value(raw))


class TestSetUnit:
    def test_quantity_preserved(self) -> None:
        rows = _rows()
        state = build_initial_state(rows)
        updated = set_unit(state, rows, "exposure", "seconds")
        assert updated["exposure"].unit_label == "seconds"
        assert updated["exposure"].to_base == 1
        assert updated["exposure"].display_value == pytest.approx(0.02)
        assert to_base_value(updated["exposure"]) == pytest.approx(to_base_value(state["exposure"]))

    @pytest.mark.parametrize("label", ["ns", "µs", "seconds", "minutes", "hours", "days"])
    def test_unit_switch_invariance(self, label: str) -> None:
        rows = _rows()
        state = build_initial_state(rows)
        old = state["exposure"]
        new = set_unit(state, rows, "exposure", label)["exposure"]
        assert to_base(new.display_value, new.to_base) == pytest.approx(
            to_base(old.display_value, old.to_base), rel=1e-12
        )

    def test_switch_chain_returns_to_start(self) -> None:
        rows = _rows()
        state = build_initial_state(rows)
        for label in ("hours", "ns", "days", "ms"):
            state = set_unit(state, rows, "exposure", label)
        assert state["exposure"].display_value == pytest.approx(20, rel=1e-12)

    def test_unknown_label(self) -> None:
        rows = _rows()
        with pytest.raises(ValueError, match="not available"):
            set_unit(build_initial_state(rows), rows, "exposure", "mm")

    def test_dimensionless_row_has_no_units(self) -> None:
        rows = _rows()
        with pytest.raises(ValueError):
            set_unit(build_initial_state(rows), rows, "frames", "seconds")


class TestDisplayValues:
    def test_converts_from_base(self) -> None:
        rows = _rows()
        state = build_initial_state(rows)
        shown = display_values(state, {"exposure": 0.5, "frames": 4, "total": 120})
        assert shown["exposure"] == pytest.approx(500)
        assert shown["frames"] == 4
        assert shown["total"] == 2
