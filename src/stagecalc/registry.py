"""Row definitions and the calculator configuration they live in.

A configuration is an ordered list of rows plus two precomputed
dependency maps used for highlighting.  Rows are either inputs (the user
types a value) or outputs (a spreadsheet formula derives the value).
"""

from __future__ import annotations

import math
import re
from enum import Enum
from pathlib import Path
from typing import Any, Sequence

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from stagecalc.logging import EventType, emit_info


class ConfigError(Exception):
    """Invalid calculator configuration."""


class RowKind(str, Enum):
    input = "input"
    output = "output"


_ADDR_RE = re.compile(r"^([A-Z]{1,3})([0-9]+)$")


def normalize_address(addr: str) -> str:
    """Uppercase a cell address and drop ``$`` markers (``$b$12`` -> ``B12``)."""
    return addr.replace("$", "").strip().upper()


def split_address(addr: str) -> tuple[str, int]:
    """Split a cell address into ``(column, row_number)``.

    Raises:
        ValueError: If *addr* is not a column-letter + row-number pair.
    """
    m = _ADDR_RE.match(normalize_address(addr))
    if m is None:
        raise ValueError(f"Invalid cell address: {addr!r}")
    return m.group(1), int(m.group(2))


def sanitize_factor(value: Any) -> float | None:
    """Return *value* as a positive finite float, or None (factor 1)."""
    if value is None or isinstance(value, bool):
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(f) or f <= 0:
        return None
    return f


class RowDefinition(BaseModel):
    """A single labeled row of the calculator."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)

    id: str
    label: str
    section: str = ""
    kind: RowKind
    display_unit: str | None = None
    base_unit: str | None = None
    to_base_factor: float | None = None
    default_display_value: float | None = None
    source_cell: str
    formula: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _lift_excel_block(cls, data: Any) -> Any:
        # Spreadsheet exports carry {"excel": {"cell": "B12", "formula": "=..."}}
        if isinstance(data, dict) and isinstance(data.get("excel"), dict):
            data = dict(data)
            excel = data.pop("excel")
            if "sourceCell" not in data and "source_cell" not in data:
                data["sourceCell"] = excel.get("cell")
            if "formula" not in data and "formula" in excel:
                data["formula"] = excel.get("formula")
        return data

    @field_validator("to_base_factor", mode="before")
    @classmethod
    def _sanitize_factor(cls, v: Any) -> float | None:
        return sanitize_factor(v)

    @field_validator("source_cell")
    @classmethod
    def _check_cell(cls, v: str) -> str:
        split_address(v)
        return normalize_address(v)

    @property
    def canonical_factor(self) -> float:
        """The display-to-base scale, 1 when the row has none."""
        return self.to_base_factor if self.to_base_factor is not None else 1.0

    @property
    def is_input(self) -> bool:
        return self.kind == RowKind.input


class CalculatorConfig(BaseModel):
    """Rows plus the dependency maps the UI uses for highlighting."""

    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    rows: list[RowDefinition]
    direct_deps: dict[str, list[str]] = Field(default_factory=dict)
    input_deps: dict[str, list[str]] = Field(default_factory=dict)
    key_outputs: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique(self) -> "CalculatorConfig":
        ids: set[str] = set()
        cells: set[str] = set()
        for row in self.rows:
            if row.id in ids:
                raise ValueError(f"Duplicate row id: {row.id!r}")
            if row.source_cell in cells:
                raise ValueError(f"Duplicate source cell: {row.source_cell!r}")
            ids.add(row.id)
            cells.add(row.source_cell)

        for field_name in ("direct_deps", "input_deps"):
            deps: dict[str, list[str]] = getattr(self, field_name)
            for key, targets in deps.items():
                unknown = sorted(({key} | set(targets)) - ids)
                if unknown:
                    raise ValueError(f"{field_name} names unknown rows: {unknown}")
        unknown_keys = sorted(set(self.key_outputs) - ids)
        if unknown_keys:
            raise ValueError(f"key_outputs names unknown rows: {unknown_keys}")
        return self

    def row(self, row_id: str) -> RowDefinition:
        """Look up a row by id.

        Raises:
            KeyError: If no row has *row_id*.
        """
        for r in self.rows:
            if r.id == row_id:
                return r
        raise KeyError(f"Unknown row: {row_id!r}")

    def highlight_set(self, row_id: str) -> set[str]:
        """Rows to highlight when *row_id* is hovered: direct and input deps."""
        return set(self.direct_deps.get(row_id, [])) | set(self.input_deps.get(row_id, []))


def address_index(rows: Sequence[RowDefinition]) -> dict[str, str]:
    """Map each row's source cell to its id."""
    return {r.source_cell: r.id for r in rows}


def rows_by_id(rows: Sequence[RowDefinition]) -> dict[str, RowDefinition]:
    return {r.id: r for r in rows}


def parse_config(data: dict[str, Any]) -> CalculatorConfig:
    """Validate a raw configuration mapping.

    Raises:
        ConfigError: If the mapping does not describe a valid configuration.
    """
    try:
        return CalculatorConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def load_config(path: Path) -> CalculatorConfig:
    """Load a calculator configuration from a YAML or JSON file.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if not path.exists():
        raise ConfigError(f"No configuration file at {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Cannot parse {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping with a 'rows' list")

    config = parse_config(data)

    emit_info(
        EventType.config_loaded,
        f"Loaded {len(config.rows)} rows from {path.name}",
        {"path": str(path), "rows": len(config.rows)},
    )
    return config
