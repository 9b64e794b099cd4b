"""Project-level configuration and scaffolding."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from stagecalc.registry import CalculatorConfig, ConfigError, load_config


DEFAULT_CONFIG = {
    "rows_file": "rows.yaml",
    "value_column": "B",
    "factor_column": "D",
    "max_passes": 10,
    "logging_fsync": False,
    "logging_tail_bytes": 2_097_152,  # 2 MB
}

CONFIG_FILENAME = "stagecalc.yaml"


def load_project_config(project_dir: Path) -> dict[str, Any]:
    """Load project configuration from ``stagecalc.yaml``, with defaults.

    Args:
        project_dir: Root of the stagecalc project.

    Returns:
        Merged configuration dict.

    Raises:
        ConfigError: If the file exists but is not a mapping.
    """
    config = dict(DEFAULT_CONFIG)
    config_path = project_dir / CONFIG_FILENAME
    if config_path.exists():
        user_config = yaml.safe_load(config_path.read_text()) or {}
        if not isinstance(user_config, dict):
            raise ConfigError(f"{config_path} must contain a mapping")
        config.update(user_config)

    for key in ("value_column", "factor_column"):
        col = str(config[key]).strip().upper()
        if len(col) != 1 or not col.isalpha():
            raise ConfigError(f"{key} must be a single column letter, got {config[key]!r}")
        config[key] = col
    if config["value_column"] == config["factor_column"]:
        raise ConfigError("value_column and factor_column must differ")
    if int(config["max_passes"]) < 1:
        raise ConfigError("max_passes must be at least 1")
    config["max_passes"] = int(config["max_passes"])
    return config


def engine_options(config: dict[str, Any]) -> dict[str, Any]:
    """Keyword arguments for ``compute_all`` taken from a project config."""
    return {
        "max_passes": config["max_passes"],
        "value_column": config["value_column"],
        "factor_column": config["factor_column"],
    }


def load_project_rows(project_dir: Path) -> CalculatorConfig:
    """Load the row registry named by the project's ``rows_file``."""
    config = load_project_config(project_dir)
    return load_config(project_dir / config["rows_file"])


DEMO_CONFIG = """\
rows_file: rows.yaml
value_column: B
factor_column: D
max_passes: 10
"""

DEMO_ROWS = """\
# Acquisition timeline.  Cells follow the source spreadsheet: column B
# holds values, column D the unit factor of the value on the same row.
rows:
  - id: frames
    label: Frames per tile
    section: Acquisition
    kind: input
    default_display_value: 100
    source_cell: B3
  - id: exposure
    label: Exposure time
    section: Acquisition
    kind: input
    display_unit: ms
    base_unit: s
    to_base_factor: 0.001
    default_display_value: 20
    source_cell: B4
  - id: readout
    label: Readout time
    section: Acquisition
    kind: input
    display_unit: ms
    base_unit: s
    to_base_factor: 0.001
    default_display_value: 5
    source_cell: B5
  - id: stage_move
    label: Stage move
    section: Motion
    kind: input
    display_unit: seconds
    base_unit: s
    to_base_factor: 1
    default_display_value: 0.5
    source_cell: B6
  - id: tiles
    label: Tiles
    section: Motion
    kind: input
    default_display_value: 12
    source_cell: B7
  - id: frame_time
    label: Frame time
    section: Timeline
    kind: output
    display_unit: ms
    base_unit: s
    to_base_factor: 0.001
    source_cell: B8
    formula: "=B4+B5"
  - id: tile_time
    label: Tile time
    section: Timeline
    kind: output
    display_unit: minutes
    base_unit: s
    to_base_factor: 60
    source_cell: B9
    formula: "=B3*B8*D8/D9"
  - id: total_time
    label: Total time
    section: Timeline
    kind: output
    display_unit: hours
    base_unit: s
    to_base_factor: 3600
    source_cell: B10
    formula: "=CEILING(B7*(B9*D9+B6*D6)/D10, 0.25)"
  - id: frame_rate
    label: Frame rate
    section: Timeline
    kind: output
    display_unit: Hz
    base_unit: Hz
    to_base_factor: 1
    source_cell: B11
    formula: "=1/(B8*D8)"
direct_deps:
  frame_time: [exposure, readout]
  tile_time: [frames, frame_time]
  total_time: [tiles, tile_time, stage_move]
  frame_rate: [frame_time]
input_deps:
  frame_time: [exposure, readout]
  tile_time: [frames, exposure, readout]
  total_time: [tiles, frames, exposure, readout, stage_move]
  frame_rate: [exposure, readout]
key_outputs: [total_time]
"""


def scaffold_project(target_dir: Path) -> Path:
    """Create a demo project at *target_dir*.

    Args:
        target_dir: Directory to create (must not already contain a config).

    Returns:
        The project directory path.

    Raises:
        FileExistsError: If ``stagecalc.yaml`` already exists there.
    """
    target_dir = Path(target_dir)
    if (target_dir / CONFIG_FILENAME).exists():
        raise FileExistsError(f"{CONFIG_FILENAME} already exists in {target_dir}")

    target_dir.mkdir(parents=True, exist_ok=True)
    (target_dir / CONFIG_FILENAME).write_text(DEMO_CONFIG)
    (target_dir / "rows.yaml").write_text(DEMO_ROWS)
    return target_dir
