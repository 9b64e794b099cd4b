"""Tests for project configuration and scaffolding."""

from __future__ import annotations

from pathlib import Path

import pytest

from stagecalc.project import (
    DEFAULT_CONFIG,
    engine_options,
    load_project_config,
    load_project_rows,
    scaffold_project,
)
from stagecalc.registry import ConfigError


class TestProjectConfig:
    def test_defaults_without_file(self, tmp_path: Path) -> None:
        assert load_project_config(tmp_path) == DEFAULT_CONFIG

    def test_overrides(self, tmp_path: Path) -> None:
        (tmp_path / "stagecalc.yaml").write_text("value_column: c\nfactor_column: E\nmax_passes: 25\n")
        cfg = load_project_config(tmp_path)
        assert cfg["value_column"] == "C"
        assert cfg["factor_column"] == "E"
        assert engine_options(cfg) == {"max_passes": 25, "value_column": "C", "factor_column": "E"}

    @pytest.mark.parametrize(
        "content",
        [
            "value_column: BB\n",
            "factor_column: '1'\n",
            "value_column: D\n",
            "max_passes: 0\n",
            "- a list\n",
        ],
    )
    def test_invalid(self, tmp_path: Path, content: str) -> None:
        (tmp_path / "stagecalc.yaml").write_text(content)
        with pytest.raises(ConfigError):
            load_project_config(tmp_path)


class TestScaffold:
    def test_creates_files(self, tmp_path: Path) -> None:
        project = scaffold_project(tmp_path / "p")
        assert (project / "stagecalc.yaml").exists()
        assert (project / "rows.yaml").exists()

    def test_demo_rows_load(self, demo_project: Path) -> None:
        calc = load_project_rows(demo_project)
        assert len(calc.rows) == 9
        assert calc.key_outputs == ["total_time"]
        assert calc.row("tile_time").canonical_factor == 60

    def test_refuses_existing_project(self, demo_project: Path) -> None:
        with pytest.raises(FileExistsError):
            scaffold_project(demo_project)

    def test_custom_rows_file(self, tmp_path: Path) -> None:
        project = scaffold_project(tmp_path / "p")
        (project / "rows.yaml").rename(project / "sheet.yaml")
        (project / "stagecalc.yaml").write_text("rows_file: sheet.yaml\n")
        assert len(load_project_rows(project).rows) == 9
