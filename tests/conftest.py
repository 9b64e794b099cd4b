"""Shared fixtures for stagecalc tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from stagecalc.logging import reset_sink
from stagecalc.project import scaffold_project


@pytest.fixture(autouse=True)
def _detach_event_sink():
    """Keep the module-level event sink from leaking between tests."""
    yield
    reset_sink()


@pytest.fixture
def demo_project(tmp_path: Path) -> Path:
    """Scaffold the demo project in a temporary directory."""
    return scaffold_project(tmp_path / "demo")
