"""Shared fixtures for toolscope tests.

Every test runs against a fake home directory, data directory and managed
directory under ``tmp_path``, so nothing reads or writes the real
``~/.claude``.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from toolscope.config import ConfigPaths
from toolscope.core.diff.engine import DiffApplyEngine
from toolscope.core.profiles.store import ProfileStore


@pytest.fixture
def paths(tmp_path: Path) -> ConfigPaths:
    """Configuration paths rooted in a temporary directory."""
    home = tmp_path / "home"
    home.mkdir()
    return ConfigPaths(
        home=home,
        data_dir=tmp_path / "data",
        managed_dir=tmp_path / "managed",
        scan_workers=4,
    )


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """An empty project directory."""
    root = tmp_path / "app"
    (root / ".claude").mkdir(parents=True)
    return root.resolve()


@pytest.fixture
def other_project(tmp_path: Path) -> Path:
    """A second, empty project directory."""
    root = tmp_path / "web"
    root.mkdir()
    return root.resolve()


@pytest.fixture
def engine() -> DiffApplyEngine:
    return DiffApplyEngine()


@pytest.fixture
def store(paths: ConfigPaths, engine: DiffApplyEngine) -> ProfileStore:
    """A profile store writing into the temporary data directory."""
    return ProfileStore(paths, engine)


@pytest.fixture
def cli_env(monkeypatch: pytest.MonkeyPatch, paths: ConfigPaths) -> ConfigPaths:
    """Point the CLI at the temporary directories through the environment."""
    monkeypatch.setenv("TOOLSCOPE_HOME", str(paths.home))
    monkeypatch.setenv("TOOLSCOPE_DATA_DIR", str(paths.data_dir))
    monkeypatch.setenv("TOOLSCOPE_MANAGED_DIR", str(paths.managed_dir))
    monkeypatch.setenv("TOOLSCOPE_SCAN_WORKERS", "2")
    return paths
