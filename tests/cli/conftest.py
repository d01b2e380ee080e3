"""Shared fixtures for CLI tests.

Commands read their directories from the environment, so every test that
invokes the CLI should request ``cli_env`` alongside ``runner``.
"""

from __future__ import annotations

import pytest
from click.testing import CliRunner


@pytest.fixture
def runner() -> CliRunner:
    """Create a Click CliRunner for invoking commands."""
    return CliRunner()
