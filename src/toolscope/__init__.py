"""toolscope: layered Claude Code configuration inventory and profile engine."""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"
