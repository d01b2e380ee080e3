"""Base interface and data structures for tool definition parsers.

Every parser implements the ``ToolFileParser`` abstract base class, which
turns one location (a directory of Markdown definitions, or a JSON settings
file) into ``ToolRecord`` values tagged with the scope being scanned.

The ``ToolRecord`` dataclass is the uniform representation for all five tool
kinds. Kind-specific details live in ``metadata`` under fixed keys:

- **mcp**: ``transport``, ``command``, ``args``, ``env``, ``url``,
  ``headers``, ``docs_url``, ``config`` (the raw definition), ``key_path``.
- **hook**: ``trigger``, ``matcher``, ``definition``.
- **skill**: ``user_invocable``, ``disable_model_invocation``,
  ``allowed_tools``, ``model``, ``context``, ``agent``.
- **agent**: ``tools``, ``model``, ``permission_mode``, ``skills``.
- **command**: ``allowed_tools``, ``thinking``.

Parsers never raise for a single bad file. They return a ``ScanOutcome``
whose ``warnings`` name each skipped file and why.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping

from toolscope.core.scope import Scope


class ToolKind(str, Enum):
    """The kinds of tool definitions toolscope understands."""

    SKILL = "skill"
    COMMAND = "command"
    AGENT = "agent"
    MCP = "mcp"
    HOOK = "hook"


@dataclass(frozen=True)
class ToolRecord:
    """One discovered definition, as it was on disk at scan time.

    Attributes:
        name: Tool name as written in the definition.
        kind: Tool kind.
        scope: Scope the definition was found in.
        path: File (or skill directory) holding the definition.
        description: Optional human-readable summary.
        metadata: Kind-specific details (see module docstring).
        sha256: Integrity string of the definition's content.
        size: Size in bytes of the definition's content.
    """

    name: str
    kind: ToolKind
    scope: Scope
    path: Path
    description: str | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict, compare=False, hash=False)
    sha256: str = ""
    size: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "scope": self.scope.to_dict(),
            "path": str(self.path),
            "description": self.description,
            "metadata": dict(self.metadata),
            "sha256": self.sha256,
            "size": self.size,
        }


@dataclass(frozen=True)
class ScanWarning:
    """A file skipped during a scan.

    Attributes:
        path: The file or directory that could not be used.
        message: What went wrong.
        error: ``ScanIoError`` or ``ParseError``.
    """

    path: Path
    message: str
    error: str = "ParseError"

    def __str__(self) -> str:
        return f"{self.path}: {self.message}"


@dataclass
class ScanOutcome:
    """Records and warnings produced by scanning one location or scope."""

    records: list[ToolRecord] = field(default_factory=list)
    warnings: list[ScanWarning] = field(default_factory=list)

    def extend(self, other: ScanOutcome) -> None:
        self.records.extend(other.records)
        self.warnings.extend(other.warnings)

    def by_kind(self, kind: ToolKind) -> list[ToolRecord]:
        return [r for r in self.records if r.kind is kind]

    def warn_io(self, path: Path, exc: BaseException) -> None:
        self.warnings.append(ScanWarning(path, f"cannot read: {exc}", "ScanIoError"))

    def warn_parse(self, path: Path, message: str) -> None:
        self.warnings.append(ScanWarning(path, message, "ParseError"))


class ToolFileParser(ABC):
    """Abstract base class for tool definition parsers."""

    kind: ToolKind

    @abstractmethod
    def parse(self, path: Path, scope: Scope) -> ScanOutcome:
        """Parse every definition found at ``path``.

        A missing path is not an error and yields an empty outcome.

        Args:
            path: Directory or file to read.
            scope: Scope tag attached to every record.

        Returns:
            The parsed records plus a warning for each skipped file.
        """
