"""Data models for the discovery module.

Contains the result types produced by ``ScopeScanner`` and
``InventoryBuilder``: per-scope record sets, installed plugins, and the
aggregate ``Inventory`` snapshot. An inventory is built fresh for each scan
request and never updated in place.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from toolscope.core.collision import CollisionReport
from toolscope.parsers.base import ScanOutcome, ScanWarning, ToolKind, ToolRecord


@dataclass(frozen=True)
class GitInfo:
    """Git status of a project directory."""

    branch: str | None
    is_dirty: bool
    remote_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"branch": self.branch, "is_dirty": self.is_dirty, "remote_url": self.remote_url}


class _RecordSet:
    """Shared accessors for scope results holding a ``ScanOutcome``."""

    outcome: ScanOutcome

    @property
    def records(self) -> list[ToolRecord]:
        return self.outcome.records

    @property
    def warnings(self) -> list[ScanWarning]:
        return self.outcome.warnings

    def by_kind(self, kind: ToolKind) -> list[ToolRecord]:
        return self.outcome.by_kind(kind)

    def _records_dict(self) -> dict[str, list[dict[str, Any]]]:
        return {
            kind.value: [r.to_dict() for r in self.by_kind(kind)] for kind in ToolKind
        }


@dataclass
class UserScope(_RecordSet):
    """Records found under the user's home directory."""

    path: Path
    outcome: ScanOutcome = field(default_factory=ScanOutcome)

    def to_dict(self) -> dict[str, Any]:
        return {"path": str(self.path), "tools": self._records_dict()}


@dataclass
class ManagedScope(_RecordSet):
    """Records found in the organization-managed directory."""

    path: Path
    outcome: ScanOutcome = field(default_factory=ScanOutcome)

    def to_dict(self) -> dict[str, Any]:
        return {"path": str(self.path), "tools": self._records_dict()}


@dataclass
class ProjectScope(_RecordSet):
    """Records found in one project, for both Project and Local scopes.

    Attributes:
        path: Project root.
        name: Display name (directory name).
        outcome: Project-scope records and warnings.
        local: Local-scope records and warnings.
        git: Git status, None when not a repository.
        has_claude_md: Whether the project has a CLAUDE.md.
        error: Set when scanning the project failed as a whole.
    """

    path: Path
    name: str
    outcome: ScanOutcome = field(default_factory=ScanOutcome)
    local: ScanOutcome = field(default_factory=ScanOutcome)
    git: GitInfo | None = None
    has_claude_md: bool = False
    error: str | None = None

    @property
    def all_records(self) -> list[ToolRecord]:
        return self.outcome.records + self.local.records

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "name": self.name,
            "tools": self._records_dict(),
            "local": {
                kind.value: [r.to_dict() for r in self.local.by_kind(kind)]
                for kind in ToolKind
            },
            "git": self.git.to_dict() if self.git else None,
            "has_claude_md": self.has_claude_md,
            "error": self.error,
        }


@dataclass
class InstalledPlugin(_RecordSet):
    """One installation of a plugin, as listed by the plugin registry."""

    id: str
    name: str
    marketplace: str
    version: str
    scope: str
    install_path: Path
    enabled: bool = True
    project_path: Path | None = None
    installed_at: str | None = None
    last_updated: str | None = None
    outcome: ScanOutcome = field(default_factory=ScanOutcome)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "marketplace": self.marketplace,
            "version": self.version,
            "scope": self.scope,
            "install_path": str(self.install_path),
            "enabled": self.enabled,
            "project_path": str(self.project_path) if self.project_path else None,
            "installed_at": self.installed_at,
            "last_updated": self.last_updated,
            "tools": self._records_dict(),
        }


@dataclass
class PluginInventory:
    installed: list[InstalledPlugin] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"installed": [p.to_dict() for p in self.installed]}


@dataclass
class Inventory:
    """Read-only snapshot of every scope at scan time.

    Attributes:
        user_scope: User-scope records.
        managed_scope: Managed-scope records, None when not scanned.
        projects: One entry per requested project, in request order.
        plugins: Installed plugins with their records.
        collisions: Cross-scope name collisions per kind.
        warnings: Skipped files from every scope.
        scan_errors: Project path to error message for failed project scans.
    """

    user_scope: UserScope
    managed_scope: ManagedScope | None = None
    projects: list[ProjectScope] = field(default_factory=list)
    plugins: PluginInventory = field(default_factory=PluginInventory)
    collisions: CollisionReport = field(default_factory=CollisionReport)
    warnings: list[ScanWarning] = field(default_factory=list)
    scan_errors: dict[str, str] = field(default_factory=dict)

    def iter_records(self) -> Iterator[ToolRecord]:
        """Yield every record from every scope."""
        yield from self.user_scope.records
        if self.managed_scope is not None:
            yield from self.managed_scope.records
        for project in self.projects:
            yield from project.all_records
        for plugin in self.plugins.installed:
            if plugin.enabled:
                yield from plugin.records

    def project(self, path: Path) -> ProjectScope | None:
        resolved = path.resolve()
        for project in self.projects:
            if project.path == resolved:
                return project
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "user_scope": self.user_scope.to_dict(),
            "managed_scope": self.managed_scope.to_dict() if self.managed_scope else None,
            "projects": [p.to_dict() for p in self.projects],
            "plugins": self.plugins.to_dict(),
            "collisions": self.collisions.to_dict(),
            "warnings": [str(w) for w in self.warnings],
            "scan_errors": dict(self.scan_errors),
        }
