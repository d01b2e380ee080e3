"""Filesystem locations used by toolscope.

``ConfigPaths`` is the single place that knows where each scope keeps its
files. Everything else receives a ``ConfigPaths`` instance explicitly, which
lets tests point the whole engine at a temporary home directory.

Environment Variables:
    TOOLSCOPE_HOME: Home directory whose ``.claude`` tree is the user scope.
    TOOLSCOPE_DATA_DIR: Application data directory (profiles, registry,
        backups).
    TOOLSCOPE_MANAGED_DIR: Organization-managed settings directory.
    TOOLSCOPE_SCAN_WORKERS: Worker threads used for parallel scans.
"""

from __future__ import annotations

import logging
import os
import platform
from dataclasses import dataclass, field
from pathlib import Path

from toolscope.core.scope import Scope, ScopeKind

logger = logging.getLogger(__name__)

DEFAULT_SCAN_WORKERS = 8

_MANAGED_DIRS: dict[str, str] = {
    "darwin": "/Library/Application Support/ClaudeCode",
    "windows": "C:\\ProgramData\\ClaudeCode",
    "linux": "/etc/claude",
}


def default_managed_dir() -> Path:
    """Return the platform's managed settings directory."""
    system = platform.system().lower()
    return Path(_MANAGED_DIRS.get(system, _MANAGED_DIRS["linux"]))


@dataclass(frozen=True)
class McpSource:
    """Where one scope keeps its MCP server map.

    Attributes:
        path: The JSON file.
        key_path: Keys leading to the server map inside the document. An
            empty tuple means the file holds either an ``mcpServers``
            wrapper or a flat name-to-server mapping.
    """

    path: Path
    key_path: tuple[str, ...] = ("mcpServers",)


@dataclass(frozen=True)
class ScopeLayout:
    """File locations the scanner checks for one scope root."""

    scope: Scope
    root: Path
    skills_dir: Path | None = None
    commands_dir: Path | None = None
    agents_dir: Path | None = None
    mcp_sources: tuple[McpSource, ...] = ()
    settings_files: tuple[Path, ...] = ()
    hooks_files: tuple[Path, ...] = ()
    claude_md: Path | None = None


@dataclass(frozen=True)
class ConfigPaths:
    """Resolved locations for the user, managed and application scopes."""

    home: Path
    data_dir: Path
    managed_dir: Path
    scan_workers: int = field(default=DEFAULT_SCAN_WORKERS)

    @classmethod
    def from_env(cls) -> ConfigPaths:
        """Build paths from the environment, falling back to defaults."""
        home = Path(os.environ.get("TOOLSCOPE_HOME") or Path.home())
        data_dir = Path(os.environ.get("TOOLSCOPE_DATA_DIR") or home / ".toolscope")
        managed = os.environ.get("TOOLSCOPE_MANAGED_DIR")
        workers_raw = os.environ.get("TOOLSCOPE_SCAN_WORKERS", "")
        try:
            workers = max(1, int(workers_raw)) if workers_raw else DEFAULT_SCAN_WORKERS
        except ValueError:
            logger.warning("Ignoring invalid TOOLSCOPE_SCAN_WORKERS=%r", workers_raw)
            workers = DEFAULT_SCAN_WORKERS
        return cls(
            home=home,
            data_dir=data_dir,
            managed_dir=Path(managed) if managed else default_managed_dir(),
            scan_workers=workers,
        )

    # -- User scope ---------------------------------------------------------

    @property
    def claude_dir(self) -> Path:
        return self.home / ".claude"

    @property
    def user_mcp_file(self) -> Path:
        return self.home / ".claude.json"

    @property
    def user_settings_file(self) -> Path:
        return self.claude_dir / "settings.json"

    @property
    def plugins_registry_file(self) -> Path:
        return self.claude_dir / "plugins" / "installed_plugins.json"

    # -- Application data ---------------------------------------------------

    @property
    def profiles_dir(self) -> Path:
        return self.data_dir / "profiles"

    @property
    def projects_file(self) -> Path:
        return self.data_dir / "projects.json"

    @property
    def marketplace_dir(self) -> Path:
        return self.data_dir / "marketplace"

    @property
    def backups_dir(self) -> Path:
        return self.data_dir / "backups"

    # -- Managed scope ------------------------------------------------------

    def managed_settings_file(self) -> Path:
        preferred = self.managed_dir / "managed-settings.json"
        if preferred.is_file():
            return preferred
        return self.managed_dir / "settings.json"

    def managed_mcp_file(self) -> Path:
        preferred = self.managed_dir / "managed-mcp.json"
        if preferred.is_file():
            return preferred
        return self.managed_dir / "mcp.json"

    # -- Per-scope layout ---------------------------------------------------

    def mcp_source(self, scope: Scope, project: Path | None = None) -> McpSource:
        """Return where ``scope`` stores MCP servers.

        Args:
            scope: Target scope.
            project: Project root, required for Project and Local scopes.
                For plugin scopes this is the plugin install path.

        Raises:
            ValueError: If a project-bound scope is given no project.
        """
        if scope.kind is ScopeKind.USER:
            return McpSource(self.user_mcp_file)
        if scope.kind is ScopeKind.MANAGED:
            return McpSource(self.managed_mcp_file(), ())
        if project is None:
            raise ValueError(f"{scope} scope requires a project path")
        if scope.kind is ScopeKind.PROJECT:
            return McpSource(project / ".mcp.json")
        if scope.kind is ScopeKind.LOCAL:
            key = str(project.resolve())
            return McpSource(self.user_mcp_file, ("projects", key, "mcpServers"))
        return McpSource(project / ".mcp.json", ())

    def layout_for(self, scope: Scope, root: Path) -> ScopeLayout:
        """Describe where ``scope`` keeps its files under ``root``.

        ``root`` is the home directory for the user scope, the managed
        directory for the managed scope, the project directory for Project
        and Local scopes, and the install path for plugin scopes.
        """
        kind = scope.kind
        if kind is ScopeKind.USER:
            claude = root / ".claude"
            return ScopeLayout(
                scope=scope,
                root=root,
                skills_dir=claude / "skills",
                commands_dir=claude / "commands",
                agents_dir=claude / "agents",
                mcp_sources=(McpSource(root / ".claude.json"),),
                settings_files=(claude / "settings.json",),
                claude_md=claude / "CLAUDE.md",
            )
        if kind is ScopeKind.PROJECT:
            claude = root / ".claude"
            return ScopeLayout(
                scope=scope,
                root=root,
                skills_dir=claude / "skills",
                commands_dir=claude / "commands",
                agents_dir=claude / "agents",
                mcp_sources=(McpSource(root / ".mcp.json"),),
                settings_files=(claude / "settings.json",),
                claude_md=root / "CLAUDE.md",
            )
        if kind is ScopeKind.LOCAL:
            return ScopeLayout(
                scope=scope,
                root=root,
                mcp_sources=(self.mcp_source(scope, root),),
                settings_files=(root / ".claude" / "settings.local.json",),
            )
        if kind is ScopeKind.MANAGED:
            settings = root / "managed-settings.json"
            if not settings.is_file():
                settings = root / "settings.json"
            mcp = root / "managed-mcp.json"
            if not mcp.is_file():
                mcp = root / "mcp.json"
            return ScopeLayout(
                scope=scope,
                root=root,
                mcp_sources=(McpSource(mcp, ()),),
                settings_files=(settings,),
            )
        return ScopeLayout(
            scope=scope,
            root=root,
            skills_dir=root / "skills",
            commands_dir=root / "commands",
            agents_dir=root / "agents",
            mcp_sources=(McpSource(root / ".mcp.json", ()),),
            hooks_files=(root / "hooks" / "hooks.json",),
        )
