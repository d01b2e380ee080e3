"""Tests for ScopeScanner, project discovery and git status.

Verifies:
    - The user scope reads skills, commands, agents, MCP servers and hooks.
    - Project and Local scopes read their own files from one project root.
    - A scope that does not exist yet scans as empty.
    - discover_projects honours markers, depth and skipped directories.
"""

from __future__ import annotations

from pathlib import Path

from toolscope.config import ConfigPaths
from toolscope.core.scope import Scope
from toolscope.discovery.scanner import ScopeScanner, discover_projects, git_info
from toolscope.parsers.base import ToolKind
from tests.helpers import (
    hook_settings,
    stdio_server,
    write_agent,
    write_command,
    write_json,
    write_skill,
)


class TestScopeScanner:
    """Tests for ``ScopeScanner.scan``."""

    def test_user_scope(self, paths: ConfigPaths) -> None:
        """Every kind is read from the user's ``.claude`` tree."""
        claude = paths.claude_dir
        write_skill(claude / "skills", "deploy")
        write_command(claude / "commands", "review")
        write_agent(claude / "agents", "critic")
        write_json(paths.user_mcp_file, {"mcpServers": {"github": stdio_server("gh")}})
        write_json(paths.user_settings_file, hook_settings("Stop", None, "notify"))

        outcome = ScopeScanner(paths).scan(paths.home, Scope.user())

        assert outcome.warnings == []
        names = {(r.kind, r.name) for r in outcome.records}
        assert names == {
            (ToolKind.SKILL, "deploy"),
            (ToolKind.COMMAND, "review"),
            (ToolKind.AGENT, "critic"),
            (ToolKind.MCP, "github"),
            (ToolKind.HOOK, "Stop"),
        }
        assert all(r.scope == Scope.user() for r in outcome.records)

    def test_project_and_local(self, paths: ConfigPaths, project: Path) -> None:
        """Project files and local overrides are separate scopes."""
        write_skill(project / ".claude" / "skills", "lint")
        write_json(project / ".mcp.json", {"mcpServers": {"db": stdio_server("pg")}})
        write_json(
            paths.user_mcp_file,
            {"projects": {str(project): {"mcpServers": {"scratch": stdio_server("s")}}}},
        )
        write_json(
            project / ".claude" / "settings.local.json",
            hook_settings("PreToolUse", "Bash", "guard"),
        )
        scanner = ScopeScanner(paths)

        shared = scanner.scan(project, Scope.project())
        local = scanner.scan(project, Scope.local())

        assert [(r.kind.value, r.name) for r in shared.records] == [
            ("mcp", "db"),
            ("skill", "lint"),
        ]
        assert [(r.kind.value, r.name) for r in local.records] == [
            ("hook", "PreToolUse:Bash"),
            ("mcp", "scratch"),
        ]
        assert all(r.scope == Scope.local() for r in local.records)

    def test_missing_scope_is_empty(self, paths: ConfigPaths) -> None:
        """Scanning a managed directory that does not exist yields nothing."""
        outcome = ScopeScanner(paths).scan(paths.managed_dir, Scope.managed())
        assert outcome.records == [] and outcome.warnings == []

    def test_plugin_layout(self, paths: ConfigPaths, tmp_path: Path) -> None:
        """Plugins keep tools at the install root and hooks in hooks/hooks.json."""
        root = tmp_path / "plugin"
        write_command(root / "commands", "fmt")
        write_json(root / ".mcp.json", {"lsp": stdio_server("lsp")})
        write_json(root / "hooks" / "hooks.json", hook_settings("PostToolUse", "Edit", "f"))

        outcome = ScopeScanner(paths).scan(root, Scope.plugin("fmt@acme"))

        assert sorted(r.name for r in outcome.records) == ["PostToolUse:Edit", "fmt", "lsp"]

    def test_warnings_collected(self, paths: ConfigPaths) -> None:
        """A broken file is reported while the rest of the scope scans."""
        write_skill(paths.claude_dir / "skills", "ok")
        paths.user_mcp_file.write_text("[]", encoding="utf-8")

        outcome = ScopeScanner(paths).scan(paths.home, Scope.user())

        assert [r.name for r in outcome.records] == ["ok"]
        assert outcome.warnings[0].path == paths.user_mcp_file


class TestDiscoverProjects:
    """Tests for ``discover_projects``."""

    def _tree(self, root: Path) -> None:
        (root / "app" / ".git").mkdir(parents=True)
        (root / "web").mkdir()
        (root / "web" / "CLAUDE.md").write_text("# Web\n", encoding="utf-8")
        (root / "group" / "api").mkdir(parents=True)
        write_json(root / "group" / "api" / ".mcp.json", {"mcpServers": {}})
        (root / "node_modules" / "pkg" / ".git").mkdir(parents=True)
        (root / ".cache" / ".claude").mkdir(parents=True)
        (root / "notes").mkdir()

    def test_finds_marked_directories(self, tmp_path: Path) -> None:
        """Directories with project markers are found, sorted by path."""
        self._tree(tmp_path)
        found = discover_projects(tmp_path)
        assert [p.name for p in found] == ["app", "api", "web"]

    def test_depth_limit(self, tmp_path: Path) -> None:
        """Nested projects beyond ``max_depth`` are not searched."""
        self._tree(tmp_path)
        found = discover_projects(tmp_path, max_depth=1)
        assert [p.name for p in found] == ["app", "web"]

    def test_folder_is_project(self, tmp_path: Path) -> None:
        """A folder that is itself a project is returned alone."""
        (tmp_path / ".claude").mkdir()
        found = discover_projects(tmp_path)
        assert [p.path for p in found] == [tmp_path.resolve()]

    def test_missing_folder(self, tmp_path: Path) -> None:
        assert discover_projects(tmp_path / "absent") == []


class TestGitInfo:
    """Tests for ``git_info``."""

    def test_not_a_repository(self, tmp_path: Path) -> None:
        """Directories without ``.git`` report no git status."""
        assert git_info(tmp_path) is None
