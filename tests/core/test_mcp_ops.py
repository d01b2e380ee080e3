"""Tests for MCP server operations across scopes.

Verifies:
    - add/update/remove edit the right file and key path per scope.
    - Duplicate adds, unknown servers and read-only scopes fail cleanly.
    - Removing without a scope is rejected when the name is ambiguous.
    - Move writes the target first and deletes an emptied ``.mcp.json``.
    - Dry runs plan without writing.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from toolscope.config import ConfigPaths
from toolscope.core.diff.engine import DiffApplyEngine
from toolscope.core.diff.models import OperationType
from toolscope.core.mcp_ops import McpOps, validate_name
from toolscope.core.scope import Scope
from toolscope.exceptions import ValidationError
from tests.helpers import read_json, stdio_server, write_json


@pytest.fixture
def ops(paths: ConfigPaths, engine: DiffApplyEngine, project: Path) -> McpOps:
    return McpOps(paths, engine, project=project)


class TestAdd:
    """Tests for adding servers."""

    def test_add_to_project(self, ops: McpOps, project: Path) -> None:
        """A project server is written to ``.mcp.json``."""
        result = ops.add("github", Scope.project(), stdio_server("npx", "gh"))

        assert result.success, result.error
        assert read_json(project / ".mcp.json") == {
            "mcpServers": {"github": {"command": "npx", "args": ["gh"]}}
        }

    def test_add_to_local_keeps_user_servers(
        self, ops: McpOps, paths: ConfigPaths, project: Path
    ) -> None:
        """Local servers nest under the project path beside user settings."""
        write_json(paths.user_mcp_file, {"theme": "dark", "mcpServers": {"a": stdio_server()}})

        assert ops.add("scratch", Scope.local(), stdio_server("s")).success

        document = read_json(paths.user_mcp_file)
        assert document["theme"] == "dark"
        assert document["mcpServers"] == {"a": {"command": "npx", "args": []}}
        assert document["projects"][str(project)]["mcpServers"] == {
            "scratch": {"command": "s", "args": []}
        }

    def test_duplicate_add_fails(self, ops: McpOps) -> None:
        """Adding an existing name is an error, not an overwrite."""
        ops.add("github", Scope.user(), stdio_server())
        result = ops.add("github", Scope.user(), stdio_server("other"))
        assert not result.success
        assert "already exists" in (result.error or "")

    def test_managed_is_read_only(self, ops: McpOps, paths: ConfigPaths) -> None:
        """The managed scope cannot be written."""
        result = ops.add("corp", Scope.managed(), stdio_server())
        assert not result.success
        assert result.error == "managed scope is read-only"
        assert not paths.managed_dir.exists()

    def test_invalid_definition(self, ops: McpOps) -> None:
        """Remote servers need a url."""
        result = ops.add("docs", Scope.user(), {"type": "http"})
        assert result.error == "http server 'docs' requires a url"

    def test_dry_run_writes_nothing(self, ops: McpOps, paths: ConfigPaths) -> None:
        """A dry run previews the create without touching disk."""
        result = ops.add("github", Scope.user(), stdio_server(), dry_run=True)
        assert result.success and result.dry_run
        assert result.preview is not None
        assert result.preview.operations[0].operation_type is OperationType.CREATE
        assert not paths.user_mcp_file.exists()


class TestUpdateRemove:
    """Tests for updating and removing servers."""

    def test_update_requires_existing(self, ops: McpOps) -> None:
        """Update never creates a server."""
        result = ops.update("ghost", Scope.user(), stdio_server())
        assert "not found" in (result.error or "")

    def test_update_replaces(self, ops: McpOps, paths: ConfigPaths) -> None:
        ops.add("github", Scope.user(), stdio_server("old"))
        assert ops.update("github", Scope.user(), stdio_server("new")).success
        assert read_json(paths.user_mcp_file)["mcpServers"]["github"]["command"] == "new"

    def test_remove_looks_up_scope(self, ops: McpOps, project: Path) -> None:
        """Without a scope, the only scope defining the server is used."""
        ops.add("github", Scope.project(), stdio_server())
        assert ops.remove("github").success
        assert not (project / ".mcp.json").exists()

    def test_remove_ambiguous(self, ops: McpOps) -> None:
        """A name in several scopes must be removed with an explicit scope."""
        ops.add("github", Scope.user(), stdio_server())
        ops.add("github", Scope.local(), stdio_server())

        result = ops.remove("github")

        assert not result.success
        assert "local, user" in (result.error or "")
        assert ops.remove("github", Scope.local()).success
        assert ops.find_server("github") == [Scope.user()]

    def test_remove_local_prunes_empty_objects(
        self, ops: McpOps, paths: ConfigPaths
    ) -> None:
        """Removing the last local server drops the empty project entry."""
        ops.add("scratch", Scope.local(), stdio_server())
        assert ops.remove("scratch", Scope.local()).success
        assert read_json(paths.user_mcp_file) == {}

    def test_remove_missing(self, ops: McpOps) -> None:
        assert ops.remove("ghost").error == "MCP server 'ghost' not found"


class TestMove:
    """Tests for moving servers between scopes."""

    def test_project_to_user(self, ops: McpOps, paths: ConfigPaths, project: Path) -> None:
        """The target is written first; the emptied project file is deleted."""
        write_json(project / ".mcp.json", {"mcpServers": {"github": stdio_server("gh")}})

        preview = ops.move("github", Scope.user(), dry_run=True).preview
        assert preview is not None
        assert [(op.operation_type, op.path) for op in preview.operations] == [
            (OperationType.CREATE, paths.user_mcp_file),
            (OperationType.DELETE, project / ".mcp.json"),
        ]

        assert ops.move("github", Scope.user()).success
        entries = ops.list()
        assert [(e.name, e.scope) for e in entries] == [("github", Scope.user())]
        assert entries[0].config == {"command": "gh", "args": []}

    def test_move_to_same_scope(self, ops: McpOps) -> None:
        ops.add("github", Scope.user(), stdio_server())
        result = ops.move("github", Scope.user())
        assert "already in user scope" in (result.error or "")

    def test_move_into_existing_name(self, ops: McpOps) -> None:
        """Moving onto a server of the same name fails without writing."""
        ops.add("github", Scope.user(), stdio_server("u"))
        ops.add("github", Scope.project(), stdio_server("p"))
        result = ops.move("github", Scope.user(), from_scope=Scope.project())
        assert not result.success
        assert ops.find_server("github") == [Scope.project(), Scope.user()]


class TestList:
    """Tests for listing servers."""

    def test_list_includes_managed(self, ops: McpOps, paths: ConfigPaths) -> None:
        """Managed servers are listed first and flat mappings are accepted."""
        write_json(paths.managed_dir / "managed-mcp.json", {"corp": stdio_server("c")})
        ops.add("github", Scope.user(), stdio_server())

        assert [(e.name, str(e.scope)) for e in ops.list()] == [
            ("corp", "managed"),
            ("github", "user"),
        ]

    def test_list_without_project(self, paths: ConfigPaths) -> None:
        """Without a project only managed and user scopes are read."""
        ops = McpOps(paths)
        assert ops.list() == []
        result = ops.add("x", Scope.project(), stdio_server())
        assert "requires a project path" in (result.error or "")


class TestValidateName:
    """Tests for name validation."""

    @pytest.mark.parametrize("name", ["", " x", "a/b", "..", "a\\b", "x" * 129])
    def test_rejected(self, name: str) -> None:
        with pytest.raises(ValidationError):
            validate_name(name)

    def test_accepted(self) -> None:
        validate_name("github-enterprise_2")
