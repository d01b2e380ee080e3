"""Tests for the MCP server configuration parser.

Verifies:
    - ``.mcp.json`` servers under ``mcpServers``.
    - Flat name-to-server mappings when the key path is empty.
    - The local scope's nested ``projects.<path>.mcpServers`` key path.
    - Invalid servers are skipped with a warning; the rest survive.
    - Unreadable JSON is a single parse warning.
"""

from __future__ import annotations

from pathlib import Path

from toolscope.config import McpSource
from toolscope.core.scope import Scope
from toolscope.parsers.mcp_config import McpConfigParser, extract_servers, validate_server
from tests.helpers import stdio_server, write_json


class TestMcpConfigParser:
    """Tests for ``McpConfigParser``."""

    def test_project_file(self, tmp_path: Path) -> None:
        """Servers under ``mcpServers`` become records sorted by name."""
        path = write_json(
            tmp_path / ".mcp.json",
            {
                "mcpServers": {
                    "github": stdio_server("npx", "gh-mcp"),
                    "docs": {"type": "http", "url": "https://docs.example.com/mcp"},
                }
            },
        )

        outcome = McpConfigParser().parse(path, Scope.project())

        assert outcome.warnings == []
        docs, github = outcome.records
        assert docs.name == "docs"
        assert docs.metadata["transport"] == "http"
        assert github.metadata["command"] == "npx"
        assert github.metadata["args"] == ["gh-mcp"]
        assert github.metadata["key_path"] == ["mcpServers"]

    def test_flat_mapping(self, tmp_path: Path) -> None:
        """Plugin and managed files may omit the wrapper."""
        path = write_json(tmp_path / "mcp.json", {"fs": stdio_server("fs-server")})
        outcome = McpConfigParser().parse_source(McpSource(path, ()), Scope.managed())
        assert [r.name for r in outcome.records] == ["fs"]

    def test_local_key_path(self, tmp_path: Path) -> None:
        """Local servers are nested under the project path."""
        project = str(tmp_path / "app")
        path = write_json(
            tmp_path / ".claude.json",
            {
                "mcpServers": {"user-only": stdio_server("a")},
                "projects": {project: {"mcpServers": {"scratch": stdio_server("b")}}},
            },
        )
        source = McpSource(path, ("projects", project, "mcpServers"))

        outcome = McpConfigParser().parse_source(source, Scope.local())

        assert [r.name for r in outcome.records] == ["scratch"]

    def test_invalid_server_warns(self, tmp_path: Path) -> None:
        """A stdio server without a command is skipped."""
        path = write_json(
            tmp_path / ".mcp.json",
            {"mcpServers": {"broken": {"args": []}, "ok": stdio_server("x")}},
        )

        outcome = McpConfigParser().parse(path, Scope.project())

        assert [r.name for r in outcome.records] == ["ok"]
        assert "requires a command" in outcome.warnings[0].message

    def test_invalid_json_warns(self, tmp_path: Path) -> None:
        """A file that is not JSON yields one warning and no records."""
        path = tmp_path / ".mcp.json"
        path.write_text("{not json", encoding="utf-8")
        outcome = McpConfigParser().parse(path, Scope.project())
        assert outcome.records == []
        assert "invalid JSON" in outcome.warnings[0].message

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing file is an empty outcome."""
        outcome = McpConfigParser().parse(tmp_path / ".mcp.json", Scope.project())
        assert outcome.records == [] and outcome.warnings == []

    def test_hash_ignores_key_order(self, tmp_path: Path) -> None:
        """Reordered keys in a definition hash the same."""
        first = write_json(
            tmp_path / "a.json", {"mcpServers": {"s": {"command": "x", "args": ["1"]}}}
        )
        second = write_json(
            tmp_path / "b.json", {"mcpServers": {"s": {"args": ["1"], "command": "x"}}}
        )
        parser = McpConfigParser()
        [a] = parser.parse(first, Scope.user()).records
        [b] = parser.parse(second, Scope.user()).records
        assert a.sha256 == b.sha256


class TestValidation:
    """Tests for the server helpers."""

    def test_remote_requires_url(self) -> None:
        """http and sse servers need a url."""
        assert validate_server("r", {"type": "sse"}) == ["sse server 'r' requires a url"]

    def test_unknown_transport(self) -> None:
        """Only stdio, http and sse are accepted."""
        assert "unknown type" in validate_server("r", {"type": "ws", "url": "x"})[0]

    def test_extract_missing_path(self) -> None:
        """A missing key along the path is an empty map."""
        assert extract_servers({"projects": {}}, ("projects", "/x", "mcpServers")) == {}
