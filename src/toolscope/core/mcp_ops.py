"""MCP server configuration operations.

Add, update, remove and move MCP servers between the writable scopes:

- **user**: ``~/.claude.json`` under ``mcpServers``.
- **project**: ``<project>/.mcp.json`` under ``mcpServers``.
- **local**: ``~/.claude.json`` under ``projects.<project>.mcpServers``.

The managed scope and plugin scopes are read-only. Every mutation is an
``Action`` run through the ``DiffApplyEngine`` with a ``dry_run`` flag, and
returns an ``OperationResult``. Invalid requests (bad names, missing or
duplicate servers, read-only scopes) are reported in the result's ``error``;
commit conflicts and partial commits propagate.

Moving a server writes the target first, then removes it from the source.
A project ``.mcp.json`` left without servers is deleted.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from toolscope.config import ConfigPaths, McpSource
from toolscope.core.diff.engine import Action, DiffApplyEngine
from toolscope.core.diff.models import OperationResult
from toolscope.core.diff.staging import StagedFiles
from toolscope.core.jsondoc import ensure_path, get_path, load_staged, prune_path, save_staged
from toolscope.core.scope import Scope, ScopeKind
from toolscope.discovery.scanner import git_info
from toolscope.exceptions import (
    AmbiguousItemError,
    ConfigOpError,
    ItemExistsError,
    ItemNotFoundError,
    ParseError,
    ReadOnlyScopeError,
    ValidationError,
)
from toolscope.parsers.mcp_config import extract_servers, load_json_document, validate_server

logger = logging.getLogger(__name__)

NAME_MAX_LENGTH = 128


def validate_name(name: str, what: str = "name") -> None:
    """Reject names that are empty, too long, or could escape a directory.

    Raises:
        ValidationError: If the name is unusable.
    """
    if not name:
        raise ValidationError(f"{what} cannot be empty")
    if len(name) > NAME_MAX_LENGTH:
        raise ValidationError(f"{what} is longer than {NAME_MAX_LENGTH} characters")
    if name != name.strip():
        raise ValidationError(f"{what} cannot start or end with whitespace")
    if "/" in name or "\\" in name:
        raise ValidationError(f"{what} cannot contain path separators")
    if ".." in name:
        raise ValidationError(f"{what} cannot contain '..'")
    if "\0" in name:
        raise ValidationError(f"{what} cannot contain NUL characters")


def git_dirty_warning(project: Path | None, target: Path) -> list[str]:
    """Warn when ``target`` lives in a git project with uncommitted changes."""
    if project is None or project not in target.parents:
        return []
    info = git_info(project)
    if info is not None and info.is_dirty:
        return [f"{project} has uncommitted changes"]
    return []


def _server_map(document: dict[str, Any], source: McpSource) -> dict[str, Any] | None:
    if source.key_path:
        return get_path(document, source.key_path)
    wrapped = document.get("mcpServers")
    if isinstance(wrapped, dict):
        return wrapped
    return document


@dataclass(frozen=True)
class McpServerEntry:
    """An MCP server as configured in one scope."""

    name: str
    scope: Scope
    config: dict[str, Any]
    source_path: Path

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "scope": self.scope.to_dict(),
            "config": self.config,
            "source_path": str(self.source_path),
        }


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class SetMcpServer(Action):
    """Add a server to a scope, or replace an existing one."""

    def __init__(
        self,
        source: McpSource,
        scope: Scope,
        name: str,
        config: dict[str, Any],
        replace: bool = False,
        project: Path | None = None,
    ) -> None:
        self.source = source
        self.scope = scope
        self.name = name
        self.config = config
        self.replace = replace
        self.project = project

    def describe(self) -> str:
        verb = "Update" if self.replace else "Add"
        return f"{verb} MCP server '{self.name}' in {self.scope} scope"

    def stage(self, files: StagedFiles) -> None:
        document = load_staged(files, self.source.path) or {}
        servers = ensure_path(document, self.source.key_path or ("mcpServers",))
        exists = self.name in servers
        if exists and not self.replace:
            raise ItemExistsError(f"MCP server '{self.name}' already exists in {self.scope} scope")
        if self.replace and not exists:
            raise ItemNotFoundError(f"MCP server '{self.name}' not found in {self.scope} scope")
        servers[self.name] = copy.deepcopy(self.config)
        save_staged(files, self.source.path, document)

    def warnings(self, files: StagedFiles) -> list[str]:
        return git_dirty_warning(self.project, self.source.path)


class RemoveMcpServer(Action):
    """Remove a server from a scope."""

    def __init__(
        self,
        source: McpSource,
        scope: Scope,
        name: str,
        delete_when_empty: bool = False,
        project: Path | None = None,
    ) -> None:
        self.source = source
        self.scope = scope
        self.name = name
        self.delete_when_empty = delete_when_empty
        self.project = project

    def describe(self) -> str:
        return f"Remove MCP server '{self.name}' from {self.scope} scope"

    def stage(self, files: StagedFiles) -> None:
        document = load_staged(files, self.source.path)
        servers = _server_map(document, self.source) if document is not None else None
        if document is None or servers is None or self.name not in servers:
            raise ItemNotFoundError(f"MCP server '{self.name}' not found in {self.scope} scope")
        del servers[self.name]
        prune_path(document, self.source.key_path or ("mcpServers",))
        if self.delete_when_empty and not document:
            files.delete(self.source.path)
        else:
            save_staged(files, self.source.path, document)

    def warnings(self, files: StagedFiles) -> list[str]:
        return git_dirty_warning(self.project, self.source.path)


class MoveMcpServer(Action):
    """Move a server between scopes: write the target, then the source."""

    def __init__(self, add: SetMcpServer, remove: RemoveMcpServer) -> None:
        self.add = add
        self.remove = remove

    def describe(self) -> str:
        return (
            f"Move MCP server '{self.add.name}' from {self.remove.scope} "
            f"to {self.add.scope} scope"
        )

    def stage(self, files: StagedFiles) -> None:
        self.add.stage(files)
        self.remove.stage(files)

    def warnings(self, files: StagedFiles) -> list[str]:
        found = self.add.warnings(files) + self.remove.warnings(files)
        return list(dict.fromkeys(found))


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


class McpOps:
    """MCP server operations for the user scope and, optionally, one project.

    Usage::

        ops = McpOps(paths, engine, project=Path("/code/app"))
        result = ops.move("github", Scope.user(), dry_run=True)
        print(result.preview.terminal_output)
    """

    def __init__(
        self,
        paths: ConfigPaths,
        engine: DiffApplyEngine | None = None,
        project: Path | None = None,
    ) -> None:
        self.paths = paths
        self.engine = engine or DiffApplyEngine()
        self.project = project.resolve() if project is not None else None

    # -- Reads --------------------------------------------------------------

    def _scopes(self) -> list[Scope]:
        scopes = [Scope.user()]
        if self.project is not None:
            scopes[:0] = [Scope.local(), Scope.project()]
        return scopes

    def _source(self, scope: Scope) -> McpSource:
        try:
            return self.paths.mcp_source(scope, self.project)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

    def _writable_source(self, scope: Scope) -> McpSource:
        if not scope.is_writable:
            raise ReadOnlyScopeError(f"{scope} scope is read-only")
        return self._source(scope)

    def _read_servers(self, scope: Scope) -> tuple[McpSource, dict[str, Any]]:
        source = self._source(scope)
        try:
            document = load_json_document(source.path)
        except (OSError, UnicodeDecodeError, ParseError) as exc:
            logger.warning("Cannot read MCP servers from %s: %s", source.path, exc)
            return source, {}
        if document is None:
            return source, {}
        return source, extract_servers(document, source.key_path)

    def list(self, scope: Scope | None = None) -> list[McpServerEntry]:
        """List configured servers, highest-precedence scope first."""
        scopes = [scope] if scope is not None else [Scope.managed(), *self._scopes()]
        entries: list[McpServerEntry] = []
        for current in scopes:
            source, servers = self._read_servers(current)
            for name in sorted(servers):
                if isinstance(servers[name], dict):
                    entries.append(McpServerEntry(name, current, servers[name], source.path))
        return entries

    def find_server(self, name: str) -> list[Scope]:
        """Writable scopes that define ``name``."""
        return [s for s in self._scopes() if name in self._read_servers(s)[1]]

    def _resolve_scope(self, name: str, scope: Scope | None) -> Scope:
        if scope is not None:
            return scope
        found = self.find_server(name)
        if not found:
            raise ItemNotFoundError(f"MCP server '{name}' not found")
        if len(found) > 1:
            listed = ", ".join(str(s) for s in found)
            raise AmbiguousItemError(
                f"MCP server '{name}' exists in several scopes ({listed}); pick one"
            )
        return found[0]

    # -- Mutations ----------------------------------------------------------

    def _set_action(
        self, name: str, scope: Scope, config: dict[str, Any], replace: bool
    ) -> SetMcpServer:
        validate_name(name, "server name")
        problems = validate_server(name, config)
        if problems:
            raise ValidationError("; ".join(problems))
        return SetMcpServer(
            self._writable_source(scope), scope, name, config, replace, self.project
        )

    def _remove_action(self, name: str, scope: Scope) -> RemoveMcpServer:
        return RemoveMcpServer(
            self._writable_source(scope),
            scope,
            name,
            delete_when_empty=scope.kind is ScopeKind.PROJECT,
            project=self.project,
        )

    def add(
        self, name: str, scope: Scope, config: dict[str, Any], dry_run: bool = False
    ) -> OperationResult:
        """Add a new server to ``scope``."""
        try:
            action = self._set_action(name, scope, config, replace=False)
        except ConfigOpError as exc:
            return OperationResult.failure(str(exc))
        return self.engine.run(action, dry_run)

    def update(
        self, name: str, scope: Scope, config: dict[str, Any], dry_run: bool = False
    ) -> OperationResult:
        """Replace the definition of an existing server in ``scope``."""
        try:
            action = self._set_action(name, scope, config, replace=True)
        except ConfigOpError as exc:
            return OperationResult.failure(str(exc))
        return self.engine.run(action, dry_run)

    def remove(
        self, name: str, scope: Scope | None = None, dry_run: bool = False
    ) -> OperationResult:
        """Remove a server; the scope is looked up when not given."""
        try:
            action = self._remove_action(name, self._resolve_scope(name, scope))
        except ConfigOpError as exc:
            return OperationResult.failure(str(exc))
        return self.engine.run(action, dry_run)

    def move(
        self,
        name: str,
        to_scope: Scope,
        from_scope: Scope | None = None,
        dry_run: bool = False,
    ) -> OperationResult:
        """Move a server from one writable scope to another."""
        try:
            source_scope = self._resolve_scope(name, from_scope)
            if source_scope == to_scope:
                raise ValidationError(f"MCP server '{name}' is already in {to_scope} scope")
            servers = self._read_servers(source_scope)[1]
            if name not in servers:
                raise ItemNotFoundError(
                    f"MCP server '{name}' not found in {source_scope} scope"
                )
            action = MoveMcpServer(
                self._set_action(name, to_scope, servers[name], replace=False),
                self._remove_action(name, source_scope),
            )
        except ConfigOpError as exc:
            return OperationResult.failure(str(exc))
        return self.engine.run(action, dry_run)
