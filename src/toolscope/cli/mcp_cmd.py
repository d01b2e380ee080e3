"""``toolscope mcp`` - List, add, remove and move MCP servers.

Servers live in ``~/.claude.json`` (user and local scopes) and in the
project's ``.mcp.json`` (project scope). Every change is previewed as a
diff before it is written.

Usage::

    toolscope mcp list --project ./app
    toolscope mcp add github --scope user --command npx --arg -y --arg gh-mcp
    toolscope mcp add docs --scope project --url https://example.com/mcp
    toolscope mcp move github --to project --project ./app --dry-run
    toolscope mcp remove github --yes

Exit Codes:
    0 - Success.
    1 - The operation failed.
    2 - Invalid input.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

import click

from toolscope.cli.common import (
    EXIT_INVALID,
    apply_change,
    dry_run_options,
    load_engine,
    load_paths,
    parse_scope,
)
from toolscope.cli.output import print_error, print_json, print_mcp_servers
from toolscope.core.mcp_ops import McpOps

_project_option = click.option(
    "--project", "-p",
    type=click.Path(file_okay=False),
    default=None,
    help="Project directory (default: current directory).",
)


def _ops(project: str | None) -> McpOps:
    paths = load_paths()
    return McpOps(paths, load_engine(paths), project=Path(project) if project else Path.cwd())


def _pairs(values: tuple[str, ...], what: str) -> dict[str, str]:
    parsed: dict[str, str] = {}
    for value in values:
        key, sep, item = value.partition("=")
        if not sep or not key:
            print_error(f"{what} must look like KEY=VALUE, got {value!r}")
            sys.exit(EXIT_INVALID)
        parsed[key] = item
    return parsed


def _server_config(
    command: str | None,
    args: tuple[str, ...],
    env: tuple[str, ...],
    url: str | None,
    transport: str | None,
    headers: tuple[str, ...],
) -> dict[str, Any]:
    if bool(command) == bool(url):
        print_error("give exactly one of --command or --url")
        sys.exit(EXIT_INVALID)
    if command:
        config: dict[str, Any] = {"command": command}
        if args:
            config["args"] = list(args)
        if env:
            config["env"] = _pairs(env, "--env")
        return config
    config = {"type": transport or "http", "url": url}
    if headers:
        config["headers"] = _pairs(headers, "--header")
    return config


@click.group("mcp")
def mcp_group() -> None:
    """Manage MCP server configuration across scopes."""


@mcp_group.command("list")
@_project_option
@click.option("--scope", "scope_name", default=None, help="Only list this scope.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON output.")
def list_command(project: str | None, scope_name: str | None, as_json: bool) -> None:
    """List configured MCP servers, highest-precedence scope first."""
    scope = parse_scope(scope_name) if scope_name else None
    entries = _ops(project).list(scope)
    if as_json:
        print_json([entry.to_dict() for entry in entries])
    else:
        print_mcp_servers(entries)


@mcp_group.command("add")
@click.argument("name")
@click.option("--scope", "scope_name", required=True, help="user, project or local.")
@_project_option
@click.option("--command", "command", default=None, help="Executable of a stdio server.")
@click.option("--arg", "args", multiple=True, help="Argument for --command (repeatable).")
@click.option("--env", "env", multiple=True, help="KEY=VALUE environment (repeatable).")
@click.option("--url", default=None, help="URL of an http or sse server.")
@click.option(
    "--transport",
    type=click.Choice(["http", "sse"]),
    default=None,
    help="Transport for --url (default: http).",
)
@click.option("--header", "headers", multiple=True, help="KEY=VALUE header (repeatable).")
@click.option("--replace", is_flag=True, default=False, help="Replace an existing server.")
@dry_run_options
def add_command(
    name: str,
    scope_name: str,
    project: str | None,
    command: str | None,
    args: tuple[str, ...],
    env: tuple[str, ...],
    url: str | None,
    transport: str | None,
    headers: tuple[str, ...],
    replace: bool,
    dry_run: bool,
    assume_yes: bool,
) -> None:
    """Add an MCP server NAME to a scope."""
    scope = parse_scope(scope_name)
    config = _server_config(command, args, env, url, transport, headers)
    ops = _ops(project)
    change = ops.update if replace else ops.add
    apply_change(lambda dry: change(name, scope, config, dry_run=dry), dry_run, assume_yes)


@mcp_group.command("remove")
@click.argument("name")
@click.option("--scope", "scope_name", default=None, help="Scope to remove from.")
@_project_option
@dry_run_options
def remove_command(
    name: str, scope_name: str | None, project: str | None, dry_run: bool, assume_yes: bool
) -> None:
    """Remove the MCP server NAME.

    Without --scope the server is looked up; it must exist in exactly one
    writable scope.
    """
    scope = parse_scope(scope_name) if scope_name else None
    ops = _ops(project)
    apply_change(lambda dry: ops.remove(name, scope, dry_run=dry), dry_run, assume_yes)


@mcp_group.command("move")
@click.argument("name")
@click.option("--to", "to_name", required=True, help="Target scope.")
@click.option("--from", "from_name", default=None, help="Source scope (default: look up).")
@_project_option
@dry_run_options
def move_command(
    name: str,
    to_name: str,
    from_name: str | None,
    project: str | None,
    dry_run: bool,
    assume_yes: bool,
) -> None:
    """Move the MCP server NAME to another scope."""
    to_scope = parse_scope(to_name)
    from_scope = parse_scope(from_name) if from_name else None
    ops = _ops(project)
    apply_change(
        lambda dry: ops.move(name, to_scope, from_scope, dry_run=dry), dry_run, assume_yes
    )
