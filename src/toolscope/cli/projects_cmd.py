"""``toolscope projects`` - Discover and register projects.

Registered projects can be assigned a profile and carry local tools: tools
attached to one project only, on top of whatever its profile provides.

Usage::

    toolscope projects discover ~/dev --depth 2 --register
    toolscope projects add ./api --name api
    toolscope projects local-add ./api skill:deploy --scope user
    toolscope projects list

Exit Codes:
    0 - Success.
    1 - The operation failed.
    2 - Nothing found, or an unknown project.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from toolscope.cli.common import (
    EXIT_FAILED,
    EXIT_INVALID,
    apply_change,
    dry_run_options,
    load_engine,
    load_paths,
    parse_scope,
    parse_tool,
)
from toolscope.cli.output import console, print_error, print_json, print_projects
from toolscope.core.profiles.models import ProjectInfo, ToolRef
from toolscope.core.profiles.store import ProfileStore
from toolscope.core.projects import ProjectRegistry
from toolscope.discovery.scanner import discover_projects
from toolscope.exceptions import ToolScopeError


def _registry() -> ProjectRegistry:
    paths = load_paths()
    return ProjectRegistry(paths, load_engine(paths))


def _registered(registry: ProjectRegistry, path: str) -> ProjectInfo:
    info = registry.find_by_path(Path(path))
    if info is None:
        print_error(f"{path} is not a registered project; run 'toolscope projects add' first")
        sys.exit(EXIT_INVALID)
    return info


@click.group("projects")
def projects_group() -> None:
    """Discover, register and inspect projects."""


@projects_group.command("discover")
@click.argument("folder", type=click.Path(exists=True, file_okay=False))
@click.option("--depth", default=2, show_default=True, help="Directory levels to search.")
@click.option("--register", is_flag=True, default=False, help="Register every project found.")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON output.")
def discover_command(folder: str, depth: int, register: bool, as_json: bool) -> None:
    """Find projects under FOLDER.

    A directory counts as a project when it has a ``.claude`` directory, a
    ``.mcp.json``, a ``CLAUDE.md`` or a ``.git``.

    Exit code 0 when projects were found, 2 otherwise.
    """
    found = discover_projects(Path(folder), depth)
    if register:
        registry = _registry()
        try:
            found = [registry.register(p.path) for p in found]
        except ToolScopeError as exc:
            print_error(str(exc))
            sys.exit(EXIT_FAILED)
    if as_json:
        print_json([p.to_dict() for p in found])
    else:
        print_projects(found)
    sys.exit(0 if found else EXIT_INVALID)


@projects_group.command("list")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON output.")
def list_command(as_json: bool) -> None:
    """List registered projects with their assigned profile."""
    paths = load_paths()
    store = ProfileStore(paths, load_engine(paths))
    try:
        projects = store.registry.list_projects()
    except ToolScopeError as exc:
        print_error(str(exc))
        sys.exit(EXIT_FAILED)
    if as_json:
        print_json([p.to_dict() for p in projects])
        return
    print_projects(projects, {s.id: s.name for s in store.list()})


@projects_group.command("add")
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.option("--name", default=None, help="Display name (default: directory name).")
def add_command(path: str, name: str | None) -> None:
    """Register the project at PATH."""
    try:
        info = _registry().register(Path(path), name)
    except ToolScopeError as exc:
        print_error(str(exc))
        sys.exit(EXIT_FAILED)
    console.print(f"Registered [bold]{info.name}[/bold] ({info.id})")


@projects_group.command("local-add")
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.argument("tool")
@click.option("--scope", "scope_name", default=None, help="Scope the tool is expected in.")
@dry_run_options
def local_add_command(
    path: str, tool: str, scope_name: str | None, dry_run: bool, assume_yes: bool
) -> None:
    """Attach TOOL (KIND:NAME) to the registered project at PATH only."""
    kind, name = parse_tool(tool)
    scope = parse_scope(scope_name) if scope_name else None
    registry = _registry()
    info = _registered(registry, path)
    ref = ToolRef(name=name, tool_type=kind, source_scope=scope)
    apply_change(lambda dry: registry.local_tool_add(info.id, ref, dry), dry_run, assume_yes)


@projects_group.command("local-remove")
@click.argument("path", type=click.Path(exists=True, file_okay=False))
@click.argument("tool")
@dry_run_options
def local_remove_command(path: str, tool: str, dry_run: bool, assume_yes: bool) -> None:
    """Detach the local TOOL (KIND:NAME) from the project at PATH."""
    kind, name = parse_tool(tool)
    registry = _registry()
    info = _registered(registry, path)
    apply_change(
        lambda dry: registry.local_tool_remove(info.id, name, kind, dry), dry_run, assume_yes
    )
