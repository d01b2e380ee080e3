"""toolscope CLI - Inventory and manage layered Claude Code configuration.

Entry point for the ``toolscope`` command-line tool. Registers all
subcommands under a single Click group.

Commands:
    scan       - Inventory tools across user, managed, project and plugin scopes.
    collisions - Show names defined in more than one scope and the winner.
    mcp        - List, add, remove and move MCP servers.
    profile    - Create, capture, update and install tool profiles.
    projects   - Discover and register projects, manage local tools.
    skill      - Create a skill in the user or project scope.
    backup     - List and restore the backups taken before each change.

Usage::

    toolscope scan                         # Current directory plus user scope
    toolscope scan ./api ./web --json
    toolscope collisions
    toolscope mcp move github --to project --dry-run
    toolscope profile create backend --from ./api
    toolscope profile install backend --project ./web
    toolscope projects discover ~/dev --register
    toolscope backup restore <id> --dry-run
"""

from __future__ import annotations

import logging

import click
from rich.logging import RichHandler

from toolscope import __version__
from toolscope.cli.backup_cmd import backup_group
from toolscope.cli.mcp_cmd import mcp_group
from toolscope.cli.output import console
from toolscope.cli.profile_cmd import profile_group
from toolscope.cli.projects_cmd import projects_group
from toolscope.cli.scan_cmd import collisions_command, scan_command
from toolscope.cli.skill_cmd import skill_group


@click.group()
@click.version_option(version=__version__)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log debug output.")
def cli(verbose: bool) -> None:
    """toolscope: Inventory and manage Claude Code configuration.

    Find every skill, command, agent, MCP server and hook across all
    scopes, see which definition wins, and bundle tools into profiles
    that can be installed into any project.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


# Register all subcommands
cli.add_command(scan_command)
cli.add_command(collisions_command)
cli.add_command(mcp_group)
cli.add_command(profile_group)
cli.add_command(projects_group)
cli.add_command(skill_group)
cli.add_command(backup_group)
