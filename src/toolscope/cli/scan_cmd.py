"""``toolscope scan`` and ``toolscope collisions`` - Inspect every scope.

``scan`` builds an inventory of the user scope, the managed scope, the
given projects (the current directory by default) and installed plugins.
``collisions`` prints only the names defined in more than one scope and
which scope wins.

Exit Codes:
    0 - Scan completed (and, for ``collisions``, none were found).
    1 - ``collisions`` found at least one collision.
    2 - No tools were found in any scope.
"""

from __future__ import annotations

import sys

import click

from toolscope.cli.common import EXIT_FAILED, EXIT_INVALID, EXIT_OK, load_paths, project_paths
from toolscope.cli.output import print_collisions, print_inventory, print_json
from toolscope.discovery.inventory import InventoryBuilder


@click.command("scan")
@click.argument("projects", nargs=-1, type=click.Path(exists=True, file_okay=False))
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON output.")
@click.option(
    "--no-managed",
    is_flag=True,
    default=False,
    help="Skip the managed (enterprise) scope.",
)
@click.option(
    "--no-plugins",
    is_flag=True,
    default=False,
    help="Skip installed plugins.",
)
def scan_command(
    projects: tuple[str, ...], as_json: bool, no_managed: bool, no_plugins: bool
) -> None:
    """Inventory skills, commands, agents, MCP servers and hooks.

    Scans the user scope, the managed scope, each PROJECT (default: the
    current directory) with its local overrides, and installed plugins.

    Exit code 0 on success, 2 if no tools were found anywhere.
    """
    builder = InventoryBuilder(load_paths())
    inventory = builder.build(
        project_paths(projects),
        include_managed=not no_managed,
        include_plugins=not no_plugins,
    )
    if as_json:
        print_json(inventory.to_dict())
    else:
        print_inventory(inventory)
    found = any(True for _ in inventory.iter_records())
    sys.exit(EXIT_OK if found else EXIT_INVALID)


@click.command("collisions")
@click.argument("projects", nargs=-1, type=click.Path(exists=True, file_okay=False))
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON output.")
def collisions_command(projects: tuple[str, ...], as_json: bool) -> None:
    """Show names defined in more than one scope and which one wins.

    Exit code 0 when there are no collisions, 1 otherwise.
    """
    inventory = InventoryBuilder(load_paths()).build(project_paths(projects))
    if as_json:
        print_json(inventory.collisions.to_dict())
    else:
        print_collisions(inventory.collisions)
    sys.exit(EXIT_FAILED if inventory.collisions.total else EXIT_OK)
