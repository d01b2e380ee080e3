"""``toolscope backup`` - List and restore the backups taken before each change.

Every change a command commits is backed up first: the content every
touched file had before, and which files did not exist yet. Restoring a
backup puts those files back and deletes the ones the change created.

Usage::

    toolscope backup list
    toolscope backup restore 1b9d6bcd-bbfd-4b2d-9b5d-ab8dfbbd4bed --dry-run

Exit Codes:
    0 - Success.
    1 - The restore failed.
    2 - Unknown or unreadable backup.
"""

from __future__ import annotations

import sys

import click

from toolscope.cli.common import (
    EXIT_INVALID,
    apply_change,
    dry_run_options,
    load_engine,
    load_paths,
)
from toolscope.cli.output import print_backups, print_error, print_json
from toolscope.core.backup import BackupStore, RestoreBackup
from toolscope.exceptions import BackupError


@click.group("backup")
def backup_group() -> None:
    """List and restore change backups."""


@backup_group.command("list")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON output.")
def list_command(as_json: bool) -> None:
    """List backups, newest first."""
    backups = BackupStore(load_paths().backups_dir).list()
    if as_json:
        print_json(
            [
                {
                    "id": b.id,
                    "description": b.description,
                    "created_at": b.created_at,
                    "files": [str(f.path) for f in b.files],
                }
                for b in backups
            ]
        )
    else:
        print_backups(backups)


@backup_group.command("restore")
@click.argument("backup_id")
@dry_run_options
def restore_command(backup_id: str, dry_run: bool, assume_yes: bool) -> None:
    """Undo the change recorded as BACKUP_ID.

    The restore is itself a change, so it is backed up too and can be
    undone the same way.
    """
    paths = load_paths()
    try:
        backup = BackupStore(paths.backups_dir).load(backup_id)
    except BackupError as exc:
        print_error(str(exc))
        sys.exit(EXIT_INVALID)
    engine = load_engine(paths)
    apply_change(lambda dry: engine.run(RestoreBackup(backup), dry), dry_run, assume_yes)
