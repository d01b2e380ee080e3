"""Shared plumbing for toolscope commands.

Every mutating command follows the same flow: plan the change as a dry
run, print the preview, stop there for ``--dry-run``, otherwise ask for
confirmation (skipped with ``--yes``) and run the change for real. Every
committed change is backed up first; a partial failure prints the
``toolscope backup restore`` command that undoes it.

Exit Codes:
    0 - Success, or the user declined the change.
    1 - The operation failed (invalid request, conflict, backup or write
        error).
    2 - Nothing found, or invalid input.
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Callable

import click

from toolscope.cli.output import print_error, print_preview
from toolscope.config import ConfigPaths
from toolscope.core.backup import BackupStore
from toolscope.core.diff.engine import DiffApplyEngine
from toolscope.core.diff.models import OperationResult
from toolscope.core.scope import Scope
from toolscope.exceptions import BackupError, CommitConflict, CommitPartialFailure
from toolscope.parsers.base import ToolKind

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2

KIND_CHOICES = [kind.value for kind in ToolKind]


def load_paths() -> ConfigPaths:
    return ConfigPaths.from_env()


def load_engine(paths: ConfigPaths) -> DiffApplyEngine:
    """The engine every command commits through; it backs up before writing."""
    return DiffApplyEngine(backups=BackupStore(paths.backups_dir))


def parse_scope(value: str) -> Scope:
    """Parse a ``--scope`` value, exiting with code 2 when it is invalid."""
    try:
        return Scope.parse(value)
    except ValueError as exc:
        print_error(str(exc))
        sys.exit(EXIT_INVALID)


def parse_tool(value: str) -> tuple[ToolKind, str]:
    """Parse a ``KIND:NAME`` tool argument, exiting with code 2 when invalid.

    Only the first colon separates, so hook names like
    ``PreToolUse:Bash`` survive intact.
    """
    kind, sep, name = value.partition(":")
    if not sep or kind not in KIND_CHOICES or not name:
        print_error(f"tools are named KIND:NAME with KIND in {', '.join(KIND_CHOICES)}")
        sys.exit(EXIT_INVALID)
    return ToolKind(kind), name


def project_paths(values: tuple[str, ...]) -> list[Path]:
    """Project arguments as paths; the current directory when none given."""
    return [Path(v) for v in values] or [Path.cwd()]


def dry_run_options(func: Callable) -> Callable:
    """Add ``--dry-run`` and ``--yes`` to a mutating command."""
    func = click.option(
        "--yes", "-y", "assume_yes",
        is_flag=True,
        default=False,
        help="Apply without asking for confirmation.",
    )(func)
    return click.option(
        "--dry-run",
        is_flag=True,
        default=False,
        help="Show the planned changes and stop.",
    )(func)


def apply_change(
    operation: Callable[[bool], OperationResult],
    dry_run: bool,
    assume_yes: bool,
) -> OperationResult | None:
    """Preview, confirm and apply one change.

    Args:
        operation: Runs the change; called with ``dry_run=True`` for the
            preview and again with ``False`` to apply it.
        dry_run: Stop after the preview.
        assume_yes: Apply without prompting.

    Returns:
        The committed result, or None when nothing was written.
    """
    planned = operation(True)
    if not planned.success:
        print_error(planned.error or "operation failed")
        sys.exit(EXIT_FAILED)
    if planned.preview is not None:
        print_preview(planned.preview)
        if planned.preview.is_empty:
            click.echo("Nothing to change.")
            return None
    if dry_run:
        return None
    if not assume_yes and not click.confirm("Apply these changes?", default=False):
        click.echo("Aborted.")
        return None
    try:
        result = operation(False)
    except CommitConflict as exc:
        print_error(f"{exc}; run the command again to re-plan")
        sys.exit(EXIT_FAILED)
    except CommitPartialFailure as exc:
        print_error(str(exc))
        for path in exc.succeeded:
            click.echo(f"  written: {path}")
        if exc.backup_id is not None:
            click.echo(f"Undo with: toolscope backup restore {exc.backup_id}")
        sys.exit(EXIT_FAILED)
    except BackupError as exc:
        print_error(f"nothing written, backup failed: {exc}")
        sys.exit(EXIT_FAILED)
    if not result.success:
        print_error(result.error or "operation failed")
        sys.exit(EXIT_FAILED)
    click.echo(f"Applied: {len(result.applied)} file(s) written.")
    if result.backup_id is not None:
        click.echo(f"Backup: {result.backup_id}")
    return result
