"""``toolscope skill create`` - Write a new skill into a writable scope.

Usage::

    toolscope skill create lint --scope project -d "Run the linters" --body-file lint.md
    toolscope skill create notes --scope user -d "Keep notes" --yes

Exit Codes:
    0 - Skill created (or the user declined).
    1 - The skill exists already, or the scope is read-only.
    2 - Invalid input.
"""

from __future__ import annotations

from pathlib import Path

import click

from toolscope.cli.common import (
    apply_change,
    dry_run_options,
    load_engine,
    load_paths,
    parse_scope,
)
from toolscope.core.install import ProfileInstaller
from toolscope.core.profiles.store import ProfileStore
from toolscope.core.scope import ScopeKind


@click.group("skill")
def skill_group() -> None:
    """Create skills."""


@skill_group.command("create")
@click.argument("name")
@click.option(
    "--scope", "scope_name", default="project", show_default=True, help="user or project."
)
@click.option(
    "--project", "-p",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Project directory (default: current directory).",
)
@click.option("--description", "-d", required=True, help="What the skill does.")
@click.option(
    "--body-file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Markdown file with the skill instructions.",
)
@dry_run_options
def create_command(
    name: str,
    scope_name: str,
    project: str | None,
    description: str,
    body_file: str | None,
    dry_run: bool,
    assume_yes: bool,
) -> None:
    """Create the skill NAME with a SKILL.md."""
    scope = parse_scope(scope_name)
    paths = load_paths()
    if scope.kind is ScopeKind.USER:
        root = paths.home
    else:
        root = Path(project) if project else Path.cwd()
    body = Path(body_file).read_text(encoding="utf-8") if body_file else ""
    installer = ProfileInstaller(ProfileStore(paths, load_engine(paths)))
    apply_change(
        lambda dry: installer.create_skill(root.resolve(), scope, name, description, body, dry),
        dry_run,
        assume_yes,
    )
