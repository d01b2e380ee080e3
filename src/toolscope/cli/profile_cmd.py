"""``toolscope profile`` - Create, capture, update and install profiles.

A profile is a named bundle of tools. Tools are either captured (a copy is
stored with the profile, pinned or tracking its origin) or referenced by
name. Profiles are installed into projects as files, or assigned as a
generated plugin.

Usage::

    toolscope profile create backend --from ./api
    toolscope profile capture backend skill:deploy mcp:github --scope user --track
    toolscope profile check-updates backend
    toolscope profile pull backend deploy
    toolscope profile install backend --project ./web --dry-run
    toolscope profile assign backend --project ./web --yes
    toolscope profile unassign --project ./web
    toolscope profile sync backend
    toolscope profile create web --from-folder ~/dev --only skill:lint
    toolscope profile export backend -o backend.json
    toolscope profile import backend.json --name backend-copy

Tools are named ``KIND:NAME`` where KIND is skill, command, agent, mcp or
hook. Profiles are named by id or by name.

Exit Codes:
    0 - Success.
    1 - The operation failed (or, for ``check-updates``, updates exist).
    2 - Unknown profile, project or tool, or invalid input.
"""

from __future__ import annotations

import sys
from dataclasses import asdict
from pathlib import Path
from typing import Callable

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
from toolscope.cli.output import (
    console,
    print_capture_report,
    print_error,
    print_import_preview,
    print_json,
    print_preview,
    print_profile,
    print_profiles,
    print_sync_report,
    print_update_check,
)
from toolscope.core.availability import check_project_tools
from toolscope.core.diff.models import OperationResult
from toolscope.core.install import PluginAssignment, ProfileInstaller
from toolscope.core.profiles.models import Profile, ProjectInfo, SourceMode, ToolSpec
from toolscope.core.profiles.portable import (
    EXPORT_SUFFIX,
    export_profile,
    import_profile,
    preview_import,
)
from toolscope.core.profiles.store import ProfileStore
from toolscope.core.profiles.updates import check_profile_updates, pull_tool_update
from toolscope.exceptions import (
    ProfileError,
    ProfileNotFoundError,
    ProjectNotFoundError,
    ToolScopeError,
)
from toolscope.parsers.base import ToolKind


def _store() -> ProfileStore:
    paths = load_paths()
    return ProfileStore(paths, load_engine(paths))


def _resolve(store: ProfileStore, profile: str) -> Profile:
    try:
        return store.resolve(profile)
    except ProfileNotFoundError as exc:
        print_error(str(exc))
        sys.exit(EXIT_INVALID)
    except ProfileError as exc:
        print_error(str(exc))
        sys.exit(EXIT_FAILED)


def _guarded(
    operation: Callable[[bool], OperationResult],
) -> Callable[[bool], OperationResult]:
    """Report profile errors in the result, like config operations do."""

    def run(dry_run: bool) -> OperationResult:
        try:
            return operation(dry_run)
        except ProfileError as exc:
            return OperationResult.failure(str(exc))

    return run


def _keep(
    wanted: set[tuple[str, ToolKind]],
) -> Callable[[list[ToolSpec]], list[ToolSpec]]:
    def select(specs: list[ToolSpec]) -> list[ToolSpec]:
        return [s for s in specs if (s.name.casefold(), s.tool_type) in wanted]

    return select


@click.group("profile")
def profile_group() -> None:
    """Manage tool profiles."""


@profile_group.command("create")
@click.argument("name")
@click.option(
    "--from", "source",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Snapshot every project and local tool of this project.",
)
@click.option(
    "--from-folder",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Collect tools from every project found under this folder.",
)
@click.option(
    "--from-registered",
    is_flag=True,
    default=False,
    help="Collect tools from every registered project.",
)
@click.option(
    "--depth", default=2, show_default=True, help="Directory levels searched by --from-folder."
)
@click.option(
    "--only", "only",
    multiple=True,
    help="With --from-folder or --from-registered, keep only this KIND:NAME (repeatable).",
)
@click.option(
    "--track",
    is_flag=True,
    default=False,
    help="Track the origins for updates instead of pinning copies.",
)
@click.option("--description", "-d", default=None, help="Profile description.")
def create_command(
    name: str,
    source: str | None,
    from_folder: str | None,
    from_registered: bool,
    depth: int,
    only: tuple[str, ...],
    track: bool,
    description: str | None,
) -> None:
    """Create the profile NAME, empty or from the tools of existing projects.

    With --from-folder or --from-registered the tools of several projects
    are collected; a tool found in more than one project is taken from
    the first. Exit code 1 when any selected tool failed to capture.
    """
    sources = sum([source is not None, from_folder is not None, from_registered])
    if sources > 1:
        print_error("give at most one of --from, --from-folder or --from-registered")
        sys.exit(EXIT_INVALID)
    if only and not (from_folder or from_registered):
        print_error("--only needs --from-folder or --from-registered")
        sys.exit(EXIT_INVALID)
    wanted = {(n.casefold(), kind) for kind, n in map(parse_tool, only)}
    store = _store()
    report = None
    try:
        if from_folder is not None or from_registered:
            if from_folder is not None:
                projects = store.discover_projects(Path(from_folder), depth)
            else:
                projects = store.registered_projects()
            if not projects:
                print_error("no projects found")
                sys.exit(EXIT_INVALID)
            profile, report = store.create_from_projects(
                name,
                [p.path for p in projects],
                description,
                SourceMode.TRACK if track else SourceMode.PIN,
                select=_keep(wanted) if wanted else None,
            )
        else:
            profile = store.create(name, Path(source) if source else None, description)
    except ToolScopeError as exc:
        print_error(str(exc))
        sys.exit(EXIT_FAILED)
    if report is not None:
        print_capture_report(report)
    console.print(
        f"Created profile [bold]{profile.name}[/bold] ({profile.id}) "
        f"with {len(profile.tool_refs)} tool(s)"
    )
    if report is not None and not report.ok:
        sys.exit(EXIT_FAILED)


@profile_group.command("list")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON output.")
def list_command(as_json: bool) -> None:
    """List profiles."""
    summaries = _store().list()
    if as_json:
        print_json([asdict(s) for s in summaries])
    else:
        print_profiles(summaries)


@profile_group.command("show")
@click.argument("profile")
@click.option(
    "--project", "-p",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Check tool availability against this project.",
)
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON output.")
def show_command(profile: str, project: str | None, as_json: bool) -> None:
    """Show the tools of PROFILE and, with --project, whether each is available."""
    store = _store()
    found = _resolve(store, profile)
    statuses = None
    if project is not None:
        path = Path(project).resolve()
        inventory = store.builder.build([path])
        info = store.registry.find_by_path(path) or ProjectInfo.for_path(path)
        statuses = check_project_tools(info, found, inventory)
    if as_json:
        data = found.to_dict()
        data["assigned_projects"] = [p.to_dict() for p in found.assigned_projects]
        if statuses is not None:
            data["availability"] = [
                {
                    "name": row.ref.name,
                    "tool_type": row.ref.tool_type.value,
                    "origin": row.origin,
                    "available": row.availability.available,
                    "reason": row.availability.reason,
                }
                for row in statuses
            ]
        print_json(data)
    else:
        print_profile(found, statuses)


@profile_group.command("delete")
@click.argument("profile")
@dry_run_options
def delete_command(profile: str, dry_run: bool, assume_yes: bool) -> None:
    """Delete PROFILE and unassign it from its projects."""
    store = _store()
    found = _resolve(store, profile)
    apply_change(_guarded(lambda dry: store.delete(found.id, dry_run=dry)), dry_run, assume_yes)


@profile_group.command("capture")
@click.argument("profile")
@click.argument("tools", nargs=-1, required=True)
@click.option(
    "--from", "source",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Project to capture from (project and local scopes).",
)
@click.option("--scope", "scope_name", default=None, help="user, managed or plugin:<id>.")
@click.option(
    "--track",
    is_flag=True,
    default=False,
    help="Track the origin for updates instead of pinning a copy.",
)
def capture_command(
    profile: str,
    tools: tuple[str, ...],
    source: str | None,
    scope_name: str | None,
    track: bool,
) -> None:
    """Capture TOOLS (KIND:NAME) into PROFILE, one committed change each.

    Exit code 0 when every tool was captured, 1 if any failed.
    """
    if (source is None) == (scope_name is None):
        print_error("give exactly one of --from or --scope")
        sys.exit(EXIT_INVALID)
    store = _store()
    found = _resolve(store, profile)
    mode = SourceMode.TRACK if track else SourceMode.PIN
    specs = [ToolSpec(name, kind, mode) for kind, name in map(parse_tool, tools)]
    origin = Path(source) if source is not None else parse_scope(scope_name or "")
    try:
        report = store.add_tools_from_source(found.id, origin, specs)
    except ProfileError as exc:
        print_error(str(exc))
        sys.exit(EXIT_FAILED)
    print_capture_report(report)
    sys.exit(0 if report.ok else EXIT_FAILED)


@profile_group.command("remove-tool")
@click.argument("profile")
@click.argument("index", type=int)
@dry_run_options
def remove_tool_command(profile: str, index: int, dry_run: bool, assume_yes: bool) -> None:
    """Remove the tool at INDEX (as listed by ``show``) from PROFILE."""
    store = _store()
    found = _resolve(store, profile)
    apply_change(
        _guarded(lambda dry: store.remove_tool(found.id, index, dry_run=dry)),
        dry_run,
        assume_yes,
    )


@profile_group.command("check-updates")
@click.argument("profile")
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON output.")
def check_updates_command(profile: str, as_json: bool) -> None:
    """Compare tracked tools of PROFILE with their origins.

    Exit code 0 when everything is in sync, 1 when updates are available.
    """
    store = _store()
    found = _resolve(store, profile)
    check = check_profile_updates(store, found.id)
    if as_json:
        print_json(check.to_dict())
    else:
        print_update_check(check)
    sys.exit(EXIT_FAILED if check.updates else 0)


@profile_group.command("pull")
@click.argument("profile")
@click.argument("tool")
def pull_command(profile: str, tool: str) -> None:
    """Copy the current origin content of TOOL into PROFILE."""
    store = _store()
    found = _resolve(store, profile)
    try:
        result = pull_tool_update(store, found.id, tool)
    except ProfileError as exc:
        print_error(str(exc))
        sys.exit(EXIT_FAILED)
    if result.changed:
        console.print(f"Updated [bold]{result.name}[/bold]")
    else:
        console.print(f"[dim]{result.name} is already up to date[/dim]")


@profile_group.command("install")
@click.argument("profile")
@click.option(
    "--project", "-p",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Project to install into.",
)
@click.option("--user", "to_user", is_flag=True, default=False, help="Install into ~/.claude.")
@dry_run_options
def install_command(
    profile: str, project: str | None, to_user: bool, dry_run: bool, assume_yes: bool
) -> None:
    """Install PROFILE's tools into a project or the user scope."""
    if (project is None) == (not to_user):
        print_error("give exactly one of --project or --user")
        sys.exit(EXIT_INVALID)
    store = _store()
    found = _resolve(store, profile)
    installer = ProfileInstaller(store)
    if to_user:
        operation = _guarded(lambda dry: installer.install_profile_to_user(found.id, dry))
    else:
        path = Path(project or ".")
        operation = _guarded(
            lambda dry: installer.install_profile_to_project(found.id, path, dry)
        )
    apply_change(operation, dry_run, assume_yes)


@profile_group.command("assign")
@click.argument("profile")
@click.option(
    "--project", "-p",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Project to assign the profile to.",
)
@click.option(
    "--user", "to_user", is_flag=True, default=False, help="Enable the plugin for the user."
)
@dry_run_options
def assign_command(
    profile: str, project: str | None, to_user: bool, dry_run: bool, assume_yes: bool
) -> None:
    """Assign PROFILE to a project, or the user, as a generated plugin.

    The project is registered first if it is not known yet.
    """
    if (project is None) == (not to_user):
        print_error("give exactly one of --project or --user")
        sys.exit(EXIT_INVALID)
    store = _store()
    found = _resolve(store, profile)
    installer = ProfileInstaller(store)
    plugin_ids: list[str] = []

    if to_user:

        def assign(dry: bool) -> PluginAssignment:
            return installer.install_profile_plugin_to_user(found.id, dry)

    else:
        try:
            info = store.registry.register(Path(project or "."))
        except ToolScopeError as exc:
            print_error(str(exc))
            sys.exit(EXIT_FAILED)

        def assign(dry: bool) -> PluginAssignment:
            return installer.assign_profile_as_plugin(info.id, found.id, dry)

    def operation(dry: bool) -> OperationResult:
        try:
            assignment = assign(dry)
        except (ProfileError, ProjectNotFoundError) as exc:
            return OperationResult.failure(str(exc))
        plugin_ids.append(assignment.plugin_id)
        return assignment.result

    result = apply_change(operation, dry_run, assume_yes)
    if result is not None and plugin_ids:
        console.print(f"Enabled plugin [bold]{plugin_ids[-1]}[/bold]")


@profile_group.command("unassign")
@click.option(
    "--project", "-p",
    type=click.Path(exists=True, file_okay=False),
    required=True,
    help="Registered project whose profile plugin is removed.",
)
@dry_run_options
def unassign_command(project: str, dry_run: bool, assume_yes: bool) -> None:
    """Disable a project's profile plugin and clear its assignment.

    The plugin leaves the local marketplace once nothing enables it.
    """
    store = _store()
    info = store.registry.find_by_path(Path(project))
    if info is None:
        print_error(f"{project} is not a registered project")
        sys.exit(EXIT_INVALID)
    installer = ProfileInstaller(store)
    apply_change(
        _guarded(lambda dry: installer.unassign_profile_plugin(info.id, dry)),
        dry_run,
        assume_yes,
    )


@profile_group.command("uninstall-plugin")
@click.argument("profile")
@click.option(
    "--project", "-p",
    type=click.Path(exists=True, file_okay=False),
    default=None,
    help="Project whose settings enable the plugin.",
)
@click.option(
    "--user", "from_user", is_flag=True, default=False, help="Disable it for the user."
)
@dry_run_options
def uninstall_plugin_command(
    profile: str, project: str | None, from_user: bool, dry_run: bool, assume_yes: bool
) -> None:
    """Disable PROFILE's generated plugin for the user or one project."""
    if (project is None) == (not from_user):
        print_error("give exactly one of --project or --user")
        sys.exit(EXIT_INVALID)
    store = _store()
    found = _resolve(store, profile)
    installer = ProfileInstaller(store)
    if from_user:
        operation = _guarded(
            lambda dry: installer.uninstall_profile_plugin_from_user(found.id, dry)
        )
    else:
        path = Path(project or ".")
        operation = _guarded(
            lambda dry: installer.uninstall_profile_plugin_from_project(path, found.id, dry)
        )
    apply_change(operation, dry_run, assume_yes)


@profile_group.command("sync")
@click.argument("profile")
@dry_run_options
def sync_command(profile: str, dry_run: bool, assume_yes: bool) -> None:
    """Re-apply PROFILE to every project it is assigned to.

    Projects using the generated plugin get it exported again, the others
    get the profile installed again. Exit code 1 when any project failed.
    """
    store = _store()
    found = _resolve(store, profile)
    installer = ProfileInstaller(store)
    if not found.assigned_projects:
        console.print("[dim]The profile is not assigned to any project.[/dim]")
        return
    for project in found.assigned_projects:
        console.print(f"  {project.name}: {project.path}")
    if dry_run:
        planned = installer.sync_profile_to_projects(found.id, dry_run=True)
        for entry in planned.projects:
            if entry.result.preview is not None:
                print_preview(entry.result.preview)
        print_sync_report(planned, dry_run=True)
        sys.exit(0 if planned.ok else EXIT_FAILED)
    count = len(found.assigned_projects)
    if not assume_yes and not click.confirm(
        f"Re-apply {found.name} to {count} project(s)?", default=False
    ):
        click.echo("Aborted.")
        return
    report = installer.sync_profile_to_projects(found.id)
    print_sync_report(report)
    sys.exit(0 if report.ok else EXIT_FAILED)


@profile_group.command("export")
@click.argument("profile")
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False),
    default=None,
    help=f"File to write (default: ./<name>{EXPORT_SUFFIX}).",
)
@dry_run_options
def export_command(profile: str, output: str | None, dry_run: bool, assume_yes: bool) -> None:
    """Write PROFILE's tool references to a portable file.

    Captured content and local paths are not exported; the file imports as
    a profile of bare references.
    """
    store = _store()
    found = _resolve(store, profile)
    target = Path(output) if output else Path.cwd() / f"{found.name}{EXPORT_SUFFIX}"
    apply_change(
        _guarded(lambda dry: export_profile(store, found.id, target, dry)),
        dry_run,
        assume_yes,
    )


@profile_group.command("import")
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--name", default=None, help="Name for the new profile.")
@dry_run_options
def import_command(file: str, name: str | None, dry_run: bool, assume_yes: bool) -> None:
    """Create a new profile from an exported FILE.

    Exit code 1 when the file is unusable or the name is already taken.
    """
    store = _store()
    path = Path(file)
    try:
        preview = preview_import(store, path)
    except ProfileError as exc:
        print_error(str(exc))
        sys.exit(EXIT_FAILED)
    print_import_preview(preview)
    created: list[Profile] = []

    def operation(dry: bool) -> OperationResult:
        try:
            profile, result = import_profile(store, path, name, dry)
        except ProfileError as exc:
            return OperationResult.failure(str(exc))
        created.append(profile)
        return result

    result = apply_change(operation, dry_run, assume_yes)
    if result is not None and created:
        console.print(f"Imported profile [bold]{created[-1].name}[/bold] ({created[-1].id})")
