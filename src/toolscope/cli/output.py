"""Rich output formatting helpers for the toolscope CLI.

Tables for inventories, collisions, MCP servers, profiles and projects.
Diff previews are echoed as plain text so paths and diff lines are never
interpreted as markup.

Scope Color Mapping (by precedence):
    managed = bold red, local = magenta, project = cyan, user = green,
    plugin = dim
"""

from __future__ import annotations

import json
from typing import Any

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from toolscope.core.availability import ToolStatus
from toolscope.core.backup import Backup
from toolscope.core.collision import COLLISION_KINDS, CollisionReport
from toolscope.core.diff.models import DiffPreview
from toolscope.core.install import SyncReport
from toolscope.core.mcp_ops import McpServerEntry
from toolscope.core.profiles.models import Profile, ProfileSummary, ProjectInfo
from toolscope.core.profiles.portable import ImportPreview
from toolscope.core.profiles.store import CaptureReport
from toolscope.core.profiles.updates import UpdateCheck
from toolscope.core.scope import Scope, ScopeKind
from toolscope.discovery.models import Inventory
from toolscope.parsers.base import ScanWarning, ToolRecord

_SCOPE_STYLES: dict[ScopeKind, str] = {
    ScopeKind.MANAGED: "bold red",
    ScopeKind.LOCAL: "magenta",
    ScopeKind.PROJECT: "cyan",
    ScopeKind.USER: "green",
    ScopeKind.PLUGIN: "dim",
}

console = Console()


def scope_text(scope: Scope | None) -> Text:
    """Return a styled label for a scope."""
    if scope is None:
        return Text("any", style="dim")
    return Text(str(scope), style=_SCOPE_STYLES.get(scope.kind, "white"))


def print_error(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")


def print_warnings(warnings: list[ScanWarning]) -> None:
    for warning in warnings:
        console.print(f"  [yellow]- {escape(str(warning))}[/yellow]")


def print_json(data: Any) -> None:
    """Print data as formatted JSON to stdout.

    Args:
        data: Any JSON-serializable data structure.
    """
    click.echo(json.dumps(data, indent=2, default=str))


def print_preview(preview: DiffPreview) -> None:
    click.echo(preview.terminal_output)


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


def _records_table(title: str, records: list[ToolRecord]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("Kind", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Scope")
    table.add_column("Description")
    for record in records:
        table.add_row(
            record.kind.value,
            escape(record.name),
            scope_text(record.scope),
            escape(record.description or "-"),
        )
    return table


def print_inventory(inventory: Inventory) -> None:
    """Print every scope of an inventory, then a one-line summary.

    Args:
        inventory: A scanned inventory.
    """
    sections: list[tuple[str, list[ToolRecord]]] = [
        (f"User ({inventory.user_scope.path})", inventory.user_scope.records)
    ]
    if inventory.managed_scope is not None:
        sections.append(
            (f"Managed ({inventory.managed_scope.path})", inventory.managed_scope.records)
        )
    for project in inventory.projects:
        title = f"Project {project.name} ({project.path})"
        if project.git is not None and project.git.branch:
            title += f" [{project.git.branch}{'*' if project.git.is_dirty else ''}]"
        sections.append((title, project.all_records))
    for plugin in inventory.plugins.installed:
        state = "" if plugin.enabled else " (disabled)"
        sections.append((f"Plugin {plugin.id} {plugin.version}{state}", plugin.records))

    for title, records in sections:
        if records:
            console.print(_records_table(escape(title), records))
        else:
            console.print(f"[dim]{escape(title)}: no tools found[/dim]")

    for where, error in sorted(inventory.scan_errors.items()):
        print_error(f"scan of {where} failed: {error}")
    if inventory.warnings:
        console.print(f"[yellow]{len(inventory.warnings)} file(s) skipped:[/yellow]")
        print_warnings(inventory.warnings)

    total = sum(len(records) for _, records in sections)
    parts = [f"[bold]{total}[/bold] tools in {len(sections)} scope(s)"]
    if inventory.collisions.total:
        parts.append(f"[red]{inventory.collisions.total} collision(s)[/red]")
    else:
        parts.append("[green]no collisions[/green]")
    console.print(" | ".join(parts))


def print_collisions(report: CollisionReport) -> None:
    """Print collisions per kind with the winning scope highlighted."""
    if not report.total:
        console.print("[green]No collisions found.[/green]")
        return
    table = Table(title="Collisions", show_header=True, header_style="bold")
    table.add_column("Kind", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Winner")
    table.add_column("Shadowed")
    for kind in COLLISION_KINDS:
        for collision in report.for_kind(kind):
            shadowed = Text(", ").join(
                scope_text(o.scope)
                for o in collision.occurrences
                if o.scope != collision.winner_scope
            )
            table.add_row(
                kind.value, escape(collision.name), scope_text(collision.winner_scope), shadowed
            )
    console.print(table)


# ---------------------------------------------------------------------------
# MCP servers
# ---------------------------------------------------------------------------


def print_mcp_servers(entries: list[McpServerEntry]) -> None:
    if not entries:
        console.print("[dim]No MCP servers configured.[/dim]")
        return
    table = Table(title="MCP Servers", show_header=True, header_style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Scope")
    table.add_column("Transport", style="dim")
    table.add_column("Target")
    for entry in entries:
        transport = str(entry.config.get("type", "stdio"))
        if transport == "stdio":
            args = " ".join(str(a) for a in entry.config.get("args", []))
            target = f"{entry.config.get('command', '')} {args}".strip()
        else:
            target = str(entry.config.get("url", ""))
        table.add_row(escape(entry.name), scope_text(entry.scope), transport, escape(target))
    console.print(table)


# ---------------------------------------------------------------------------
# Profiles and projects
# ---------------------------------------------------------------------------


def print_profiles(summaries: list[ProfileSummary]) -> None:
    if not summaries:
        console.print("[dim]No profiles yet.[/dim]")
        return
    table = Table(title="Profiles", show_header=True, header_style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Tools", justify="right")
    table.add_column("Plugins", justify="right")
    table.add_column("Projects", justify="right")
    table.add_column("ID", style="dim")
    for summary in summaries:
        table.add_row(
            escape(summary.name),
            str(summary.tool_count),
            str(summary.plugin_count),
            str(summary.assigned_count),
            summary.id,
        )
    console.print(table)


def print_profile(profile: Profile, statuses: list[ToolStatus] | None = None) -> None:
    """Print one profile with its tools and, when given, their availability.

    Args:
        profile: The profile to show.
        statuses: Availability rows from ``check_project_tools``.
    """
    header = Text.assemble(
        ("Profile: ", "bold"), (profile.name, ""),
        ("  ID: ", "bold"), (profile.id, "dim"),
    )
    console.print(Panel(header, title="Profile"))
    if profile.description:
        console.print(f"  {escape(profile.description)}")

    rows = [row for row in statuses or [] if row.origin == "profile"]
    table = Table(title="Tools", show_header=True, header_style="bold")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Kind", style="dim")
    table.add_column("Name", style="bold")
    table.add_column("Source")
    table.add_column("Status")
    for index, ref in enumerate(profile.tool_refs):
        if ref.source_ref is not None:
            source = Text(ref.source_ref.mode.value, style="cyan")
        else:
            source = scope_text(ref.source_scope)
        availability = rows[index].availability if index < len(rows) else None
        if availability is None:
            status = Text("-", style="dim")
        elif availability.available:
            status = Text("available", style="green")
        else:
            status = Text(availability.reason or "missing", style="red")
        table.add_row(str(index), ref.tool_type.value, escape(ref.name), source, status)
    console.print(table)

    for plugin in profile.plugin_refs:
        state = "enabled" if plugin.enabled else "disabled"
        console.print(f"  plugin {escape(plugin.id)} ({state})")
    if profile.has_claude_md:
        console.print(f"  CLAUDE.md overlay: {profile.claude_md_mode.value}")
    for project in profile.assigned_projects:
        console.print(f"  assigned to {escape(project.name)} ({escape(str(project.path))})")


def print_capture_report(report: CaptureReport) -> None:
    for ref in report.succeeded:
        console.print(f"  [green]captured[/green] {ref.tool_type.value} {escape(ref.name)}")
    for failure in report.failed:
        console.print(f"  [red]failed[/red] {escape(str(failure))}")
    console.print(
        f"[bold]{len(report.succeeded)}[/bold] captured, "
        f"[bold]{len(report.failed)}[/bold] failed"
    )


def print_import_preview(preview: ImportPreview) -> None:
    console.print(
        f"Profile [bold]{escape(preview.name)}[/bold] "
        f"(format v{preview.version}, exported {preview.exported_at or 'unknown'})"
    )
    if preview.description:
        console.print(f"  {escape(preview.description)}")
    console.print(
        f"  {preview.tool_count} tool(s), {preview.plugin_count} plugin(s)"
        + (", CLAUDE.md" if preview.has_claude_md else "")
    )
    for skipped in preview.skipped:
        console.print(f"  [yellow]skipped[/yellow] unknown tool type {escape(skipped)}")
    if preview.name_taken:
        console.print(
            f"  [yellow]a profile named {escape(preview.name)} already exists[/yellow]"
        )


def print_sync_report(report: SyncReport, dry_run: bool = False) -> None:
    if not report.projects:
        console.print("[dim]The profile is not assigned to any project.[/dim]")
        return
    verb = "would sync" if dry_run else "synced"
    for entry in report.projects:
        how = "plugin" if entry.as_plugin else "files"
        path = escape(str(entry.project.path))
        if entry.result.success:
            console.print(f"  [green]{verb}[/green] {path} ({how})")
        else:
            console.print(f"  [red]failed[/red] {path}: {escape(entry.result.error or '')}")
    console.print(
        f"[bold]{len(report.projects) - len(report.failed)}[/bold] {verb}, "
        f"[bold]{len(report.failed)}[/bold] failed"
    )


def print_backups(backups: list[Backup]) -> None:
    if not backups:
        console.print("[dim]No backups.[/dim]")
        return
    table = Table(title="Backups", show_header=True, header_style="bold")
    table.add_column("ID", style="dim")
    table.add_column("Created")
    table.add_column("Files", justify="right")
    table.add_column("Change")
    for backup in backups:
        table.add_row(
            backup.id, backup.created_at, str(len(backup.files)), escape(backup.description)
        )
    console.print(table)


def print_update_check(check: UpdateCheck) -> None:
    if not check.total_checked:
        console.print("[dim]No tracked tools in this profile.[/dim]")
        return
    for update in check.updates:
        console.print(
            f"  [yellow]update available[/yellow] {update.tool_type.value} "
            f"{escape(update.name)} ({escape(str(update.origin_path))})"
        )
    for name in check.missing_sources:
        console.print(f"  [red]origin missing[/red] {escape(name)}")
    console.print(
        f"{check.total_checked} tracked tool(s): "
        f"{len(check.updates)} update(s), {len(check.missing_sources)} missing"
    )


def print_projects(projects: list[ProjectInfo], profiles: dict[str, str] | None = None) -> None:
    """Print projects with the name of their assigned profile.

    Args:
        projects: Projects to list.
        profiles: Profile id to name, for the assignment column.
    """
    if not projects:
        console.print("[dim]No projects.[/dim]")
        return
    names = profiles or {}
    table = Table(title="Projects", show_header=True, header_style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Path")
    table.add_column("Profile")
    table.add_column("Local tools", justify="right")
    for project in projects:
        assigned = project.assigned_profile_id
        table.add_row(
            escape(project.name),
            escape(str(project.path)),
            names.get(assigned, assigned) if assigned else "-",
            str(len(project.local_tools)),
        )
    console.print(table)
