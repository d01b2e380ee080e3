"""Availability checks for profile and local tool references.

A bare ``ToolRef`` names a tool that must already exist somewhere: in the
scope it names, or in any scope when it names none. A ref with captured
content (``source_ref`` set) is always available, since installing the
profile brings its own copy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, NamedTuple

from toolscope.core.profiles.models import Profile, ProjectInfo, ToolRef
from toolscope.core.scope import ScopeKind
from toolscope.discovery.models import Inventory
from toolscope.exceptions import AvailabilityUnknown
from toolscope.parsers.base import ToolRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Availability:
    """Whether a referenced tool can be found, and why not if it cannot."""

    available: bool
    reason: str | None = None


class ToolStatus(NamedTuple):
    """One row of ``check_project_tools``: where the ref came from and its status."""

    ref: ToolRef
    origin: str
    availability: Availability


def _candidates(
    ref: ToolRef, inventory: Inventory, project_path: Path | None
) -> Iterator[ToolRecord]:
    scope = ref.source_scope
    kind = scope.kind if scope is not None else None

    if kind in (None, ScopeKind.USER):
        yield from inventory.user_scope.records
    if kind in (None, ScopeKind.MANAGED) and inventory.managed_scope is not None:
        yield from inventory.managed_scope.records
    if kind in (None, ScopeKind.PROJECT, ScopeKind.LOCAL):
        if project_path is not None:
            project = inventory.project(project_path)
            projects = [project] if project is not None else []
        else:
            projects = list(inventory.projects)
        for project in projects:
            if kind in (None, ScopeKind.PROJECT):
                yield from project.outcome.records
            if kind in (None, ScopeKind.LOCAL):
                yield from project.local.records
    if kind in (None, ScopeKind.PLUGIN):
        for plugin in inventory.plugins.installed:
            if not plugin.enabled:
                continue
            if scope is None or plugin.id == scope.plugin_id:
                yield from plugin.records


def _lookup(ref: ToolRef, inventory: Inventory, project_path: Path | None) -> Availability:
    if ref.is_profile_sourced:
        return Availability(True)
    folded = ref.name.casefold()
    for record in _candidates(ref, inventory, project_path):
        if record.kind is ref.tool_type and record.name.casefold() == folded:
            return Availability(True)
    where = f"{ref.source_scope} scope" if ref.source_scope is not None else "any scope"
    return Availability(False, f"{ref.tool_type.value} '{ref.name}' not found in {where}")


def check_availability(
    ref: ToolRef, inventory: Inventory, project_path: Path | None = None
) -> Availability:
    """Check whether ``ref`` resolves against a scanned inventory.

    Args:
        ref: The reference to check.
        inventory: A current inventory snapshot.
        project_path: Restrict Project and Local lookups to this project.

    Returns:
        The availability. This function never raises; an unexpected error
        yields ``available=False`` with an ``availability unknown`` reason.
    """
    try:
        return _lookup(ref, inventory, project_path)
    except Exception as exc:  # reported as unknown availability
        error = AvailabilityUnknown(f"availability unknown: {exc}")
        logger.warning("Cannot check %s: %s", ref.name, exc, exc_info=True)
        return Availability(False, str(error))


def check_project_tools(
    project: ProjectInfo, profile: Profile | None, inventory: Inventory
) -> list[ToolStatus]:
    """Status of every tool a project gets: profile tools, then local tools."""
    rows: list[ToolStatus] = []
    if profile is not None:
        for ref in profile.tool_refs:
            rows.append(
                ToolStatus(ref, "profile", check_availability(ref, inventory, project.path))
            )
    for ref in project.local_tools:
        rows.append(ToolStatus(ref, "local", check_availability(ref, inventory, project.path)))
    return rows
