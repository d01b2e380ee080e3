"""Registry of known projects and their local tool additions.

Projects are stored in ``<data_dir>/projects.json``::

    {"version": 1, "projects": [{"id": ..., "path": ..., "local_tools": [...]}]}

Every change to the registry is an ``EditProjects`` action run through the
``DiffApplyEngine``, so registry writes are serialized with every other
write to the same file. Local tool add/remove are exposed with a
``dry_run`` flag and return an ``OperationResult``.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable

from toolscope.config import ConfigPaths
from toolscope.core.diff.engine import Action, DiffApplyEngine
from toolscope.core.diff.models import OperationResult
from toolscope.core.diff.staging import StagedFiles
from toolscope.core.jsondoc import dumps, load_staged
from toolscope.core.profiles.models import ProjectInfo, ToolRef, ToolType, utc_now
from toolscope.exceptions import (
    ConfigOpError,
    ItemExistsError,
    ItemNotFoundError,
    ParseError,
    ProjectNotFoundError,
    ToolScopeError,
)

logger = logging.getLogger(__name__)

REGISTRY_VERSION = 1

Mutation = Callable[[list[ProjectInfo], str], None]


def _decode(document: dict[str, Any] | None) -> list[ProjectInfo]:
    if not document:
        return []
    entries = document.get("projects", [])
    if not isinstance(entries, list):
        raise ConfigOpError("project registry 'projects' must be a list")
    try:
        return [ProjectInfo.from_dict(entry) for entry in entries]
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigOpError(f"malformed project registry entry: {exc}") from exc


def _encode(projects: list[ProjectInfo]) -> dict[str, Any]:
    return {"version": REGISTRY_VERSION, "projects": [p.to_dict() for p in projects]}


class EditProjects(Action):
    """Apply a mutation to the list of registered projects."""

    def __init__(
        self,
        registry_file: Path,
        description: str,
        mutate: Mutation,
    ) -> None:
        self.registry_file = registry_file
        self.description = description
        self.mutate = mutate
        self.now = utc_now()

    def describe(self) -> str:
        return self.description

    def stage(self, files: StagedFiles) -> None:
        projects = _decode(load_staged(files, self.registry_file))
        self.mutate(projects, self.now)
        files.write_text(self.registry_file, dumps(_encode(projects)))


def _find(projects: list[ProjectInfo], project_id: str) -> ProjectInfo:
    for project in projects:
        if project.id == project_id:
            return project
    raise ItemNotFoundError(f"project '{project_id}' is not registered")


class ProjectRegistry:
    """Persistent list of projects known to toolscope."""

    def __init__(self, paths: ConfigPaths, engine: DiffApplyEngine | None = None) -> None:
        self.paths = paths
        self.engine = engine or DiffApplyEngine()

    @property
    def registry_file(self) -> Path:
        return self.paths.projects_file

    # -- Reads --------------------------------------------------------------

    def list_projects(self) -> list[ProjectInfo]:
        """All registered projects in registration order.

        Raises:
            ParseError: If the registry file is corrupt.
        """
        path = self.registry_file
        if not path.is_file():
            return []
        try:
            document = json.loads(path.read_text(encoding="utf-8") or "{}")
        except json.JSONDecodeError as exc:
            raise ParseError(f"{path} is not valid JSON: {exc}") from exc
        if not isinstance(document, dict):
            raise ParseError(f"{path} must contain a JSON object")
        try:
            return _decode(document)
        except ConfigOpError as exc:
            raise ParseError(str(exc)) from exc

    def get(self, project_id: str) -> ProjectInfo:
        for project in self.list_projects():
            if project.id == project_id:
                return project
        raise ProjectNotFoundError(f"project '{project_id}' is not registered")

    def find_by_path(self, path: Path) -> ProjectInfo | None:
        resolved = path.resolve()
        for project in self.list_projects():
            if project.path == resolved:
                return project
        return None

    def projects_for_profile(self, profile_id: str) -> list[ProjectInfo]:
        return [p for p in self.list_projects() if p.assigned_profile_id == profile_id]

    # -- Writes -------------------------------------------------------------

    def _edit(self, description: str, mutate: Mutation, dry_run: bool = False) -> OperationResult:
        action = EditProjects(self.registry_file, description, mutate)
        return self.engine.run(action, dry_run)

    def _edit_or_raise(self, description: str, mutate: Mutation) -> None:
        result = self._edit(description, mutate)
        if not result.success:
            raise ToolScopeError(result.error or description)

    def register(self, path: Path, name: str | None = None) -> ProjectInfo:
        """Register a project directory; registering twice is a no-op."""
        existing = self.find_by_path(path)
        if existing is not None:
            return existing
        info = ProjectInfo.for_path(path, name)

        def mutate(projects: list[ProjectInfo], now: str) -> None:
            if all(p.id != info.id for p in projects):
                projects.append(info)

        self._edit_or_raise(f"Register project {info.path}", mutate)
        logger.info("Registered project %s", info.path)
        return info

    def unregister(self, project_id: str) -> None:
        def mutate(projects: list[ProjectInfo], now: str) -> None:
            projects.remove(_find(projects, project_id))

        result = self._edit(f"Unregister project {project_id}", mutate)
        if not result.success:
            raise ProjectNotFoundError(result.error or project_id)

    def assign_profile(self, project_id: str, profile_id: str | None) -> None:
        """Record (or clear, with None) the profile assigned to a project."""

        def mutate(projects: list[ProjectInfo], now: str) -> None:
            project = _find(projects, project_id)
            project.assigned_profile_id = profile_id
            project.updated_at = now

        result = self._edit(f"Assign profile to project {project_id}", mutate)
        if not result.success:
            raise ProjectNotFoundError(result.error or project_id)

    def clear_profile(self, profile_id: str) -> None:
        """Unassign ``profile_id`` from every project using it."""
        if not self.projects_for_profile(profile_id):
            return

        def mutate(projects: list[ProjectInfo], now: str) -> None:
            for project in projects:
                if project.assigned_profile_id == profile_id:
                    project.assigned_profile_id = None
                    project.updated_at = now

        self._edit_or_raise(f"Unassign profile {profile_id}", mutate)

    # -- Local tools ----------------------------------------------------------

    def local_tool_add(
        self, project_id: str, ref: ToolRef, dry_run: bool = False
    ) -> OperationResult:
        """Attach a tool to one project only.

        Fails (in the result) when the project already has a local tool with
        the same case-insensitive name and type.
        """

        def mutate(projects: list[ProjectInfo], now: str) -> None:
            project = _find(projects, project_id)
            if any(t.key == ref.key for t in project.local_tools):
                raise ItemExistsError(
                    f"{ref.tool_type.value} '{ref.name}' is already a local tool of {project.name}"
                )
            project.local_tools.append(ref)
            project.updated_at = now

        return self._edit(f"Add local {ref.tool_type.value} '{ref.name}'", mutate, dry_run)

    def local_tool_remove(
        self, project_id: str, name: str, tool_type: ToolType, dry_run: bool = False
    ) -> OperationResult:
        """Detach a local tool from a project."""
        key = (name.casefold(), tool_type)

        def mutate(projects: list[ProjectInfo], now: str) -> None:
            project = _find(projects, project_id)
            remaining = [t for t in project.local_tools if t.key != key]
            if len(remaining) == len(project.local_tools):
                raise ItemNotFoundError(
                    f"{tool_type.value} '{name}' is not a local tool of {project.name}"
                )
            project.local_tools = remaining
            project.updated_at = now

        return self._edit(f"Remove local {tool_type.value} '{name}'", mutate, dry_run)
