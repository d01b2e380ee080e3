"""Tests for the project registry.

Verifies:
    - Registration is idempotent and ids derive from the resolved path.
    - Profile assignment can be recorded and cleared.
    - Local tools are unique per name and type, case-insensitively.
    - A corrupt registry file is reported, not silently replaced.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from toolscope.config import ConfigPaths
from toolscope.core.diff.engine import DiffApplyEngine
from toolscope.core.profiles.models import ToolRef, ToolType, project_id_for
from toolscope.core.projects import ProjectRegistry
from toolscope.core.scope import Scope
from toolscope.exceptions import ParseError, ProjectNotFoundError
from tests.helpers import read_json


@pytest.fixture
def registry(paths: ConfigPaths, engine: DiffApplyEngine) -> ProjectRegistry:
    return ProjectRegistry(paths, engine)


class TestRegistration:
    """Tests for registering projects."""

    def test_register_once(self, registry: ProjectRegistry, project: Path) -> None:
        """Registering the same path twice returns the same project."""
        first = registry.register(project)
        second = registry.register(project / ".." / project.name)

        assert first.id == second.id == project_id_for(project)
        assert first.name == "app"
        assert [p.id for p in registry.list_projects()] == [first.id]

    def test_persisted_format(
        self, registry: ProjectRegistry, paths: ConfigPaths, project: Path
    ) -> None:
        """The registry file carries a version and the project list."""
        registry.register(project, name="Main app")
        document = read_json(paths.projects_file)
        assert document["version"] == 1
        assert document["projects"][0]["name"] == "Main app"
        assert document["projects"][0]["path"] == str(project)

    def test_lookup(
        self, registry: ProjectRegistry, project: Path, other_project: Path
    ) -> None:
        info = registry.register(project)
        assert registry.get(info.id).path == project
        assert registry.find_by_path(other_project) is None
        with pytest.raises(ProjectNotFoundError):
            registry.get("missing")

    def test_unregister(self, registry: ProjectRegistry, project: Path) -> None:
        info = registry.register(project)
        registry.unregister(info.id)
        assert registry.list_projects() == []
        with pytest.raises(ProjectNotFoundError):
            registry.unregister(info.id)

    def test_corrupt_registry(self, registry: ProjectRegistry, paths: ConfigPaths) -> None:
        """Invalid JSON in the registry is a parse error."""
        paths.data_dir.mkdir(parents=True)
        paths.projects_file.write_text("{oops", encoding="utf-8")
        with pytest.raises(ParseError):
            registry.list_projects()


class TestAssignment:
    """Tests for profile assignment."""

    def test_assign_and_clear(
        self, registry: ProjectRegistry, project: Path, other_project: Path
    ) -> None:
        """Clearing a profile unassigns it from every project."""
        app = registry.register(project)
        web = registry.register(other_project)
        registry.assign_profile(app.id, "p1")
        registry.assign_profile(web.id, "p1")
        assert [p.id for p in registry.projects_for_profile("p1")] == [app.id, web.id]

        registry.clear_profile("p1")

        assert registry.projects_for_profile("p1") == []

    def test_assign_unknown_project(self, registry: ProjectRegistry) -> None:
        with pytest.raises(ProjectNotFoundError):
            registry.assign_profile("nope", "p1")


class TestLocalTools:
    """Tests for per-project local tools."""

    def test_add_and_remove(self, registry: ProjectRegistry, project: Path) -> None:
        """A local tool is stored on the project and can be removed."""
        info = registry.register(project)
        ref = ToolRef("deploy", ToolType.SKILL, Scope.user())

        assert registry.local_tool_add(info.id, ref).success
        assert registry.get(info.id).local_tools == [ref]

        assert registry.local_tool_remove(info.id, "DEPLOY", ToolType.SKILL).success
        assert registry.get(info.id).local_tools == []

    def test_duplicate_local_tool(self, registry: ProjectRegistry, project: Path) -> None:
        """Names compare case-insensitively within one tool type."""
        info = registry.register(project)
        registry.local_tool_add(info.id, ToolRef("deploy", ToolType.SKILL))

        duplicate = registry.local_tool_add(info.id, ToolRef("Deploy", ToolType.SKILL))
        other_kind = registry.local_tool_add(info.id, ToolRef("deploy", ToolType.COMMAND))

        assert not duplicate.success
        assert "already a local tool" in (duplicate.error or "")
        assert other_kind.success

    def test_remove_missing_local_tool(self, registry: ProjectRegistry, project: Path) -> None:
        info = registry.register(project)
        result = registry.local_tool_remove(info.id, "ghost", ToolType.AGENT)
        assert result.error == "agent 'ghost' is not a local tool of app"

    def test_dry_run(self, registry: ProjectRegistry, project: Path) -> None:
        """A dry run shows the registry diff without saving it."""
        info = registry.register(project)
        result = registry.local_tool_add(info.id, ToolRef("lint", ToolType.COMMAND), dry_run=True)
        assert result.success and result.dry_run
        assert '"lint"' in (result.diff or "")
        assert registry.get(info.id).local_tools == []
