"""Tests for InventoryBuilder.

Verifies:
    - Scopes are merged and collisions computed across them.
    - Project order follows the request, duplicates collapse.
    - A project whose scan raises is recorded without losing the others.
    - Installed plugins are scanned; disabled plugins never win collisions.
"""

from __future__ import annotations

from pathlib import Path

from toolscope.config import ConfigPaths
from toolscope.core.scope import Scope, ScopeKind
from toolscope.discovery.inventory import InventoryBuilder
from toolscope.discovery.plugins import read_installed_plugins, split_plugin_id
from toolscope.discovery.scanner import ScopeScanner
from toolscope.parsers.base import ScanOutcome
from tests.helpers import write_json, write_skill


class FailingScanner(ScopeScanner):
    """Scanner that raises for one project root."""

    def __init__(self, paths: ConfigPaths, broken: Path) -> None:
        super().__init__(paths)
        self.broken = broken

    def scan(self, root: Path, scope: Scope) -> ScanOutcome:
        if root == self.broken and scope.kind is ScopeKind.PROJECT:
            raise OSError("disk on fire")
        return super().scan(root, scope)


def _install_plugin(paths: ConfigPaths, tmp_path: Path, plugin_id: str, **entry: str) -> Path:
    install = tmp_path / "plugins" / plugin_id.split("@")[0]
    install.mkdir(parents=True, exist_ok=True)
    write_json(
        paths.plugins_registry_file,
        {
            "version": 2,
            "plugins": {
                plugin_id: [{"scope": "user", "installPath": str(install), **entry}],
            },
        },
    )
    return install


class TestInventoryBuilder:
    """Tests for ``InventoryBuilder.build``."""

    def test_user_project_collision(self, paths: ConfigPaths, project: Path) -> None:
        """A skill in user and project scope collides; the project wins."""
        write_skill(paths.claude_dir / "skills", "deploy")
        write_skill(project / ".claude" / "skills", "deploy")

        inventory = InventoryBuilder(paths).build([project])

        assert inventory.collisions.total == 1
        collision = inventory.collisions.skills[0]
        assert collision.name == "deploy"
        assert collision.winner_scope == Scope.project()
        assert len(inventory.projects) == 1
        assert inventory.scan_errors == {}

    def test_same_skill_in_two_projects(
        self, paths: ConfigPaths, project: Path, other_project: Path
    ) -> None:
        """Two projects share the Project scope, so they do not collide."""
        write_skill(project / ".claude" / "skills", "deploy")
        write_skill(other_project / ".claude" / "skills", "deploy")

        inventory = InventoryBuilder(paths).build([project, other_project])

        assert inventory.collisions.total == 0

    def test_project_order_and_duplicates(
        self, paths: ConfigPaths, project: Path, other_project: Path
    ) -> None:
        """Projects keep request order and are scanned once."""
        inventory = InventoryBuilder(paths).build([other_project, project, other_project])
        assert [p.path for p in inventory.projects] == [other_project, project]

    def test_failed_project_scan(
        self, paths: ConfigPaths, project: Path, other_project: Path
    ) -> None:
        """One failing project yields a partial inventory with the error recorded."""
        write_skill(other_project / ".claude" / "skills", "lint")
        builder = InventoryBuilder(paths, scanner=FailingScanner(paths, project))

        inventory = builder.build([project, other_project])

        failed, ok = inventory.projects
        assert failed.error == "disk on fire"
        assert inventory.scan_errors == {str(project): "disk on fire"}
        assert [r.name for r in ok.records] == ["lint"]

    def test_plugin_collision(self, paths: ConfigPaths, project: Path, tmp_path: Path) -> None:
        """A plugin skill loses to the user definition of the same name."""
        install = _install_plugin(paths, tmp_path, "fmt@acme", version="1.0.0")
        write_skill(install / "skills", "deploy")
        write_skill(paths.claude_dir / "skills", "deploy")

        inventory = InventoryBuilder(paths).build([project])

        [plugin] = inventory.plugins.installed
        assert plugin.id == "fmt@acme"
        assert [r.name for r in plugin.records] == ["deploy"]
        collision = inventory.collisions.skills[0]
        assert collision.winner_scope == Scope.user()
        assert [o.scope for o in collision.occurrences] == [
            Scope.user(),
            Scope.plugin("fmt@acme"),
        ]

    def test_disabled_plugin_ignored_for_collisions(
        self, paths: ConfigPaths, tmp_path: Path
    ) -> None:
        """Plugins disabled in user settings do not take part in collisions."""
        install = _install_plugin(paths, tmp_path, "fmt@acme")
        write_skill(install / "skills", "deploy")
        write_skill(paths.claude_dir / "skills", "deploy")
        write_json(paths.user_settings_file, {"enabledPlugins": {"fmt@acme": False}})

        inventory = InventoryBuilder(paths).build([])

        assert inventory.plugins.installed[0].enabled is False
        assert inventory.collisions.total == 0

    def test_to_dict(self, paths: ConfigPaths, project: Path) -> None:
        """The snapshot serializes every section."""
        data = InventoryBuilder(paths).build([project]).to_dict()
        assert set(data) == {
            "user_scope",
            "managed_scope",
            "projects",
            "plugins",
            "collisions",
            "warnings",
            "scan_errors",
        }


class TestInstalledPlugins:
    """Tests for the installed plugin registry reader."""

    def test_project_install_filtered(self, paths: ConfigPaths, project: Path) -> None:
        """Project installs for projects outside the scan are left out."""
        write_json(
            paths.plugins_registry_file,
            {
                "plugins": {
                    "a@m": [
                        {
                            "scope": "project",
                            "projectPath": str(project),
                            "installPath": "/p/a",
                        }
                    ],
                    "b@m": {"scope": "project", "projectPath": "/elsewhere", "installPath": "/p/b"},
                }
            },
        )

        plugins, warnings = read_installed_plugins(paths, [project])

        assert [p.id for p in plugins] == ["a@m"]
        assert warnings == []

    def test_malformed_entry_warns(self, paths: ConfigPaths) -> None:
        """Entries without an install path are reported."""
        write_json(paths.plugins_registry_file, {"plugins": {"a@m": [{"scope": "user"}]}})
        plugins, warnings = read_installed_plugins(paths)
        assert plugins == []
        assert "malformed entry for a@m" in warnings[0].message

    def test_split_plugin_id(self) -> None:
        assert split_plugin_id("fmt@acme") == ("fmt", "acme")
        assert split_plugin_id("fmt") == ("fmt", "")
