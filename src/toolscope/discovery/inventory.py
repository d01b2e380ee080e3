"""Inventory builder: scan every scope in parallel and merge the results.

Each scope scan is independent, read-only I/O, so the builder fans the scans
out over a thread pool and fans the results back in once all of them have
finished. Results are keyed by scope identity (``("project", path)``,
``("plugin", index)`` ...) and assembled in request order, so the output
never depends on which scan finished first.

A project whose scan raises is recorded on its ``ProjectScope.error`` and in
``Inventory.scan_errors``; the other scans are unaffected and the caller gets
a partial inventory.
"""

from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Callable, Hashable

from toolscope.config import ConfigPaths
from toolscope.core.collision import detect_collisions
from toolscope.core.scope import Scope
from toolscope.discovery.models import (
    Inventory,
    ManagedScope,
    PluginInventory,
    ProjectScope,
    UserScope,
)
from toolscope.discovery.plugins import read_installed_plugins
from toolscope.discovery.scanner import ScopeScanner, git_info
from toolscope.parsers.base import ScanOutcome

logger = logging.getLogger(__name__)


class InventoryBuilder:
    """Builds an ``Inventory`` from user, managed, project and plugin scopes.

    Usage::

        builder = InventoryBuilder(ConfigPaths.from_env())
        inventory = builder.build([Path("/code/app"), Path("/code/api")])
        for collision in inventory.collisions.skills:
            print(collision.name, collision.winner_scope)
    """

    def __init__(
        self,
        paths: ConfigPaths,
        scanner: ScopeScanner | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.paths = paths
        self.scanner = scanner or ScopeScanner(paths)
        self.max_workers = max_workers or paths.scan_workers

    def _scan_project(self, path: Path) -> ProjectScope:
        project = ProjectScope(path=path, name=path.name)
        project.outcome = self.scanner.scan(path, Scope.project())
        project.local = self.scanner.scan(path, Scope.local())
        project.git = git_info(path)
        project.has_claude_md = (path / "CLAUDE.md").is_file()
        return project

    def build(
        self,
        project_paths: list[Path] | None = None,
        include_managed: bool = True,
        include_plugins: bool = True,
    ) -> Inventory:
        """Scan all requested scopes and return one snapshot.

        Args:
            project_paths: Project roots to include, in display order.
                Duplicates (after resolving) are scanned once.
            include_managed: Whether to scan the managed directory.
            include_plugins: Whether to scan installed plugins.

        Returns:
            The merged inventory with collisions computed.
        """
        projects = list(dict.fromkeys(p.resolve() for p in project_paths or []))

        warnings = []
        plugins = []
        if include_plugins:
            plugins, warnings = read_installed_plugins(self.paths, projects)

        tasks: dict[Hashable, Callable[[], Any]] = {
            ("user",): lambda: self.scanner.scan(self.paths.home, Scope.user()),
        }
        if include_managed:
            tasks[("managed",)] = lambda: self.scanner.scan(
                self.paths.managed_dir, Scope.managed()
            )
        for path in projects:
            tasks[("project", path)] = lambda path=path: self._scan_project(path)
        for index, plugin in enumerate(plugins):
            tasks[("plugin", index)] = lambda plugin=plugin: self.scanner.scan(
                plugin.install_path, Scope.plugin(plugin.id)
            )

        results, errors = self._run_all(tasks)

        user_outcome = results.get(("user",), ScanOutcome())
        inventory = Inventory(user_scope=UserScope(path=self.paths.home, outcome=user_outcome))
        if ("user",) in errors:
            inventory.scan_errors["user"] = errors[("user",)]
        if include_managed:
            inventory.managed_scope = ManagedScope(
                path=self.paths.managed_dir,
                outcome=results.get(("managed",), ScanOutcome()),
            )
            if ("managed",) in errors:
                inventory.scan_errors["managed"] = errors[("managed",)]

        for path in projects:
            key = ("project", path)
            if key in errors:
                project = ProjectScope(path=path, name=path.name, error=errors[key])
                inventory.scan_errors[str(path)] = errors[key]
            else:
                project = results[key]
            inventory.projects.append(project)

        for index, plugin in enumerate(plugins):
            key = ("plugin", index)
            if key in errors:
                inventory.scan_errors[f"plugin:{plugin.id}"] = errors[key]
            else:
                plugin.outcome = results[key]
        inventory.plugins = PluginInventory(installed=plugins)

        inventory.warnings.extend(warnings)
        inventory.warnings.extend(inventory.user_scope.warnings)
        if inventory.managed_scope is not None:
            inventory.warnings.extend(inventory.managed_scope.warnings)
        for project in inventory.projects:
            inventory.warnings.extend(project.outcome.warnings + project.local.warnings)
        for plugin in plugins:
            inventory.warnings.extend(plugin.warnings)

        inventory.collisions = detect_collisions(inventory.iter_records())
        logger.debug(
            "Inventory built: %d project(s), %d plugin(s), %d collision(s)",
            len(inventory.projects),
            len(plugins),
            inventory.collisions.total,
        )
        return inventory

    def _run_all(
        self, tasks: dict[Hashable, Callable[[], Any]]
    ) -> tuple[dict[Hashable, Any], dict[Hashable, str]]:
        results: dict[Hashable, Any] = {}
        errors: dict[Hashable, str] = {}
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures: dict[Future[Any], Hashable] = {
                executor.submit(task): key for key, task in tasks.items()
            }
            for future in as_completed(futures):
                key = futures[future]
                try:
                    results[key] = future.result()
                except Exception as exc:  # recorded per scope
                    logger.warning("Scan of %s failed: %s", key, exc, exc_info=True)
                    errors[key] = str(exc) or exc.__class__.__name__
        return results, errors
