"""Installed plugin registry reader.

Claude Code records installed plugins in
``~/.claude/plugins/installed_plugins.json``::

    {
      "version": 2,
      "plugins": {
        "formatter@acme-market": [
          {"scope": "user", "installPath": "...", "version": "1.2.0",
           "installedAt": "...", "lastUpdated": "..."},
          {"scope": "project", "projectPath": "/code/app", "installPath": "..."}
        ]
      }
    }

Whether a plugin is enabled comes from ``enabledPlugins`` in the user's
settings; plugins not listed there are enabled. Project and local installs
are only reported for projects that are part of the current scan.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from toolscope.config import ConfigPaths
from toolscope.discovery.models import InstalledPlugin
from toolscope.exceptions import ParseError
from toolscope.parsers.base import ScanWarning
from toolscope.parsers.mcp_config import load_json_document
from toolscope.parsers.settings import enabled_plugins

logger = logging.getLogger(__name__)


def split_plugin_id(plugin_id: str) -> tuple[str, str]:
    """Split ``name@marketplace``; the marketplace is empty when absent."""
    name, _, marketplace = plugin_id.partition("@")
    return name, marketplace


def _load(path: Path, warnings: list[ScanWarning]) -> dict[str, Any] | None:
    try:
        return load_json_document(path)
    except (OSError, UnicodeDecodeError) as exc:
        warnings.append(ScanWarning(path, f"cannot read: {exc}", "ScanIoError"))
    except ParseError as exc:
        warnings.append(ScanWarning(path, str(exc), "ParseError"))
    return None


def read_installed_plugins(
    paths: ConfigPaths,
    project_paths: list[Path] | None = None,
) -> tuple[list[InstalledPlugin], list[ScanWarning]]:
    """List installed plugins relevant to the given projects.

    Args:
        paths: Resolved configuration paths.
        project_paths: Projects in the current scan. Project and local
            installs for other projects are left out.

    Returns:
        ``(plugins, warnings)``. Plugins are sorted by id, then scope.
    """
    warnings: list[ScanWarning] = []
    registry = _load(paths.plugins_registry_file, warnings)
    if not registry:
        return [], warnings

    plugins_map = registry.get("plugins", {})
    if not isinstance(plugins_map, dict):
        warnings.append(
            ScanWarning(paths.plugins_registry_file, "'plugins' must be an object")
        )
        return [], warnings

    settings = _load(paths.user_settings_file, warnings)
    enabled = enabled_plugins(settings)
    wanted = {p.resolve() for p in project_paths or []}

    installed: list[InstalledPlugin] = []
    for plugin_id in sorted(plugins_map):
        entries = plugins_map[plugin_id]
        if isinstance(entries, dict):
            entries = [entries]
        if not isinstance(entries, list):
            warnings.append(
                ScanWarning(paths.plugins_registry_file, f"malformed entry for {plugin_id}")
            )
            continue
        name, marketplace = split_plugin_id(plugin_id)
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("installPath"):
                warnings.append(
                    ScanWarning(paths.plugins_registry_file, f"malformed entry for {plugin_id}")
                )
                continue
            scope = str(entry.get("scope", "user"))
            project_path = Path(entry["projectPath"]) if entry.get("projectPath") else None
            if scope != "user" and (project_path is None or project_path.resolve() not in wanted):
                continue
            installed.append(
                InstalledPlugin(
                    id=plugin_id,
                    name=name,
                    marketplace=marketplace,
                    version=str(entry.get("version", "unknown")),
                    scope=scope,
                    install_path=Path(entry["installPath"]),
                    enabled=enabled.get(plugin_id, True),
                    project_path=project_path,
                    installed_at=entry.get("installedAt"),
                    last_updated=entry.get("lastUpdated"),
                )
            )
    logger.debug("Found %d installed plugin(s)", len(installed))
    return sorted(installed, key=lambda p: (p.id, p.scope)), warnings
