"""The local marketplace that holds profiles exported as plugins.

Layout under ``<data_dir>/marketplace/``::

    .claude-plugin/marketplace.json     # one entry per exported profile
    plugins/<slug>/.claude-plugin/plugin.json
    plugins/<slug>/{skills,commands,agents}/...
    plugins/<slug>/.mcp.json
    plugins/<slug>/hooks/hooks.json

A profile plugin is enabled for a project (or the user) by two keys in the
target's ``settings.json``: ``enabledPlugins["<slug>@toolscope-profiles"]``
and ``extraKnownMarketplaces["toolscope-profiles"]``. The helpers here stage
those edits through a ``StagedFiles`` overlay so they can be part of any
action.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from toolscope.core.diff.staging import StagedFiles
from toolscope.core.jsondoc import ensure_path, get_path, load_staged, prune_path, save_staged
from toolscope.exceptions import ConfigOpError

PROFILE_MARKETPLACE = "toolscope-profiles"
PLUGIN_PREFIX = "toolscope-profile-"
PLUGIN_VERSION = "1.0.0"


def plugin_slug(profile_name: str) -> str:
    """Plugin directory name for a profile: lowercase, dash separated."""
    words = re.sub(r"[\s_-]+", "-", profile_name.strip().lower())
    cleaned = re.sub(r"[^a-z0-9-]", "", words).strip("-")
    return PLUGIN_PREFIX + (cleaned or "profile")


def plugin_id(slug: str) -> str:
    return f"{slug}@{PROFILE_MARKETPLACE}"


def plugin_dir(marketplace_dir: Path, slug: str) -> Path:
    return marketplace_dir / "plugins" / slug


def marketplace_file(marketplace_dir: Path) -> Path:
    return marketplace_dir / ".claude-plugin" / "marketplace.json"


def _entries(document: dict[str, Any], path: Path) -> list[Any]:
    plugins = document.setdefault("plugins", [])
    if not isinstance(plugins, list):
        raise ConfigOpError(f"{path}: 'plugins' must be a list")
    return plugins


def stage_publish(
    files: StagedFiles, marketplace_dir: Path, slug: str, manifest: dict[str, Any]
) -> None:
    """Add or replace the marketplace entry for ``slug``."""
    path = marketplace_file(marketplace_dir)
    document = load_staged(files, path) or {
        "name": PROFILE_MARKETPLACE,
        "description": "Profiles managed by toolscope",
        "owner": {"name": "toolscope"},
        "plugins": [],
    }
    plugins = _entries(document, path)
    plugins[:] = [p for p in plugins if not (isinstance(p, dict) and p.get("name") == slug)]
    plugins.append({**manifest, "source": f"./plugins/{slug}"})
    plugins.sort(key=lambda p: str(p.get("name", "")) if isinstance(p, dict) else "")
    save_staged(files, path, document)


def stage_unpublish(files: StagedFiles, marketplace_dir: Path, slug: str) -> None:
    """Delete the plugin directory of ``slug`` and its marketplace entry."""
    files.delete_tree(plugin_dir(marketplace_dir, slug))
    path = marketplace_file(marketplace_dir)
    document = load_staged(files, path)
    if document is None:
        return
    plugins = _entries(document, path)
    kept = [p for p in plugins if not (isinstance(p, dict) and p.get("name") == slug)]
    if len(kept) != len(plugins):
        plugins[:] = kept
        save_staged(files, path, document)


def stage_enable(
    files: StagedFiles, settings_file: Path, plugin: str, marketplace_dir: Path
) -> None:
    """Enable ``plugin`` in a settings file and register the marketplace."""
    settings = load_staged(files, settings_file) or {}
    ensure_path(settings, ("enabledPlugins",))[plugin] = True
    ensure_path(settings, ("extraKnownMarketplaces",))[PROFILE_MARKETPLACE] = {
        "source": {"source": "directory", "path": str(marketplace_dir)}
    }
    save_staged(files, settings_file, settings)


def is_enabled(files: StagedFiles, settings_file: Path, plugin: str) -> bool:
    settings = load_staged(files, settings_file)
    if settings is None:
        return False
    enabled = get_path(settings, ("enabledPlugins",))
    return bool(enabled and enabled.get(plugin))


def stage_disable(files: StagedFiles, settings_file: Path, plugin: str) -> bool:
    """Remove ``plugin`` from a settings file's ``enabledPlugins``.

    The marketplace registration is dropped too once no profile plugin is
    left enabled there. Returns whether the plugin was listed at all.
    """
    settings = load_staged(files, settings_file)
    if settings is None:
        return False
    enabled = get_path(settings, ("enabledPlugins",))
    if enabled is None or plugin not in enabled:
        return False
    del enabled[plugin]
    suffix = f"@{PROFILE_MARKETPLACE}"
    if not any(key.endswith(suffix) for key in enabled):
        known = get_path(settings, ("extraKnownMarketplaces",))
        if known is not None:
            known.pop(PROFILE_MARKETPLACE, None)
        prune_path(settings, ("extraKnownMarketplaces",))
    prune_path(settings, ("enabledPlugins",))
    save_staged(files, settings_file, settings)
    return True
