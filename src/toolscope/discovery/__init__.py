"""Scope scanning and inventory building.

Public API::

    from toolscope.discovery import InventoryBuilder

    inventory = InventoryBuilder(ConfigPaths.from_env()).build([Path(".")])
    for collision in inventory.collisions.skills:
        print(collision.name, collision.winner_scope)
"""

from __future__ import annotations

from toolscope.discovery.inventory import InventoryBuilder
from toolscope.discovery.models import (
    GitInfo,
    InstalledPlugin,
    Inventory,
    ManagedScope,
    PluginInventory,
    ProjectScope,
    UserScope,
)
from toolscope.discovery.scanner import ScopeScanner, discover_projects, git_info

__all__ = [
    "GitInfo",
    "InstalledPlugin",
    "Inventory",
    "InventoryBuilder",
    "ManagedScope",
    "PluginInventory",
    "ProjectScope",
    "ScopeScanner",
    "UserScope",
    "discover_projects",
    "git_info",
]
