"""Data models for profiles, tool references and registered projects.

A ``Profile`` is a portable bundle of ``ToolRef`` values plus plugin
references and an optional CLAUDE.md overlay. A ``ToolRef`` either points at
a tool by name and scope (a bare reference) or, when ``source_ref`` is set,
refers to content captured into the profile's own storage:

- ``pin``: the profile owns a frozen copy.
- ``track``: the profile keeps the last-synced copy plus the origin path,
  so drift at the origin can be detected and pulled.

Serialization is deterministic: list-valued permission sets are emitted
sorted and an all-empty ``ToolPermissions`` is emitted as ``null``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from toolscope.core.scope import Scope
from toolscope.parsers.base import ToolKind

ToolType = ToolKind


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class SourceMode(str, Enum):
    """Provenance mode of captured tool content."""

    PIN = "pin"
    TRACK = "track"


class ClaudeMdMode(str, Enum):
    """How a profile's CLAUDE.md combines with a project's on install."""

    REPLACE = "replace"
    PREPEND = "prepend"
    APPEND = "append"


# ---------------------------------------------------------------------------
# Tool permissions
# ---------------------------------------------------------------------------

PERMISSION_FIELDS = ("allowed_directories", "allowed_tools", "disallowed_tools")


@dataclass(frozen=True)
class ToolPermissions:
    """Restrictions attached to a tool reference.

    An instance with all three sets empty means "no restrictions" and is
    always represented as ``None`` by ``normalize``.
    """

    allowed_directories: frozenset[str] = frozenset()
    allowed_tools: frozenset[str] = frozenset()
    disallowed_tools: frozenset[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not (self.allowed_directories or self.allowed_tools or self.disallowed_tools)

    @staticmethod
    def normalize(permissions: ToolPermissions | None) -> ToolPermissions | None:
        """Collapse an empty permission set to None."""
        if permissions is None or permissions.is_empty:
            return None
        return permissions

    @staticmethod
    def with_added(
        permissions: ToolPermissions | None, field_name: str, value: str
    ) -> ToolPermissions | None:
        """Return ``permissions`` with ``value`` added to ``field_name``."""
        if field_name not in PERMISSION_FIELDS:
            raise ValueError(f"unknown permission field: {field_name}")
        base = permissions or ToolPermissions()
        current: frozenset[str] = getattr(base, field_name)
        return ToolPermissions.normalize(replace(base, **{field_name: current | {value}}))

    @staticmethod
    def with_removed(
        permissions: ToolPermissions | None, field_name: str, value: str
    ) -> ToolPermissions | None:
        """Return ``permissions`` with ``value`` removed from ``field_name``."""
        if field_name not in PERMISSION_FIELDS:
            raise ValueError(f"unknown permission field: {field_name}")
        base = permissions or ToolPermissions()
        current: frozenset[str] = getattr(base, field_name)
        return ToolPermissions.normalize(replace(base, **{field_name: current - {value}}))

    def to_dict(self) -> dict[str, list[str]]:
        return {name: sorted(getattr(self, name)) for name in PERMISSION_FIELDS}

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ToolPermissions | None:
        if not data:
            return None
        return cls.normalize(
            cls(**{name: frozenset(data.get(name, [])) for name in PERMISSION_FIELDS})
        )


# ---------------------------------------------------------------------------
# Tool references
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SourceRef:
    """Provenance of captured content.

    Attributes:
        mode: ``pin`` or ``track``.
        origin_path: Where the content was captured from.
        source_hash: Integrity string of the content at last sync.
        synced_at: ISO-8601 time of the last capture or pull.
        origin_key: Where an MCP server sits inside its JSON file, as a
            key path; empty for other tool types.
    """

    mode: SourceMode
    origin_path: Path
    source_hash: str
    synced_at: str
    origin_key: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode.value,
            "origin_path": str(self.origin_path),
            "source_hash": self.source_hash,
            "synced_at": self.synced_at,
            "origin_key": list(self.origin_key),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SourceRef:
        return cls(
            mode=SourceMode(data.get("mode", "pin")),
            origin_path=Path(data["origin_path"]),
            source_hash=data.get("source_hash", ""),
            synced_at=data.get("synced_at", ""),
            origin_key=tuple(data.get("origin_key", [])),
        )


@dataclass(frozen=True)
class ToolRef:
    """A profile's or project's reference to one tool.

    Attributes:
        name: Tool name.
        tool_type: Tool kind.
        source_scope: Scope the tool is expected in, None for any scope.
        permissions: Optional restrictions, None when unrestricted.
        source_ref: Set when the content is captured into the profile.
    """

    name: str
    tool_type: ToolType
    source_scope: Scope | None = None
    permissions: ToolPermissions | None = None
    source_ref: SourceRef | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "permissions", ToolPermissions.normalize(self.permissions))

    @property
    def is_profile_sourced(self) -> bool:
        return self.source_ref is not None

    @property
    def key(self) -> tuple[str, ToolType]:
        """Identity used for de-duplication: case-folded name and type."""
        return (self.name.casefold(), self.tool_type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "tool_type": self.tool_type.value,
            "source_scope": self.source_scope.to_dict() if self.source_scope else None,
            "permissions": self.permissions.to_dict() if self.permissions else None,
            "source_ref": self.source_ref.to_dict() if self.source_ref else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolRef:
        scope = data.get("source_scope")
        source = data.get("source_ref")
        return cls(
            name=data["name"],
            tool_type=ToolType(data["tool_type"]),
            source_scope=Scope.from_dict(scope) if scope else None,
            permissions=ToolPermissions.from_dict(data.get("permissions")),
            source_ref=SourceRef.from_dict(source) if source else None,
        )


@dataclass(frozen=True)
class ToolSpec:
    """Selection of one tool to capture.

    ``origin`` names the project the tool is captured from. When it is
    None the tool is looked up in the source passed alongside the spec.
    """

    name: str
    tool_type: ToolType
    mode: SourceMode = SourceMode.PIN
    origin: Path | None = None


@dataclass(frozen=True)
class ProfilePluginRef:
    """A plugin a profile enables when installed."""

    id: str
    marketplace: str | None = None
    scope: str = "user"
    enabled: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "marketplace": self.marketplace,
            "scope": self.scope,
            "enabled": self.enabled,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProfilePluginRef:
        return cls(
            id=data["id"],
            marketplace=data.get("marketplace"),
            scope=data.get("scope", "user"),
            enabled=bool(data.get("enabled", True)),
        )


# ---------------------------------------------------------------------------
# Projects and profiles
# ---------------------------------------------------------------------------


def project_id_for(path: Path) -> str:
    """Stable project id derived from the resolved project path."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, path.resolve().as_uri()))


@dataclass
class ProjectInfo:
    """A registered (or discovered) project directory."""

    id: str
    name: str
    path: Path
    assigned_profile_id: str | None = None
    local_tools: list[ToolRef] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    @classmethod
    def for_path(cls, path: Path, name: str | None = None) -> ProjectInfo:
        resolved = path.resolve()
        return cls(id=project_id_for(resolved), name=name or resolved.name, path=resolved)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "path": str(self.path),
            "assigned_profile_id": self.assigned_profile_id,
            "local_tools": [t.to_dict() for t in self.local_tools],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProjectInfo:
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            path=Path(data["path"]),
            assigned_profile_id=data.get("assigned_profile_id"),
            local_tools=[ToolRef.from_dict(t) for t in data.get("local_tools", [])],
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


@dataclass
class Profile:
    """A named bundle of tool references usable across projects.

    ``assigned_projects`` is not persisted with the profile; the store fills
    it from the project registry on read.
    """

    id: str
    name: str
    description: str | None = None
    tool_refs: list[ToolRef] = field(default_factory=list)
    plugin_refs: list[ProfilePluginRef] = field(default_factory=list)
    has_claude_md: bool = False
    claude_md_mode: ClaudeMdMode = ClaudeMdMode.REPLACE
    assigned_projects: list[ProjectInfo] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now)
    updated_at: str = field(default_factory=utc_now)

    @classmethod
    def new(cls, name: str, description: str | None = None) -> Profile:
        return cls(id=str(uuid.uuid4()), name=name, description=description)

    def find_tool(self, name: str, tool_type: ToolType | None = None) -> int | None:
        """Index of the tool named ``name`` (case-insensitive), or None."""
        folded = name.casefold()
        for index, ref in enumerate(self.tool_refs):
            if ref.name.casefold() == folded and tool_type in (None, ref.tool_type):
                return index
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "tool_refs": [t.to_dict() for t in self.tool_refs],
            "plugin_refs": [p.to_dict() for p in self.plugin_refs],
            "has_claude_md": self.has_claude_md,
            "claude_md_mode": self.claude_md_mode.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Profile:
        return cls(
            id=data["id"],
            name=data["name"],
            description=data.get("description"),
            tool_refs=[ToolRef.from_dict(t) for t in data.get("tool_refs", [])],
            plugin_refs=[ProfilePluginRef.from_dict(p) for p in data.get("plugin_refs", [])],
            has_claude_md=bool(data.get("has_claude_md", False)),
            claude_md_mode=ClaudeMdMode(data.get("claude_md_mode", "replace")),
            created_at=data.get("created_at", ""),
            updated_at=data.get("updated_at", ""),
        )


@dataclass(frozen=True)
class ProfileSummary:
    """Listing entry for a profile."""

    id: str
    name: str
    description: str | None
    tool_count: int
    plugin_count: int
    assigned_count: int
    updated_at: str
