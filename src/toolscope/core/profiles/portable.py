"""Exporting profiles to a portable file and importing them back.

An export carries references only, never captured content or local paths,
so it can be handed to another machine::

    {
      "version": 1,
      "name": "web",
      "description": "Frontend tooling",
      "tool_refs": [
        {"name": "lint", "tool_type": "skill",
         "permissions": {"allowed_tools": ["Read"], "disallowed_tools": []}}
      ],
      "plugin_refs": [{"id": "fmt@tools", "marketplace": "tools", ...}],
      "claude_md": "# Web rules\\n",
      "claude_md_mode": "append",
      "created_at": "...",
      "exported_at": "..."
    }

Allowed directories are dropped from permissions. On import every tool
becomes a bare reference in a new profile with a new id; entries of an
unknown tool type are skipped.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from toolscope.core.diff.engine import Action
from toolscope.core.diff.models import OperationResult
from toolscope.core.diff.staging import StagedFiles
from toolscope.core.jsondoc import dumps
from toolscope.core.mcp_ops import validate_name
from toolscope.core.profiles.models import (
    ClaudeMdMode,
    Profile,
    ProfilePluginRef,
    ToolPermissions,
    ToolRef,
    ToolType,
    utc_now,
)
from toolscope.core.profiles.storage import CLAUDE_MD
from toolscope.core.profiles.store import EditProfile, ProfileStore
from toolscope.exceptions import ProfileError, ValidationError

logger = logging.getLogger(__name__)

EXPORT_VERSION = 1
EXPORT_SUFFIX = ".toolscope-profile.json"


@dataclass(frozen=True)
class ExportedTool:
    name: str
    tool_type: str
    allowed_tools: tuple[str, ...] = ()
    disallowed_tools: tuple[str, ...] = ()

    @classmethod
    def from_ref(cls, ref: ToolRef) -> ExportedTool:
        permissions = ref.permissions or ToolPermissions()
        return cls(
            ref.name,
            ref.tool_type.value,
            tuple(sorted(permissions.allowed_tools)),
            tuple(sorted(permissions.disallowed_tools)),
        )

    def to_ref(self) -> ToolRef | None:
        """The bare reference to import, None for an unknown tool type."""
        try:
            tool_type = ToolType(self.tool_type.lower())
        except ValueError:
            return None
        permissions = ToolPermissions(
            allowed_tools=frozenset(self.allowed_tools),
            disallowed_tools=frozenset(self.disallowed_tools),
        )
        return ToolRef(self.name, tool_type, permissions=permissions)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"name": self.name, "tool_type": self.tool_type}
        if self.allowed_tools or self.disallowed_tools:
            data["permissions"] = {
                "allowed_tools": list(self.allowed_tools),
                "disallowed_tools": list(self.disallowed_tools),
            }
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExportedTool:
        permissions = data.get("permissions") or {}
        return cls(
            name=data["name"],
            tool_type=str(data["tool_type"]),
            allowed_tools=tuple(permissions.get("allowed_tools", [])),
            disallowed_tools=tuple(permissions.get("disallowed_tools", [])),
        )


@dataclass
class ProfileExport:
    """The portable form of a profile."""

    name: str
    description: str | None = None
    tools: list[ExportedTool] = field(default_factory=list)
    plugin_refs: list[ProfilePluginRef] = field(default_factory=list)
    claude_md: str | None = None
    claude_md_mode: ClaudeMdMode = ClaudeMdMode.REPLACE
    created_at: str = ""
    exported_at: str = field(default_factory=utc_now)
    version: int = EXPORT_VERSION

    @classmethod
    def from_profile(cls, profile: Profile, claude_md: str | None) -> ProfileExport:
        return cls(
            name=profile.name,
            description=profile.description,
            tools=[ExportedTool.from_ref(ref) for ref in profile.tool_refs],
            plugin_refs=list(profile.plugin_refs),
            claude_md=claude_md if profile.has_claude_md else None,
            claude_md_mode=profile.claude_md_mode,
            created_at=profile.created_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "name": self.name,
            "description": self.description,
            "tool_refs": [t.to_dict() for t in self.tools],
            "plugin_refs": [p.to_dict() for p in self.plugin_refs],
            "claude_md": self.claude_md,
            "claude_md_mode": self.claude_md_mode.value,
            "created_at": self.created_at,
            "exported_at": self.exported_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProfileExport:
        return cls(
            version=int(data["version"]),
            name=data["name"],
            description=data.get("description"),
            tools=[ExportedTool.from_dict(t) for t in data.get("tool_refs", [])],
            plugin_refs=[ProfilePluginRef.from_dict(p) for p in data.get("plugin_refs", [])],
            claude_md=data.get("claude_md"),
            claude_md_mode=ClaudeMdMode(data.get("claude_md_mode", "replace")),
            created_at=data.get("created_at", ""),
            exported_at=data.get("exported_at", ""),
        )


class WriteProfileExport(Action):
    """Write one ``ProfileExport`` as JSON."""

    def __init__(self, export: ProfileExport, output: Path) -> None:
        self.export = export
        self.output = output

    def describe(self) -> str:
        return f"Export profile '{self.export.name}' to {self.output}"

    def stage(self, files: StagedFiles) -> None:
        files.write_text(self.output, dumps(self.export.to_dict()))


def export_profile(
    store: ProfileStore, profile_id: str, output: Path, dry_run: bool = False
) -> OperationResult:
    """Write a profile's portable form to ``output``.

    Raises:
        ProfileNotFoundError: If the profile does not exist.
    """
    profile = store.get(profile_id)
    export = ProfileExport.from_profile(profile, store.read_claude_md(profile.id))
    result = store.engine.run(WriteProfileExport(export, output.resolve()), dry_run)
    if result.success and not dry_run:
        logger.info("Exported profile %s to %s", profile.name, output)
    return result


def read_export(path: Path) -> ProfileExport:
    """Parse an export file.

    Raises:
        ProfileError: If the file cannot be read, is malformed, or was
            written by a newer format version.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        raise ProfileError(f"cannot read {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise ProfileError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ProfileError(f"{path} must contain a JSON object")
    try:
        export = ProfileExport.from_dict(data)
    except (KeyError, TypeError, ValueError) as exc:
        raise ProfileError(f"{path} is not a profile export: {exc}") from exc
    if export.version > EXPORT_VERSION:
        raise ProfileError(
            f"{path}: unsupported export format version {export.version} "
            f"(newest supported is {EXPORT_VERSION})"
        )
    return export


@dataclass(frozen=True)
class ImportPreview:
    """What ``import_profile`` would create from a file.

    Attributes:
        name: Profile name in the file.
        description: Profile description.
        tool_count: Tools that would be imported.
        skipped: Tools of an unknown type, as ``type:name``.
        plugin_count: Plugin references.
        has_claude_md: Whether the file carries a CLAUDE.md overlay.
        version: Format version of the file.
        created_at: When the profile was first created.
        exported_at: When the file was written.
        name_taken: Whether a profile with this name already exists.
    """

    name: str
    description: str | None
    tool_count: int
    skipped: tuple[str, ...]
    plugin_count: int
    has_claude_md: bool
    version: int
    created_at: str
    exported_at: str
    name_taken: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "tool_count": self.tool_count,
            "skipped": list(self.skipped),
            "plugin_count": self.plugin_count,
            "has_claude_md": self.has_claude_md,
            "version": self.version,
            "created_at": self.created_at,
            "exported_at": self.exported_at,
            "name_taken": self.name_taken,
        }


def preview_import(store: ProfileStore, path: Path) -> ImportPreview:
    """Describe an export file without importing it."""
    export = read_export(path)
    refs = [t.to_ref() for t in export.tools]
    return ImportPreview(
        name=export.name,
        description=export.description,
        tool_count=sum(1 for ref in refs if ref is not None),
        skipped=tuple(
            f"{t.tool_type}:{t.name}" for t, ref in zip(export.tools, refs) if ref is None
        ),
        plugin_count=len(export.plugin_refs),
        has_claude_md=export.claude_md is not None,
        version=export.version,
        created_at=export.created_at,
        exported_at=export.exported_at,
        name_taken=store.find_by_name(export.name) is not None,
    )


def import_profile(
    store: ProfileStore, path: Path, name: str | None = None, dry_run: bool = False
) -> tuple[Profile, OperationResult]:
    """Create a new profile from an export file.

    Args:
        store: Target store.
        path: Export file.
        name: Name for the new profile; the file's name when None.
        dry_run: Only preview the change.

    Returns:
        The profile as it was (or, with ``dry_run``, would be) created, and
        the result of the change.

    Raises:
        ProfileError: If the file is unusable or the name is invalid or
            already taken.
    """
    export = read_export(path)
    final_name = name or export.name
    try:
        validate_name(final_name, "profile name")
    except ValidationError as exc:
        raise ProfileError(str(exc)) from exc
    if store.find_by_name(final_name) is not None:
        raise ProfileError(f"a profile named '{final_name}' already exists")

    profile = Profile.new(final_name, export.description)
    for tool in export.tools:
        ref = tool.to_ref()
        if ref is None:
            logger.warning("Skipping %s '%s': unknown tool type", tool.tool_type, tool.name)
        elif profile.find_tool(ref.name, ref.tool_type) is None:
            profile.tool_refs.append(ref)
    profile.plugin_refs = list(export.plugin_refs)
    profile.claude_md_mode = export.claude_md_mode
    profile.has_claude_md = export.claude_md is not None

    profile_dir = store.profile_dir(profile.id)

    def write_claude_md(created: Profile, files: StagedFiles, now: str) -> None:
        if export.claude_md is not None:
            files.write_text(profile_dir / CLAUDE_MD, export.claude_md)

    action = EditProfile(
        profile_dir,
        profile.id,
        f"Import profile '{final_name}' from {path}",
        write_claude_md,
        initial=profile,
    )
    result = store.engine.run(action, dry_run)
    if not result.success:
        raise ProfileError(result.error or action.describe())
    if not dry_run:
        logger.info("Imported profile %s (%s) from %s", final_name, profile.id, path)
    return profile, result
