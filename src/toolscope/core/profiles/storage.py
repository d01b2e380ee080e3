"""On-disk layout of a profile and its captured content.

Each profile owns one directory under ``<data_dir>/profiles/<id>/``::

    profile.json
    CLAUDE.md
    skills/<name>/...          copy of the skill directory
    commands/<name>.md
    agents/<name>.md
    mcp-servers/<name>.json    the server definition
    hooks/<name>.json          {"event": ..., "entries": [...]}

Names that are not safe as file names (hook names such as
``PreToolUse:Edit|Write``) are rewritten with a short digest suffix so two
different names never share a file.

Content is always staged through ``StagedFiles`` so captures and installs
show up in the diff preview before anything is written.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from pathlib import Path
from typing import Any

from toolscope.config import McpSource
from toolscope.core.diff.staging import StagedFiles, normalize_path
from toolscope.core.jsondoc import dumps
from toolscope.core.scope import Scope
from toolscope.exceptions import ConfigOpError, ItemNotFoundError
from toolscope.parsers.base import ScanOutcome, ToolKind, ToolRecord
from toolscope.parsers.markdown_tools import AgentParser, CommandParser, SkillParser
from toolscope.parsers.mcp_config import McpConfigParser
from toolscope.parsers.settings import SettingsHooksParser

logger = logging.getLogger(__name__)

PROFILE_FILE = "profile.json"
CLAUDE_MD = "CLAUDE.md"

CONTENT_DIRS: dict[ToolKind, str] = {
    ToolKind.SKILL: "skills",
    ToolKind.COMMAND: "commands",
    ToolKind.AGENT: "agents",
    ToolKind.MCP: "mcp-servers",
    ToolKind.HOOK: "hooks",
}

_UNSAFE = re.compile(r"[^A-Za-z0-9._-]")


def safe_filename(name: str) -> str:
    """File-system safe, collision-free rendering of a tool name."""
    cleaned = _UNSAFE.sub("_", name)
    if cleaned == name and not name.startswith("."):
        return name
    digest = hashlib.sha256(name.encode("utf-8")).hexdigest()[:8]
    return f"{cleaned.lstrip('.')}-{digest}"


def content_path(profile_dir: Path, name: str, tool_type: ToolKind) -> Path:
    """Where the captured content of one tool lives.

    Skills map to a directory, every other type to a single file.
    """
    base = profile_dir / CONTENT_DIRS[tool_type]
    filename = safe_filename(name)
    if tool_type is ToolKind.SKILL:
        return base / filename
    if tool_type in (ToolKind.COMMAND, ToolKind.AGENT):
        return base / f"{filename}.md"
    return base / f"{filename}.json"


# ---------------------------------------------------------------------------
# Locating origin content
# ---------------------------------------------------------------------------


def _parse_origin(
    tool_type: ToolKind, origin: Path, origin_key: tuple[str, ...], scope: Scope
) -> ScanOutcome:
    if tool_type is ToolKind.SKILL:
        return SkillParser().parse(origin.parent, scope)
    if tool_type is ToolKind.COMMAND:
        return CommandParser().parse(origin.parent, scope)
    if tool_type is ToolKind.AGENT:
        return AgentParser().parse(origin.parent, scope)
    if tool_type is ToolKind.MCP:
        return McpConfigParser().parse_source(McpSource(origin, origin_key), scope)
    return SettingsHooksParser().parse(origin, scope)


def locate_record(
    name: str,
    tool_type: ToolKind,
    origin: Path,
    origin_key: tuple[str, ...] = (),
    scope: Scope | None = None,
) -> ToolRecord | None:
    """Re-read one tool from its origin as it is on disk right now.

    File-based tools (skills, commands, agents) are matched by path; MCP
    servers and hooks, which share a file with others, by name.

    Returns:
        The current record, or None if the origin no longer holds the tool.
    """
    outcome = _parse_origin(tool_type, origin, origin_key, scope or Scope.user())
    for warning in outcome.warnings:
        logger.debug("While re-reading %s: %s", origin, warning)
    for record in outcome.records:
        if tool_type in (ToolKind.MCP, ToolKind.HOOK):
            if record.name == name:
                return record
        elif normalize_path(record.path) == normalize_path(origin):
            return record
    return None


# ---------------------------------------------------------------------------
# Staging captured content
# ---------------------------------------------------------------------------


def _hook_document(record: ToolRecord) -> dict[str, Any]:
    return {
        "event": record.metadata.get("trigger"),
        "matcher": record.metadata.get("matcher"),
        "entries": record.metadata.get("definition", []),
    }


def stage_content(files: StagedFiles, profile_dir: Path, record: ToolRecord) -> None:
    """Copy the content of ``record`` into the profile's storage.

    A skill directory is mirrored file by file; files that no longer exist
    in the origin are removed from the copy.

    Raises:
        ItemNotFoundError: If the origin file vanished while staging.
    """
    target = content_path(profile_dir, record.name, record.kind)
    if record.kind is ToolKind.SKILL:
        origin = normalize_path(record.path)
        copied: set[Path] = set()
        for source_file in files.files_under(origin):
            data = files.read_bytes(source_file)
            if data is None:
                continue
            destination = normalize_path(target / source_file.relative_to(origin))
            files.write_bytes(destination, data)
            copied.add(destination)
        for stale in files.files_under(target):
            if stale not in copied:
                files.delete(stale)
        return

    if record.kind in (ToolKind.COMMAND, ToolKind.AGENT):
        data = files.read_bytes(record.path)
        if data is None:
            raise ItemNotFoundError(f"{record.path} no longer exists")
        files.write_bytes(target, data)
        return

    if record.kind is ToolKind.MCP:
        files.write_text(target, dumps(record.metadata.get("config", {})))
        return

    files.write_text(target, dumps(_hook_document(record)))


def stage_remove_content(
    files: StagedFiles, profile_dir: Path, name: str, tool_type: ToolKind
) -> None:
    """Stage deletion of a tool's captured content, if there is any."""
    target = content_path(profile_dir, name, tool_type)
    if tool_type is ToolKind.SKILL:
        files.delete_tree(target)
    elif files.exists(target):
        files.delete(target)


# ---------------------------------------------------------------------------
# Reading captured content
# ---------------------------------------------------------------------------


def _load_json(files: StagedFiles, path: Path) -> dict[str, Any]:
    text = files.read_text(path)
    if text is None:
        raise ItemNotFoundError(f"captured content {path} is missing")
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigOpError(f"captured content {path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigOpError(f"captured content {path} must be a JSON object")
    return data


def read_mcp_config(files: StagedFiles, profile_dir: Path, name: str) -> dict[str, Any]:
    return _load_json(files, content_path(profile_dir, name, ToolKind.MCP))


def read_hook(
    files: StagedFiles, profile_dir: Path, name: str
) -> tuple[str, list[dict[str, Any]]]:
    """Return ``(event, entries)`` of a captured hook."""
    document = _load_json(files, content_path(profile_dir, name, ToolKind.HOOK))
    event = document.get("event")
    entries = document.get("entries", [])
    if not isinstance(event, str) or not isinstance(entries, list):
        raise ConfigOpError(f"captured hook '{name}' is malformed")
    return event, entries


def captured_files(
    files: StagedFiles, profile_dir: Path, name: str, tool_type: ToolKind
) -> list[tuple[str, bytes]]:
    """Relative paths and bytes of a captured skill, command or agent.

    Commands and agents yield one entry named ``<name>.md``; skills yield
    every file of the skill directory relative to it.

    Raises:
        ItemNotFoundError: If no content was captured.
    """
    target = normalize_path(content_path(profile_dir, name, tool_type))
    if tool_type is ToolKind.SKILL:
        found = []
        for path in files.files_under(target):
            data = files.read_bytes(path)
            if data is not None:
                found.append((path.relative_to(target).as_posix(), data))
        if not found:
            raise ItemNotFoundError(f"captured skill '{name}' is missing")
        return found
    data = files.read_bytes(target)
    if data is None:
        raise ItemNotFoundError(f"captured {tool_type.value} '{name}' is missing")
    return [(f"{safe_filename(name)}.md", data)]
