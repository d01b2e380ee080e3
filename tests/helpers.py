"""Shared test helpers for building fake Claude Code configuration trees.

Each helper writes a minimal but realistic file in the layout Claude Code
uses, so tests can assemble user, project, local and plugin scopes under a
temporary directory.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any


def write_skill(
    skills_dir: Path,
    name: str,
    description: str = "A test skill",
    body: str = "Follow these steps.\n",
    dirname: str | None = None,
) -> Path:
    """Create ``<skills_dir>/<dirname>/SKILL.md`` and return the skill directory."""
    skill_dir = skills_dir / (dirname or name)
    skill_dir.mkdir(parents=True, exist_ok=True)
    (skill_dir / "SKILL.md").write_text(
        f"---\nname: {name}\ndescription: {description}\n---\n{body}",
        encoding="utf-8",
    )
    return skill_dir


def write_command(
    commands_dir: Path,
    name: str,
    description: str | None = None,
    body: str = "Review the diff.\n",
) -> Path:
    """Create ``<commands_dir>/<name>.md``, with frontmatter when described."""
    commands_dir.mkdir(parents=True, exist_ok=True)
    path = commands_dir / f"{name}.md"
    if description is None:
        path.write_text(body, encoding="utf-8")
    else:
        path.write_text(f"---\ndescription: {description}\n---\n{body}", encoding="utf-8")
    return path


def write_agent(
    agents_dir: Path,
    name: str,
    description: str = "A test agent",
    tools: str = "Read, Grep",
) -> Path:
    agents_dir.mkdir(parents=True, exist_ok=True)
    path = agents_dir / f"{name}.md"
    path.write_text(
        f"---\nname: {name}\ndescription: {description}\ntools: {tools}\n---\nYou review code.\n",
        encoding="utf-8",
    )
    return path


def write_json(path: Path, data: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return path


def read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def stdio_server(command: str = "npx", *args: str) -> dict[str, Any]:
    """A minimal stdio MCP server definition."""
    return {"command": command, "args": list(args)}


def hook_settings(event: str, matcher: str | None, command: str) -> dict[str, Any]:
    """A settings document declaring one hook."""
    entry: dict[str, Any] = {"hooks": [{"type": "command", "command": command}]}
    if matcher is not None:
        entry["matcher"] = matcher
    return {"hooks": {event: [entry]}}
