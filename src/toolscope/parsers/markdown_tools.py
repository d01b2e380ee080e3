"""Parsers for Markdown tool definitions: skills, agents and commands.

Claude Code keeps these as Markdown files with YAML frontmatter:

- **Skills** are directories ``<skills_dir>/<dir>/SKILL.md``. The frontmatter
  must declare ``name`` and ``description``. Any other files in the
  directory belong to the skill and are covered by its integrity hash.
- **Agents** are ``<agents_dir>/*.md`` files whose frontmatter must declare
  ``name`` and ``description``.
- **Commands** are ``<commands_dir>/*.md`` files. The command name is the
  file stem; frontmatter is optional.

Frontmatter keys are kebab-case (``user-invocable``, ``allowed-tools``,
``permission-mode``). List-valued keys accept YAML lists or comma-separated
strings.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from toolscope.core.integrity import compute_integrity, hash_directory
from toolscope.core.scope import Scope
from toolscope.exceptions import ParseError
from toolscope.parsers.base import ScanOutcome, ToolFileParser, ToolKind, ToolRecord
from toolscope.parsers.frontmatter import split_frontmatter, string_list

logger = logging.getLogger(__name__)

SKILL_FILE = "SKILL.md"


def _required(frontmatter: dict[str, Any] | None, key: str) -> str:
    if frontmatter is None:
        raise ParseError("missing YAML frontmatter")
    value = frontmatter.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ParseError(f"frontmatter is missing required field '{key}'")
    return value.strip()


def _optional_str(frontmatter: dict[str, Any], key: str) -> str | None:
    value = frontmatter.get(key)
    return str(value) if value is not None else None


def _list_markdown(directory: Path, outcome: ScanOutcome) -> list[Path]:
    try:
        return sorted(p for p in directory.glob("*.md") if p.is_file())
    except OSError as exc:
        outcome.warn_io(directory, exc)
        return []


class SkillParser(ToolFileParser):
    """Parser for skill directories containing ``SKILL.md``."""

    kind = ToolKind.SKILL

    def parse(self, path: Path, scope: Scope) -> ScanOutcome:
        outcome = ScanOutcome()
        if not path.is_dir():
            return outcome
        try:
            entries = sorted(p for p in path.iterdir() if p.is_dir())
        except OSError as exc:
            outcome.warn_io(path, exc)
            return outcome

        for skill_dir in entries:
            skill_file = skill_dir / SKILL_FILE
            if not skill_file.is_file():
                continue
            record = self._parse_skill(skill_dir, skill_file, scope, outcome)
            if record is not None:
                outcome.records.append(record)
        return outcome

    def _parse_skill(
        self, skill_dir: Path, skill_file: Path, scope: Scope, outcome: ScanOutcome
    ) -> ToolRecord | None:
        try:
            text = skill_file.read_text(encoding="utf-8")
            digest = hash_directory(skill_dir)
        except (OSError, UnicodeDecodeError) as exc:
            outcome.warn_io(skill_file, exc)
            return None

        try:
            frontmatter, _ = split_frontmatter(text)
            name = _required(frontmatter, "name")
            description = _required(frontmatter, "description")
        except ParseError as exc:
            outcome.warn_parse(skill_file, str(exc))
            return None

        frontmatter = frontmatter or {}
        metadata = {
            "user_invocable": bool(frontmatter.get("user-invocable", True)),
            "disable_model_invocation": bool(
                frontmatter.get("disable-model-invocation", False)
            ),
            "allowed_tools": string_list(frontmatter.get("allowed-tools")),
            "model": _optional_str(frontmatter, "model"),
            "context": _optional_str(frontmatter, "context"),
            "agent": _optional_str(frontmatter, "agent"),
        }
        return ToolRecord(
            name=name,
            kind=ToolKind.SKILL,
            scope=scope,
            path=skill_dir,
            description=description,
            metadata=metadata,
            sha256=digest,
            size=len(text.encode("utf-8")),
        )


class AgentParser(ToolFileParser):
    """Parser for subagent definitions (``agents/*.md``)."""

    kind = ToolKind.AGENT

    def parse(self, path: Path, scope: Scope) -> ScanOutcome:
        outcome = ScanOutcome()
        if not path.is_dir():
            return outcome
        for md_file in _list_markdown(path, outcome):
            try:
                raw = md_file.read_bytes()
                text = raw.decode("utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                outcome.warn_io(md_file, exc)
                continue
            try:
                frontmatter, _ = split_frontmatter(text)
                name = _required(frontmatter, "name")
                description = _required(frontmatter, "description")
            except ParseError as exc:
                outcome.warn_parse(md_file, str(exc))
                continue
            frontmatter = frontmatter or {}
            outcome.records.append(
                ToolRecord(
                    name=name,
                    kind=ToolKind.AGENT,
                    scope=scope,
                    path=md_file,
                    description=description,
                    metadata={
                        "tools": string_list(frontmatter.get("tools")),
                        "model": _optional_str(frontmatter, "model"),
                        "permission_mode": str(
                            frontmatter.get("permission-mode", "default")
                        ),
                        "skills": string_list(frontmatter.get("skills")),
                    },
                    sha256=compute_integrity(raw),
                    size=len(raw),
                )
            )
        return outcome


class CommandParser(ToolFileParser):
    """Parser for slash commands (``commands/*.md``).

    The command name is always the file stem. A command without
    frontmatter is valid; a command with unparseable frontmatter is skipped.
    """

    kind = ToolKind.COMMAND

    def parse(self, path: Path, scope: Scope) -> ScanOutcome:
        outcome = ScanOutcome()
        if not path.is_dir():
            return outcome
        for md_file in _list_markdown(path, outcome):
            try:
                raw = md_file.read_bytes()
                text = raw.decode("utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                outcome.warn_io(md_file, exc)
                continue
            try:
                frontmatter, _ = split_frontmatter(text)
            except ParseError as exc:
                outcome.warn_parse(md_file, str(exc))
                continue
            frontmatter = frontmatter or {}
            description = frontmatter.get("description")
            outcome.records.append(
                ToolRecord(
                    name=md_file.stem,
                    kind=ToolKind.COMMAND,
                    scope=scope,
                    path=md_file,
                    description=str(description) if description is not None else None,
                    metadata={
                        "allowed_tools": string_list(frontmatter.get("allowed-tools")),
                        "thinking": bool(frontmatter.get("thinking", False)),
                    },
                    sha256=compute_integrity(raw),
                    size=len(raw),
                )
            )
        logger.debug("Parsed %d command(s) in %s", len(outcome.records), path)
        return outcome
