"""Parser for hooks embedded in Claude Code settings files.

Settings files (``settings.json``, ``settings.local.json``,
``managed-settings.json``) and plugin ``hooks/hooks.json`` files declare
hooks in the same shape::

    {
      "hooks": {
        "PreToolUse": [
          {"matcher": "Bash", "hooks": [{"type": "command", "command": "..."}]}
        ]
      }
    }

One ``ToolRecord`` of kind ``hook`` is produced per event and matcher. Its
name is the event (``Stop``) or the event and matcher joined by a colon
(``PreToolUse:Bash``). Unknown events and malformed entries are skipped with
a warning.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from toolscope.core.integrity import compute_integrity
from toolscope.core.scope import Scope
from toolscope.exceptions import ParseError
from toolscope.parsers.base import ScanOutcome, ToolFileParser, ToolKind, ToolRecord
from toolscope.parsers.mcp_config import load_json_document

HOOK_EVENTS = (
    "PreToolUse",
    "PostToolUse",
    "PermissionRequest",
    "UserPromptSubmit",
    "SessionStart",
    "SessionEnd",
    "Notification",
    "Stop",
    "SubagentStop",
    "PreCompact",
)

_HOOK_TYPES = ("command", "prompt", "agent")


def hook_name(event: str, matcher: str | None) -> str:
    """Name of the hook record for an event/matcher pair."""
    return f"{event}:{matcher}" if matcher else event


def enabled_plugins(settings: dict[str, Any] | None) -> dict[str, bool]:
    """Read the ``enabledPlugins`` map of a settings document."""
    if not settings:
        return {}
    raw = settings.get("enabledPlugins", {})
    if not isinstance(raw, dict):
        return {}
    return {str(k): bool(v) for k, v in raw.items()}


def _valid_handler(handler: Any) -> bool:
    if not isinstance(handler, dict):
        return False
    kind = handler.get("type", "command")
    if kind not in _HOOK_TYPES:
        return False
    field_name = "command" if kind == "command" else "prompt"
    return isinstance(handler.get(field_name), str)


class SettingsHooksParser(ToolFileParser):
    """Parser for the ``hooks`` section of a settings or hooks JSON file."""

    kind = ToolKind.HOOK

    def parse(self, path: Path, scope: Scope) -> ScanOutcome:
        outcome = ScanOutcome()
        try:
            document = load_json_document(path)
        except (OSError, UnicodeDecodeError) as exc:
            outcome.warn_io(path, exc)
            return outcome
        except ParseError as exc:
            outcome.warn_parse(path, str(exc))
            return outcome
        if not document:
            return outcome

        hooks = document.get("hooks", {})
        if not isinstance(hooks, dict):
            outcome.warn_parse(path, "'hooks' must be an object")
            return outcome

        for event in sorted(hooks):
            if event not in HOOK_EVENTS:
                outcome.warn_parse(path, f"unknown hook event '{event}'")
                continue
            entries = hooks[event]
            if not isinstance(entries, list):
                outcome.warn_parse(path, f"hooks for '{event}' must be a list")
                continue
            grouped: dict[str | None, list[dict[str, Any]]] = {}
            for entry in entries:
                if not isinstance(entry, dict) or not isinstance(entry.get("hooks"), list):
                    outcome.warn_parse(path, f"malformed '{event}' hook entry")
                    continue
                if not all(_valid_handler(h) for h in entry["hooks"]):
                    outcome.warn_parse(path, f"'{event}' hook has an invalid handler")
                    continue
                matcher = entry.get("matcher") or None
                grouped.setdefault(matcher, []).append(entry)

            for matcher in sorted(grouped, key=lambda m: m or ""):
                definition = grouped[matcher]
                canonical = json.dumps(definition, sort_keys=True).encode("utf-8")
                outcome.records.append(
                    ToolRecord(
                        name=hook_name(event, matcher),
                        kind=ToolKind.HOOK,
                        scope=scope,
                        path=path,
                        metadata={
                            "trigger": event,
                            "matcher": matcher,
                            "definition": definition,
                        },
                        sha256=compute_integrity(canonical),
                        size=len(canonical),
                    )
                )
        return outcome
