"""Tests for the settings hooks parser.

Verifies:
    - One record per event and matcher, named ``Event:Matcher``.
    - Events without a matcher are named by the event alone.
    - Unknown events and malformed entries are warnings.
    - ``enabledPlugins`` is read as a name-to-bool map.
"""

from __future__ import annotations

from pathlib import Path

from toolscope.core.scope import Scope
from toolscope.parsers.base import ToolKind
from toolscope.parsers.settings import SettingsHooksParser, enabled_plugins, hook_name
from tests.helpers import hook_settings, write_json


class TestSettingsHooksParser:
    """Tests for ``SettingsHooksParser``."""

    def test_event_and_matcher(self, tmp_path: Path) -> None:
        """A PreToolUse hook with a Bash matcher is ``PreToolUse:Bash``."""
        path = write_json(
            tmp_path / "settings.json", hook_settings("PreToolUse", "Bash", "check.sh")
        )

        [record] = SettingsHooksParser().parse(path, Scope.project()).records

        assert record.name == "PreToolUse:Bash"
        assert record.kind is ToolKind.HOOK
        assert record.metadata["trigger"] == "PreToolUse"
        assert record.metadata["matcher"] == "Bash"
        assert record.metadata["definition"][0]["hooks"][0]["command"] == "check.sh"

    def test_event_only(self, tmp_path: Path) -> None:
        """Hooks without a matcher use the event name."""
        path = write_json(tmp_path / "settings.json", hook_settings("Stop", None, "notify"))
        [record] = SettingsHooksParser().parse(path, Scope.user()).records
        assert record.name == "Stop"

    def test_same_matcher_grouped(self, tmp_path: Path) -> None:
        """Entries sharing event and matcher form one record."""
        entry = {"matcher": "Edit", "hooks": [{"type": "command", "command": "fmt"}]}
        path = write_json(
            tmp_path / "settings.json", {"hooks": {"PostToolUse": [entry, entry]}}
        )
        [record] = SettingsHooksParser().parse(path, Scope.user()).records
        assert len(record.metadata["definition"]) == 2

    def test_unknown_event_warns(self, tmp_path: Path) -> None:
        """Unknown events are skipped with a warning."""
        data = hook_settings("OnBoot", None, "x")
        data["hooks"].update(hook_settings("Stop", None, "y")["hooks"])
        path = write_json(tmp_path / "settings.json", data)

        outcome = SettingsHooksParser().parse(path, Scope.user())

        assert [r.name for r in outcome.records] == ["Stop"]
        assert "unknown hook event 'OnBoot'" in outcome.warnings[0].message

    def test_invalid_handler_warns(self, tmp_path: Path) -> None:
        """A handler without its command is rejected."""
        path = write_json(
            tmp_path / "settings.json",
            {"hooks": {"Stop": [{"hooks": [{"type": "command"}]}]}},
        )
        outcome = SettingsHooksParser().parse(path, Scope.user())
        assert outcome.records == []
        assert len(outcome.warnings) == 1

    def test_settings_without_hooks(self, tmp_path: Path) -> None:
        """Settings files need not declare hooks."""
        path = write_json(tmp_path / "settings.json", {"model": "opus"})
        outcome = SettingsHooksParser().parse(path, Scope.user())
        assert outcome.records == [] and outcome.warnings == []


class TestHelpers:
    """Tests for hook and plugin helpers."""

    def test_hook_name(self) -> None:
        """Matcher is appended after a colon when present."""
        assert hook_name("PreToolUse", "Bash") == "PreToolUse:Bash"
        assert hook_name("Stop", None) == "Stop"

    def test_enabled_plugins(self) -> None:
        """Values are coerced to booleans; a bad map is empty."""
        assert enabled_plugins({"enabledPlugins": {"a@m": 1, "b@m": False}}) == {
            "a@m": True,
            "b@m": False,
        }
        assert enabled_plugins({"enabledPlugins": []}) == {}
        assert enabled_plugins(None) == {}
