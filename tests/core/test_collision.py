"""Tests for collision detection and winner resolution.

Verifies:
    - A name in two scopes is one collision, won by the higher scope.
    - Names compare case-insensitively.
    - Duplicates inside one scope are not collisions.
    - MCP servers and hooks never collide.
    - Plugin ties resolve by ascending plugin id, independent of input order.
"""

from __future__ import annotations

from pathlib import Path

import pytest

from toolscope.core.collision import detect_collisions, resolve_record, resolve_winner
from toolscope.core.scope import Scope
from toolscope.exceptions import CollisionAmbiguous
from toolscope.parsers.base import ToolKind, ToolRecord


def _record(name: str, scope: Scope, kind: ToolKind = ToolKind.SKILL, path: str = "") -> ToolRecord:
    return ToolRecord(
        name=name,
        kind=kind,
        scope=scope,
        path=Path(path or f"/cfg/{scope}/{name}"),
    )


class TestDetectCollisions:
    """Tests for ``detect_collisions``."""

    def test_user_and_project_skill(self) -> None:
        """The project definition shadows the user one."""
        report = detect_collisions(
            [_record("deploy", Scope.user()), _record("deploy", Scope.project())]
        )
        assert report.total == 1
        collision = report.skills[0]
        assert collision.winner_scope == Scope.project()
        assert [o.scope for o in collision.occurrences] == [Scope.project(), Scope.user()]

    def test_case_insensitive_names(self) -> None:
        """``Deploy`` and ``deploy`` are the same name."""
        report = detect_collisions(
            [_record("Deploy", Scope.managed()), _record("deploy", Scope.user())]
        )
        assert report.total == 1
        assert report.skills[0].name == "Deploy"
        assert report.skills[0].winner_scope == Scope.managed()

    def test_duplicates_in_one_scope_are_not_collisions(self) -> None:
        """Two user skills with one name do not collide with each other."""
        report = detect_collisions(
            [
                _record("deploy", Scope.user(), path="/a/deploy"),
                _record("deploy", Scope.user(), path="/b/deploy"),
            ]
        )
        assert report.total == 0

    def test_kinds_are_separate(self) -> None:
        """A skill and a command with one name do not collide."""
        report = detect_collisions(
            [
                _record("review", Scope.user(), ToolKind.SKILL),
                _record("review", Scope.project(), ToolKind.COMMAND),
            ]
        )
        assert report.total == 0

    def test_mcp_and_hooks_ignored(self) -> None:
        """Only skills, commands and agents are checked."""
        report = detect_collisions(
            [
                _record("github", Scope.user(), ToolKind.MCP),
                _record("github", Scope.project(), ToolKind.MCP),
                _record("Stop", Scope.user(), ToolKind.HOOK),
                _record("Stop", Scope.local(), ToolKind.HOOK),
            ]
        )
        assert report.total == 0

    def test_commands_and_agents_grouped(self) -> None:
        """Collisions are reported under their own kind."""
        report = detect_collisions(
            [
                _record("review", Scope.user(), ToolKind.COMMAND),
                _record("review", Scope.project(), ToolKind.COMMAND),
                _record("critic", Scope.user(), ToolKind.AGENT),
                _record("critic", Scope.plugin("p@m"), ToolKind.AGENT),
            ]
        )
        assert [c.name for c in report.commands] == ["review"]
        assert report.agents[0].winner_scope == Scope.user()

    def test_plugin_tie_is_order_independent(self) -> None:
        """Between two plugins the lower plugin id wins either way round."""
        records = [
            _record("fmt", Scope.plugin("zeta@m")),
            _record("fmt", Scope.plugin("alpha@m")),
        ]
        forward = detect_collisions(records)
        backward = detect_collisions(list(reversed(records)))
        assert forward.to_dict() == backward.to_dict()
        assert forward.skills[0].winner_scope == Scope.plugin("alpha@m")


class TestResolve:
    """Tests for ``resolve_winner`` and ``resolve_record``."""

    def test_empty_raises(self) -> None:
        """Resolving nothing is an internal error."""
        with pytest.raises(CollisionAmbiguous):
            resolve_winner([])

    def test_record_in_winning_scope(self) -> None:
        """The effective record comes from the winning scope."""
        winner = resolve_record(
            [
                _record("deploy", Scope.user()),
                _record("deploy", Scope.local()),
                _record("deploy", Scope.project()),
            ]
        )
        assert winner.scope == Scope.local()
