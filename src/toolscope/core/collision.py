"""Collision detection and resolution across scopes.

A collision is a skill, command or agent name defined in two or more
distinct scopes at once. Names are compared case-insensitively. Duplicates
inside a single scope are not collisions.

The winner of a collision is the occurrence whose scope has the highest
precedence (``Managed > Local > Project > User > Plugin``). Two plugin
scopes have equal precedence; the tie is broken by ascending plugin id so
the result never depends on input order. Every caller that needs to know
which definition is in effect goes through ``resolve_winner``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable

from toolscope.core.scope import Scope
from toolscope.exceptions import CollisionAmbiguous
from toolscope.parsers.base import ToolKind, ToolRecord

COLLISION_KINDS = (ToolKind.SKILL, ToolKind.COMMAND, ToolKind.AGENT)


@dataclass(frozen=True)
class CollisionOccurrence:
    """Where one of the colliding definitions lives."""

    scope: Scope
    path: Path

    def to_dict(self) -> dict[str, Any]:
        return {"scope": self.scope.to_dict(), "path": str(self.path)}


@dataclass(frozen=True)
class Collision:
    """A name defined in two or more distinct scopes.

    Attributes:
        name: The name as spelled by the winning definition.
        kind: Tool kind shared by all occurrences.
        occurrences: One entry per distinct scope, highest precedence first.
        winner_scope: Scope whose definition takes effect.
    """

    name: str
    kind: ToolKind
    occurrences: tuple[CollisionOccurrence, ...]
    winner_scope: Scope | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind.value,
            "occurrences": [o.to_dict() for o in self.occurrences],
            "winner_scope": self.winner_scope.to_dict() if self.winner_scope else None,
        }


@dataclass
class CollisionReport:
    """Collisions grouped by tool kind."""

    skills: list[Collision] = field(default_factory=list)
    commands: list[Collision] = field(default_factory=list)
    agents: list[Collision] = field(default_factory=list)

    def for_kind(self, kind: ToolKind) -> list[Collision]:
        return {
            ToolKind.SKILL: self.skills,
            ToolKind.COMMAND: self.commands,
            ToolKind.AGENT: self.agents,
        }.get(kind, [])

    @property
    def total(self) -> int:
        return len(self.skills) + len(self.commands) + len(self.agents)

    def to_dict(self) -> dict[str, Any]:
        return {
            "skills": [c.to_dict() for c in self.skills],
            "commands": [c.to_dict() for c in self.commands],
            "agents": [c.to_dict() for c in self.agents],
        }


def resolve_winner(scopes: Iterable[Scope]) -> Scope:
    """Pick the scope whose definition takes effect.

    Args:
        scopes: Scopes holding a definition with the same name.

    Returns:
        The highest-precedence scope.

    Raises:
        CollisionAmbiguous: If ``scopes`` is empty.
    """
    ordered = sorted(set(scopes), key=Scope.sort_key)
    if not ordered:
        raise CollisionAmbiguous("cannot resolve a collision without occurrences")
    return ordered[0]


def resolve_record(records: Iterable[ToolRecord]) -> ToolRecord:
    """Pick the effective record among same-named definitions.

    Within the winning scope the record with the smallest path wins.
    """
    candidates = list(records)
    if not candidates:
        raise CollisionAmbiguous("cannot resolve a collision without occurrences")
    winner = resolve_winner(r.scope for r in candidates)
    return min((r for r in candidates if r.scope == winner), key=lambda r: str(r.path))


def detect_collisions(records: Iterable[ToolRecord]) -> CollisionReport:
    """Build the collision report for a set of records.

    Records of kinds other than skill, command and agent are ignored.
    """
    groups: dict[tuple[ToolKind, str], dict[Scope, list[ToolRecord]]] = {}
    for record in records:
        if record.kind not in COLLISION_KINDS:
            continue
        key = (record.kind, record.name.casefold())
        groups.setdefault(key, {}).setdefault(record.scope, []).append(record)

    report = CollisionReport()
    for (kind, _), by_scope in sorted(groups.items(), key=lambda item: item[0][1]):
        if len(by_scope) < 2:
            continue
        occurrences = []
        for scope in sorted(by_scope, key=Scope.sort_key):
            first = min(by_scope[scope], key=lambda r: str(r.path))
            occurrences.append(CollisionOccurrence(scope=scope, path=first.path))
        winner = resolve_winner(by_scope)
        winner_record = min(by_scope[winner], key=lambda r: str(r.path))
        report.for_kind(kind).append(
            Collision(
                name=winner_record.name,
                kind=kind,
                occurrences=tuple(occurrences),
                winner_scope=winner,
            )
        )
    return report
