"""Configuration scopes and their precedence.

A ``Scope`` names the physical location class a definition lives in. The
plugin variant carries the id of the plugin that provides the definition,
so two different plugins are two different scopes.

Precedence, highest first::

    Managed > Local > Project > User > Plugin

Managed settings are organization policy and are never shadowed. Local
(gitignored) settings are the most specific developer override.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ScopeKind(str, Enum):
    """The five scope variants."""

    USER = "user"
    PROJECT = "project"
    LOCAL = "local"
    MANAGED = "managed"
    PLUGIN = "plugin"


_PRECEDENCE: dict[ScopeKind, int] = {
    ScopeKind.MANAGED: 4,
    ScopeKind.LOCAL: 3,
    ScopeKind.PROJECT: 2,
    ScopeKind.USER: 1,
    ScopeKind.PLUGIN: 0,
}


@dataclass(frozen=True)
class Scope:
    """Tagged scope value.

    Attributes:
        kind: Which variant this is.
        plugin_id: ``name@marketplace`` for plugin scopes, otherwise None.
    """

    kind: ScopeKind
    plugin_id: str | None = None

    def __post_init__(self) -> None:
        if self.kind is ScopeKind.PLUGIN and not self.plugin_id:
            raise ValueError("plugin scope requires a plugin_id")
        if self.kind is not ScopeKind.PLUGIN and self.plugin_id is not None:
            raise ValueError(f"{self.kind.value} scope cannot carry a plugin_id")

    # -- Constructors -------------------------------------------------------

    @classmethod
    def user(cls) -> Scope:
        return cls(ScopeKind.USER)

    @classmethod
    def project(cls) -> Scope:
        return cls(ScopeKind.PROJECT)

    @classmethod
    def local(cls) -> Scope:
        return cls(ScopeKind.LOCAL)

    @classmethod
    def managed(cls) -> Scope:
        return cls(ScopeKind.MANAGED)

    @classmethod
    def plugin(cls, plugin_id: str) -> Scope:
        return cls(ScopeKind.PLUGIN, plugin_id)

    @classmethod
    def parse(cls, text: str) -> Scope:
        """Parse ``user``, ``project``, ``local``, ``managed`` or ``plugin:<id>``.

        Raises:
            ValueError: If the text names no known scope.
        """
        value = text.strip()
        if value.lower().startswith("plugin:"):
            return cls.plugin(value.split(":", 1)[1])
        try:
            kind = ScopeKind(value.lower())
        except ValueError:
            raise ValueError(f"unknown scope: {text!r}") from None
        return cls(kind)

    # -- Properties ---------------------------------------------------------

    @property
    def precedence(self) -> int:
        """Rank of this scope; higher wins a collision."""
        return _PRECEDENCE[self.kind]

    @property
    def is_writable(self) -> bool:
        """Whether mutating operations may target this scope."""
        return self.kind not in (ScopeKind.MANAGED, ScopeKind.PLUGIN)

    def sort_key(self) -> tuple[int, str]:
        """Ordering key: highest precedence first, then plugin id ascending."""
        return (-self.precedence, self.plugin_id or "")

    def __str__(self) -> str:
        if self.kind is ScopeKind.PLUGIN:
            return f"plugin:{self.plugin_id}"
        return self.kind.value

    # -- Serialization ------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.kind.value}
        if self.plugin_id is not None:
            data["plugin_id"] = self.plugin_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Scope:
        return cls(ScopeKind(data["type"]), data.get("plugin_id"))
