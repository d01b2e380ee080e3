"""Parser registry keyed by tool kind.

The ``ParserRegistry`` maps each ``ToolKind`` to the ``ToolFileParser`` that
reads it. ``ScopeScanner`` asks the registry for a parser whenever a scope
layout names a location for that kind, so a custom parser can replace a
built-in one without touching the scanner.
"""

from __future__ import annotations

from toolscope.parsers.base import ToolFileParser, ToolKind
from toolscope.parsers.markdown_tools import AgentParser, CommandParser, SkillParser
from toolscope.parsers.mcp_config import McpConfigParser
from toolscope.parsers.settings import SettingsHooksParser


class ParserRegistry:
    """Registry of tool parsers, one per kind.

    Attributes:
        parsers: Mapping of tool kind to the registered parser.
    """

    def __init__(self) -> None:
        self.parsers: dict[ToolKind, ToolFileParser] = {}

    def register(self, parser: ToolFileParser) -> None:
        """Register ``parser`` for its kind, replacing any previous one."""
        self.parsers[parser.kind] = parser

    def get(self, kind: ToolKind) -> ToolFileParser:
        """Return the parser for ``kind``.

        Raises:
            KeyError: If no parser is registered for ``kind``.
        """
        return self.parsers[kind]

    @property
    def mcp(self) -> McpConfigParser:
        parser = self.parsers[ToolKind.MCP]
        if not isinstance(parser, McpConfigParser):
            raise TypeError("MCP parser must be an McpConfigParser")
        return parser


def default_registry() -> ParserRegistry:
    """Create a registry with the five built-in parsers."""
    registry = ParserRegistry()
    registry.register(SkillParser())
    registry.register(CommandParser())
    registry.register(AgentParser())
    registry.register(McpConfigParser())
    registry.register(SettingsHooksParser())
    return registry
