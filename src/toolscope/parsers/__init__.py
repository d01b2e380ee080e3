"""Parsers for Claude Code skills, commands, agents, MCP servers and hooks."""

from toolscope.parsers.base import (
    ScanOutcome,
    ScanWarning,
    ToolFileParser,
    ToolKind,
    ToolRecord,
)
from toolscope.parsers.markdown_tools import AgentParser, CommandParser, SkillParser
from toolscope.parsers.mcp_config import McpConfigParser
from toolscope.parsers.registry import ParserRegistry, default_registry
from toolscope.parsers.settings import SettingsHooksParser

__all__ = [
    "AgentParser",
    "CommandParser",
    "McpConfigParser",
    "ParserRegistry",
    "ScanOutcome",
    "ScanWarning",
    "SettingsHooksParser",
    "SkillParser",
    "ToolFileParser",
    "ToolKind",
    "ToolRecord",
    "default_registry",
]
