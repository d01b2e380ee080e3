"""Parser for MCP server configuration files.

MCP servers are declared in JSON documents. Depending on the scope the
server map lives at a different place:

- ``<project>/.mcp.json`` and ``~/.claude.json``: under ``mcpServers``.
- ``~/.claude.json`` for the local scope: under
  ``projects.<absolute project path>.mcpServers``.
- Plugin and managed files: either an ``mcpServers`` wrapper or a flat
  mapping of server name to definition.

Each server becomes one ``ToolRecord`` of kind ``mcp``. Transport defaults to
``stdio``; a stdio server must declare ``command`` and an ``http``/``sse``
server must declare ``url``. Invalid entries are skipped with a warning and
never abort the rest of the file.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from toolscope.config import McpSource
from toolscope.core.integrity import compute_integrity
from toolscope.core.scope import Scope
from toolscope.exceptions import ParseError
from toolscope.parsers.base import ScanOutcome, ToolFileParser, ToolKind, ToolRecord

TRANSPORTS = ("stdio", "http", "sse")


def load_json_document(path: Path) -> dict[str, Any] | None:
    """Read a JSON object from disk.

    Returns:
        The parsed object, or None if the file does not exist.

    Raises:
        OSError: If the file exists but cannot be read.
        ParseError: If the content is not a JSON object.
    """
    if not path.is_file():
        return None
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ParseError("top-level JSON value must be an object")
    return data


def extract_servers(document: dict[str, Any], key_path: tuple[str, ...]) -> dict[str, Any]:
    """Locate the server map inside a document.

    An empty ``key_path`` accepts both the ``mcpServers`` wrapper and a flat
    mapping. A missing key along the path yields an empty map.
    """
    if not key_path:
        wrapped = document.get("mcpServers")
        if isinstance(wrapped, dict):
            return wrapped
        return {k: v for k, v in document.items() if isinstance(v, dict)}
    node: Any = document
    for key in key_path:
        if not isinstance(node, dict):
            return {}
        node = node.get(key)
    return node if isinstance(node, dict) else {}


def server_transport(config: dict[str, Any]) -> str:
    return str(config.get("type", "stdio")).lower()


def validate_server(name: str, config: Any) -> list[str]:
    """Return the problems with one server definition (empty when valid)."""
    if not isinstance(config, dict):
        return [f"server '{name}' must be a JSON object"]
    problems: list[str] = []
    transport = server_transport(config)
    if transport not in TRANSPORTS:
        problems.append(f"server '{name}' has unknown type '{transport}'")
    elif transport == "stdio":
        if not isinstance(config.get("command"), str) or not config["command"].strip():
            problems.append(f"stdio server '{name}' requires a command")
    elif not isinstance(config.get("url"), str) or not config["url"].strip():
        problems.append(f"{transport} server '{name}' requires a url")
    args = config.get("args", [])
    if not isinstance(args, list):
        problems.append(f"server '{name}' args must be a list")
    for key in ("env", "headers"):
        if not isinstance(config.get(key, {}), dict):
            problems.append(f"server '{name}' {key} must be an object")
    return problems


def server_metadata(config: dict[str, Any]) -> dict[str, Any]:
    return {
        "transport": server_transport(config),
        "command": config.get("command"),
        "args": [str(a) for a in config.get("args", [])],
        "env": dict(config.get("env", {})),
        "url": config.get("url"),
        "headers": dict(config.get("headers", {})),
        "docs_url": config.get("docsUrl"),
    }


class McpConfigParser(ToolFileParser):
    """Parser for MCP server maps in JSON configuration files."""

    kind = ToolKind.MCP

    def parse(self, path: Path, scope: Scope) -> ScanOutcome:
        return self.parse_source(McpSource(path, ()), scope)

    def parse_source(self, source: McpSource, scope: Scope) -> ScanOutcome:
        """Parse the servers found at one ``McpSource``."""
        outcome = ScanOutcome()
        try:
            document = load_json_document(source.path)
        except (OSError, UnicodeDecodeError) as exc:
            outcome.warn_io(source.path, exc)
            return outcome
        except ParseError as exc:
            outcome.warn_parse(source.path, str(exc))
            return outcome
        if document is None:
            return outcome

        servers = extract_servers(document, source.key_path)
        for name in sorted(servers):
            config = servers[name]
            problems = validate_server(name, config)
            if problems:
                outcome.warn_parse(source.path, "; ".join(problems))
                continue
            canonical = json.dumps(config, sort_keys=True).encode("utf-8")
            outcome.records.append(
                ToolRecord(
                    name=name,
                    kind=ToolKind.MCP,
                    scope=scope,
                    path=source.path,
                    description=config.get("description"),
                    metadata={
                        **server_metadata(config),
                        "config": config,
                        "key_path": list(source.key_path),
                    },
                    sha256=compute_integrity(canonical),
                    size=len(canonical),
                )
            )
        return outcome
