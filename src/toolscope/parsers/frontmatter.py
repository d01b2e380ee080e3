"""YAML frontmatter splitting for Markdown tool definitions.

Skills, agents and commands are Markdown files that may begin with a YAML
block delimited by ``---`` lines. The delimiter is located with a regex and
only the enclosed text is handed to ``yaml.safe_load``.
"""

from __future__ import annotations

import re
from typing import Any

import yaml

from toolscope.exceptions import ParseError

# Match YAML frontmatter: ---\n...\n---\n (a file ending right after the
# closing delimiter is accepted too).
_FRONTMATTER_PATTERN = re.compile(r"^---\s*\n(.*?)\n---\s*(?:\n|$)", re.DOTALL)


def split_frontmatter(text: str) -> tuple[dict[str, Any] | None, str]:
    """Split a Markdown document into frontmatter and body.

    Args:
        text: Full file content.

    Returns:
        ``(frontmatter, body)``. ``frontmatter`` is None when the document
        has no ``---`` block.

    Raises:
        ParseError: If the block is not valid YAML or not a mapping.
    """
    text = text.lstrip("\ufeff")
    match = _FRONTMATTER_PATTERN.match(text)
    if match is None:
        return None, text
    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as exc:
        raise ParseError(f"invalid YAML frontmatter: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseError("frontmatter must be a mapping")
    return data, text[match.end():]


def render_frontmatter(data: dict[str, Any], body: str) -> str:
    """Render a Markdown document with a YAML frontmatter block."""
    block = yaml.safe_dump(data, sort_keys=False, allow_unicode=True).rstrip("\n")
    body = body if body.startswith("\n") else "\n" + body
    return f"---\n{block}\n---\n{body}"


def string_list(value: Any) -> list[str]:
    """Normalize a list-or-comma-separated value to a list of strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [str(value)]
