"""JSON documents edited through a staging overlay.

Config files are rewritten pretty-printed with two-space indentation and a
trailing newline. Key order is preserved so unrelated settings keep their
position in the user's file.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from toolscope.core.diff.staging import StagedFiles
from toolscope.exceptions import ConfigOpError


def dumps(document: Any) -> str:
    return json.dumps(document, indent=2, ensure_ascii=False) + "\n"


def load_staged(files: StagedFiles, path: Path) -> dict[str, Any] | None:
    """Read a JSON object through ``files``; None if the file is absent.

    Raises:
        ConfigOpError: If the file is not a JSON object.
    """
    text = files.read_text(path)
    if text is None:
        return None
    if not text.strip():
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ConfigOpError(f"{path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigOpError(f"{path} must contain a JSON object")
    return data


def save_staged(files: StagedFiles, path: Path, document: dict[str, Any]) -> None:
    files.write_text(path, dumps(document))


def get_path(document: dict[str, Any], key_path: tuple[str, ...]) -> dict[str, Any] | None:
    """Follow ``key_path`` into nested objects; None when any key is missing."""
    node: Any = document
    for key in key_path:
        if not isinstance(node, dict) or key not in node:
            return None
        node = node[key]
    return node if isinstance(node, dict) else None


def ensure_path(document: dict[str, Any], key_path: tuple[str, ...]) -> dict[str, Any]:
    """Follow ``key_path``, creating empty objects where missing.

    Raises:
        ConfigOpError: If an existing value on the path is not an object.
    """
    node = document
    for key in key_path:
        child = node.setdefault(key, {})
        if not isinstance(child, dict):
            raise ConfigOpError(f"'{key}' must be a JSON object")
        node = child
    return node


def prune_path(document: dict[str, Any], key_path: tuple[str, ...]) -> None:
    """Remove empty objects along ``key_path``, deepest first."""
    for depth in range(len(key_path), 0, -1):
        parent = get_path(document, key_path[: depth - 1])
        if parent is None:
            return
        key = key_path[depth - 1]
        if parent.get(key) == {}:
            del parent[key]
        else:
            return
