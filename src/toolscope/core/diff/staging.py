"""In-memory staging overlay for planned file changes.

Actions never touch the disk directly. They read and write through a
``StagedFiles`` overlay: reads fall through to disk the first time a path
is seen (recording its pre-image), writes and deletes are kept in memory.
``operations()`` then turns the overlay into the ordered list of file
operations, each with its unified diff and pre-image digest.

Preview and commit both build their operation list this way, so the diff
shown to the user is computed by exactly the code that decides what to
write.
"""

from __future__ import annotations

import difflib
import os
import tempfile
from pathlib import Path

from toolscope.core.diff.models import FileOperation, OperationType
from toolscope.core.integrity import compute_integrity, iter_tree


def normalize_path(path: Path) -> Path:
    return Path(os.path.abspath(path))


def atomic_write(path: Path, data: bytes) -> None:
    """Write ``data`` to ``path`` through a temp file and ``os.replace``.

    An existing file keeps its permission bits.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)
        if path.exists():
            os.chmod(tmp_name, path.stat().st_mode & 0o777)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def unified_diff(path: Path, before: bytes | None, after: bytes | None) -> str:
    """Render a git-style unified diff between two versions of a file."""
    try:
        old_text = before.decode("utf-8") if before is not None else ""
        new_text = after.decode("utf-8") if after is not None else ""
    except UnicodeDecodeError:
        return f"Binary file {path} differs\n"
    lines = difflib.unified_diff(
        old_text.splitlines(keepends=True),
        new_text.splitlines(keepends=True),
        fromfile="/dev/null" if before is None else f"a/{path}",
        tofile="/dev/null" if after is None else f"b/{path}",
    )
    out: list[str] = []
    for line in lines:
        if not line.endswith("\n"):
            line += "\n\\ No newline at end of file\n"
        out.append(line)
    return "".join(out)


class StagedFiles:
    """Copy-on-read view of the filesystem holding staged changes."""

    def __init__(self) -> None:
        self._original: dict[Path, bytes | None] = {}
        self._current: dict[Path, bytes | None] = {}
        self._written: list[Path] = []

    def _load(self, path: Path) -> Path:
        key = normalize_path(path)
        if key not in self._original:
            data = key.read_bytes() if key.is_file() else None
            self._original[key] = data
            self._current[key] = data
        return key

    # -- Reads ----------------------------------------------------------------

    def read_bytes(self, path: Path) -> bytes | None:
        """Current staged content of ``path``, None if it does not exist."""
        return self._current[self._load(path)]

    def read_text(self, path: Path) -> str | None:
        data = self.read_bytes(path)
        return data.decode("utf-8") if data is not None else None

    def exists(self, path: Path) -> bool:
        return self.read_bytes(path) is not None

    def files_under(self, directory: Path) -> list[Path]:
        """Files below ``directory`` as staged: disk files plus staged writes."""
        root = normalize_path(directory)
        found: set[Path] = set()
        if root.is_dir():
            found.update(normalize_path(p) for p in iter_tree(root))
        found.update(p for p in self._current if root in p.parents)
        return sorted(p for p in found if self.exists(p))

    # -- Writes ---------------------------------------------------------------

    def write_bytes(self, path: Path, data: bytes) -> None:
        key = self._load(path)
        self._current[key] = data
        if key not in self._written:
            self._written.append(key)

    def write_text(self, path: Path, text: str) -> None:
        self.write_bytes(path, text.encode("utf-8"))

    def delete(self, path: Path) -> None:
        key = self._load(path)
        self._current[key] = None
        if key not in self._written:
            self._written.append(key)

    def delete_tree(self, directory: Path) -> None:
        for path in self.files_under(directory):
            self.delete(path)

    # -- Planning -------------------------------------------------------------

    def operations(self) -> list[FileOperation]:
        """Ordered operations for every path whose content changed.

        Operations are ordered by the first time each path was written.
        """
        ops: list[FileOperation] = []
        for path in self._written:
            before = self._original[path]
            after = self._current[path]
            if before == after:
                continue
            before_hash = compute_integrity(before) if before is not None else None
            if after is None:
                ops.append(
                    FileOperation(
                        operation_type=OperationType.DELETE,
                        path=path,
                        diff=None,
                        size=len(before),
                        before_hash=before_hash,
                    )
                )
                continue
            ops.append(
                FileOperation(
                    operation_type=(
                        OperationType.CREATE if before is None else OperationType.MODIFY
                    ),
                    path=path,
                    diff=unified_diff(path, before, after),
                    size=len(after),
                    before_hash=before_hash,
                    content=after,
                )
            )
        return ops
