"""Content integrity hashing.

Integrity strings follow the Subresource Integrity style used throughout
toolscope: ``"sha256:<64 hex chars>"``. Skills are directories, so a
directory digest covers every regular file beneath it, keyed by its
POSIX-style relative path so the digest is stable across platforms.
"""

from __future__ import annotations

import hashlib
import os
import re
from pathlib import Path

INTEGRITY_RE = re.compile(r"^sha256:[0-9a-f]{64}$")

MAX_DEPTH = 50
MAX_FILES = 10_000
MAX_FILE_SIZE = 10 * 1024 * 1024


def compute_integrity(content: str | bytes) -> str:
    """Compute the integrity string for in-memory content.

    Args:
        content: Text (encoded as UTF-8) or raw bytes.

    Returns:
        Integrity string in ``sha256:<hex>`` format.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    return f"sha256:{hashlib.sha256(content).hexdigest()}"


def hash_file(path: Path) -> str:
    """Hash a single file's bytes.

    Raises:
        OSError: If the file cannot be read.
    """
    return compute_integrity(path.read_bytes())


def iter_tree(root: Path) -> list[Path]:
    """List regular files under ``root`` sorted by relative path.

    Symlinks are skipped, as are files above ``MAX_FILE_SIZE``. Walking
    stops descending beyond ``MAX_DEPTH``.

    Raises:
        OSError: If more than ``MAX_FILES`` files are found.
    """
    files: list[Path] = []
    base_depth = len(root.parts)
    for dirpath, dirnames, filenames in os.walk(root, followlinks=False):
        current = Path(dirpath)
        if len(current.parts) - base_depth >= MAX_DEPTH:
            dirnames.clear()
        dirnames.sort()
        for name in sorted(filenames):
            candidate = current / name
            if candidate.is_symlink() or not candidate.is_file():
                continue
            if candidate.stat().st_size > MAX_FILE_SIZE:
                continue
            files.append(candidate)
            if len(files) > MAX_FILES:
                raise OSError(f"{root}: more than {MAX_FILES} files")
    return sorted(files, key=lambda p: p.relative_to(root).as_posix())


def hash_directory(root: Path) -> str:
    """Hash a directory tree: each file's relative path, then its bytes.

    Raises:
        OSError: If the tree cannot be walked or a file cannot be read.
    """
    digest = hashlib.sha256()
    for file_path in iter_tree(root):
        digest.update(file_path.relative_to(root).as_posix().encode("utf-8"))
        digest.update(b"\0")
        digest.update(file_path.read_bytes())
        digest.update(b"\0")
    return f"sha256:{digest.hexdigest()}"


def hash_path(path: Path) -> str:
    """Hash a file or a directory, whichever ``path`` is."""
    if path.is_dir():
        return hash_directory(path)
    return hash_file(path)
