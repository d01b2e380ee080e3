"""Backups taken before a commit, and restoring them.

When the ``DiffApplyEngine`` is given a ``BackupStore`` it records the
pre-image of every file a commit is about to touch, before the first
write. A file that did not exist is recorded as new. Restoring the backup
writes every pre-image back byte for byte and deletes the files that were
new, which undoes the commit, or whatever part of it got written before a
``CommitPartialFailure``.

Backups are stored one JSON document per backup under
``<data_dir>/backups/``, file contents base64 encoded::

    {
      "id": "...",
      "description": "Install profile 'web' into /code/app",
      "created_at": "2026-01-01T00:00:00+00:00",
      "files": [
        {"path": "/code/app/.mcp.json", "content": "eyJ...", "sha256": "sha256:...",
         "new_dir": null},
        {"path": "/code/app/.claude/skills/lint/SKILL.md", "content": null, "sha256": null,
         "new_dir": "/code/app/.claude/skills/lint"}
      ]
    }

Restoring is itself an ``Action``, so it is previewed and committed like
any other change.
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from toolscope.core.diff.engine import Action
from toolscope.core.diff.staging import StagedFiles, atomic_write
from toolscope.core.integrity import compute_integrity
from toolscope.core.profiles.models import utc_now
from toolscope.exceptions import BackupError

logger = logging.getLogger(__name__)

DEFAULT_KEEP = 50


@dataclass(frozen=True)
class BackupFile:
    """Pre-image of one file; ``original`` is None when the file was new.

    ``new_dir`` is the outermost parent directory that did not exist yet
    either, so a restore can remove what the commit created and nothing
    else.
    """

    path: Path
    original: bytes | None
    sha256: str | None
    new_dir: Path | None = None

    @property
    def was_new(self) -> bool:
        return self.original is None

    @classmethod
    def capture(cls, path: Path) -> BackupFile:
        if not path.is_file():
            missing = None
            for parent in path.parents:
                if parent.exists():
                    break
                missing = parent
            return cls(path, None, None, missing)
        data = path.read_bytes()
        return cls(path, data, compute_integrity(data))

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": str(self.path),
            "content": (
                base64.b64encode(self.original).decode("ascii")
                if self.original is not None
                else None
            ),
            "sha256": self.sha256,
            "new_dir": str(self.new_dir) if self.new_dir is not None else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackupFile:
        content = data.get("content")
        new_dir = data.get("new_dir")
        return cls(
            path=Path(data["path"]),
            original=base64.b64decode(content, validate=True) if content is not None else None,
            sha256=data.get("sha256"),
            new_dir=Path(new_dir) if new_dir else None,
        )


@dataclass
class Backup:
    """Pre-images of every file one commit touched."""

    id: str
    description: str
    created_at: str = field(default_factory=utc_now)
    files: list[BackupFile] = field(default_factory=list)

    def verify(self) -> None:
        """Check every stored pre-image against its digest.

        Raises:
            BackupError: If a pre-image does not match.
        """
        for entry in self.files:
            if entry.original is None:
                continue
            actual = compute_integrity(entry.original)
            if actual != entry.sha256:
                raise BackupError(
                    f"backup {self.id}: {entry.path} expected {entry.sha256}, got {actual}"
                )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "created_at": self.created_at,
            "files": [f.to_dict() for f in self.files],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Backup:
        return cls(
            id=data["id"],
            description=data.get("description", ""),
            created_at=data.get("created_at", ""),
            files=[BackupFile.from_dict(f) for f in data.get("files", [])],
        )


class BackupStore:
    """Backups kept as JSON files in one directory, newest ``keep`` retained."""

    def __init__(self, directory: Path, keep: int = DEFAULT_KEEP) -> None:
        self.directory = directory
        self.keep = keep

    def _file(self, backup_id: str) -> Path:
        if not backup_id or Path(backup_id).name != backup_id or backup_id in (".", ".."):
            raise BackupError(f"invalid backup id: {backup_id!r}")
        return self.directory / f"{backup_id}.json"

    def create(self, description: str, paths: list[Path]) -> Backup:
        """Record the current content of ``paths`` and save the backup."""
        backup = Backup(id=str(uuid.uuid4()), description=description)
        backup.files = [BackupFile.capture(path) for path in paths]
        atomic_write(
            self._file(backup.id),
            json.dumps(backup.to_dict(), indent=2).encode("utf-8"),
        )
        logger.debug("Backed up %d file(s) as %s", len(backup.files), backup.id)
        self._prune()
        return backup

    def load(self, backup_id: str) -> Backup:
        """Load one backup.

        Raises:
            BackupError: If it does not exist or cannot be decoded.
        """
        path = self._file(backup_id)
        if not path.is_file():
            raise BackupError(f"backup '{backup_id}' not found")
        try:
            return Backup.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, binascii.Error) as exc:
            raise BackupError(f"{path} is malformed: {exc}") from exc

    def list(self) -> list[Backup]:
        """Every readable backup, newest first."""
        if not self.directory.is_dir():
            return []
        backups = []
        for path in self.directory.glob("*.json"):
            try:
                backups.append(self.load(path.stem))
            except BackupError as exc:
                logger.warning("Skipping backup %s: %s", path.name, exc)
        return sorted(backups, key=lambda b: (b.created_at, b.id), reverse=True)

    def _prune(self) -> None:
        for stale in self.list()[self.keep:]:
            self._file(stale.id).unlink(missing_ok=True)
            logger.debug("Pruned backup %s", stale.id)


class RestoreBackup(Action):
    """Put every file recorded in a backup back to its pre-image."""

    def __init__(self, backup: Backup) -> None:
        self.backup = backup

    def describe(self) -> str:
        return f"Restore backup {self.backup.id} ({self.backup.description})"

    def stage(self, files: StagedFiles) -> None:
        self.backup.verify()
        for entry in self.backup.files:
            if entry.original is not None:
                files.write_bytes(entry.path, entry.original)
            elif files.exists(entry.path):
                files.delete(entry.path)

    def prune_dirs(self) -> list[Path]:
        return sorted({entry.new_dir for entry in self.backup.files if entry.new_dir is not None})
