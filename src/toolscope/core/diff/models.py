"""Data classes for planned file operations and their outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


class OperationType(str, Enum):
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"


class ChangeState(str, Enum):
    """Lifecycle of a pending change."""

    DRAFTED = "drafted"
    PREVIEWED = "previewed"
    COMMITTED = "committed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class FileOperation:
    """One planned write or delete.

    Attributes:
        operation_type: create, modify or delete.
        path: Absolute target path.
        diff: Unified diff of the change; None for deletes.
        size: Bytes written, or bytes removed for a delete.
        before_hash: Integrity string of the file when planned, None if
            the file did not exist.
        content: Bytes to write; None for deletes.
    """

    operation_type: OperationType
    path: Path
    diff: str | None
    size: int
    before_hash: str | None = None
    content: bytes | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "operation_type": self.operation_type.value,
            "path": str(self.path),
            "diff": self.diff,
            "size": self.size,
        }


@dataclass(frozen=True)
class DiffSummary:
    creates: int = 0
    modifies: int = 0
    deletes: int = 0
    total_bytes: int = 0

    @classmethod
    def of(cls, operations: list[FileOperation]) -> DiffSummary:
        counts = {kind: 0 for kind in OperationType}
        total = 0
        for op in operations:
            counts[op.operation_type] += 1
            if op.operation_type is not OperationType.DELETE:
                total += op.size
        return cls(
            creates=counts[OperationType.CREATE],
            modifies=counts[OperationType.MODIFY],
            deletes=counts[OperationType.DELETE],
            total_bytes=total,
        )

    def one_line(self) -> str:
        return (
            f"{self.creates} create(s), {self.modifies} modify(s), "
            f"{self.deletes} delete(s) - {self.total_bytes} bytes total"
        )


@dataclass(frozen=True)
class DiffPreview:
    """What a pending change would do, computed without touching disk."""

    operations: tuple[FileOperation, ...]
    warnings: tuple[str, ...]
    summary: str
    terminal_output: str

    @property
    def is_empty(self) -> bool:
        return not self.operations

    @property
    def combined_diff(self) -> str:
        return "".join(op.diff for op in self.operations if op.diff)

    def to_dict(self) -> dict[str, Any]:
        return {
            "operations": [op.to_dict() for op in self.operations],
            "summary": self.summary,
            "warnings": list(self.warnings),
            "terminal_output": self.terminal_output,
        }


@dataclass
class OperationResult:
    """Outcome of a mutating config operation.

    Attributes:
        success: Whether the operation completed (or, for a dry run,
            could be planned).
        diff: Combined unified diff of all planned operations.
        error: Why the operation failed.
        preview: The preview the result was computed from.
        applied: Paths written by a commit, in order.
        dry_run: True when the change was only previewed.
        backup_id: Backup of the pre-images taken before the commit, if any.
    """

    success: bool
    diff: str | None = None
    error: str | None = None
    preview: DiffPreview | None = None
    applied: list[Path] = field(default_factory=list)
    dry_run: bool = False
    backup_id: str | None = None

    @classmethod
    def failure(cls, error: str) -> OperationResult:
        return cls(success=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "diff": self.diff,
            "error": self.error,
            "dry_run": self.dry_run,
            "applied": [str(p) for p in self.applied],
            "backup_id": self.backup_id,
            "preview": self.preview.to_dict() if self.preview else None,
        }
