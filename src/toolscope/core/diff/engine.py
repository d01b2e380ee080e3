"""Diff/apply engine: preview a change, then commit it on confirmation.

Every mutating operation is expressed as an ``Action`` that stages its
edits into a ``StagedFiles`` overlay. The engine runs that one staging
function twice:

1. **Preview** (``Drafted -> Previewed``): stage the edits, collect the
   file operations and their diffs, write nothing.
2. **Commit** (``Previewed -> Committed``): take the per-path and action
   locks, stage the edits again against the current disk, and compare the
   result with the preview. If any target changed since the preview the
   commit aborts with ``CommitConflict``. Otherwise the operations are
   written in order, each file atomically.

A change can be aborted from ``Drafted`` or ``Previewed``. When a write
fails part way, ``CommitPartialFailure`` names the files already written
and the failing operation; drafting the same action again yields a plan
covering only what is left. An engine built with a ``BackupStore`` saves
the pre-image of every target before writing, so a partial (or unwanted)
commit can be rolled back with ``toolscope.core.backup.RestoreBackup``.
"""

from __future__ import annotations

import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from toolscope.core.diff.display import format_plan_terminal
from toolscope.core.diff.models import (
    ChangeState,
    DiffPreview,
    DiffSummary,
    FileOperation,
    OperationResult,
    OperationType,
)
from toolscope.core.diff.staging import StagedFiles, atomic_write
from toolscope.core.integrity import compute_integrity
from toolscope.core.locks import KeyedLocks
from toolscope.exceptions import (
    BackupError,
    CommitConflict,
    CommitPartialFailure,
    ConfigOpError,
    InvalidTransitionError,
)

if TYPE_CHECKING:
    from toolscope.core.backup import BackupStore

logger = logging.getLogger(__name__)


class Action(ABC):
    """A mutating operation expressed as staged edits.

    Subclasses implement ``stage``; it must be deterministic for a given
    disk state, since it runs once for the preview and again at commit.
    """

    @abstractmethod
    def describe(self) -> str:
        """One-line human description of the change."""

    @abstractmethod
    def stage(self, files: StagedFiles) -> None:
        """Stage the edits this action makes.

        Raises:
            ConfigOpError: If the action is invalid for the current state.
        """

    def lock_keys(self) -> list[str]:
        """Extra lock keys held while planning and committing."""
        return []

    def warnings(self, files: StagedFiles) -> list[str]:
        """Warnings to show alongside the preview."""
        return []

    def prune_dirs(self) -> list[Path]:
        """Directories to remove after commit if they end up empty."""
        return []


@dataclass
class PendingChange:
    """One action moving through the preview/commit lifecycle."""

    action: Action
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    state: ChangeState = ChangeState.DRAFTED
    preview: DiffPreview | None = None


def _current_hash(path: Path) -> str | None:
    if not path.is_file():
        return None
    return compute_integrity(path.read_bytes())


class DiffApplyEngine:
    """Runs actions through the Drafted/Previewed/Committed lifecycle.

    Usage::

        engine = DiffApplyEngine()
        change = engine.draft(action)
        preview = engine.preview(change)
        print(preview.terminal_output)
        if confirmed:
            engine.commit(change)
        else:
            engine.abort(change)
    """

    def __init__(
        self, locks: KeyedLocks | None = None, backups: BackupStore | None = None
    ) -> None:
        self.locks = locks or KeyedLocks()
        self.backups = backups

    # -- Lifecycle ----------------------------------------------------------

    def draft(self, action: Action) -> PendingChange:
        return PendingChange(action=action)

    def preview(self, change: PendingChange) -> DiffPreview:
        """Plan the change without writing anything.

        Raises:
            InvalidTransitionError: If the change is not in ``Drafted``.
            ConfigOpError: If the action rejects the current state.
        """
        self._require(change, ChangeState.DRAFTED, "preview")
        with self.locks.hold(change.action.lock_keys()):
            operations, warnings = self._plan(change.action)
        change.preview = self._build_preview(change.action, operations, warnings)
        change.state = ChangeState.PREVIEWED
        return change.preview

    def commit(self, change: PendingChange) -> OperationResult:
        """Write a previewed change.

        With a ``BackupStore`` configured, the pre-image of every target is
        saved before the first write and the backup id is reported in the
        result (and in ``CommitPartialFailure``).

        Raises:
            InvalidTransitionError: If the change is not in ``Previewed``.
            CommitConflict: If a target changed since the preview.
            CommitPartialFailure: If a write failed after others succeeded.
        """
        self._require(change, ChangeState.PREVIEWED, "commit")
        preview = change.preview
        if preview is None:
            raise InvalidTransitionError("cannot commit a change that has no preview")
        keys = [str(op.path) for op in preview.operations] + change.action.lock_keys()
        with self.locks.hold(keys):
            try:
                operations, _ = self._plan(change.action)
            except ConfigOpError as exc:
                change.state = ChangeState.ABORTED
                first = preview.operations[0].path if preview.operations else None
                raise CommitConflict(first, f"change no longer applies: {exc}") from exc
            self._check_unchanged(change, preview, operations)
            backup_id = self._backup(change, operations)
            applied = self._write_all(change, operations, backup_id)
        change.state = ChangeState.COMMITTED
        logger.info("Committed %s (%s)", change.action.describe(), preview.summary)
        return OperationResult(
            success=True,
            diff=preview.combined_diff,
            preview=preview,
            applied=applied,
            backup_id=backup_id,
        )

    def abort(self, change: PendingChange) -> None:
        if change.state not in (ChangeState.DRAFTED, ChangeState.PREVIEWED):
            raise InvalidTransitionError(f"cannot abort a {change.state.value} change")
        change.state = ChangeState.ABORTED

    def run(self, action: Action, dry_run: bool) -> OperationResult:
        """Preview ``action`` and, unless ``dry_run``, commit it.

        Invalid actions are reported in the result. Commit conflicts and
        partial failures propagate.
        """
        change = self.draft(action)
        try:
            preview = self.preview(change)
        except ConfigOpError as exc:
            self.abort(change)
            return OperationResult.failure(str(exc))
        if dry_run:
            self.abort(change)
            return OperationResult(
                success=True, diff=preview.combined_diff, preview=preview, dry_run=True
            )
        return self.commit(change)

    # -- Internals ----------------------------------------------------------

    @staticmethod
    def _require(change: PendingChange, state: ChangeState, verb: str) -> None:
        if change.state is not state:
            raise InvalidTransitionError(
                f"cannot {verb} a {change.state.value} change (expected {state.value})"
            )

    @staticmethod
    def _plan(action: Action) -> tuple[list[FileOperation], list[str]]:
        files = StagedFiles()
        action.stage(files)
        return files.operations(), action.warnings(files)

    @staticmethod
    def _build_preview(
        action: Action, operations: list[FileOperation], warnings: list[str]
    ) -> DiffPreview:
        return DiffPreview(
            operations=tuple(operations),
            warnings=tuple(warnings),
            summary=DiffSummary.of(operations).one_line(),
            terminal_output=format_plan_terminal(operations, warnings, action.describe()),
        )

    @staticmethod
    def _check_unchanged(
        change: PendingChange, preview: DiffPreview, operations: list[FileOperation]
    ) -> None:
        planned = {op.path: op for op in operations}
        for op in preview.operations:
            current = planned.get(op.path)
            if (
                current is None
                or current.operation_type is not op.operation_type
                or current.before_hash != op.before_hash
                or current.content != op.content
            ):
                change.state = ChangeState.ABORTED
                raise CommitConflict(op.path)
        previewed = {op.path for op in preview.operations}
        for op in operations:
            if op.path not in previewed:
                change.state = ChangeState.ABORTED
                raise CommitConflict(op.path, "not part of the previewed change")

    def _backup(self, change: PendingChange, operations: list[FileOperation]) -> str | None:
        if self.backups is None or not operations:
            return None
        try:
            backup = self.backups.create(
                change.action.describe(), [op.path for op in operations]
            )
        except OSError as exc:
            change.state = ChangeState.ABORTED
            raise BackupError(f"could not back up before writing: {exc}") from exc
        return backup.id

    def _write_all(
        self, change: PendingChange, operations: list[FileOperation], backup_id: str | None
    ) -> list[Path]:
        applied: list[Path] = []
        for index, op in enumerate(operations):
            try:
                if _current_hash(op.path) != op.before_hash:
                    raise CommitConflict(op.path)
                if op.operation_type is OperationType.DELETE:
                    op.path.unlink()
                elif op.content is None:
                    raise CommitConflict(op.path, "no content staged for write")
                else:
                    atomic_write(op.path, op.content)
            except CommitConflict as conflict:
                change.state = ChangeState.ABORTED
                if applied:
                    raise CommitPartialFailure(
                        succeeded=applied,
                        failed_index=index,
                        path=op.path,
                        remaining=[o.path for o in operations[index + 1:]],
                        cause=conflict,
                        backup_id=backup_id,
                    ) from None
                raise
            except OSError as exc:
                change.state = ChangeState.ABORTED
                logger.warning("Write of %s failed: %s", op.path, exc, exc_info=True)
                raise CommitPartialFailure(
                    succeeded=applied,
                    failed_index=index,
                    path=op.path,
                    remaining=[o.path for o in operations[index + 1:]],
                    cause=exc,
                    backup_id=backup_id,
                ) from exc
            applied.append(op.path)

        for directory in change.action.prune_dirs():
            _prune_empty(directory)
        return applied


def _prune_empty(directory: Path) -> None:
    """Remove ``directory`` and its subdirectories if they hold no files."""
    if not directory.is_dir():
        return
    for sub in sorted((p for p in directory.rglob("*") if p.is_dir()), reverse=True):
        try:
            sub.rmdir()
        except OSError:
            continue
    try:
        directory.rmdir()
    except OSError:
        logger.debug("Keeping non-empty directory %s", directory)
