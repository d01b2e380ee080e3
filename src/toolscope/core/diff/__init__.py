"""Diff/apply engine: staged edits, previews and guarded commits."""

from toolscope.core.diff.engine import Action, DiffApplyEngine, PendingChange
from toolscope.core.diff.models import (
    ChangeState,
    DiffPreview,
    DiffSummary,
    FileOperation,
    OperationResult,
    OperationType,
)
from toolscope.core.diff.staging import StagedFiles

__all__ = [
    "Action",
    "ChangeState",
    "DiffApplyEngine",
    "DiffPreview",
    "DiffSummary",
    "FileOperation",
    "OperationResult",
    "OperationType",
    "PendingChange",
    "StagedFiles",
]
