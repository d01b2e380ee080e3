"""toolscope exception hierarchy.

All public exceptions inherit from ToolScopeError, giving callers a single
base class to catch when they want to handle any toolscope-specific failure
without swallowing unrelated errors.

Scanning and capture errors are mostly recovered locally and surface as
warnings or partial results. Commit conflicts and partial commits are the
errors a caller is expected to act on, so they carry the path and operation
index needed to retry narrowly.
"""

from __future__ import annotations

from pathlib import Path


class ToolScopeError(Exception):
    """Base exception for all toolscope errors."""


class ScanIoError(ToolScopeError):
    """Raised when a scope file or directory cannot be read.

    Non-fatal during scans: the file is skipped and a warning recorded.
    """


class ParseError(ToolScopeError):
    """Raised when a tool definition cannot be parsed.

    Covers malformed YAML frontmatter, invalid JSON, and missing required
    fields. Non-fatal per file during scans.
    """


class CollisionAmbiguous(ToolScopeError):
    """Raised when no winner can be chosen for a collision.

    Precedence is total, so this indicates an internal invariant violation
    (for example resolving an empty occurrence list).
    """


class AvailabilityUnknown(ToolScopeError):
    """Describes a tool whose availability could not be determined.

    Never raised out of the availability checker; its message is reported
    as the ``reason`` of an unavailable result.
    """


class CaptureFailure(ToolScopeError):
    """Raised when capturing one tool's content into a profile fails."""

    def __init__(self, name: str, tool_type: str, reason: str) -> None:
        super().__init__(f"failed to capture {tool_type} '{name}': {reason}")
        self.name = name
        self.tool_type = tool_type
        self.reason = reason


class CommitConflict(ToolScopeError):
    """Raised when a target file changed between preview and commit.

    ``path`` is None when the conflict is not tied to one file, for example
    when a change that planned no writes no longer applies at all.
    """

    def __init__(self, path: Path | None, detail: str = "file changed since preview") -> None:
        super().__init__(f"{path}: {detail}" if path is not None else detail)
        self.path = path
        self.detail = detail


class CommitPartialFailure(ToolScopeError):
    """Raised when a multi-file commit stops part way through.

    Attributes:
        succeeded: Paths written before the failure, in operation order.
        failed_index: Index of the operation that failed.
        path: Path of the operation that failed.
        remaining: Paths that were not attempted.
        backup_id: Backup taken before the first write, when the engine
            keeps backups. Restoring it undoes the writes that succeeded.
    """

    def __init__(
        self,
        succeeded: list[Path],
        failed_index: int,
        path: Path,
        remaining: list[Path],
        cause: BaseException,
        backup_id: str | None = None,
    ) -> None:
        super().__init__(
            f"commit failed at operation {failed_index} ({path}): {cause}; "
            f"{len(succeeded)} operation(s) already applied"
        )
        self.succeeded = succeeded
        self.failed_index = failed_index
        self.path = path
        self.remaining = remaining
        self.cause = cause
        self.backup_id = backup_id


class InvalidTransitionError(ToolScopeError):
    """Raised when a pending change is moved to a state it cannot reach."""


class ConfigOpError(ToolScopeError):
    """Base class for failures of mutating config operations."""


class ValidationError(ConfigOpError):
    """Raised for invalid names or server definitions."""


class ItemExistsError(ConfigOpError):
    """Raised when adding an item that is already present in the scope."""


class ItemNotFoundError(ConfigOpError):
    """Raised when the item to change does not exist."""


class AmbiguousItemError(ConfigOpError):
    """Raised when an item exists in several scopes and none was given."""


class ReadOnlyScopeError(ConfigOpError):
    """Raised when a mutation targets the managed or a plugin scope."""


class BackupError(ConfigOpError):
    """Raised when a backup is missing, malformed or fails its integrity check."""


class ProfileError(ToolScopeError):
    """Raised for invalid profile operations."""


class ProfileNotFoundError(ProfileError):
    """Raised when a profile id does not exist in the store."""


class ProjectNotFoundError(ToolScopeError):
    """Raised when a project id or path is not registered."""
