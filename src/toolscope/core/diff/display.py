"""Plain-text rendering of a planned change.

The text form is stored on every ``DiffPreview`` as ``terminal_output`` so
any front end can show exactly what will happen without re-rendering. The
CLI adds color on top of it.
"""

from __future__ import annotations

from toolscope.core.diff.models import DiffSummary, FileOperation, OperationType

_LABELS = {
    OperationType.CREATE: "CREATE",
    OperationType.MODIFY: "MODIFY",
    OperationType.DELETE: "DELETE",
}


def format_plan_terminal(
    operations: list[FileOperation],
    warnings: list[str],
    title: str | None = None,
) -> str:
    """Render operations and warnings as indented text.

    Example output::

        === Diff Plan ===
        Install profile 'web' into /code/app
        Operations: 2

        Warnings:
          [WARN] /code/app has uncommitted changes

          CREATE /code/app/.claude/commands/review.md (120 bytes)
          MODIFY /code/app/.mcp.json (310 bytes)
            --- a/...
            +++ b/...

        2 create(s), 0 modify(s), 0 delete(s) - 430 bytes total
    """
    lines = ["=== Diff Plan ==="]
    if title:
        lines.append(title)
    lines.append(f"Operations: {len(operations)}")

    if warnings:
        lines.append("")
        lines.append("Warnings:")
        lines.extend(f"  [WARN] {warning}" for warning in warnings)

    lines.append("")
    if not operations:
        lines.append("  No changes.")
    for op in operations:
        label = _LABELS[op.operation_type]
        lines.append(f"  {label} {op.path} ({op.size} bytes)")
        if op.diff:
            lines.extend(f"    {line}" for line in op.diff.rstrip("\n").splitlines())

    lines.append("")
    lines.append(DiffSummary.of(operations).one_line())
    return "\n".join(lines) + "\n"
