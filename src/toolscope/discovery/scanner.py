"""Scope scanner: read one scope root into ``ToolRecord`` values.

The scanner asks ``ConfigPaths.layout_for`` where the scope keeps each kind
of definition, then hands every location to the registered parser for that
kind. Locations that do not exist contribute nothing; a scope that does
not exist yet is simply empty.

Also provides two read-only helpers used alongside scanning:

- ``git_info(path)`` reports branch, dirty state and origin remote. Git runs
  with system and global config disabled so user aliases or hooks cannot
  change its output.
- ``discover_projects(folder)`` finds candidate project directories below a
  development folder.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from toolscope.config import ConfigPaths
from toolscope.core.profiles.models import ProjectInfo
from toolscope.core.scope import Scope
from toolscope.discovery.models import GitInfo
from toolscope.parsers.base import ScanOutcome, ToolKind
from toolscope.parsers.registry import ParserRegistry, default_registry

logger = logging.getLogger(__name__)

_GIT_TIMEOUT_SECONDS = 5

# Directories never descended into when discovering projects.
_SKIP_DIRS = {
    "node_modules",
    "target",
    "build",
    "dist",
    "vendor",
    "venv",
    "__pycache__",
}

# Any of these marks a directory as a project candidate.
_PROJECT_MARKERS = (".claude", ".mcp.json", "CLAUDE.md", ".git")


class ScopeScanner:
    """Scans one scope root into a ``ScanOutcome``.

    Usage::

        scanner = ScopeScanner(ConfigPaths.from_env())
        outcome = scanner.scan(Path("~/code/app").expanduser(), Scope.project())
        for record in outcome.records:
            print(record.kind.value, record.name)
    """

    def __init__(self, paths: ConfigPaths, registry: ParserRegistry | None = None) -> None:
        self.paths = paths
        self.registry = registry or default_registry()

    def scan(self, root: Path, scope: Scope) -> ScanOutcome:
        """Scan the files of ``scope`` located under ``root``.

        Args:
            root: Home directory (user), managed directory (managed),
                project directory (project, local) or plugin install path.
            scope: The scope being scanned.

        Returns:
            Records sorted by kind, name and path, plus warnings for every
            skipped file.
        """
        layout = self.paths.layout_for(scope, root)
        outcome = ScanOutcome()

        for kind, directory in (
            (ToolKind.SKILL, layout.skills_dir),
            (ToolKind.COMMAND, layout.commands_dir),
            (ToolKind.AGENT, layout.agents_dir),
        ):
            if directory is not None:
                outcome.extend(self.registry.get(kind).parse(directory, scope))

        for source in layout.mcp_sources:
            outcome.extend(self.registry.mcp.parse_source(source, scope))

        hooks_parser = self.registry.get(ToolKind.HOOK)
        for settings_file in (*layout.settings_files, *layout.hooks_files):
            outcome.extend(hooks_parser.parse(settings_file, scope))

        outcome.records.sort(key=lambda r: (r.kind.value, r.name.casefold(), str(r.path)))
        for warning in outcome.warnings:
            logger.warning("Skipped %s (%s)", warning, scope)
        return outcome


def _run_git(path: Path, *args: str) -> str | None:
    env = dict(os.environ)
    env["GIT_CONFIG_NOSYSTEM"] = "1"
    env["GIT_CONFIG_GLOBAL"] = os.devnull
    try:
        completed = subprocess.run(
            ["git", *args],
            cwd=path,
            env=env,
            capture_output=True,
            text=True,
            timeout=_GIT_TIMEOUT_SECONDS,
            check=False,
        )
    except (OSError, subprocess.SubprocessError):
        logger.debug("git %s failed in %s", " ".join(args), path, exc_info=True)
        return None
    if completed.returncode != 0:
        return None
    return completed.stdout


def git_info(path: Path) -> GitInfo | None:
    """Return git status for ``path``, or None if it is not a repository."""
    if not (path / ".git").exists():
        return None
    status = _run_git(path, "status", "--porcelain", "-b")
    if status is None:
        return None
    lines = status.splitlines()
    branch: str | None = None
    if lines and lines[0].startswith("## "):
        header = lines[0][3:]
        if header.startswith("No commits yet on "):
            branch = header[len("No commits yet on "):]
        else:
            branch = header.split("...", 1)[0].split(" ", 1)[0]
        lines = lines[1:]
    remote = _run_git(path, "remote", "get-url", "origin")
    return GitInfo(
        branch=branch,
        is_dirty=any(line.strip() for line in lines),
        remote_url=remote.strip() if remote else None,
    )


def _is_project(directory: Path) -> bool:
    return any((directory / marker).exists() for marker in _PROJECT_MARKERS)


def discover_projects(folder: Path, max_depth: int = 2) -> list[ProjectInfo]:
    """Find project directories under a development folder.

    A directory is a project if it contains ``.claude/``, ``.mcp.json``,
    ``CLAUDE.md`` or ``.git``. Projects are not searched for nested
    projects. Hidden and build/vendor directories are skipped.

    Args:
        folder: Folder to search.
        max_depth: How many directory levels below ``folder`` to search.

    Returns:
        Discovered projects sorted by path. Empty if ``folder`` is missing.
    """
    found: list[ProjectInfo] = []
    if not folder.is_dir():
        return found

    def walk(directory: Path, depth: int) -> None:
        try:
            children = sorted(p for p in directory.iterdir() if p.is_dir())
        except (PermissionError, OSError):
            logger.debug("Cannot list %s", directory, exc_info=True)
            return
        for child in children:
            if child.name.startswith(".") or child.name in _SKIP_DIRS:
                continue
            if _is_project(child):
                found.append(ProjectInfo.for_path(child))
            elif depth < max_depth:
                walk(child, depth + 1)

    if _is_project(folder):
        found.append(ProjectInfo.for_path(folder))
    else:
        walk(folder, 1)
    return sorted(found, key=lambda p: str(p.path))
