"""Installing profiles into projects and the user scope.

Three ways to apply a profile:

- ``install_profile_to_project`` copies captured content into the project
  (``.claude/skills``, ``.claude/commands``, ``.claude/agents``), merges MCP
  servers into ``.mcp.json`` and hooks into ``.claude/settings.json``,
  applies the CLAUDE.md overlay and records the assignment.
- ``install_profile_to_user`` does the same against ``~/.claude`` and
  ``~/.claude.json``.
- ``assign_profile_as_plugin`` exports the profile as a plugin inside a
  local marketplace and enables it for the project instead of copying files
  into it. ``install_profile_plugin_to_user`` enables the same plugin for
  the user.

The plugin can be taken back with ``unassign_profile_plugin`` (one
project) or ``uninstall_profile_plugin_from_user``. Its files are removed
from the marketplace once no project or user settings enable it any more.
``sync_profile_to_projects`` re-applies an edited profile to every project
it is assigned to, each project as its own change.

Bare references have no content to copy. They are checked for
availability and reported as preview warnings when missing.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from toolscope.config import McpSource
from toolscope.core.availability import check_availability
from toolscope.core.diff.engine import Action
from toolscope.core.diff.models import OperationResult
from toolscope.core.diff.staging import StagedFiles, normalize_path
from toolscope.core.jsondoc import ensure_path, load_staged, save_staged
from toolscope.core.locks import profile_key
from toolscope.core.marketplace import (
    PLUGIN_VERSION,
    is_enabled,
    plugin_dir,
    plugin_id,
    plugin_slug,
    stage_disable,
    stage_enable,
    stage_publish,
    stage_unpublish,
)
from toolscope.core.mcp_ops import git_dirty_warning, validate_name
from toolscope.core.profiles.models import ClaudeMdMode, Profile, ProjectInfo, ToolRef
from toolscope.core.profiles.storage import (
    CLAUDE_MD,
    captured_files,
    read_hook,
    read_mcp_config,
    safe_filename,
)
from toolscope.core.profiles.store import ProfileStore
from toolscope.core.projects import EditProjects, Mutation
from toolscope.core.scope import Scope
from toolscope.exceptions import (
    CommitConflict,
    CommitPartialFailure,
    ConfigOpError,
    ItemExistsError,
    ItemNotFoundError,
    ReadOnlyScopeError,
)
from toolscope.parsers.base import ToolKind
from toolscope.parsers.frontmatter import render_frontmatter
from toolscope.parsers.markdown_tools import SKILL_FILE

logger = logging.getLogger(__name__)


def overlay_claude_md(existing: str | None, text: str, mode: ClaudeMdMode) -> str:
    """Combine a profile's CLAUDE.md with a target's current one.

    Prepend and append join the two with a blank line. When the target
    already contains the profile text it is left as is, so installing twice
    does not duplicate it.
    """
    if mode is ClaudeMdMode.REPLACE or not existing or not existing.strip():
        return text
    if text.strip() in existing:
        return existing
    if mode is ClaudeMdMode.PREPEND:
        return text.rstrip("\n") + "\n\n" + existing
    return existing.rstrip("\n") + "\n\n" + text


@dataclass(frozen=True)
class InstallTarget:
    """Where a profile's content lands."""

    skills_dir: Path
    commands_dir: Path
    agents_dir: Path
    mcp: McpSource
    settings_file: Path
    claude_md: Path
    project: Path | None = None


@dataclass(frozen=True)
class PluginAssignment:
    """Result of ``assign_profile_as_plugin``."""

    plugin_id: str
    plugin_path: Path
    result: OperationResult


@dataclass(frozen=True)
class ProjectSync:
    """Outcome of re-applying a profile to one assigned project.

    Attributes:
        project: The project.
        as_plugin: True when the project uses the profile plugin rather
            than installed files.
        result: The change's result; failed results carry the reason.
    """

    project: ProjectInfo
    as_plugin: bool
    result: OperationResult


@dataclass
class SyncReport:
    """Per-project outcome of ``sync_profile_to_projects``."""

    profile_id: str
    projects: list[ProjectSync] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(p.result.success for p in self.projects)

    @property
    def failed(self) -> list[ProjectSync]:
        return [p for p in self.projects if not p.result.success]


# ---------------------------------------------------------------------------
# Staging helpers
# ---------------------------------------------------------------------------


def _merge_hook_entries(
    document: dict[str, Any], event: str, entries: list[dict[str, Any]]
) -> None:
    hooks = ensure_path(document, ("hooks",))
    current = hooks.setdefault(event, [])
    if not isinstance(current, list):
        raise ConfigOpError(f"hooks for '{event}' must be a list")
    for entry in entries:
        if entry not in current:
            current.append(copy.deepcopy(entry))


def _merge_permissions(document: dict[str, Any], ref: ToolRef) -> None:
    if ref.permissions is None:
        return
    permissions = ensure_path(document, ("permissions",))
    for key, values in (
        ("allow", ref.permissions.allowed_tools),
        ("deny", ref.permissions.disallowed_tools),
        ("additionalDirectories", ref.permissions.allowed_directories),
    ):
        if not values:
            continue
        current = permissions.setdefault(key, [])
        if not isinstance(current, list):
            raise ConfigOpError(f"permissions.{key} must be a list")
        current.extend(v for v in sorted(values) if v not in current)


def _write_tool_files(
    files: StagedFiles, profile_dir: Path, ref: ToolRef, directory: Path
) -> list[Path]:
    written = []
    base = directory / safe_filename(ref.name) if ref.tool_type is ToolKind.SKILL else directory
    for relative, data in captured_files(files, profile_dir, ref.name, ref.tool_type):
        path = normalize_path(base / relative)
        files.write_bytes(path, data)
        written.append(path)
    return written


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class InstallProfile(Action):
    """Copy a profile's captured content into a project or the user scope."""

    def __init__(
        self,
        profile: Profile,
        profile_dir: Path,
        target: InstallTarget,
        notes: list[str] | None = None,
        assign: EditProjects | None = None,
    ) -> None:
        self.profile = profile
        self.profile_dir = profile_dir
        self.target = target
        self.notes = list(notes or [])
        self.assign = assign
        self._replaced: list[str] = []

    def describe(self) -> str:
        where = self.target.project or "user scope"
        return f"Install profile '{self.profile.name}' into {where}"

    def lock_keys(self) -> list[str]:
        return [profile_key(self.profile.id)]

    def stage(self, files: StagedFiles) -> None:
        self._replaced = []
        target = self.target
        settings = load_staged(files, target.settings_file) or {}
        original_settings = copy.deepcopy(settings)
        mcp_doc: dict[str, Any] | None = None

        for ref in self.profile.tool_refs:
            if ref.source_ref is not None:
                self._stage_ref(files, ref, settings)
                if ref.tool_type is ToolKind.MCP:
                    if mcp_doc is None:
                        mcp_doc = load_staged(files, target.mcp.path) or {}
                    servers = ensure_path(mcp_doc, target.mcp.key_path or ("mcpServers",))
                    config = read_mcp_config(files, self.profile_dir, ref.name)
                    if ref.name in servers and servers[ref.name] != config:
                        self._replaced.append(f"replaces existing MCP server '{ref.name}'")
                    servers[ref.name] = config
            _merge_permissions(settings, ref)

        for plugin in self.profile.plugin_refs:
            enabled = ensure_path(settings, ("enabledPlugins",))
            enabled[plugin.id] = plugin.enabled

        if mcp_doc is not None:
            save_staged(files, target.mcp.path, mcp_doc)
        if settings != original_settings:
            save_staged(files, target.settings_file, settings)

        if self.profile.has_claude_md:
            text = files.read_text(self.profile_dir / CLAUDE_MD)
            if text is not None:
                existing = files.read_text(target.claude_md)
                files.write_text(
                    target.claude_md,
                    overlay_claude_md(existing, text, self.profile.claude_md_mode),
                )

        if self.assign is not None:
            self.assign.stage(files)

    def _stage_ref(self, files: StagedFiles, ref: ToolRef, settings: dict[str, Any]) -> None:
        target = self.target
        if ref.tool_type is ToolKind.SKILL:
            _write_tool_files(files, self.profile_dir, ref, target.skills_dir)
        elif ref.tool_type is ToolKind.COMMAND:
            _write_tool_files(files, self.profile_dir, ref, target.commands_dir)
        elif ref.tool_type is ToolKind.AGENT:
            _write_tool_files(files, self.profile_dir, ref, target.agents_dir)
        elif ref.tool_type is ToolKind.HOOK:
            event, entries = read_hook(files, self.profile_dir, ref.name)
            _merge_hook_entries(settings, event, entries)

    def warnings(self, files: StagedFiles) -> list[str]:
        found = list(self.notes) + list(self._replaced)
        if self.target.project is not None:
            found += git_dirty_warning(self.target.project, self.target.settings_file)
        return found


class ExportProfilePlugin(Action):
    """Write a profile as a plugin into the local marketplace and enable it.

    The plugin is enabled in ``settings_file``: a project's
    ``.claude/settings.json`` (with ``project`` and ``assign`` set) or the
    user's ``~/.claude/settings.json``.
    """

    def __init__(
        self,
        profile: Profile,
        profile_dir: Path,
        marketplace_dir: Path,
        settings_file: Path,
        project: Path | None = None,
        assign: EditProjects | None = None,
        notes: list[str] | None = None,
    ) -> None:
        self.profile = profile
        self.profile_dir = profile_dir
        self.marketplace_dir = marketplace_dir
        self.settings_file = settings_file
        self.project = project
        self.assign = assign
        self.notes = list(notes or [])
        self.slug = plugin_slug(profile.name)

    @property
    def plugin_dir(self) -> Path:
        return plugin_dir(self.marketplace_dir, self.slug)

    @property
    def plugin_id(self) -> str:
        return plugin_id(self.slug)

    def describe(self) -> str:
        where = self.project or "user scope"
        return f"Assign profile '{self.profile.name}' to {where} as plugin {self.plugin_id}"

    def lock_keys(self) -> list[str]:
        return [profile_key(self.profile.id)]

    def _manifest(self) -> dict[str, Any]:
        return {
            "name": self.slug,
            "description": self.profile.description or f"toolscope profile {self.profile.name}",
            "version": PLUGIN_VERSION,
        }

    def stage(self, files: StagedFiles) -> None:
        plugin_dir = self.plugin_dir
        written: list[Path] = []

        manifest_file = normalize_path(plugin_dir / ".claude-plugin" / "plugin.json")
        save_staged(files, manifest_file, self._manifest())
        written.append(manifest_file)

        servers: dict[str, Any] = {}
        hooks: dict[str, Any] = {}
        for ref in self.profile.tool_refs:
            if ref.source_ref is None:
                continue
            if ref.tool_type is ToolKind.SKILL:
                written += _write_tool_files(files, self.profile_dir, ref, plugin_dir / "skills")
            elif ref.tool_type is ToolKind.COMMAND:
                written += _write_tool_files(
                    files, self.profile_dir, ref, plugin_dir / "commands"
                )
            elif ref.tool_type is ToolKind.AGENT:
                written += _write_tool_files(files, self.profile_dir, ref, plugin_dir / "agents")
            elif ref.tool_type is ToolKind.MCP:
                servers[ref.name] = read_mcp_config(files, self.profile_dir, ref.name)
            else:
                event, entries = read_hook(files, self.profile_dir, ref.name)
                _merge_hook_entries(hooks, event, entries)

        if servers:
            mcp_file = normalize_path(plugin_dir / ".mcp.json")
            save_staged(files, mcp_file, {"mcpServers": servers})
            written.append(mcp_file)
        if hooks:
            hooks_file = normalize_path(plugin_dir / "hooks" / "hooks.json")
            save_staged(files, hooks_file, hooks)
            written.append(hooks_file)

        for stale in files.files_under(plugin_dir):
            if stale not in written:
                files.delete(stale)

        stage_publish(files, self.marketplace_dir, self.slug, self._manifest())
        stage_enable(files, self.settings_file, self.plugin_id, self.marketplace_dir)
        if self.assign is not None:
            self.assign.stage(files)

    def warnings(self, files: StagedFiles) -> list[str]:
        if self.project is None:
            return list(self.notes)
        return list(self.notes) + git_dirty_warning(self.project, self.settings_file)


class UnassignProfilePlugin(Action):
    """Disable a profile plugin in one settings file.

    The plugin's files and marketplace entry are removed as well when none
    of ``other_settings`` still enables it. With ``assign`` set the
    registry assignment is cleared in the same change, and a settings file
    that never enabled the plugin is not an error.
    """

    def __init__(
        self,
        slug: str,
        marketplace_dir: Path,
        settings_file: Path,
        other_settings: list[Path],
        project: Path | None = None,
        assign: EditProjects | None = None,
    ) -> None:
        self.slug = slug
        self.marketplace_dir = marketplace_dir
        self.settings_file = settings_file
        self.other_settings = other_settings
        self.project = project
        self.assign = assign

    @property
    def plugin_id(self) -> str:
        return plugin_id(self.slug)

    def describe(self) -> str:
        where = self.project or "user scope"
        return f"Unassign plugin {self.plugin_id} from {where}"

    def stage(self, files: StagedFiles) -> None:
        was_enabled = stage_disable(files, self.settings_file, self.plugin_id)
        if not was_enabled and self.assign is None:
            raise ItemNotFoundError(
                f"plugin {self.plugin_id} is not enabled in {self.settings_file}"
            )
        if not any(is_enabled(files, path, self.plugin_id) for path in self.other_settings):
            stage_unpublish(files, self.marketplace_dir, self.slug)
        if self.assign is not None:
            self.assign.stage(files)

    def prune_dirs(self) -> list[Path]:
        return [plugin_dir(self.marketplace_dir, self.slug)]

    def warnings(self, files: StagedFiles) -> list[str]:
        if self.project is None:
            return []
        return git_dirty_warning(self.project, self.settings_file)


class CreateSkill(Action):
    """Write a new ``SKILL.md`` under a scope's skills directory."""

    def __init__(self, skill_dir: Path, name: str, description: str, body: str) -> None:
        self.skill_dir = skill_dir
        self.name = name
        self.description = description
        self.body = body

    def describe(self) -> str:
        return f"Create skill '{self.name}'"

    def stage(self, files: StagedFiles) -> None:
        if files.files_under(self.skill_dir):
            raise ItemExistsError(f"skill '{self.name}' already exists at {self.skill_dir}")
        document = render_frontmatter(
            {"name": self.name, "description": self.description}, self.body
        )
        files.write_text(self.skill_dir / SKILL_FILE, document)


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------


def _assign_mutation(project_path: Path, profile_id: str) -> Mutation:
    def mutate(projects: list[ProjectInfo], now: str) -> None:
        for project in projects:
            if project.path == project_path:
                break
        else:
            project = ProjectInfo.for_path(project_path)
            project.created_at = now
            projects.append(project)
        project.assigned_profile_id = profile_id
        project.updated_at = now

    return mutate


class ProfileInstaller:
    """Applies profiles to projects and the user scope.

    Usage::

        installer = ProfileInstaller(ProfileStore(paths))
        result = installer.install_profile_to_project(profile.id, project, dry_run=True)
        print(result.preview.terminal_output)
    """

    def __init__(self, store: ProfileStore) -> None:
        self.store = store
        self.paths = store.paths
        self.engine = store.engine

    def _missing_refs(self, profile: Profile, project: Path | None) -> list[str]:
        bare = [ref for ref in profile.tool_refs if ref.source_ref is None]
        if not bare:
            return []
        inventory = self.store.builder.build([project] if project is not None else [])
        notes = []
        for ref in bare:
            availability = check_availability(ref, inventory, project)
            if not availability.available:
                notes.append(f"{ref.name}: {availability.reason}")
        return notes

    def install_profile_to_project(
        self, profile_id: str, project_path: Path, dry_run: bool = False
    ) -> OperationResult:
        """Install a profile into one project and record the assignment."""
        profile = self.store.get(profile_id)
        project = project_path.resolve()
        claude = project / ".claude"
        target = InstallTarget(
            skills_dir=claude / "skills",
            commands_dir=claude / "commands",
            agents_dir=claude / "agents",
            mcp=self.paths.mcp_source(Scope.project(), project),
            settings_file=claude / "settings.json",
            claude_md=project / "CLAUDE.md",
            project=project,
        )
        assign = EditProjects(
            self.paths.projects_file,
            f"Assign profile '{profile.name}' to {project}",
            _assign_mutation(project, profile.id),
        )
        action = InstallProfile(
            profile,
            self.store.profile_dir(profile.id),
            target,
            notes=self._missing_refs(profile, project),
            assign=assign,
        )
        result = self.engine.run(action, dry_run)
        if result.success and not dry_run:
            logger.info("Installed profile %s into %s", profile.name, project)
        return result

    def install_profile_to_user(self, profile_id: str, dry_run: bool = False) -> OperationResult:
        """Install a profile into ``~/.claude`` and ``~/.claude.json``."""
        profile = self.store.get(profile_id)
        claude = self.paths.claude_dir
        target = InstallTarget(
            skills_dir=claude / "skills",
            commands_dir=claude / "commands",
            agents_dir=claude / "agents",
            mcp=self.paths.mcp_source(Scope.user()),
            settings_file=self.paths.user_settings_file,
            claude_md=claude / "CLAUDE.md",
        )
        action = InstallProfile(
            profile,
            self.store.profile_dir(profile.id),
            target,
            notes=self._missing_refs(profile, None),
        )
        result = self.engine.run(action, dry_run)
        if result.success and not dry_run:
            logger.info("Installed profile %s into the user scope", profile.name)
        return result

    def _plugin_notes(self, profile: Profile) -> list[str]:
        return [
            f"{ref.name}: references are not exported into plugins"
            for ref in profile.tool_refs
            if ref.source_ref is None
        ]

    def _plugin_settings(self, profile_id: str, skip: Path | None = None) -> list[Path]:
        """Every settings file that may enable the profile's plugin, except ``skip``."""
        candidates = [
            p.path / ".claude" / "settings.json"
            for p in self.store.registry.projects_for_profile(profile_id)
        ]
        candidates.append(self.paths.user_settings_file)
        return [path for path in candidates if path != skip]

    def assign_profile_as_plugin(
        self, project_id: str, profile_id: str, dry_run: bool = False
    ) -> PluginAssignment:
        """Export a profile as a plugin and enable it for a registered project.

        Raises:
            ProjectNotFoundError: If the project is not registered.
            ProfileNotFoundError: If the profile does not exist.
        """
        project = self.store.registry.get(project_id)
        profile = self.store.get(profile_id)
        action = ExportProfilePlugin(
            profile,
            self.store.profile_dir(profile.id),
            self.paths.marketplace_dir,
            project.path / ".claude" / "settings.json",
            project=project.path,
            assign=EditProjects(
                self.paths.projects_file,
                f"Assign profile '{profile.name}' to {project.name}",
                _assign_mutation(project.path, profile.id),
            ),
            notes=self._plugin_notes(profile),
        )
        result = self.engine.run(action, dry_run)
        return PluginAssignment(action.plugin_id, action.plugin_dir, result)

    def install_profile_plugin_to_user(
        self, profile_id: str, dry_run: bool = False
    ) -> PluginAssignment:
        """Export a profile as a plugin and enable it in the user settings."""
        profile = self.store.get(profile_id)
        action = ExportProfilePlugin(
            profile,
            self.store.profile_dir(profile.id),
            self.paths.marketplace_dir,
            self.paths.user_settings_file,
            notes=self._plugin_notes(profile),
        )
        result = self.engine.run(action, dry_run)
        if result.success and not dry_run:
            logger.info("Enabled plugin %s for the user", action.plugin_id)
        return PluginAssignment(action.plugin_id, action.plugin_dir, result)

    def unassign_profile_plugin(self, project_id: str, dry_run: bool = False) -> OperationResult:
        """Disable a project's profile plugin and clear its assignment.

        The plugin is removed from the marketplace when no other project
        and not the user still enables it.

        Raises:
            ProjectNotFoundError: If the project is not registered.
            ProfileNotFoundError: If the assigned profile no longer exists.
        """
        project = self.store.registry.get(project_id)
        if project.assigned_profile_id is None:
            return OperationResult.failure(f"project {project.name} has no assigned profile")
        profile = self.store.get(project.assigned_profile_id)
        settings_file = project.path / ".claude" / "settings.json"

        def clear(projects: list[ProjectInfo], now: str) -> None:
            for entry in projects:
                if entry.id == project.id:
                    entry.assigned_profile_id = None
                    entry.updated_at = now

        action = UnassignProfilePlugin(
            plugin_slug(profile.name),
            self.paths.marketplace_dir,
            settings_file,
            self._plugin_settings(profile.id, skip=settings_file),
            project=project.path,
            assign=EditProjects(
                self.paths.projects_file, f"Unassign profile from {project.name}", clear
            ),
        )
        result = self.engine.run(action, dry_run)
        if result.success and not dry_run:
            logger.info("Unassigned plugin %s from %s", action.plugin_id, project.path)
        return result

    def uninstall_profile_plugin_from_user(
        self, profile_id: str, dry_run: bool = False
    ) -> OperationResult:
        """Disable a profile's plugin in the user settings.

        Fails (in the result) when the user settings do not enable it.
        """
        profile = self.store.get(profile_id)
        settings_file = self.paths.user_settings_file
        action = UnassignProfilePlugin(
            plugin_slug(profile.name),
            self.paths.marketplace_dir,
            settings_file,
            self._plugin_settings(profile.id, skip=settings_file),
        )
        return self.engine.run(action, dry_run)

    def uninstall_profile_plugin_from_project(
        self, project_path: Path, profile_id: str, dry_run: bool = False
    ) -> OperationResult:
        """Disable a profile's plugin in any project directory's settings."""
        profile = self.store.get(profile_id)
        project = project_path.resolve()
        settings_file = project / ".claude" / "settings.json"
        action = UnassignProfilePlugin(
            plugin_slug(profile.name),
            self.paths.marketplace_dir,
            settings_file,
            self._plugin_settings(profile.id, skip=settings_file),
            project=project,
        )
        return self.engine.run(action, dry_run)

    def sync_profile_to_projects(self, profile_id: str, dry_run: bool = False) -> SyncReport:
        """Re-apply a profile to every project it is assigned to.

        A project whose settings enable the profile plugin gets the plugin
        exported again; any other project gets the profile installed again.
        Each project is its own change, so one failing project does not
        stop the rest.

        Raises:
            ProfileNotFoundError: If the profile does not exist.
        """
        profile = self.store.get(profile_id)
        plugin = plugin_id(plugin_slug(profile.name))
        report = SyncReport(profile.id)
        for project in profile.assigned_projects:
            settings_file = project.path / ".claude" / "settings.json"
            as_plugin = False
            if not project.path.is_dir():
                result = OperationResult.failure(f"{project.path} does not exist")
            else:
                try:
                    as_plugin = is_enabled(StagedFiles(), settings_file, plugin)
                    if as_plugin:
                        result = self.assign_profile_as_plugin(
                            project.id, profile.id, dry_run
                        ).result
                    else:
                        result = self.install_profile_to_project(
                            profile.id, project.path, dry_run
                        )
                except (CommitConflict, CommitPartialFailure, ConfigOpError) as exc:
                    result = OperationResult.failure(str(exc))
            if not result.success:
                logger.warning(
                    "Sync of %s into %s failed: %s", profile.name, project.path, result.error
                )
            report.projects.append(ProjectSync(project, as_plugin, result))
        logger.info(
            "Synced profile %s to %d project(s), %d failed",
            profile.name,
            len(report.projects),
            len(report.failed),
        )
        return report

    def create_skill(
        self,
        scope_root: Path,
        scope: Scope,
        name: str,
        description: str,
        body: str,
        dry_run: bool = False,
    ) -> OperationResult:
        """Create a skill in a writable scope.

        Args:
            scope_root: Home directory for the user scope, project
                directory for the project scope.
            scope: Target scope.
            name: Skill name, also its directory name.
            description: Frontmatter description.
            body: Markdown instructions.
            dry_run: Only preview the change.
        """
        try:
            validate_name(name, "skill name")
            if not scope.is_writable:
                raise ReadOnlyScopeError(f"{scope} scope is read-only")
            layout = self.paths.layout_for(scope, scope_root)
            if layout.skills_dir is None:
                raise ReadOnlyScopeError(f"{scope} scope has no skills directory")
        except ConfigOpError as exc:
            return OperationResult.failure(str(exc))
        action = CreateSkill(layout.skills_dir / name, name, description, body)
        return self.engine.run(action, dry_run)
