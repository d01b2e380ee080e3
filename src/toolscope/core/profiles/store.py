"""Profile persistence and capture.

``ProfileStore`` keeps every profile in its own directory under
``<data_dir>/profiles/`` (see ``toolscope.core.profiles.storage`` for the
layout). All writes are ``EditProfile`` actions run through the
``DiffApplyEngine`` and hold the ``profile:<id>`` lock, so two captures into
the same profile are serialized and every write is atomic.

Capturing tools is deliberately per tool: ``add_tools_from_source`` commits
one change per requested tool and reports failures individually, so one
unreadable definition never blocks the rest.

Usage::

    store = ProfileStore(ConfigPaths.from_env())
    profile = store.create("backend")
    report = store.add_tools_from_source(
        profile.id,
        Path("/code/api"),
        [ToolSpec("deploy", ToolType.SKILL, SourceMode.TRACK)],
    )
    for failure in report.failed:
        print(failure)
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from toolscope.config import ConfigPaths
from toolscope.core.diff.engine import Action, DiffApplyEngine
from toolscope.core.diff.models import OperationResult
from toolscope.core.diff.staging import StagedFiles
from toolscope.core.jsondoc import dumps, load_staged
from toolscope.core.locks import profile_key
from toolscope.core.marketplace import (
    plugin_dir,
    plugin_id,
    plugin_slug,
    stage_disable,
    stage_unpublish,
)
from toolscope.core.mcp_ops import validate_name
from toolscope.core.profiles.models import (
    ClaudeMdMode,
    Profile,
    ProfilePluginRef,
    ProfileSummary,
    ProjectInfo,
    SourceMode,
    SourceRef,
    ToolPermissions,
    ToolRef,
    ToolSpec,
    ToolType,
    utc_now,
)
from toolscope.core.profiles.storage import (
    CLAUDE_MD,
    CONTENT_DIRS,
    PROFILE_FILE,
    locate_record,
    stage_content,
    stage_remove_content,
)
from toolscope.core.projects import EditProjects, ProjectRegistry
from toolscope.core.scope import Scope, ScopeKind
from toolscope.discovery.inventory import InventoryBuilder
from toolscope.discovery.models import Inventory
from toolscope.discovery.plugins import read_installed_plugins
from toolscope.discovery.scanner import discover_projects
from toolscope.exceptions import (
    CaptureFailure,
    ConfigOpError,
    ItemExistsError,
    ItemNotFoundError,
    ProfileError,
    ProfileNotFoundError,
    ToolScopeError,
    ValidationError,
)
from toolscope.parsers.base import ToolKind, ToolRecord

logger = logging.getLogger(__name__)

ProfileMutation = Callable[[Profile, StagedFiles, str], None]


@dataclass
class CaptureReport:
    """Per-tool outcome of ``add_tools_from_source``."""

    succeeded: list[ToolRef] = field(default_factory=list)
    failed: list[CaptureFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


def _decode_profile(files: StagedFiles, profile_file: Path) -> Profile | None:
    document = load_staged(files, profile_file)
    if document is None:
        return None
    try:
        return Profile.from_dict(document)
    except (KeyError, TypeError, ValueError) as exc:
        raise ConfigOpError(f"{profile_file} is malformed: {exc}") from exc


class EditProfile(Action):
    """Apply a mutation to one profile and write ``profile.json``.

    With ``initial`` set the profile is created; the action fails if it
    already exists. Otherwise the profile must exist.
    """

    def __init__(
        self,
        profile_dir: Path,
        profile_id: str,
        description: str,
        mutate: ProfileMutation,
        initial: Profile | None = None,
    ) -> None:
        self.profile_dir = profile_dir
        self.profile_id = profile_id
        self.description = description
        self.mutate = mutate
        self.initial = initial
        self.now = initial.created_at if initial is not None else utc_now()

    def describe(self) -> str:
        return self.description

    def lock_keys(self) -> list[str]:
        return [profile_key(self.profile_id)]

    def stage(self, files: StagedFiles) -> None:
        profile_file = self.profile_dir / PROFILE_FILE
        profile = _decode_profile(files, profile_file)
        if self.initial is not None:
            if profile is not None:
                raise ItemExistsError(f"profile '{self.profile_id}' already exists")
            profile = Profile.from_dict(self.initial.to_dict())
        elif profile is None:
            raise ItemNotFoundError(f"profile '{self.profile_id}' not found")
        self.mutate(profile, files, self.now)
        profile.updated_at = self.now
        files.write_text(profile_file, dumps(profile.to_dict()))

    def prune_dirs(self) -> list[Path]:
        return [self.profile_dir / name for name in CONTENT_DIRS.values()]


class DeleteProfile(Action):
    """Remove a profile directory and everything captured in it.

    When the profile was exported as a plugin, the plugin's files and
    marketplace entry go too, and the plugin is disabled in every
    ``settings_files`` that enables it. ``assign`` clears the registry
    assignments in the same change.
    """

    def __init__(
        self,
        profile_dir: Path,
        profile_id: str,
        marketplace_dir: Path | None = None,
        slug: str | None = None,
        settings_files: list[Path] | None = None,
        assign: EditProjects | None = None,
    ) -> None:
        self.profile_dir = profile_dir
        self.profile_id = profile_id
        self.marketplace_dir = marketplace_dir
        self.slug = slug
        self.settings_files = list(settings_files or [])
        self.assign = assign

    def describe(self) -> str:
        return f"Delete profile {self.profile_id}"

    def lock_keys(self) -> list[str]:
        return [profile_key(self.profile_id)]

    def stage(self, files: StagedFiles) -> None:
        if not files.exists(self.profile_dir / PROFILE_FILE):
            raise ItemNotFoundError(f"profile '{self.profile_id}' not found")
        files.delete_tree(self.profile_dir)
        if self.marketplace_dir is not None and self.slug is not None:
            for settings_file in self.settings_files:
                stage_disable(files, settings_file, plugin_id(self.slug))
            stage_unpublish(files, self.marketplace_dir, self.slug)
        if self.assign is not None:
            self.assign.stage(files)

    def prune_dirs(self) -> list[Path]:
        dirs = [self.profile_dir]
        if self.marketplace_dir is not None and self.slug is not None:
            dirs.append(plugin_dir(self.marketplace_dir, self.slug))
        return dirs


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class ProfileStore:
    """Create, read, edit and delete profiles.

    Invalid requests (unknown profile, bad index, duplicate name) raise
    ``ProfileError``. Commit conflicts and partial commits from the engine
    propagate unchanged.
    """

    def __init__(
        self,
        paths: ConfigPaths,
        engine: DiffApplyEngine | None = None,
        registry: ProjectRegistry | None = None,
        builder: InventoryBuilder | None = None,
    ) -> None:
        self.paths = paths
        self.engine = engine or DiffApplyEngine()
        self.registry = registry or ProjectRegistry(paths, self.engine)
        self.builder = builder or InventoryBuilder(paths)
        self.scanner = self.builder.scanner

    def profile_dir(self, profile_id: str) -> Path:
        return self.paths.profiles_dir / profile_id

    # -- Reads --------------------------------------------------------------

    def _load(self, profile_id: str) -> Profile:
        profile_file = self.profile_dir(profile_id) / PROFILE_FILE
        unsafe = profile_id in ("", ".", "..") or Path(profile_id).name != profile_id
        if unsafe or not profile_file.is_file():
            raise ProfileNotFoundError(f"profile '{profile_id}' not found")
        try:
            return Profile.from_dict(json.loads(profile_file.read_text(encoding="utf-8")))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            raise ProfileError(f"{profile_file} is malformed: {exc}") from exc

    def get(self, profile_id: str) -> Profile:
        """Load a profile with ``assigned_projects`` filled in.

        Raises:
            ProfileNotFoundError: If no such profile exists.
        """
        profile = self._load(profile_id)
        profile.assigned_projects = self.registry.projects_for_profile(profile_id)
        return profile

    def _all(self) -> list[Profile]:
        root = self.paths.profiles_dir
        if not root.is_dir():
            return []
        profiles = []
        for entry in sorted(root.iterdir()):
            if not (entry / PROFILE_FILE).is_file():
                continue
            try:
                profiles.append(self._load(entry.name))
            except ProfileError as exc:
                logger.warning("Skipping profile %s: %s", entry.name, exc)
        return profiles

    def list(self) -> list[ProfileSummary]:
        """Summaries of every profile, sorted by name."""
        assigned: dict[str, int] = {}
        for project in self.registry.list_projects():
            if project.assigned_profile_id:
                pid = project.assigned_profile_id
                assigned[pid] = assigned.get(pid, 0) + 1
        summaries = [
            ProfileSummary(
                id=p.id,
                name=p.name,
                description=p.description,
                tool_count=len(p.tool_refs),
                plugin_count=len(p.plugin_refs),
                assigned_count=assigned.get(p.id, 0),
                updated_at=p.updated_at,
            )
            for p in self._all()
        ]
        return sorted(summaries, key=lambda s: (s.name.casefold(), s.id))

    def find_by_name(self, name: str) -> Profile | None:
        folded = name.casefold()
        for profile in self._all():
            if profile.name.casefold() == folded:
                return profile
        return None

    def resolve(self, id_or_name: str) -> Profile:
        """Look a profile up by id, falling back to its name."""
        try:
            return self.get(id_or_name)
        except ProfileNotFoundError:
            profile = self.find_by_name(id_or_name)
            if profile is None:
                raise
            return self.get(profile.id)

    def read_claude_md(self, profile_id: str) -> str | None:
        path = self.profile_dir(profile_id) / CLAUDE_MD
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    # -- Writes -------------------------------------------------------------

    def _apply(self, action: Action, dry_run: bool = False) -> OperationResult:
        result = self.engine.run(action, dry_run)
        if not result.success:
            raise ProfileError(result.error or action.describe())
        return result

    def _edit(
        self,
        profile_id: str,
        description: str,
        mutate: ProfileMutation,
        dry_run: bool = False,
    ) -> OperationResult:
        self._load(profile_id)
        action = EditProfile(self.profile_dir(profile_id), profile_id, description, mutate)
        return self._apply(action, dry_run)

    def create(
        self, name: str, source: Path | None = None, description: str | None = None
    ) -> Profile:
        """Create a profile, optionally snapshotting a project into it.

        With ``source`` set, every tool in the project's Project and Local
        scopes is captured in pin mode, together with its CLAUDE.md.
        Tools that fail to capture are logged and left out.

        Raises:
            ProfileError: If the name is invalid or already taken.
        """
        try:
            validate_name(name, "profile name")
        except ValidationError as exc:
            raise ProfileError(str(exc)) from exc
        if self.find_by_name(name) is not None:
            raise ProfileError(f"a profile named '{name}' already exists")

        profile = Profile.new(name, description)
        action = EditProfile(
            self.profile_dir(profile.id),
            profile.id,
            f"Create profile '{name}'",
            lambda p, files, now: None,
            initial=profile,
        )
        self._apply(action)
        logger.info("Created profile %s (%s)", name, profile.id)

        if source is not None:
            project = source.resolve()
            specs = list(
                dict.fromkeys(
                    ToolSpec(r.name, r.kind, SourceMode.PIN)
                    for r in self._source_records(project)
                )
            )
            report = self.add_tools_from_source(profile.id, project, specs)
            for failure in report.failed:
                logger.warning("Snapshot of %s: %s", project, failure)
            claude_md = project / "CLAUDE.md"
            if claude_md.is_file():
                self.set_claude_md(
                    profile.id, claude_md.read_text(encoding="utf-8"), ClaudeMdMode.REPLACE
                )
        return self.get(profile.id)

    def delete(self, profile_id: str, dry_run: bool = False) -> OperationResult:
        """Delete a profile, its exported plugin and its project assignments."""
        profile = self._load(profile_id)
        assigned = self.registry.projects_for_profile(profile_id)
        settings_files = [p.path / ".claude" / "settings.json" for p in assigned]
        settings_files.append(self.paths.user_settings_file)

        def unassign(projects: list[ProjectInfo], now: str) -> None:
            for project in projects:
                if project.assigned_profile_id == profile_id:
                    project.assigned_profile_id = None
                    project.updated_at = now

        action = DeleteProfile(
            self.profile_dir(profile_id),
            profile_id,
            marketplace_dir=self.paths.marketplace_dir,
            slug=plugin_slug(profile.name),
            settings_files=settings_files,
            assign=(
                EditProjects(
                    self.paths.projects_file, f"Unassign profile {profile_id}", unassign
                )
                if assigned
                else None
            ),
        )
        result = self._apply(action, dry_run)
        if not dry_run:
            logger.info("Deleted profile %s", profile_id)
        return result

    def add_tools(
        self, profile_id: str, refs: list[ToolRef], dry_run: bool = False
    ) -> OperationResult:
        """Add bare references; an existing ref with the same key is replaced."""

        def mutate(profile: Profile, files: StagedFiles, now: str) -> None:
            for ref in refs:
                index = profile.find_tool(ref.name, ref.tool_type)
                if index is None:
                    profile.tool_refs.append(ref)
                else:
                    old = profile.tool_refs[index]
                    if old.source_ref is not None:
                        stage_remove_content(
                            files, self.profile_dir(profile_id), old.name, old.tool_type
                        )
                    profile.tool_refs[index] = ref

        return self._edit(profile_id, f"Add {len(refs)} tool(s) to profile", mutate, dry_run)

    def remove_tool(self, profile_id: str, index: int, dry_run: bool = False) -> OperationResult:
        """Remove the tool at ``index`` together with its captured content."""

        def mutate(profile: Profile, files: StagedFiles, now: str) -> None:
            if not 0 <= index < len(profile.tool_refs):
                raise ValidationError(f"no tool at index {index}")
            ref = profile.tool_refs.pop(index)
            if ref.source_ref is not None:
                stage_remove_content(
                    files, self.profile_dir(profile_id), ref.name, ref.tool_type
                )

        return self._edit(profile_id, f"Remove tool #{index} from profile", mutate, dry_run)

    def add_plugins(
        self, profile_id: str, plugin_refs: list[ProfilePluginRef], dry_run: bool = False
    ) -> OperationResult:
        """Add plugin references; an existing ref with the same id is replaced."""

        def mutate(profile: Profile, files: StagedFiles, now: str) -> None:
            for ref in plugin_refs:
                profile.plugin_refs = [p for p in profile.plugin_refs if p.id != ref.id]
                profile.plugin_refs.append(ref)

        return self._edit(profile_id, "Add plugins to profile", mutate, dry_run)

    def set_tool_permissions(
        self,
        profile_id: str,
        index: int,
        permissions: ToolPermissions | None,
        dry_run: bool = False,
    ) -> OperationResult:
        def mutate(profile: Profile, files: StagedFiles, now: str) -> None:
            if not 0 <= index < len(profile.tool_refs):
                raise ValidationError(f"no tool at index {index}")
            ref = profile.tool_refs[index]
            profile.tool_refs[index] = ToolRef(
                ref.name, ref.tool_type, ref.source_scope, permissions, ref.source_ref
            )

        return self._edit(profile_id, f"Set permissions of tool #{index}", mutate, dry_run)

    def set_claude_md(
        self,
        profile_id: str,
        text: str | None,
        mode: ClaudeMdMode | None = None,
        dry_run: bool = False,
    ) -> OperationResult:
        """Set (or, with ``text=None``, drop) the profile's CLAUDE.md overlay."""
        target = self.profile_dir(profile_id) / CLAUDE_MD

        def mutate(profile: Profile, files: StagedFiles, now: str) -> None:
            if text is None:
                if files.exists(target):
                    files.delete(target)
                profile.has_claude_md = False
            else:
                files.write_text(target, text)
                profile.has_claude_md = True
            if mode is not None:
                profile.claude_md_mode = mode

        return self._edit(profile_id, "Set profile CLAUDE.md", mutate, dry_run)

    # -- Capture ------------------------------------------------------------

    def _source_records(self, source: Path | Scope) -> list[ToolRecord]:
        if isinstance(source, Path):
            project = source.resolve()
            outcome = self.scanner.scan(project, Scope.project())
            outcome.extend(self.scanner.scan(project, Scope.local()))
            return outcome.records
        if source.kind is ScopeKind.USER:
            return self.scanner.scan(self.paths.home, source).records
        if source.kind is ScopeKind.MANAGED:
            return self.scanner.scan(self.paths.managed_dir, source).records
        if source.kind is ScopeKind.PLUGIN:
            plugins, _ = read_installed_plugins(self.paths)
            for plugin in plugins:
                if plugin.id == source.plugin_id:
                    return self.scanner.scan(plugin.install_path, source).records
            raise ProfileError(f"plugin '{source.plugin_id}' is not installed")
        raise ProfileError(f"{source} scope needs a project path")

    def _capture_action(
        self,
        profile_id: str,
        name: str,
        tool_type: ToolType,
        origin: Path,
        origin_key: tuple[str, ...],
        scope: Scope | None,
        mode: SourceMode,
    ) -> EditProfile:
        profile_dir = self.profile_dir(profile_id)

        def mutate(profile: Profile, files: StagedFiles, now: str) -> None:
            record = locate_record(name, tool_type, origin, origin_key, scope)
            if record is None:
                raise ItemNotFoundError(f"{tool_type.value} '{name}' not found at {origin}")
            permissions = None
            index = profile.find_tool(record.name, record.kind)
            if index is not None:
                old = profile.tool_refs[index]
                permissions = old.permissions
                if old.source_ref is not None and old.name != record.name:
                    stage_remove_content(files, profile_dir, old.name, old.tool_type)
            stage_content(files, profile_dir, record)
            ref = ToolRef(
                name=record.name,
                tool_type=record.kind,
                source_scope=record.scope,
                permissions=permissions,
                source_ref=SourceRef(
                    mode=mode,
                    origin_path=record.path,
                    source_hash=record.sha256,
                    synced_at=now,
                    origin_key=origin_key,
                ),
            )
            if index is None:
                profile.tool_refs.append(ref)
            else:
                profile.tool_refs[index] = ref

        return EditProfile(
            profile_dir, profile_id, f"Capture {tool_type.value} '{name}' into profile", mutate
        )

    def capture_record(
        self, profile_id: str, record: ToolRecord, mode: SourceMode = SourceMode.PIN
    ) -> ToolRef:
        """Capture one discovered tool as its own committed change.

        Raises:
            CaptureFailure: If the tool cannot be read or the commit fails.
        """
        origin_key: tuple[str, ...] = ()
        if record.kind is ToolKind.MCP:
            origin_key = tuple(record.metadata.get("key_path", ()))
        try:
            action = self._capture_action(
                profile_id, record.name, record.kind, record.path, origin_key, record.scope, mode
            )
            self._apply(action)
            profile = self._load(profile_id)
        except (ToolScopeError, OSError) as exc:
            raise CaptureFailure(record.name, record.kind.value, str(exc)) from exc
        index = profile.find_tool(record.name, record.kind)
        if index is None:
            raise CaptureFailure(record.name, record.kind.value, "not recorded in profile")
        return profile.tool_refs[index]

    def recapture(self, profile_id: str, ref: ToolRef) -> OperationResult:
        """Copy a captured tool's origin into the profile again, keeping its mode."""
        if ref.source_ref is None:
            raise ProfileError(f"{ref.tool_type.value} '{ref.name}' has no captured source")
        source = ref.source_ref
        action = self._capture_action(
            profile_id,
            ref.name,
            ref.tool_type,
            source.origin_path,
            source.origin_key,
            ref.source_scope,
            source.mode,
        )
        return self._apply(action)

    def add_tools_from_source(
        self,
        profile_id: str,
        source: Path | Scope | None,
        tool_specs: list[ToolSpec],
    ) -> CaptureReport:
        """Capture tools from a project or scope, one committed change each.

        Args:
            profile_id: Target profile.
            source: A project directory (Project and Local scopes) or a
                User, Managed or Plugin scope. May be None when every ``ToolSpec``
                names its own ``origin`` project.
            tool_specs: Tools to capture and the mode for each. A spec
                with ``origin`` set is looked up in that project instead
                of ``source``.

        Returns:
            Which tools were captured and which failed, and why.

        Raises:
            ProfileNotFoundError: If the profile does not exist.
            ProfileError: If the source itself cannot be scanned.
        """
        self._load(profile_id)
        scanned: dict[Path | Scope, list[ToolRecord]] = {}
        report = CaptureReport()
        for spec in tool_specs:
            origin = spec.origin.resolve() if spec.origin is not None else source
            if origin is None:
                report.failed.append(
                    CaptureFailure(spec.name, spec.tool_type.value, "no source given")
                )
                continue
            if origin not in scanned:
                scanned[origin] = self._source_records(origin)
            folded = spec.name.casefold()
            matches = [
                r
                for r in scanned[origin]
                if r.kind is spec.tool_type and r.name.casefold() == folded
            ]
            if not matches:
                report.failed.append(
                    CaptureFailure(spec.name, spec.tool_type.value, f"not found in {origin}")
                )
                continue
            # Local shadows Project within the same project.
            record = min(matches, key=lambda r: (r.scope.sort_key(), str(r.path)))
            try:
                report.succeeded.append(self.capture_record(profile_id, record, spec.mode))
            except CaptureFailure as failure:
                logger.warning("%s", failure)
                report.failed.append(failure)
        logger.info(
            "Captured %d tool(s) into %s, %d failed",
            len(report.succeeded),
            profile_id,
            len(report.failed),
        )
        return report

    # -- Wizard steps ---------------------------------------------------------

    def discover_projects(self, folder: Path, max_depth: int = 2) -> list[ProjectInfo]:
        return discover_projects(folder, max_depth)

    def registered_projects(self) -> list[ProjectInfo]:
        return self.registry.list_projects()

    def scan_candidates(self, project_paths: list[Path]) -> Inventory:
        return self.builder.build(project_paths, include_managed=False, include_plugins=False)

    def candidate_specs(
        self, inventory: Inventory, mode: SourceMode = SourceMode.PIN
    ) -> list[ToolSpec]:
        """One ``ToolSpec`` per distinct project or local tool in ``inventory``.

        Each spec carries the project it was found in as its ``origin``.
        When several projects define the same name and type, the first
        project scanned supplies it.
        """
        seen: set[tuple[str, ToolType]] = set()
        specs: list[ToolSpec] = []
        for project in inventory.projects:
            for record in project.all_records:
                key = (record.name.casefold(), record.kind)
                if key not in seen:
                    seen.add(key)
                    specs.append(ToolSpec(record.name, record.kind, mode, origin=project.path))
        return specs

    def create_from_projects(
        self,
        name: str,
        project_paths: list[Path],
        description: str | None = None,
        mode: SourceMode = SourceMode.PIN,
        select: Callable[[list[ToolSpec]], list[ToolSpec]] | None = None,
    ) -> tuple[Profile, CaptureReport]:
        """Create a profile from the tools of several projects.

        Runs the scan and select steps over ``project_paths`` (from
        ``discover_projects`` or ``registered_projects``), creates the
        profile, then captures every selected tool from its own project.

        Args:
            name: Profile name.
            project_paths: Candidate projects.
            description: Profile description.
            mode: Capture mode for every tool.
            select: Narrows the candidate list; all candidates when None.

        Raises:
            ProfileError: If the name is invalid or already taken.
        """
        inventory = self.scan_candidates(project_paths)
        for project in inventory.projects:
            if project.error:
                logger.warning("Skipping tools of %s: %s", project.path, project.error)
        specs = self.candidate_specs(inventory, mode)
        if select is not None:
            specs = select(specs)
        profile = self.create(name, description=description)
        report = self.add_tools_from_source(profile.id, None, specs)
        return self.get(profile.id), report
