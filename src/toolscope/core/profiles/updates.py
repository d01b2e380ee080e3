"""Track-mode update checks and pulls.

A tool captured in ``track`` mode remembers where it came from and the hash
of its content at the last sync. ``check_profile_updates`` re-reads every
origin and reports the tools whose content has drifted;
``pull_tool_update`` copies the current origin content into the profile.

Both hold the profile's lock for their whole duration, so a check never
observes a capture half way and two pulls of the same profile cannot
interleave.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from toolscope.core.locks import profile_key
from toolscope.core.profiles.models import SourceMode, ToolRef, ToolType
from toolscope.core.profiles.storage import locate_record
from toolscope.core.profiles.store import ProfileStore
from toolscope.exceptions import ProfileError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolUpdate:
    """A tracked tool whose origin no longer matches the profile copy."""

    name: str
    tool_type: ToolType
    origin_path: Path
    old_hash: str
    new_hash: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "tool_type": self.tool_type.value,
            "origin_path": str(self.origin_path),
            "old_hash": self.old_hash,
            "new_hash": self.new_hash,
        }


@dataclass
class UpdateCheck:
    """Result of checking one profile's tracked tools."""

    profile_id: str
    updates: list[ToolUpdate] = field(default_factory=list)
    missing_sources: list[str] = field(default_factory=list)
    total_checked: int = 0

    def has_update(self, name: str) -> bool:
        folded = name.casefold()
        return any(u.name.casefold() == folded for u in self.updates)

    def as_mapping(self) -> dict[str, bool]:
        """Tool name to whether an update is available, for tracked tools."""
        mapping = {name: False for name in self.missing_sources}
        mapping.update({u.name: True for u in self.updates})
        return mapping

    def to_dict(self) -> dict[str, Any]:
        return {
            "profile_id": self.profile_id,
            "updates": [u.to_dict() for u in self.updates],
            "missing_sources": list(self.missing_sources),
            "total_checked": self.total_checked,
        }


@dataclass(frozen=True)
class PullResult:
    """Outcome of pulling one tracked tool."""

    name: str
    changed: bool
    updated_at: str


def current_hash(ref: ToolRef) -> str | None:
    """Hash of the ref's origin content right now; None if it is gone."""
    if ref.source_ref is None:
        return None
    source = ref.source_ref
    record = locate_record(
        ref.name, ref.tool_type, source.origin_path, source.origin_key, ref.source_scope
    )
    return record.sha256 if record is not None else None


def check_profile_updates(store: ProfileStore, profile_id: str) -> UpdateCheck:
    """Compare every tracked tool of a profile with its origin.

    Pinned tools and bare references are skipped. A tracked tool whose
    origin no longer exists is listed in ``missing_sources`` and is never
    reported as an update.

    Raises:
        ProfileNotFoundError: If the profile does not exist.
    """
    with store.engine.locks.hold([profile_key(profile_id)]):
        profile = store.get(profile_id)
        check = UpdateCheck(profile_id=profile_id)
        for ref in profile.tool_refs:
            if ref.source_ref is None or ref.source_ref.mode is not SourceMode.TRACK:
                continue
            check.total_checked += 1
            new_hash = current_hash(ref)
            if new_hash is None:
                check.missing_sources.append(ref.name)
            elif new_hash != ref.source_ref.source_hash:
                check.updates.append(
                    ToolUpdate(
                        name=ref.name,
                        tool_type=ref.tool_type,
                        origin_path=ref.source_ref.origin_path,
                        old_hash=ref.source_ref.source_hash,
                        new_hash=new_hash,
                    )
                )
    logger.debug(
        "Checked %d tracked tool(s) of %s: %d update(s), %d missing",
        check.total_checked,
        profile_id,
        len(check.updates),
        len(check.missing_sources),
    )
    return check


def pull_tool_update(store: ProfileStore, profile_id: str, tool_name: str) -> PullResult:
    """Re-capture one tool's origin content into the profile.

    Pulling a tool that is already in sync changes nothing, including the
    profile's ``updated_at``.

    Raises:
        ProfileError: If the tool is unknown, was never captured, or its
            origin no longer exists.
    """
    with store.engine.locks.hold([profile_key(profile_id)]):
        profile = store.get(profile_id)
        index = profile.find_tool(tool_name)
        if index is None:
            raise ProfileError(f"profile '{profile.name}' has no tool named '{tool_name}'")
        ref = profile.tool_refs[index]
        if ref.source_ref is None:
            raise ProfileError(f"'{ref.name}' is a reference, not captured content")
        new_hash = current_hash(ref)
        if new_hash is None:
            raise ProfileError(
                f"origin of '{ref.name}' no longer exists: {ref.source_ref.origin_path}"
            )
        if new_hash == ref.source_ref.source_hash:
            return PullResult(name=ref.name, changed=False, updated_at=profile.updated_at)
        store.recapture(profile_id, ref)
        updated = store.get(profile_id)
    logger.info("Pulled update of %s into profile %s", ref.name, profile.name)
    return PullResult(name=ref.name, changed=True, updated_at=updated.updated_at)
