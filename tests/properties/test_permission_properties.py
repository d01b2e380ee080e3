"""Property-based tests for tool permission normalization.

Verifies:
- Empty permission sets always normalize to None
- Normalization is idempotent
- Adding then removing a fresh value restores the original
- Serialized lists are sorted, so equal sets serialize identically
"""
from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from toolscope.core.profiles.models import PERMISSION_FIELDS, ToolPermissions

values = st.frozensets(st.sampled_from(["Bash", "Read", "Edit", "/srv", "/tmp"]), max_size=4)


@st.composite
def permissions(draw: st.DrawFn) -> ToolPermissions:
    return ToolPermissions(
        allowed_directories=draw(values),
        allowed_tools=draw(values),
        disallowed_tools=draw(values),
    )


@given(perms=permissions())
def test_normalize_idempotent(perms: ToolPermissions) -> None:
    """normalize(normalize(p)) == normalize(p), and empty becomes None."""
    once = ToolPermissions.normalize(perms)
    assert ToolPermissions.normalize(once) == once
    assert (once is None) == perms.is_empty


@given(perms=permissions(), field_name=st.sampled_from(PERMISSION_FIELDS))
def test_add_then_remove_fresh_value(perms: ToolPermissions, field_name: str) -> None:
    """Adding a value not present and removing it again is a no-op."""
    fresh = "Fresh-Value"
    added = ToolPermissions.with_added(perms, field_name, fresh)
    assert added is not None
    assert fresh in getattr(added, field_name)
    restored = ToolPermissions.with_removed(added, field_name, fresh)
    assert restored == ToolPermissions.normalize(perms)


@given(perms=permissions())
def test_serialized_lists_sorted(perms: ToolPermissions) -> None:
    """Every serialized field is a sorted list."""
    for name, items in perms.to_dict().items():
        assert items == sorted(getattr(perms, name))
    assert ToolPermissions.from_dict(perms.to_dict()) == ToolPermissions.normalize(perms)
