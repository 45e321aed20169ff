"""
subsite_admin.tier0_core.identity
──────────────────────────────────
Members, groups and the permission oracle. Groups carry both permission
codes and the group→subsite grants that the access evaluator inspects.

Records are read-only from this package's perspective; they are loaded by
the host's persistence layer and handed in as frozen dataclasses.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Protocol, runtime_checkable

from subsite_admin.tier0_core.config import get_config
from subsite_admin.tier0_core.errors import ConfigurationError


# ── Domain model ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Group:
    """Security group. ``subsite_ids`` is the many-to-many subsite grant."""
    id: int
    title: str = ""
    access_all_subsites: bool = False
    subsite_ids: frozenset[int] = field(default_factory=frozenset)
    permissions: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class Member:
    """An admin user and the groups it belongs to."""
    id: int
    email: str | None = None
    groups: tuple[Group, ...] = field(default_factory=tuple)

    def permission_codes(self) -> frozenset[str]:
        codes: set[str] = set()
        for group in self.groups:
            codes.update(group.permissions)
        return frozenset(codes)

    def has_permission(self, code: str) -> bool:
        """True if any group grants *code*. The admin code implies every code."""
        codes = self.permission_codes()
        return code in codes or get_config().admin_capability in codes

    @property
    def is_admin(self) -> bool:
        return get_config().admin_capability in self.permission_codes()


# ── Permission oracle ────────────────────────────────────────────────────────

@runtime_checkable
class PermissionOracle(Protocol):
    """Answers capability questions for the global-admin short-circuit."""

    def has_capability(self, member: Member, capability: str) -> bool: ...


class GroupPermissionOracle:
    """Default oracle: capabilities are the permission codes on a member's groups."""

    def has_capability(self, member: Member, capability: str) -> bool:
        return member.has_permission(capability)


# ── Member directory ─────────────────────────────────────────────────────────

@runtime_checkable
class MemberDirectory(Protocol):
    def get_member(self, member_id: int) -> Member | None: ...


class InMemoryMemberDirectory:
    """Members keyed by id. Safe for tests and single-process hosts."""

    def __init__(self, members: Iterable[Member] = ()) -> None:
        self._members: dict[int, Member] = {m.id: m for m in members}

    def add(self, member: Member) -> None:
        self._members[member.id] = member

    def get_member(self, member_id: int) -> Member | None:
        return self._members.get(member_id)


_directory: MemberDirectory | None = None


def _build_directory() -> MemberDirectory:
    name = get_config().directory_backend.lower()
    if name == "memory":
        return InMemoryMemberDirectory()
    raise ConfigurationError(
        detail=f"Unknown SUBSITES_DIRECTORY_BACKEND={name!r}. Valid: memory"
    )


def get_member_directory() -> MemberDirectory:
    global _directory
    if _directory is None:
        _directory = _build_directory()
    return _directory


def set_member_directory(directory: MemberDirectory) -> None:
    """Install the host's member directory (call once at startup)."""
    global _directory
    _directory = directory


def _reset_member_directory() -> None:
    """For tests: reset so env changes take effect."""
    global _directory
    _directory = None


__all__ = [
    "Group", "Member", "PermissionOracle", "GroupPermissionOracle",
    "MemberDirectory", "InMemoryMemberDirectory", "get_member_directory",
    "set_member_directory",
]
