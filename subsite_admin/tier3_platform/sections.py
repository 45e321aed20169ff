"""
subsite_admin.tier3_platform.sections
──────────────────────────────────────
Admin sections (pages, files, security, ...) and the subsites each one is
accessible on.

Sections are registered once at startup in menu order. Every section
exposes the same access capability (AccessCheckable), so visibility and the
redirect fallback search never need to inspect section types at runtime.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Protocol, runtime_checkable

from subsite_admin.tier0_core.config import get_config
from subsite_admin.tier0_core.errors import NotFoundError, ValidationError
from subsite_admin.tier0_core.identity import Member, MemberDirectory, get_member_directory
from subsite_admin.tier0_core.logging import get_logger
from subsite_admin.tier1_runtime.context import get_current_member, get_subsite_state
from subsite_admin.tier1_runtime.state import SubsiteState
from subsite_admin.tier3_platform.authorization import AccessEvaluator, Verdict
from subsite_admin.tier3_platform.multi_tenancy import Subsite, SubsiteDirectory

logger = get_logger(__name__)


def join_links(*parts: object) -> str:
    """
    Join URL segments with single slashes; segments starting with ``?``
    (or containing one) contribute to the query string.

        >>> join_links("/admin/pages/", "show", 5, "?SubsiteID=2")
        '/admin/pages/show/5?SubsiteID=2'
    """
    segments: list[str] = []
    queries: list[str] = []
    for part in parts:
        path, _, query = str(part).partition("?")
        if query:
            queries.append(query)
        if path.strip("/"):
            segments.append(path.strip("/"))
    leading = "/" if parts and str(parts[0]).startswith("/") else ""
    url = leading + "/".join(segments)
    if queries:
        url += "?" + "&".join(queries)
    return url


# ── Capability ───────────────────────────────────────────────────────────────

@runtime_checkable
class AccessCheckable(Protocol):
    name: str
    url: str
    is_page_editing: bool
    treats_subsite_0_as_global: bool

    @property
    def current_page_session_key(self) -> str: ...

    def link(self, *parts: object) -> str: ...

    def can_access(self, member: Member | None, state: SubsiteState) -> Verdict: ...

    def can_view(self, member: Member | None, state: SubsiteState) -> bool: ...


@dataclass(eq=False)
class AdminSection:
    """
    A registered admin section.

    ``treats_subsite_0_as_global``: records with subsite id 0 are shared by
    all subsites (e.g. files), so viewing one never forces a switch.
    ``show_in_subsite_menu``: listed in the menu while a non-main subsite is
    current. ``is_xhr``: background endpoint, never listed.
    """
    name: str
    url: str
    evaluator: AccessEvaluator = field(default_factory=AccessEvaluator)
    is_page_editing: bool = False
    treats_subsite_0_as_global: bool = False
    show_in_subsite_menu: bool = False
    is_xhr: bool = False
    session_namespace: str | None = None
    permission_code: str | None = None

    @property
    def required_permission(self) -> str:
        return self.permission_code or f"CMS_ACCESS_{self.name}"

    @property
    def current_page_session_key(self) -> str:
        return f"{self.session_namespace or self.name}.currentPage"

    def link(self, *parts: object) -> str:
        return join_links(self.url, *parts)

    def can_access(self, member: Member | None, state: SubsiteState) -> Verdict:
        return self.evaluator.evaluate_current(member, state)

    def can_view(self, member: Member | None, state: SubsiteState) -> bool:
        """
        False on an explicit DENY; otherwise the broader policy decides:
        the member needs this section's permission code (or all-sections).
        """
        if self.can_access(member, state) is Verdict.DENY:
            return False
        if member is None:
            return False
        oracle = self.evaluator.oracle
        return (
            oracle.has_capability(member, self.required_permission)
            or oracle.has_capability(member, get_config().all_sections_capability)
        )


def alternate_access_check(
    section: AccessCheckable, member: Member | None, state: SubsiteState
) -> bool | None:
    """Host access-check hook: False on explicit denial, None to defer."""
    if section.can_access(member, state) is Verdict.DENY:
        return False
    return None


# ── Registry ─────────────────────────────────────────────────────────────────

class SectionRegistry:
    """Admin sections in registration (menu) order."""

    def __init__(self, sections: list[AccessCheckable] | None = None) -> None:
        self._sections: list[AccessCheckable] = []
        for section in sections or []:
            self.register(section)

    def register(self, section: AccessCheckable) -> AccessCheckable:
        if section.name in self:
            raise ValidationError(
                user_message="Admin section already registered.",
                fields={"name": section.name},
            )
        self._sections.append(section)
        return section

    def find(self, name: str) -> AccessCheckable | None:
        for section in self._sections:
            if section.name == name:
                return section
        return None

    def get(self, name: str) -> AccessCheckable:
        section = self.find(name)
        if section is None:
            raise NotFoundError(detail=f"No admin section named {name!r}", section=name)
        return section

    def __iter__(self) -> Iterator[AccessCheckable]:
        return iter(list(self._sections))

    def __len__(self) -> int:
        return len(self._sections)

    def __contains__(self, name: object) -> bool:
        return any(section.name == name for section in self._sections)


# ── Visibility ───────────────────────────────────────────────────────────────

class SectionVisibility:
    """Which subsites an admin section is accessible on, per member."""

    def __init__(
        self,
        directory: SubsiteDirectory | None = None,
        members: MemberDirectory | None = None,
    ) -> None:
        self.directory = directory or SubsiteDirectory()
        self._members = members

    def _resolve_member(self, member: Member | int | None) -> Member | None:
        if member is None:
            return get_current_member()
        if isinstance(member, Member):
            return member
        members = self._members or get_member_directory()
        found = members.get_member(int(member))
        if found is None:
            logger.warning("section.member_not_found", member_id=member)
        return found

    def accessible_subsites(
        self,
        section: AccessCheckable,
        member: Member | int | None = None,
        include_main: bool = True,
        main_title: str | None = None,
        *,
        state: SubsiteState | None = None,
    ) -> list[Subsite]:
        """
        Subsites *section* may be used on by *member*, in catalog order.

        Each subsite is probed in turn; only an explicit DENY excludes it.
        Without a member (none given and none on the request) nothing is
        accessible.
        """
        resolved = self._resolve_member(member)
        if resolved is None:
            return []
        state = state if state is not None else get_subsite_state()

        accessible = []
        for subsite in self.directory.list_all(include_main, main_title):
            verdict = state.probe(subsite.id, lambda: section.can_access(resolved, state))
            if verdict is Verdict.DENY:
                continue
            accessible.append(subsite)

        logger.debug(
            "section.accessible_subsites",
            section=section.name,
            member_id=resolved.id,
            subsite_ids=[s.id for s in accessible],
        )
        return accessible


__all__ = [
    "AccessCheckable", "AdminSection", "SectionRegistry", "SectionVisibility",
    "alternate_access_check", "join_links",
]
