"""
subsite_admin.tier3_platform.switcher
──────────────────────────────────────
Data for the admin chrome: the subsite switcher dropdown, the tree title,
menu filtering while a subsite is current, and tree loaders pinned to a
fixed subsite.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from subsite_admin.tier0_core.config import get_config
from subsite_admin.tier0_core.identity import GroupPermissionOracle, Member, PermissionOracle
from subsite_admin.tier1_runtime.context import get_subsite_state
from subsite_admin.tier1_runtime.state import SubsiteState, parse_subsite_id
from subsite_admin.tier3_platform.authorization import AccessEvaluator
from subsite_admin.tier3_platform.multi_tenancy import MAIN_SITE_ID, SubsiteDirectory
from subsite_admin.tier3_platform.sections import AdminSection

T = TypeVar("T")


@dataclass(frozen=True)
class SwitcherEntry:
    id: int
    title: str
    selected: bool = False


def cms_tree_title(directory: SubsiteDirectory, state: SubsiteState) -> str:
    """Title of the current subsite, or the generic tree title on the main site."""
    subsite_id = state.get_subsite_id()
    if subsite_id == MAIN_SITE_ID:
        return get_config().default_tree_title
    subsite = directory.get(subsite_id)
    return subsite.title if subsite else get_config().default_tree_title


def list_subsites(
    directory: SubsiteDirectory,
    evaluator: AccessEvaluator,
    member: Member | None,
    state: SubsiteState,
) -> list[SwitcherEntry] | None:
    """
    Entries for the switcher dropdown, or None when there is nothing to
    switch between (no accessible subsite, or only the default one).
    """
    accessible = directory.list_accessible_to(member, evaluator, state)
    if not accessible or (len(accessible) == 1 and accessible[0].is_default):
        return None

    current_id = state.get_subsite_id()
    return [
        SwitcherEntry(id=s.id, title=s.title, selected=s.id == current_id)
        for s in accessible
    ]


def alternate_menu_display_check(section: AdminSection, state: SubsiteState) -> bool:
    if section.is_xhr:
        return False
    # Main site always supports everything.
    if state.get_subsite_id() == MAIN_SITE_ID:
        return True
    return section.show_in_subsite_menu


def can_add_subsites(member: Member | None, oracle: PermissionOracle | None = None) -> bool:
    if member is None:
        return False
    oracle = oracle or GroupPermissionOracle()
    return oracle.has_capability(member, get_config().admin_capability)


def new_item_subsite_id(posted: Any, state: SubsiteState) -> int:
    """Subsite for a newly created record: the posted id if set, else the current one."""
    return parse_subsite_id(posted) or state.get_subsite_id()


class ScopedTreeLoader(Generic[T]):
    """
    Wraps a tree loader so it always runs on ``subsite_id``, whatever the
    request's current subsite is. Used by tree dropdowns that pick records
    from another subsite.
    """

    def __init__(self, loader: Callable[..., T], subsite_id: int = MAIN_SITE_ID) -> None:
        self.loader = loader
        self.subsite_id = subsite_id

    def tree(self, *args: Any, state: SubsiteState | None = None, **kwargs: Any) -> T:
        state = state if state is not None else get_subsite_state()
        with state.probing(self.subsite_id):
            return self.loader(*args, **kwargs)


__all__ = [
    "SwitcherEntry", "cms_tree_title", "list_subsites", "alternate_menu_display_check",
    "can_add_subsites", "new_item_subsite_id", "ScopedTreeLoader",
]
