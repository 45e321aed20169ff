"""
subsite_admin.tier3_platform.multi_tenancy
───────────────────────────────────────────
Subsite catalog. Enumerates every persisted subsite, optionally prefixed by
the synthetic "main site" (id 0), and answers which of them a member may
see. An empty catalog is a valid single-tenant install, never an error.

Backed by: an in-memory store (tests, small hosts) or the host ORM through
the SubsiteStore protocol.
Configure via: SUBSITES_DIRECTORY_BACKEND=memory
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, Protocol, runtime_checkable

from subsite_admin.tier0_core.config import get_config
from subsite_admin.tier0_core.errors import ConfigurationError, ValidationError
from subsite_admin.tier0_core.identity import Member
from subsite_admin.tier1_runtime.state import SubsiteState

if TYPE_CHECKING:
    from subsite_admin.tier3_platform.authorization import AccessEvaluator

MAIN_SITE_ID = 0


@dataclass(frozen=True)
class Subsite:
    id: int
    title: str
    is_default: bool = False

    @property
    def is_main(self) -> bool:
        return self.id == MAIN_SITE_ID


# ── Store protocol ───────────────────────────────────────────────────────────

@runtime_checkable
class SubsiteStore(Protocol):
    def all(self) -> list[Subsite]: ...

    def get(self, subsite_id: int) -> Subsite | None: ...


class InMemorySubsiteStore:
    """
    Subsites held in a list, in insertion order.
    Rejects duplicate or negative ids and more than one default subsite.
    """

    def __init__(self, subsites: Iterable[Subsite] = ()) -> None:
        self._subsites: list[Subsite] = []
        for subsite in subsites:
            self.add(subsite)

    def add(self, subsite: Subsite) -> None:
        if subsite.id < 0:
            raise ValidationError(
                user_message="Subsite id must not be negative.",
                fields={"id": subsite.id},
            )
        if self.get(subsite.id) is not None:
            raise ValidationError(
                user_message="Subsite id already exists.",
                fields={"id": subsite.id},
            )
        if subsite.is_default and any(s.is_default for s in self._subsites):
            raise ValidationError(
                user_message="Only one subsite may be the default site.",
                fields={"is_default": subsite.id},
            )
        self._subsites.append(subsite)

    def all(self) -> list[Subsite]:
        return list(self._subsites)

    def get(self, subsite_id: int) -> Subsite | None:
        for subsite in self._subsites:
            if subsite.id == subsite_id:
                return subsite
        return None


_store: SubsiteStore | None = None


def _build_store() -> SubsiteStore:
    name = get_config().directory_backend.lower()
    if name == "memory":
        return InMemorySubsiteStore()
    raise ConfigurationError(
        detail=f"Unknown SUBSITES_DIRECTORY_BACKEND={name!r}. Valid: memory"
    )


def get_store() -> SubsiteStore:
    global _store
    if _store is None:
        _store = _build_store()
    return _store


def set_store(store: SubsiteStore) -> None:
    """Install the host's subsite store (call once at startup)."""
    global _store
    _store = store


def _reset_store() -> None:
    global _store
    _store = None


# ── Directory ────────────────────────────────────────────────────────────────

class SubsiteDirectory:
    """Read-only view over the subsite store."""

    def __init__(self, store: SubsiteStore | None = None) -> None:
        self._store = store

    @property
    def store(self) -> SubsiteStore:
        return self._store if self._store is not None else get_store()

    def exists(self) -> bool:
        """True when at least one subsite is persisted (multi-tenant mode)."""
        return bool(self.store.all())

    def get(self, subsite_id: int) -> Subsite | None:
        return self.store.get(subsite_id)

    def title_for(self, subsite_id: int) -> str | None:
        if subsite_id == MAIN_SITE_ID and self.store.get(MAIN_SITE_ID) is None:
            return get_config().main_site_title
        subsite = self.store.get(subsite_id)
        return subsite.title if subsite else None

    def list_all(
        self,
        include_main: bool = True,
        main_title: str | None = None,
    ) -> list[Subsite]:
        """
        All persisted subsites in store order. With *include_main*, a
        synthetic main site (id 0, default) is prepended unless a subsite
        with id 0 is already persisted.
        """
        subsites = self.store.all()
        if include_main and not any(s.id == MAIN_SITE_ID for s in subsites):
            main = Subsite(
                id=MAIN_SITE_ID,
                title=main_title or get_config().main_site_title,
                is_default=True,
            )
            subsites.insert(0, main)
        return subsites

    def list_accessible_to(
        self,
        member: Member | None,
        evaluator: "AccessEvaluator",
        state: SubsiteState,
    ) -> list[Subsite]:
        """Subsites (main site included) that *member* is not explicitly denied."""
        from subsite_admin.tier3_platform.authorization import Verdict

        accessible = []
        for subsite in self.list_all():
            verdict = state.probe(
                subsite.id, lambda: evaluator.evaluate_current(member, state)
            )
            if verdict is not Verdict.DENY:
                accessible.append(subsite)
        return accessible


__all__ = [
    "MAIN_SITE_ID", "Subsite", "SubsiteStore", "InMemorySubsiteStore",
    "SubsiteDirectory", "get_store", "set_store",
]
