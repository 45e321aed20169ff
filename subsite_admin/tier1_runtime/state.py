"""
subsite_admin.tier1_runtime.state
──────────────────────────────────
Current-subsite state for one request, plus the session it persists to.

A SubsiteState is created per request (never shared across concurrent
requests). Two kinds of mutation exist:

  - persistent: ``change_subsite`` sets the id and writes it to the session
    so the next request starts on it.
  - probed: ``probing``/``probe`` swap the id for the duration of a block
    and restore it (and the changed flag) on exit, even when the block
    raises. Probes nest LIFO and never touch the session.
"""
from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Callable, Iterator, MutableMapping, Protocol, TypeVar, runtime_checkable

from subsite_admin.tier0_core.config import get_config
from subsite_admin.tier0_core.logging import get_logger

T = TypeVar("T")

logger = get_logger(__name__)


# ── Session ──────────────────────────────────────────────────────────────────

@runtime_checkable
class SessionStore(Protocol):
    """Session-scoped storage owned by the host framework."""

    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def clear(self, key: str) -> None: ...


class DictSession:
    """Adapt any mutable mapping (Flask/Starlette/Django session) to SessionStore."""

    def __init__(self, data: MutableMapping[str, Any] | None = None) -> None:
        self.data: MutableMapping[str, Any] = data if data is not None else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = value

    def clear(self, key: str) -> None:
        self.data.pop(key, None)


def parse_subsite_id(value: Any) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# ── State ────────────────────────────────────────────────────────────────────

class SubsiteState:
    """The request's current subsite id and whether it changed this request."""

    def __init__(self, subsite_id: int = 0, session: SessionStore | None = None) -> None:
        self._subsite_id = int(subsite_id)
        self._changed = False
        self._session = session

    @classmethod
    def from_session(
        cls,
        session: SessionStore | None,
        switch_signal: int | None = None,
    ) -> "SubsiteState":
        """
        Materialise the state at request start.

        Reads the persisted id from *session*; when the request carries an
        explicit switch signal it is applied persistently. A switch on a
        session that never held a subsite id counts as a change.
        """
        persisted = parse_subsite_id(session.get(get_config().session_key)) if session else None
        state = cls(persisted if persisted is not None else 0, session=session)
        if switch_signal is not None:
            state.change_subsite(switch_signal)
            if persisted is None:
                state._changed = True
        return state

    @property
    def session(self) -> SessionStore | None:
        return self._session

    def get_subsite_id(self) -> int:
        return self._subsite_id

    def set_subsite_id(self, subsite_id: int) -> None:
        subsite_id = int(subsite_id)
        if subsite_id != self._subsite_id:
            self._changed = True
        self._subsite_id = subsite_id

    def subsite_id_was_changed(self) -> bool:
        return self._changed

    def change_subsite(self, subsite_id: int, session: SessionStore | None = None) -> None:
        """
        Switch subsite and persist it so subsequent requests start there.
        Writes to *session* when given, otherwise to the bound session.
        """
        previous = self._subsite_id
        self.set_subsite_id(subsite_id)
        target = session if session is not None else self._session
        if target is not None:
            target.set(get_config().session_key, self._subsite_id)
        logger.info("subsite.changed", subsite_id=self._subsite_id, previous_id=previous)

    @contextmanager
    def probing(self, subsite_id: int) -> Iterator["SubsiteState"]:
        """Temporarily make *subsite_id* current; restore on exit."""
        saved_id, saved_changed = self._subsite_id, self._changed
        self._subsite_id = int(subsite_id)
        logger.debug("subsite.probe", subsite_id=self._subsite_id, restore_id=saved_id)
        try:
            yield self
        finally:
            self._subsite_id = saved_id
            self._changed = saved_changed

    def probe(self, subsite_id: int, fn: Callable[[], T]) -> T:
        """Run *fn* with *subsite_id* current and return its result."""
        with self.probing(subsite_id):
            return fn()

    def __repr__(self) -> str:
        return f"SubsiteState(subsite_id={self._subsite_id}, changed={self._changed})"


__all__ = ["SessionStore", "DictSession", "SubsiteState", "parse_subsite_id"]
