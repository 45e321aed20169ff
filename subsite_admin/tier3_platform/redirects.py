"""
subsite_admin.tier3_platform.redirects
───────────────────────────────────────
Per-request redirect resolution for the admin interface. Runs once per
request, after the middleware has applied any ``?SubsiteID=`` switch and
before the section handles the request.

Steps, in strict order (the first decision wins):

  1. Explicit switch signal: clear the section's cached current page if
     the subsite changed, then settle on a signal-free URL so the switch
     is not re-applied on the next request.
  2. Record on another subsite: move the member to the record's subsite
     when they can view it there, otherwise back to the admin root.
  3. Explicit denial on the current subsite: look for another section on
     the same subsite, then for any section on any subsite (switching the
     session to it), and finally give up with DENIED.
  4. Otherwise proceed.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable
from urllib.parse import parse_qsl, urlencode, urlsplit

from subsite_admin.tier0_core.config import get_config
from subsite_admin.tier0_core.errors import ForbiddenError
from subsite_admin.tier0_core.identity import Member
from subsite_admin.tier0_core.logging import get_logger
from subsite_admin.tier1_runtime.context import get_context
from subsite_admin.tier1_runtime.state import SessionStore, SubsiteState, parse_subsite_id
from subsite_admin.tier2_reliability.audit import audit
from subsite_admin.tier3_platform.authorization import Verdict
from subsite_admin.tier3_platform.sections import AccessCheckable, SectionRegistry, SectionVisibility

logger = get_logger(__name__)


# ── Outcomes ─────────────────────────────────────────────────────────────────

class Outcome(str, Enum):
    PROCEED = "proceed"
    REDIRECT = "redirect"
    DENIED = "denied"


@dataclass(frozen=True)
class Resolution:
    outcome: Outcome
    url: str | None = None
    reason: str = ""

    @classmethod
    def proceed(cls, reason: str = "accessible") -> "Resolution":
        return cls(Outcome.PROCEED, reason=reason)

    @classmethod
    def redirect(cls, url: str, reason: str) -> "Resolution":
        return cls(Outcome.REDIRECT, url=url, reason=reason)

    @classmethod
    def denied(cls, reason: str) -> "Resolution":
        return cls(Outcome.DENIED, reason=reason)

    @property
    def is_redirect(self) -> bool:
        return self.outcome is Outcome.REDIRECT

    def raise_for_denied(self) -> None:
        """Hand a DENIED resolution to the host's permission-failure handling."""
        if self.outcome is Outcome.DENIED:
            raise ForbiddenError(
                user_message="You do not have access to any admin section.",
                detail=f"Admin access denied: {self.reason}",
                reason=self.reason,
            )


# ── Request collaborators ────────────────────────────────────────────────────

@runtime_checkable
class RequestAccessor(Protocol):
    def get_switch_signal(self) -> int | None: ...

    def get_current_url(self) -> str: ...

    def rewrite_url_without_signal(self) -> str: ...


@dataclass
class SimpleRequest:
    """
    Path + query parameters; enough for any framework's request object.
    ``query`` keeps every pair in order, repeated keys included.
    """
    path: str
    query: list[tuple[str, str]] = field(default_factory=list)

    @classmethod
    def from_url(cls, url: str) -> "SimpleRequest":
        parts = urlsplit(url)
        return cls(path=parts.path, query=parse_qsl(parts.query, keep_blank_values=True))

    def get_switch_signal(self) -> int | None:
        switch_param = get_config().switch_param
        values = [v for k, v in self.query if k == switch_param and v]
        if not values:
            return None
        return parse_subsite_id(values[-1])

    def get_current_url(self) -> str:
        return self.path

    def rewrite_url_without_signal(self) -> str:
        switch_param = get_config().switch_param
        remaining = [(k, v) for k, v in self.query if k != switch_param]
        if not remaining:
            return self.path
        return f"{self.path}?{urlencode(remaining)}"


@dataclass(frozen=True)
class Record:
    """The record a section is showing. ``subsite_id`` may be missing or non-numeric."""
    id: int
    subsite_id: Any = None


@dataclass
class AdminRequest:
    request: RequestAccessor
    section: AccessCheckable
    state: SubsiteState
    member: Member | None = None
    session: SessionStore | None = None
    record: Record | None = None

    @classmethod
    def from_context(
        cls,
        request: RequestAccessor,
        section: AccessCheckable,
        record: Record | None = None,
    ) -> "AdminRequest":
        """Build from the active RequestContext (as set up by the middleware)."""
        ctx = get_context()
        return cls(
            request=request,
            section=section,
            state=ctx.subsite_state,
            member=ctx.member,
            session=ctx.subsite_state.session,
            record=record,
        )

    @property
    def active_session(self) -> SessionStore | None:
        """The explicitly supplied session, else the one bound to the state."""
        return self.session if self.session is not None else self.state.session


def should_change_subsite(
    section: AccessCheckable, record_subsite_id: int, current_subsite_id: int
) -> bool:
    if section.treats_subsite_0_as_global and record_subsite_id == 0:
        return False
    return record_subsite_id != current_subsite_id


# ── Resolver ─────────────────────────────────────────────────────────────────

class RedirectResolver:
    """Turns one admin request into PROCEED, REDIRECT(url) or DENIED."""

    def __init__(
        self,
        registry: SectionRegistry,
        visibility: SectionVisibility | None = None,
    ) -> None:
        self.registry = registry
        self.visibility = visibility or SectionVisibility()

    def resolve(self, req: AdminRequest) -> Resolution:
        resolution = self._resolve(req)
        logger.info(
            "redirect.resolved",
            section=req.section.name,
            member_id=req.member.id if req.member else None,
            subsite_id=req.state.get_subsite_id(),
            outcome=resolution.outcome.value,
            url=resolution.url,
            reason=resolution.reason,
        )
        return resolution

    def _resolve(self, req: AdminRequest) -> Resolution:
        signal = req.request.get_switch_signal()
        if signal is not None:
            return self._settle_switch(req, signal)

        moved = self._follow_record(req)
        if moved is not None:
            return moved

        if req.section.can_access(req.member, req.state) is Verdict.DENY:
            return self._fallback(req)

        return Resolution.proceed()

    # step 1
    def _settle_switch(self, req: AdminRequest, requested_id: int) -> Resolution:
        config = get_config()
        section, state = req.section, req.state

        if state.subsite_id_was_changed():
            session = req.active_session
            if session is not None:
                session.clear(section.current_page_session_key)
                logger.debug("session.current_page_cleared", key=section.current_page_session_key)

        if not section.can_view(req.member, state):
            return Resolution.redirect(config.admin_root_url, "switch_not_viewable")

        if section.is_page_editing:
            page = req.record
            if page is not None and (parse_subsite_id(page.subsite_id) or 0) != requested_id:
                pages = self.registry.find(config.pages_section)
                url = pages.url if pages is not None else config.admin_root_url
                return Resolution.redirect(url, "page_on_other_subsite")
            return Resolution.redirect(
                req.request.rewrite_url_without_signal(), "switch_settled"
            )

        return Resolution.redirect(req.request.get_current_url(), "switch_settled")

    # step 2
    def _follow_record(self, req: AdminRequest) -> Resolution | None:
        record = req.record
        if record is None:
            return None
        record_subsite_id = parse_subsite_id(record.subsite_id)
        if record_subsite_id is None:
            return None
        if not should_change_subsite(
            req.section, record_subsite_id, req.state.get_subsite_id()
        ):
            return None

        section, state = req.section, req.state
        can_view_elsewhere = state.probe(
            record_subsite_id, lambda: section.can_view(req.member, state)
        )
        if can_view_elsewhere:
            switch = f"?{get_config().switch_param}={record_subsite_id}"
            return Resolution.redirect(
                section.link("show", record.id, switch), "record_on_other_subsite"
            )
        return Resolution.redirect(get_config().admin_root_url, "record_not_viewable")

    # step 3
    def _fallback(self, req: AdminRequest) -> Resolution:
        current_id = req.state.get_subsite_id()

        # No member means no accessible subsite; never scan as the context member.
        if req.member is None:
            return self._deny(req, current_id)

        for candidate in self.registry:
            if candidate.name == req.section.name:
                continue
            sites = self.visibility.accessible_subsites(candidate, req.member, state=req.state)
            if any(site.id == current_id for site in sites):
                return Resolution.redirect(candidate.url, "section_fallback")

        for candidate in self.registry:
            sites = self.visibility.accessible_subsites(candidate, req.member, state=req.state)
            if sites:
                # Persistent: the next request starts on this subsite.
                req.state.change_subsite(sites[0].id, session=req.active_session)
                audit(
                    req.member,
                    "subsite.fallback_switch",
                    "subsite",
                    sites[0].id,
                    metadata={"section": candidate.name, "from_subsite_id": current_id},
                )
                return Resolution.redirect(candidate.url, "subsite_fallback")

        return self._deny(req, current_id)

    def _deny(self, req: AdminRequest, current_id: int) -> Resolution:
        audit(
            req.member,
            "access.denied",
            "section",
            req.section.name,
            outcome="denied",
            metadata={"subsite_id": current_id},
        )
        return Resolution.denied("no_accessible_section")


__all__ = [
    "Outcome", "Resolution", "RequestAccessor", "SimpleRequest", "Record",
    "AdminRequest", "RedirectResolver", "should_change_subsite",
]
