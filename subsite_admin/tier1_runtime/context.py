"""
subsite_admin.tier1_runtime.context
────────────────────────────────────
Request context: correlation IDs, the authenticated member, the admin
section serving the request and that request's SubsiteState.

Uses Python contextvars for async-safe, framework-agnostic storage, so
concurrent requests never see each other's state. Identifiers are bound
into structlog contextvars for every log line of the request.
"""
from __future__ import annotations

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

import structlog

from subsite_admin.tier0_core.identity import Member
from subsite_admin.tier1_runtime.state import SubsiteState


@dataclass
class RequestContext:
    """All per-request metadata available throughout the request lifecycle."""
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    trace_id: str | None = None
    member: Member | None = None
    section: str | None = None
    subsite_state: SubsiteState = field(default_factory=SubsiteState)
    metadata: dict[str, Any] = field(default_factory=dict)


_ctx: ContextVar[RequestContext | None] = ContextVar(
    "subsite_admin_request_context",
    default=None,
)


def get_context() -> RequestContext:
    """Return the current request context, creating an empty one if unset."""
    ctx = _ctx.get()
    if ctx is None:
        ctx = RequestContext()
        _ctx.set(ctx)
    return ctx


def set_context(ctx: RequestContext) -> None:
    """Set the request context for the current async scope."""
    _ctx.set(ctx)
    structlog.contextvars.bind_contextvars(
        request_id=ctx.request_id,
        trace_id=ctx.trace_id,
        member_id=ctx.member.id if ctx.member else None,
        section=ctx.section,
    )


def new_context(
    member: Member | None = None,
    section: str | None = None,
    subsite_state: SubsiteState | None = None,
    trace_id: str | None = None,
    **metadata: Any,
) -> RequestContext:
    """Create and activate a new request context. Returns the new context."""
    ctx = RequestContext(
        trace_id=trace_id,
        member=member,
        section=section,
        subsite_state=subsite_state or SubsiteState(),
        metadata=metadata,
    )
    set_context(ctx)
    return ctx


def reset_context() -> None:
    """Drop the current context. Call at the end of a request."""
    _ctx.set(None)
    structlog.contextvars.clear_contextvars()


def get_current_member() -> Member | None:
    return get_context().member


def get_subsite_state() -> SubsiteState:
    return get_context().subsite_state


__all__ = [
    "RequestContext", "get_context", "set_context", "new_context",
    "reset_context", "get_current_member", "get_subsite_state",
]
