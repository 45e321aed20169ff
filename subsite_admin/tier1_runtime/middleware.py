"""
subsite_admin.tier1_runtime.middleware
───────────────────────────────────────
Request-initialisation middleware. Runs before any admin section handles the
request: builds a RequestContext, materialises that request's SubsiteState
from the session, and applies an explicit ``?SubsiteID=`` switch so that the
redirect resolver sees the already-switched state.

Supports: FastAPI / Starlette (ASGI), Flask / Django (WSGI).
"""
from __future__ import annotations

import time
import uuid
from typing import Any, Callable, MutableMapping
from urllib.parse import parse_qs

from subsite_admin.tier0_core.config import get_config
from subsite_admin.tier0_core.identity import Member
from subsite_admin.tier0_core.logging import get_logger
from subsite_admin.tier1_runtime.context import RequestContext, reset_context, set_context
from subsite_admin.tier1_runtime.state import DictSession, SubsiteState, parse_subsite_id

logger = get_logger(__name__)

SessionGetter = Callable[[Any], "MutableMapping[str, Any] | None"]
MemberGetter = Callable[[Any], "Member | None"]


def switch_signal_from_query(query_string: str) -> int | None:
    """Extract the subsite switch signal from a raw query string."""
    values = parse_qs(query_string, keep_blank_values=False).get(get_config().switch_param)
    if not values:
        return None
    return parse_subsite_id(values[-1])


def _build_context(
    request_id: str,
    trace_id: str,
    session: MutableMapping[str, Any] | None,
    query_string: str,
    member: Member | None,
) -> RequestContext:
    store = DictSession(session) if session is not None else None
    state = SubsiteState.from_session(store, switch_signal_from_query(query_string))
    ctx = RequestContext(
        request_id=request_id,
        trace_id=trace_id,
        member=member,
        subsite_state=state,
    )
    set_context(ctx)
    return ctx


# ── ASGI middleware ────────────────────────────────────────────────────────

class SubsiteASGIMiddleware:
    """
    ASGI middleware that initialises subsite state for every HTTP request.
    Expects Starlette's SessionMiddleware (``scope["session"]``) upstream.

    Usage (FastAPI / Starlette)::

        app.add_middleware(SubsiteASGIMiddleware)
        app.add_middleware(SessionMiddleware, secret_key=...)
    """

    def __init__(
        self,
        app: Any,
        session_getter: SessionGetter | None = None,
        member_getter: MemberGetter | None = None,
    ) -> None:
        self.app = app
        self.session_getter = session_getter or (lambda scope: scope.get("session"))
        self.member_getter = member_getter or (lambda scope: None)

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = headers.get(b"x-request-id", b"").decode() or str(uuid.uuid4())
        trace_id = headers.get(b"x-trace-id", b"").decode() or request_id

        ctx = _build_context(
            request_id,
            trace_id,
            self.session_getter(scope),
            scope.get("query_string", b"").decode("latin-1"),
            self.member_getter(scope),
        )

        start = time.perf_counter()
        try:
            await self.app(scope, receive, send)
        finally:
            logger.info(
                "request_completed",
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
                path=scope.get("path", ""),
                method=scope.get("method", ""),
                subsite_id=ctx.subsite_state.get_subsite_id(),
            )
            reset_context()


# ── WSGI middleware ────────────────────────────────────────────────────────

class SubsiteWSGIMiddleware:
    """
    WSGI middleware that initialises subsite state for every HTTP request.
    The session is looked up in the environ (``beaker.session`` by default).

    Usage (Flask)::

        app.wsgi_app = SubsiteWSGIMiddleware(app.wsgi_app)
    """

    def __init__(
        self,
        app: Callable,
        session_getter: SessionGetter | None = None,
        member_getter: MemberGetter | None = None,
    ) -> None:
        self.app = app
        self.session_getter = session_getter or (lambda environ: environ.get("beaker.session"))
        self.member_getter = member_getter or (lambda environ: None)

    def __call__(self, environ: dict, start_response: Callable) -> Any:
        request_id = environ.get("HTTP_X_REQUEST_ID") or str(uuid.uuid4())
        trace_id = environ.get("HTTP_X_TRACE_ID") or request_id

        ctx = _build_context(
            request_id,
            trace_id,
            self.session_getter(environ),
            environ.get("QUERY_STRING", ""),
            self.member_getter(environ),
        )

        start = time.perf_counter()
        try:
            return self.app(environ, start_response)
        finally:
            logger.info(
                "request_completed",
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
                path=environ.get("PATH_INFO", ""),
                method=environ.get("REQUEST_METHOD", ""),
                subsite_id=ctx.subsite_state.get_subsite_id(),
            )
            reset_context()


__all__ = ["SubsiteASGIMiddleware", "SubsiteWSGIMiddleware", "switch_signal_from_query"]
