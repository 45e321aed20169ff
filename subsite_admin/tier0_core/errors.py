"""
subsite_admin.tier0_core.errors
────────────────────────────────
Error taxonomy, stable error codes and user-safe messages.

Access decisions are never signalled with exceptions: a denied request is a
normal Resolution. These errors cover misconfiguration, invalid catalog data
and the host's permission-failure handler (Resolution.raise_for_denied).
"""
from __future__ import annotations

from typing import Any


class SubsitesError(Exception):
    """
    Base class for all subsite admin errors. Every error has:
    - code: stable machine-readable string (snake_case)
    - user_message: safe to surface to end users
    - detail: internal context, never shown to users
    - status_code: HTTP status code for admin responses
    """

    status_code: int = 500
    code: str = "internal_error"

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "An unexpected error occurred.",
        detail: str | None = None,
        **metadata: Any,
    ) -> None:
        self.code = code or self.__class__.code
        self.user_message = user_message
        self.detail = detail or user_message
        self.metadata = metadata
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.user_message,
            }
        }


class ForbiddenError(SubsitesError):
    """Member is authenticated but may not access any admin section or subsite."""
    status_code = 403
    code = "forbidden"


class ValidationError(SubsitesError):
    """Invalid subsite or group data."""
    status_code = 422
    code = "validation_error"

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "Validation failed.",
        fields: dict | None = None,
        **metadata: Any,
    ) -> None:
        self.fields = fields or {}
        super().__init__(code, user_message, **metadata)

    def to_dict(self) -> dict:
        d = super().to_dict()
        if self.fields:
            d["error"]["fields"] = self.fields
        return d


class NotFoundError(SubsitesError):
    """Requested section or member does not exist."""
    status_code = 404
    code = "not_found"


class ConfigurationError(SubsitesError):
    """Misconfiguration detected at startup."""
    status_code = 500
    code = "configuration_error"


__all__ = [
    "SubsitesError", "ForbiddenError", "ValidationError",
    "NotFoundError", "ConfigurationError",
]
