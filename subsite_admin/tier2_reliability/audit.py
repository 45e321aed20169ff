"""
subsite_admin.tier2_reliability.audit
──────────────────────────────────────
Append-only audit trail for access decisions with lasting consequences:
a member being refused every admin section, or being moved to another
subsite because the current one is not accessible.

Backend: structured log (stdout/Loki) or none.
Configure via: SUBSITES_AUDIT_BACKEND=log|none
"""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from subsite_admin.tier0_core.config import get_config
from subsite_admin.tier0_core.identity import Member
from subsite_admin.tier0_core.logging import get_logger


@dataclass
class AuditRecord:
    """Immutable audit record. Never update or delete these."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)
    actor_id: int | None = None
    action: str = ""            # e.g. "subsite.fallback_switch", "access.denied"
    resource_type: str = ""     # e.g. "section", "subsite"
    resource_id: str = ""
    outcome: str = "success"    # "success" | "failure" | "denied"
    metadata: dict[str, Any] = field(default_factory=dict)


def audit(
    actor: Member | int | None,
    action: str,
    resource_type: str,
    resource_id: str | int,
    outcome: str = "success",
    metadata: dict | None = None,
) -> AuditRecord:
    """
    Write an audit record.

    Usage:
        audit(
            actor=member,
            action="subsite.fallback_switch",
            resource_type="subsite",
            resource_id=3,
            metadata={"section": "files"},
        )
    """
    actor_id = actor.id if isinstance(actor, Member) else actor

    record = AuditRecord(
        actor_id=actor_id,
        action=action,
        resource_type=resource_type,
        resource_id=str(resource_id),
        outcome=outcome,
        metadata=metadata or {},
    )

    if get_config().audit_backend.lower() == "log":
        _write_log(record)

    return record


def _write_log(record: AuditRecord) -> None:
    log = get_logger("subsite_admin.audit")
    log.info(
        "audit",
        audit_id=record.id,
        actor_id=record.actor_id,
        action=record.action,
        resource_type=record.resource_type,
        resource_id=record.resource_id,
        outcome=record.outcome,
        metadata=record.metadata,
        timestamp=record.timestamp,
    )


__all__ = ["audit", "AuditRecord"]
