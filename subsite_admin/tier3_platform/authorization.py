"""
subsite_admin.tier3_platform.authorization
───────────────────────────────────────────
Per-subsite access verdicts for admin members.

The verdict is tri-state. DELEGATE means "no opinion here" and must be
passed on to the host's broader permission policy; turning it into a
boolean would lock every member out of installs with no subsites.

Rules, first decisive one wins:
  1. no member                                  → DELEGATE
  2. admin or all-sections capability           → ALLOW
  3. no subsites persisted (single-tenant)      → DELEGATE
  4. a group with access_all_subsites, or whose
     subsite grants contain the subsite         → ALLOW
     otherwise                                  → DENY
"""
from __future__ import annotations

from enum import Enum

from subsite_admin.tier0_core.config import get_config
from subsite_admin.tier0_core.identity import GroupPermissionOracle, Member, PermissionOracle
from subsite_admin.tier0_core.logging import get_logger
from subsite_admin.tier1_runtime.state import SubsiteState
from subsite_admin.tier3_platform.multi_tenancy import SubsiteDirectory

logger = get_logger(__name__)


class Verdict(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    DELEGATE = "delegate"


class AccessEvaluator:
    """Decides whether a member may administer a given subsite."""

    def __init__(
        self,
        directory: SubsiteDirectory | None = None,
        oracle: PermissionOracle | None = None,
    ) -> None:
        self.directory = directory or SubsiteDirectory()
        self.oracle = oracle or GroupPermissionOracle()

    def is_superuser(self, member: Member) -> bool:
        config = get_config()
        return (
            self.oracle.has_capability(member, config.admin_capability)
            or self.oracle.has_capability(member, config.all_sections_capability)
        )

    def evaluate(self, member: Member | None, subsite_id: int) -> Verdict:
        verdict, rule = self._decide(member, subsite_id)
        logger.debug(
            "access.evaluated",
            member_id=member.id if member else None,
            subsite_id=subsite_id,
            verdict=verdict.value,
            rule=rule,
        )
        return verdict

    def evaluate_current(self, member: Member | None, state: SubsiteState) -> Verdict:
        """Evaluate against whatever subsite *state* currently holds (probes included)."""
        return self.evaluate(member, state.get_subsite_id())

    def _decide(self, member: Member | None, subsite_id: int) -> tuple[Verdict, str]:
        if member is None:
            return Verdict.DELEGATE, "no_member"

        if self.is_superuser(member):
            return Verdict.ALLOW, "superuser"

        if not self.directory.exists():
            return Verdict.DELEGATE, "no_subsites"

        for group in member.groups:
            if group.access_all_subsites:
                return Verdict.ALLOW, "group_all_subsites"
            if subsite_id in group.subsite_ids:
                return Verdict.ALLOW, "group_grant"

        return Verdict.DENY, "no_group_grant"


__all__ = ["Verdict", "AccessEvaluator"]
