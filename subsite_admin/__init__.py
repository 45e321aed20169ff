"""
subsite_admin
─────────────
Stable top-level exports. Import from here, not from sub-modules directly.
Every name exported here is part of the public API and subject to semver.
"""
from subsite_admin.tier0_core.config import get_config, SubsitesConfig
from subsite_admin.tier0_core.logging import get_logger
from subsite_admin.tier0_core.errors import (
    SubsitesError,
    ForbiddenError,
    ValidationError,
    NotFoundError,
    ConfigurationError,
)
from subsite_admin.tier0_core.identity import (
    Group,
    Member,
    PermissionOracle,
    GroupPermissionOracle,
    InMemoryMemberDirectory,
)

from subsite_admin.tier1_runtime.state import SubsiteState, SessionStore, DictSession
from subsite_admin.tier1_runtime.context import (
    get_context,
    set_context,
    new_context,
    RequestContext,
)
from subsite_admin.tier1_runtime.middleware import SubsiteASGIMiddleware, SubsiteWSGIMiddleware

from subsite_admin.tier2_reliability.audit import audit, AuditRecord

from subsite_admin.tier3_platform.multi_tenancy import (
    Subsite,
    SubsiteDirectory,
    InMemorySubsiteStore,
)
from subsite_admin.tier3_platform.authorization import AccessEvaluator, Verdict
from subsite_admin.tier3_platform.sections import (
    AccessCheckable,
    AdminSection,
    SectionRegistry,
    SectionVisibility,
)
from subsite_admin.tier3_platform.redirects import (
    AdminRequest,
    Outcome,
    Record,
    RedirectResolver,
    Resolution,
    SimpleRequest,
)
from subsite_admin.tier3_platform.switcher import ScopedTreeLoader, list_subsites

__version__ = "0.1.0"
__all__ = [
    # config
    "get_config", "SubsitesConfig",
    # logging
    "get_logger",
    # errors
    "SubsitesError", "ForbiddenError", "ValidationError",
    "NotFoundError", "ConfigurationError",
    # identity
    "Group", "Member", "PermissionOracle", "GroupPermissionOracle",
    "InMemoryMemberDirectory",
    # state / context
    "SubsiteState", "SessionStore", "DictSession",
    "get_context", "set_context", "new_context", "RequestContext",
    # middleware
    "SubsiteASGIMiddleware", "SubsiteWSGIMiddleware",
    # audit
    "audit", "AuditRecord",
    # directory
    "Subsite", "SubsiteDirectory", "InMemorySubsiteStore",
    # authorization
    "AccessEvaluator", "Verdict",
    # sections
    "AccessCheckable", "AdminSection", "SectionRegistry", "SectionVisibility",
    # redirects
    "AdminRequest", "Outcome", "Record", "RedirectResolver", "Resolution",
    "SimpleRequest",
    # switcher
    "ScopedTreeLoader", "list_subsites",
]
