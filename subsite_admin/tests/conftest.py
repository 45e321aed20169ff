"""
subsite_admin test configuration.

All tests run against in-memory stores; no database or web framework
required. Override by setting environment variables before running pytest.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, field

import pytest

# ── Force in-memory backends for all tests ────────────────────────────────
# These must be set before any subsite_admin modules are imported.

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("SUBSITES_DIRECTORY_BACKEND", "memory")
os.environ.setdefault("SUBSITES_AUDIT_BACKEND", "log")
os.environ.setdefault("SUBSITES_LOG_LEVEL", "WARNING")

from subsite_admin.tier0_core.identity import Group, Member  # noqa: E402
from subsite_admin.tier1_runtime.state import SubsiteState  # noqa: E402
from subsite_admin.tier3_platform.authorization import AccessEvaluator, Verdict  # noqa: E402
from subsite_admin.tier3_platform.multi_tenancy import (  # noqa: E402
    InMemorySubsiteStore,
    Subsite,
    SubsiteDirectory,
)
from subsite_admin.tier3_platform.sections import join_links  # noqa: E402


# ── Fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture(autouse=True)
def reset_module_singletons():
    """
    Reset cached config, stores and request context between tests.
    This ensures each test starts with no state bleed.
    """
    yield

    import subsite_admin.tier0_core.config as _config
    import subsite_admin.tier0_core.identity as _identity
    import subsite_admin.tier1_runtime.context as _context
    import subsite_admin.tier3_platform.multi_tenancy as _tenancy

    _config._reset_config()
    _identity._reset_member_directory()
    _tenancy._reset_store()
    _context.reset_context()


@pytest.fixture
def store():
    """Three persisted subsites, none of them the default."""
    return InMemorySubsiteStore([
        Subsite(1, "Alpha"),
        Subsite(2, "Beta"),
        Subsite(7, "Gamma"),
    ])


@pytest.fixture
def directory(store):
    return SubsiteDirectory(store)


@pytest.fixture
def evaluator(directory):
    return AccessEvaluator(directory)


@pytest.fixture
def editor():
    """Edits pages and files, but only on subsite 7."""
    return Member(
        id=10,
        email="editor@example.com",
        groups=(
            Group(
                id=1,
                title="Gamma editors",
                subsite_ids=frozenset({7}),
                permissions=frozenset({"CMS_ACCESS_pages", "CMS_ACCESS_files"}),
            ),
        ),
    )


@pytest.fixture
def admin():
    return Member(
        id=1,
        email="admin@example.com",
        groups=(Group(id=99, title="Administrators", permissions=frozenset({"ADMIN"})),),
    )


@dataclass(eq=False)
class StubSection:
    """Section whose verdict is fixed per subsite id."""
    name: str
    url: str
    verdicts: dict[int, Verdict] = field(default_factory=dict)
    default: Verdict = Verdict.DENY
    is_page_editing: bool = False
    treats_subsite_0_as_global: bool = False

    @property
    def current_page_session_key(self) -> str:
        return f"{self.name}.currentPage"

    def link(self, *parts: object) -> str:
        return join_links(self.url, *parts)

    def can_access(self, member, state: SubsiteState) -> Verdict:
        return self.verdicts.get(state.get_subsite_id(), self.default)

    def can_view(self, member, state: SubsiteState) -> bool:
        return self.can_access(member, state) is not Verdict.DENY


@pytest.fixture
def stub_section():
    """Factory for StubSection instances."""
    return StubSection
