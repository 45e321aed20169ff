"""Tests for the redirect resolver and switcher helpers (tier3_platform)."""
from __future__ import annotations

import pytest

from subsite_admin.tier0_core.errors import ForbiddenError
from subsite_admin.tier0_core.identity import Group, Member
from subsite_admin.tier1_runtime.context import new_context
from subsite_admin.tier1_runtime.state import DictSession, SubsiteState
from subsite_admin.tier3_platform.authorization import AccessEvaluator, Verdict
from subsite_admin.tier3_platform.multi_tenancy import InMemorySubsiteStore, Subsite, SubsiteDirectory
from subsite_admin.tier3_platform.redirects import (
    AdminRequest,
    Outcome,
    Record,
    RedirectResolver,
    Resolution,
    SimpleRequest,
    should_change_subsite,
)
from subsite_admin.tier3_platform.sections import AdminSection, SectionRegistry, SectionVisibility
from subsite_admin.tier3_platform.switcher import (
    ScopedTreeLoader,
    SwitcherEntry,
    alternate_menu_display_check,
    can_add_subsites,
    cms_tree_title,
    list_subsites,
    new_item_subsite_id,
)


@pytest.fixture
def sections(evaluator):
    pages = AdminSection("pages", "/admin/pages", evaluator)
    edit = AdminSection(
        "edit", "/admin/pages/edit", evaluator,
        is_page_editing=True, permission_code="CMS_ACCESS_pages",
    )
    files = AdminSection("files", "/admin/files", evaluator, treats_subsite_0_as_global=True)
    return {"pages": pages, "edit": edit, "files": files}


@pytest.fixture
def resolver(sections, directory):
    registry = SectionRegistry(list(sections.values()))
    return RedirectResolver(registry, SectionVisibility(directory))


def start_request(url, section, member, session, record=None):
    request = SimpleRequest.from_url(url)
    state = SubsiteState.from_session(session, request.get_switch_signal())
    return AdminRequest(
        request=request,
        section=section,
        state=state,
        member=member,
        session=session,
        record=record,
    )


# ── resolution values ──────────────────────────────────────────────────────

class TestResolution:
    def test_factories(self):
        assert Resolution.proceed().outcome is Outcome.PROCEED
        assert Resolution.redirect("/admin/", "x").is_redirect
        assert Resolution.denied("x").url is None

    def test_raise_for_denied(self):
        Resolution.proceed().raise_for_denied()
        with pytest.raises(ForbiddenError):
            Resolution.denied("no_accessible_section").raise_for_denied()

    def test_simple_request_strips_signal(self):
        request = SimpleRequest.from_url("/admin/pages/edit/show/3?SubsiteID=7&tab=main")
        assert request.get_switch_signal() == 7
        assert request.get_current_url() == "/admin/pages/edit/show/3"
        assert request.rewrite_url_without_signal() == "/admin/pages/edit/show/3?tab=main"

    def test_simple_request_keeps_repeated_params(self):
        request = SimpleRequest.from_url("/admin/pages/edit/show/3?tag=a&tag=b&SubsiteID=7")
        assert request.rewrite_url_without_signal() == "/admin/pages/edit/show/3?tag=a&tag=b"

    def test_simple_request_last_signal_wins(self):
        request = SimpleRequest.from_url("/admin/pages?SubsiteID=2&q=&SubsiteID=7")
        assert request.get_switch_signal() == 7
        assert request.rewrite_url_without_signal() == "/admin/pages?q="

    def test_should_change_subsite(self, sections):
        assert should_change_subsite(sections["pages"], 2, 7)
        assert not should_change_subsite(sections["pages"], 7, 7)
        assert should_change_subsite(sections["pages"], 0, 7)
        assert not should_change_subsite(sections["files"], 0, 7)


# ── step 1: explicit switch ────────────────────────────────────────────────

class TestSwitchSignal:
    def test_switch_settles_then_proceeds(self, resolver, sections, editor):
        session = DictSession({"files.currentPage": 12})
        req = start_request("/admin/files?SubsiteID=7", sections["files"], editor, session)

        resolution = resolver.resolve(req)
        assert resolution == Resolution.redirect("/admin/files", "switch_settled")
        assert session.get("files.currentPage") is None
        assert session.get("SubsiteID") == 7

        follow_up = start_request(resolution.url, sections["files"], editor, session)
        assert resolver.resolve(follow_up).outcome is Outcome.PROCEED

    def test_current_page_kept_when_subsite_unchanged(self, resolver, sections, editor):
        session = DictSession({"SubsiteID": 7, "files.currentPage": 12})
        req = start_request("/admin/files?SubsiteID=7", sections["files"], editor, session)
        assert resolver.resolve(req).is_redirect
        assert session.get("files.currentPage") == 12

    def test_not_viewable_goes_to_admin_root(self, resolver, sections, editor):
        session = DictSession({"SubsiteID": 7})
        req = start_request("/admin/files?SubsiteID=2", sections["files"], editor, session)
        assert resolver.resolve(req) == Resolution.redirect("/admin/", "switch_not_viewable")

    def test_page_from_other_subsite_goes_to_listing(self, resolver, sections, editor):
        session = DictSession({"SubsiteID": 7})
        req = start_request(
            "/admin/pages/edit/show/10?SubsiteID=7", sections["edit"], editor, session,
            record=Record(10, subsite_id=2),
        )
        assert resolver.resolve(req) == Resolution.redirect("/admin/pages", "page_on_other_subsite")

    def test_page_on_requested_subsite_strips_signal(self, resolver, sections, editor):
        session = DictSession({"SubsiteID": 7})
        req = start_request(
            "/admin/pages/edit/show/10?SubsiteID=7&tab=main", sections["edit"], editor, session,
            record=Record(10, subsite_id=7),
        )
        assert resolver.resolve(req) == Resolution.redirect(
            "/admin/pages/edit/show/10?tab=main", "switch_settled"
        )

    def test_switch_resolved_before_access_fallback(self, resolver, sections, editor):
        # Denied on subsite 2, but the switch is settled first.
        req = start_request("/admin/pages?SubsiteID=2", sections["pages"], editor, DictSession())
        resolution = resolver.resolve(req)
        assert resolution.reason == "switch_not_viewable"
        assert req.state.get_subsite_id() == 2


# ── step 2: record on another subsite ──────────────────────────────────────

class TestRecordSubsite:
    @pytest.fixture
    def two_site_editor(self):
        return Member(id=11, groups=(Group(
            id=2,
            subsite_ids=frozenset({1, 7}),
            permissions=frozenset({"CMS_ACCESS_pages"}),
        ),))

    def test_redirects_to_record_subsite(self, resolver, sections, two_site_editor):
        session = DictSession({"SubsiteID": 7})
        req = start_request(
            "/admin/pages/edit/show/10", sections["edit"], two_site_editor, session,
            record=Record(10, subsite_id=1),
        )
        assert resolver.resolve(req) == Resolution.redirect(
            "/admin/pages/edit/show/10?SubsiteID=1", "record_on_other_subsite"
        )
        assert req.state.get_subsite_id() == 7
        assert session.get("SubsiteID") == 7

    def test_record_not_viewable_goes_to_admin_root(self, resolver, sections, editor):
        req = start_request(
            "/admin/pages/edit/show/10", sections["edit"], editor, DictSession({"SubsiteID": 7}),
            record=Record(10, subsite_id=1),
        )
        assert resolver.resolve(req) == Resolution.redirect("/admin/", "record_not_viewable")

    def test_global_subsite_zero_does_not_force_switch(self, resolver, sections, editor):
        req = start_request(
            "/admin/files/show/4", sections["files"], editor, DictSession({"SubsiteID": 7}),
            record=Record(4, subsite_id=0),
        )
        assert resolver.resolve(req).outcome is Outcome.PROCEED

    def test_non_numeric_record_subsite_ignored(self, resolver, sections, editor):
        req = start_request(
            "/admin/pages/edit/show/4", sections["edit"], editor, DictSession({"SubsiteID": 7}),
            record=Record(4, subsite_id="n/a"),
        )
        assert resolver.resolve(req).outcome is Outcome.PROCEED


# ── step 3: fallback search ────────────────────────────────────────────────

class TestFallback:
    def build(self, directory, *sections):
        return RedirectResolver(SectionRegistry(list(sections)), SectionVisibility(directory))

    def test_first_section_with_current_subsite_wins(self, directory, stub_section, editor):
        current = stub_section("a", "/admin/a")
        other = stub_section("b", "/admin/b", verdicts={1: Verdict.ALLOW})
        first = stub_section("c", "/admin/c", verdicts={2: Verdict.ALLOW})
        second = stub_section("d", "/admin/d", verdicts={2: Verdict.DELEGATE})
        resolver = self.build(directory, current, other, first, second)

        session = DictSession({"SubsiteID": 2})
        req = start_request("/admin/a", current, editor, session)
        assert resolver.resolve(req) == Resolution.redirect("/admin/c", "section_fallback")
        assert req.state.get_subsite_id() == 2
        assert session.get("SubsiteID") == 2

    def test_adopts_first_accessible_subsite_and_persists(self, directory, stub_section, editor):
        current = stub_section("a", "/admin/a")
        first = stub_section("b", "/admin/b", verdicts={7: Verdict.ALLOW, 1: Verdict.ALLOW})
        later = stub_section("c", "/admin/c", verdicts={1: Verdict.ALLOW})
        resolver = self.build(directory, current, first, later)

        session = DictSession({"SubsiteID": 2})
        req = start_request("/admin/a", current, editor, session)
        assert resolver.resolve(req) == Resolution.redirect("/admin/b", "subsite_fallback")
        assert req.state.get_subsite_id() == 1
        assert session.get("SubsiteID") == 1

    def test_current_section_considered_for_other_subsites(self, directory, stub_section, editor):
        current = stub_section("a", "/admin/a", verdicts={7: Verdict.ALLOW})
        resolver = self.build(directory, current, stub_section("b", "/admin/b"))

        session = DictSession({"SubsiteID": 2})
        req = start_request("/admin/a", current, editor, session)
        assert resolver.resolve(req) == Resolution.redirect("/admin/a", "subsite_fallback")
        assert session.get("SubsiteID") == 7

    def test_total_denial(self, directory, stub_section, editor):
        current = stub_section("a", "/admin/a")
        resolver = self.build(directory, current, stub_section("b", "/admin/b"))

        session = DictSession({"SubsiteID": 2})
        req = start_request("/admin/a", current, editor, session)
        resolution = resolver.resolve(req)
        assert resolution.outcome is Outcome.DENIED
        assert session.get("SubsiteID") == 2
        with pytest.raises(ForbiddenError):
            resolution.raise_for_denied()

    def test_real_sections_fall_back_to_granted_subsite(self, resolver, sections, editor):
        session = DictSession({"SubsiteID": 1})
        req = start_request("/admin/pages", sections["pages"], editor, session)
        assert resolver.resolve(req) == Resolution.redirect("/admin/pages", "subsite_fallback")
        assert session.get("SubsiteID") == 7

    def test_delegate_proceeds(self, editor):
        evaluator = AccessEvaluator(SubsiteDirectory(InMemorySubsiteStore()))
        pages = AdminSection("pages", "/admin/pages", evaluator)
        resolver = RedirectResolver(SectionRegistry([pages]))
        req = start_request("/admin/pages", pages, editor, DictSession())
        assert resolver.resolve(req).outcome is Outcome.PROCEED

    def test_adopted_subsite_written_to_supplied_session(self, directory, stub_section, editor):
        current = stub_section("a", "/admin/a")
        other = stub_section("b", "/admin/b", verdicts={7: Verdict.ALLOW})
        resolver = self.build(directory, current, other)

        session = DictSession({"SubsiteID": 2})
        req = AdminRequest(
            SimpleRequest("/admin/a"), current, SubsiteState(2), editor, session=session,
        )
        assert resolver.resolve(req) == Resolution.redirect("/admin/b", "subsite_fallback")
        assert session.get("SubsiteID") == 7

    def test_no_member_denied_without_using_context_member(
        self, directory, stub_section, editor
    ):
        current = stub_section("a", "/admin/a")
        other = stub_section("b", "/admin/b", verdicts={7: Verdict.ALLOW})
        resolver = self.build(directory, current, other)
        new_context(member=editor)

        session = DictSession({"SubsiteID": 2})
        req = start_request("/admin/a", current, None, session)
        assert resolver.resolve(req).outcome is Outcome.DENIED
        assert session.get("SubsiteID") == 2


# ── switcher ───────────────────────────────────────────────────────────────

class TestSwitcher:
    def test_cms_tree_title(self, directory):
        assert cms_tree_title(directory, SubsiteState(7)) == "Gamma"
        assert cms_tree_title(directory, SubsiteState(0)) == "Site Content"

    def test_cms_tree_title_ignores_persisted_main_site(self):
        directory = SubsiteDirectory(InMemorySubsiteStore([Subsite(0, "Head office", is_default=True)]))
        assert cms_tree_title(directory, SubsiteState(0)) == "Site Content"

    def test_list_subsites_marks_current(self, directory, evaluator, admin):
        entries = list_subsites(directory, evaluator, admin, SubsiteState(2))
        assert [e.id for e in entries] == [0, 1, 2, 7]
        assert entries[2] == SwitcherEntry(id=2, title="Beta", selected=True)
        assert not entries[0].selected

    def test_list_subsites_single_accessible(self, directory, evaluator, editor):
        entries = list_subsites(directory, evaluator, editor, SubsiteState(7))
        assert entries == [SwitcherEntry(id=7, title="Gamma", selected=True)]

    def test_list_subsites_only_default(self, admin):
        directory = SubsiteDirectory(InMemorySubsiteStore())
        assert list_subsites(directory, AccessEvaluator(directory), admin, SubsiteState()) is None

    def test_menu_display(self, sections):
        sections["files"].show_in_subsite_menu = True
        assert alternate_menu_display_check(sections["pages"], SubsiteState(0))
        assert not alternate_menu_display_check(sections["pages"], SubsiteState(7))
        assert alternate_menu_display_check(sections["files"], SubsiteState(7))

    def test_xhr_sections_hidden(self, evaluator):
        xhr = AdminSection("subsite_xhr", "/admin/subsite_xhr", evaluator, is_xhr=True)
        assert not alternate_menu_display_check(xhr, SubsiteState(0))

    def test_can_add_subsites(self, admin, editor):
        assert can_add_subsites(admin)
        assert not can_add_subsites(editor)
        assert not can_add_subsites(None)

    def test_new_item_subsite_id(self):
        state = SubsiteState(7)
        assert new_item_subsite_id("3", state) == 3
        assert new_item_subsite_id("", state) == 7
        assert new_item_subsite_id(None, state) == 7

    def test_scoped_tree_loader(self):
        state = SubsiteState(7)
        loader = ScopedTreeLoader(lambda: state.get_subsite_id(), subsite_id=4)
        assert loader.tree(state=state) == 4
        assert state.get_subsite_id() == 7
