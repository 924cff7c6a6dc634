import pytest

from conftest import make_session, refresh_session
from scripts.create_first_user import create_initial_workspace
from taskflow.core.errors import NotFound, PermissionDenied, ValidationFailed
from taskflow.models.company import Company
from taskflow.models.user import UserProfile, UserRole
from taskflow.services.companies import CompanyService


@pytest.fixture
def companies(store):
    return CompanyService(store)


def test_create_company_makes_owner_admin_member(companies, store):
    owner = make_session(store, "owner@example.com", "Owner")
    company = companies.create_company("  Tech Solutions  ", owner)
    profile = store.get(UserProfile, owner.uid)

    assert company.name == "Tech Solutions"
    assert company.owner_id == owner.uid
    assert company.members == [owner.uid]
    assert profile.role == UserRole.ADMIN
    assert profile.current_company_id == company.id


def test_create_company_requires_name(companies, store):
    owner = make_session(store, "owner@example.com", "Owner")
    with pytest.raises(ValidationFailed):
        companies.create_company(" ", owner)


def test_join_request_for_unknown_company_is_not_found(companies, store):
    newcomer = make_session(store, "new@example.com", "New")
    with pytest.raises(NotFound):
        companies.request_join("does-not-exist", newcomer)
    assert store.get(UserProfile, newcomer.uid) is None


def test_request_then_accept(companies, store, workspace):
    newcomer = make_session(store, "new@example.com", "New")
    company = companies.request_join(workspace.company.id, newcomer)

    assert newcomer.uid in company.pending_requests
    pending_profile = store.get(UserProfile, newcomer.uid)
    assert pending_profile.current_company_id is None
    assert pending_profile.pending_company_id == workspace.company.id
    assert [p.uid for p in companies.list_requests(workspace.company.id)] == [newcomer.uid]

    company = companies.resolve_request(workspace.company.id, newcomer.uid, True, workspace.alice)

    assert newcomer.uid in company.members
    assert company.pending_requests == []
    accepted = store.get(UserProfile, newcomer.uid)
    assert accepted.current_company_id == workspace.company.id
    assert accepted.pending_company_id is None


def test_reject_clears_request(companies, store, workspace):
    newcomer = make_session(store, "new@example.com", "New")
    companies.request_join(workspace.company.id, newcomer)

    company = companies.resolve_request(workspace.company.id, newcomer.uid, False, workspace.alice)

    assert newcomer.uid not in company.members
    assert company.pending_requests == []
    assert store.get(UserProfile, newcomer.uid).pending_company_id is None


def test_only_admins_resolve_requests(companies, store, workspace):
    newcomer = make_session(store, "new@example.com", "New")
    companies.request_join(workspace.company.id, newcomer)

    with pytest.raises(PermissionDenied):
        companies.resolve_request(workspace.company.id, newcomer.uid, True, workspace.bob)


def test_members_keep_owner(companies, workspace):
    members = companies.list_members(workspace.company.id)
    assert [m.uid for m in members] == [workspace.alice.uid, workspace.bob.uid]
    assert workspace.company.owner_id in workspace.company.members


def test_members_with_missing_profiles_are_skipped(companies, store, workspace):
    store.update(Company, workspace.company.id, {"members": workspace.company.members + ["ghost"]})
    assert len(companies.list_members(workspace.company.id)) == 2


def test_join_directly_sets_current_company(companies, store, workspace):
    carol = make_session(store, "carol@example.com", "Carol")
    companies.join_company(workspace.company.id, carol)
    carol = refresh_session(store, carol)

    assert carol.company_id == workspace.company.id
    assert carol.is_admin is False


def test_seed_script_creates_admin_workspace(store):
    profile = create_initial_workspace(store, "admin@example.com", "adminpassword", "Admin", "Demo")

    assert profile.role == UserRole.ADMIN
    company = store.get(Company, profile.current_company_id)
    assert company.name == "Demo"
    again = create_initial_workspace(store, "admin@example.com", "adminpassword", "Admin", "Demo")
    assert again.uid == profile.uid
