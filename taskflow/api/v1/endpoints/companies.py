"""
Company Endpoints Module

Workspace onboarding (create, request to join, direct join) and team
management for company admins.
"""
from typing import List
from fastapi import APIRouter, Depends
from taskflow.api import deps
from taskflow.core.session import SessionContext
from taskflow.models.company import CompanyCreate, CompanyJoin, CompanyRead
from taskflow.models.user import UserProfileRead
from taskflow.services.companies import CompanyService

router = APIRouter()


@router.post("", response_model=CompanyRead)
def create_company(
    company_in: CompanyCreate,
    companies: CompanyService = Depends(deps.get_company_service),
    session: SessionContext = Depends(deps.get_session_context),
):
    """
    Create a company. The caller becomes its owner, first member and admin,
    and the company becomes their current workspace.
    """
    return companies.create_company(company_in.name, session)


@router.post("/join-requests", response_model=CompanyRead)
def request_to_join(
    join_in: CompanyJoin,
    companies: CompanyService = Depends(deps.get_company_service),
    session: SessionContext = Depends(deps.get_session_context),
):
    """
    Send a join request using the company id as invite code.

    Raises:
        404: If no company has this id
    """
    return companies.request_join(join_in.company_id, session)


@router.post("/join", response_model=CompanyRead)
def join_company(
    join_in: CompanyJoin,
    companies: CompanyService = Depends(deps.get_company_service),
    session: SessionContext = Depends(deps.get_session_context),
):
    """Join a company directly without waiting for approval."""
    return companies.join_company(join_in.company_id, session)


@router.get("/current", response_model=CompanyRead)
def read_current_company(
    companies: CompanyService = Depends(deps.get_company_service),
    session: SessionContext = Depends(deps.get_workspace_session),
):
    return companies.get_company(session.company_id)


@router.get("/current/members", response_model=List[UserProfileRead])
def list_members(
    companies: CompanyService = Depends(deps.get_company_service),
    session: SessionContext = Depends(deps.get_workspace_session),
):
    return companies.list_members(session.company_id)


@router.get("/current/requests", response_model=List[UserProfileRead])
def list_requests(
    companies: CompanyService = Depends(deps.get_company_service),
    session: SessionContext = Depends(deps.get_admin_session),
):
    """Pending join requests. Admins only."""
    return companies.list_requests(session.company_id)


@router.post("/current/requests/{uid}/accept", response_model=CompanyRead)
def accept_request(
    uid: str,
    companies: CompanyService = Depends(deps.get_company_service),
    session: SessionContext = Depends(deps.get_admin_session),
):
    return companies.resolve_request(session.company_id, uid, True, session)


@router.post("/current/requests/{uid}/reject", response_model=CompanyRead)
def reject_request(
    uid: str,
    companies: CompanyService = Depends(deps.get_company_service),
    session: SessionContext = Depends(deps.get_admin_session),
):
    return companies.resolve_request(session.company_id, uid, False, session)
