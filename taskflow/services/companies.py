"""
Workspace Service Module

Company creation, join requests (request/approve flow and direct join) and
the onboarding profile writes that go with them. A user has exactly one
current company at a time; the company owner is always a member.
"""
import logging
from typing import List

from pydantic import ValidationError

from taskflow.core.errors import NotFound, PermissionDenied, ValidationFailed
from taskflow.db.store import EntityStore, SERVER_TIMESTAMP
from taskflow.models.company import Company, CompanyCreate, CompanyRead
from taskflow.models.user import UserProfile, UserProfileRead, UserRole

logger = logging.getLogger(__name__)


class CompanyService:
    def __init__(self, store: EntityStore):
        self.store = store

    def get_company(self, company_id: str) -> CompanyRead:
        company = self.store.get(Company, company_id)
        if company is None:
            raise NotFound("Company not found")
        return company

    def _write_profile(self, session, role: UserRole, current_company_id=None, pending_company_id=None,
                       default_name: str = "User") -> None:
        existing = self.store.get(UserProfile, session.uid)
        self.store.set(UserProfile, session.uid, {
            "email": session.email,
            "display_name": session.display_name or default_name,
            "photo_url": session.photo_url,
            "role": role,
            "current_company_id": current_company_id,
            "pending_company_id": pending_company_id,
            "created_at": existing.created_at if existing else SERVER_TIMESTAMP,
        })

    def create_company(self, name: str, session) -> CompanyRead:
        """Create a company owned by the caller and make it their current workspace."""
        try:
            company_in = CompanyCreate(name=name)
        except ValidationError as e:
            raise ValidationFailed("Company name is required") from e

        company_id = self.store.add(Company, {
            "name": company_in.name,
            "owner_id": session.uid,
            "members": [session.uid],
            "pending_requests": [],
            "created_at": SERVER_TIMESTAMP,
        })
        self._write_profile(session, UserRole.ADMIN, current_company_id=company_id, default_name="Admin")
        logger.info("Company %s created by %s", company_id, session.uid)
        return self.get_company(company_id)

    def request_join(self, company_id: str, session) -> CompanyRead:
        """
        Ask to join a company. The caller stays without a current workspace
        until an admin accepts the request.

        Raises:
            NotFound: If no company has this id
        """
        company = self.get_company(company_id)
        if session.uid in company.members:
            raise ValidationFailed("Already a member of this company")

        if session.uid not in company.pending_requests:
            company = self.store.update(Company, company_id, {
                "pending_requests": company.pending_requests + [session.uid],
            })
        self._write_profile(session, UserRole.EMPLOYEE, pending_company_id=company_id, default_name="Employee")
        return company

    def join_company(self, company_id: str, session) -> CompanyRead:
        """Join a company directly, without approval."""
        company = self.get_company(company_id)
        if session.uid not in company.members:
            company = self.store.update(Company, company_id, {
                "members": company.members + [session.uid],
                "pending_requests": [uid for uid in company.pending_requests if uid != session.uid],
            })
        role = UserRole.ADMIN if company.owner_id == session.uid else UserRole.EMPLOYEE
        self._write_profile(session, role, current_company_id=company_id, default_name="Employee")
        return company

    def resolve_request(self, company_id: str, target_uid: str, accept: bool, session) -> CompanyRead:
        """
        Accept or reject a pending join request. Only an admin of the company may do this.
        """
        company = self.get_company(company_id)
        if not (session.is_admin and session.company_id == company_id):
            raise PermissionDenied("Only company admins can manage join requests")
        if target_uid not in company.pending_requests:
            raise NotFound("No pending request for this user")

        changes = {"pending_requests": [uid for uid in company.pending_requests if uid != target_uid]}
        if accept and target_uid not in company.members:
            changes["members"] = company.members + [target_uid]
        company = self.store.update(Company, company_id, changes)

        target = self.store.get(UserProfile, target_uid)
        if target is not None:
            if accept:
                self.store.update(UserProfile, target_uid, {
                    "current_company_id": company_id,
                    "pending_company_id": None,
                })
            elif target.pending_company_id == company_id:
                self.store.update(UserProfile, target_uid, {"pending_company_id": None})
        return company

    def list_members(self, company_id: str) -> List[UserProfileRead]:
        company = self.get_company(company_id)
        return self.store.get_many(UserProfile, company.members)

    def list_requests(self, company_id: str) -> List[UserProfileRead]:
        company = self.get_company(company_id)
        return self.store.get_many(UserProfile, company.pending_requests)
