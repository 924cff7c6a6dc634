"""
Session Context Module

The identity of the caller is passed explicitly to every service that needs
it instead of being read from global state. A SessionContext starts in the
loading state and becomes ready once the account (and, when present, the
workspace profile) has been resolved.
"""
from dataclasses import dataclass
from typing import Optional

from taskflow.core.errors import NotAuthenticated, ProfileIncomplete
from taskflow.models.user import Account, UserProfileRead, UserRole


@dataclass
class SessionContext:
    uid: Optional[str] = None
    email: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    loading: bool = True
    profile: Optional[UserProfileRead] = None

    @classmethod
    def signed_out(cls) -> "SessionContext":
        return cls(loading=False)

    @classmethod
    def from_account(cls, account: Account, profile: Optional[UserProfileRead] = None) -> "SessionContext":
        display_name = (profile.display_name if profile else None) or account.display_name or "User"
        photo_url = (profile.photo_url if profile else None) or account.photo_url
        return cls(
            uid=account.id,
            email=account.email,
            display_name=display_name,
            photo_url=photo_url,
            loading=False,
            profile=profile,
        )

    @property
    def authenticated(self) -> bool:
        return not self.loading and self.uid is not None

    @property
    def company_id(self) -> Optional[str]:
        return self.profile.current_company_id if self.profile else None

    @property
    def is_admin(self) -> bool:
        return self.profile is not None and self.profile.role == UserRole.ADMIN

    def require_user(self) -> str:
        """Return the uid, or raise NotAuthenticated while signed out or loading."""
        if not self.authenticated:
            raise NotAuthenticated()
        return self.uid

    def require_workspace(self) -> str:
        """Return the current company id, or raise ProfileIncomplete before onboarding."""
        self.require_user()
        if self.company_id is None:
            raise ProfileIncomplete()
        return self.company_id
