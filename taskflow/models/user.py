"""
User Model Module

This module defines the identity record (Account) and the workspace profile
(UserProfile). An account exists from registration on; a profile is created
during onboarding when the user creates or joins a company.
"""
from enum import Enum
from typing import Optional
from sqlmodel import SQLModel, Field, AutoString
import uuid


class UserRole(str, Enum):
    """
    Role of a user inside their current company.

    - ADMIN: company owner, manages join requests
    - EMPLOYEE: regular member
    """
    ADMIN = "admin"
    EMPLOYEE = "employee"


class Account(SQLModel, table=True):
    """
    Identity record used for authentication.

    Attributes:
        id: UUID generated at registration, used as the profile uid
        email: Login email (unique, indexed)
        password: bcrypt hash
        display_name: Name shown on tasks, comments and notifications
        photo_url: Optional avatar URL
    """
    __tablename__ = "accounts"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    email: str = Field(unique=True, index=True, nullable=False)
    password: Optional[str] = None
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    created_at: Optional[str] = None


class UserProfileBase(SQLModel):
    email: str
    display_name: str
    photo_url: Optional[str] = None
    role: UserRole = Field(default=UserRole.EMPLOYEE, sa_type=AutoString)

    # Null until onboarding completes
    current_company_id: Optional[str] = Field(default=None, index=True)
    # Set while a join request is outstanding
    pending_company_id: Optional[str] = None


class UserProfile(UserProfileBase, table=True):
    __tablename__ = "users"

    uid: str = Field(primary_key=True)
    created_at: Optional[str] = None


class UserProfileRead(UserProfileBase):
    uid: str
    created_at: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
