from pydantic import BaseModel, EmailStr
from typing import Optional
from taskflow.models.user import UserProfileRead


# Properties returned for an account (never the password hash)
class AccountRead(BaseModel):
    id: str
    email: EmailStr
    display_name: Optional[str] = None
    photo_url: Optional[str] = None
    created_at: Optional[str] = None

    class Config:
        from_attributes = True


# Properties to receive via API on update
class AccountUpdate(BaseModel):
    display_name: Optional[str] = None
    photo_url: Optional[str] = None


# Account plus workspace profile of the caller
class MeRead(BaseModel):
    account: AccountRead
    profile: Optional[UserProfileRead] = None
    onboarding_required: bool = True
