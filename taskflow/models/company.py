"""
Company Model Module

A company is the workspace (tenant) boundary. Every task belongs to exactly
one company, and the owner is always listed among the members.
"""
from typing import List, Optional
from sqlmodel import SQLModel, Field, JSON, Column
from pydantic import field_validator


class Company(SQLModel, table=True):
    """
    Attributes:
        id: Store-generated identifier, doubles as the invite code
        name: Display name of the workspace
        owner_id: Account id of the creator
        members: JSON array of member account ids
        pending_requests: JSON array of account ids waiting for approval
        created_at: Server-assigned ISO timestamp
    """
    __tablename__ = "companies"

    id: Optional[str] = Field(default=None, primary_key=True)
    name: str = Field(nullable=False)
    owner_id: str = Field(nullable=False)
    members: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    pending_requests: List[str] = Field(default_factory=list, sa_column=Column(JSON))
    created_at: Optional[str] = None


class CompanyCreate(SQLModel):
    name: str

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Company name is required")
        return v.strip()


class CompanyJoin(SQLModel):
    company_id: str

    @field_validator("company_id")
    @classmethod
    def id_not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("Company ID is required")
        return v.strip()


class CompanyRead(SQLModel):
    id: str
    name: str
    owner_id: str
    members: List[str] = []
    pending_requests: List[str] = []
    created_at: Optional[str] = None

    @field_validator("members", "pending_requests", mode="before")
    @classmethod
    def default_list(cls, v):
        return v or []
