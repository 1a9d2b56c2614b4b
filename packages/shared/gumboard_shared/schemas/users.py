"""User and organization-context schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class SwitchOrganizationRequest(BaseModel):
    """Point the session at another organization the user belongs to."""
    organization_id: str = Field(min_length=1)


class LeaveOrganizationRequest(BaseModel):
    organization_id: str = Field(min_length=1)


class InviteJoinRequest(BaseModel):
    """Join through an invite link without an existing session."""
    email: EmailStr
    name: Optional[str] = Field(default=None, max_length=200)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class OrganizationMember(BaseModel):
    id: str
    name: Optional[str] = None
    email: str
    is_admin: bool


class ActiveOrganization(BaseModel):
    id: str
    name: str
    webhook_url: Optional[str] = None
    members: List[OrganizationMember]


class MembershipSummary(BaseModel):
    """One organization reachable through a membership."""
    id: str
    name: str
    is_admin: bool
    joined_at: datetime
    is_current: bool


class CurrentUserResponse(BaseModel):
    id: str
    name: Optional[str] = None
    email: str
    is_admin: bool
    organization: Optional[ActiveOrganization] = None
    organizations: List[MembershipSummary]


class SuccessResponse(BaseModel):
    success: bool = True
