"""Organization and invite schemas."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, HttpUrl

from .users import SuccessResponse


class OrganizationCreateRequest(BaseModel):
    """Create an organization; the creator becomes its first admin."""
    name: str = Field(min_length=1, max_length=200)
    webhook_url: Optional[HttpUrl] = None


class OrganizationResponse(BaseModel):
    id: str
    name: str
    webhook_url: Optional[str] = None


class InviteRedeemResponse(SuccessResponse):
    organization_id: str


class InviteJoinResponse(InviteRedeemResponse):
    user_id: str
