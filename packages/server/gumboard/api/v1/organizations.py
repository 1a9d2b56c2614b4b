"""
Organization API endpoints.

POST /api/v1/organizations — Create an org; the caller becomes its admin
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gumboard.core.auth import get_current_user_id
from gumboard.core.database import get_session
from gumboard.services import organizations as org_service
from gumboard_shared.schemas.organizations import (
    OrganizationCreateRequest,
    OrganizationResponse,
)

router = APIRouter()


@router.post("", response_model=OrganizationResponse, status_code=201)
async def create_organization(
    body: OrganizationCreateRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """Create an organization and switch the caller into it."""
    org = await org_service.create_organization(
        user_id,
        body.name,
        session,
        webhook_url=str(body.webhook_url) if body.webhook_url else None,
    )
    return OrganizationResponse(id=org.id, name=org.name, webhook_url=org.webhook_url)
