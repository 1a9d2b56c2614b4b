"""
Current-user API endpoints.

GET  /api/v1/user                      — Current user, active org, all memberships
POST /api/v1/user/switch-organization  — Change the active organization
POST /api/v1/user/leave-organization   — Drop a membership
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gumboard.core.auth import get_current_user_id
from gumboard.core.database import get_session
from gumboard.services import organizations as org_service
from gumboard_shared.schemas.users import (
    CurrentUserResponse,
    LeaveOrganizationRequest,
    SuccessResponse,
    SwitchOrganizationRequest,
)

router = APIRouter()


@router.get("", response_model=CurrentUserResponse)
async def get_current_user(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    info = await org_service.get_user_with_organizations(user_id, session)
    return CurrentUserResponse(**info)


@router.post("/switch-organization", response_model=SuccessResponse)
async def switch_organization(
    body: SwitchOrganizationRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    """Switch the active organization. 403 unless the caller is a member."""
    await org_service.switch_organization(user_id, body.organization_id, session)
    return SuccessResponse()


@router.post("/leave-organization", response_model=SuccessResponse)
async def leave_organization(
    body: LeaveOrganizationRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    await org_service.leave_organization(user_id, body.organization_id, session)
    return SuccessResponse()
