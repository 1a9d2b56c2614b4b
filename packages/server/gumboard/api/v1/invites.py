"""
Self-serve invite endpoints.

POST /api/v1/invites/{token}/redeem — Join as the signed-in user
POST /api/v1/invites/{token}/join   — Join by email, creating the account if needed
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from gumboard.core.auth import get_current_user_id
from gumboard.core.database import get_session
from gumboard.services import organizations as org_service
from gumboard_shared.schemas.organizations import InviteJoinResponse, InviteRedeemResponse
from gumboard_shared.schemas.users import InviteJoinRequest

router = APIRouter()


@router.post("/{token}/redeem", response_model=InviteRedeemResponse)
async def redeem_invite(
    token: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    organization_id = await org_service.redeem_invite(token, user_id, session)
    return InviteRedeemResponse(organization_id=organization_id)


@router.post("/{token}/join", response_model=InviteJoinResponse)
async def join_with_invite(
    token: str,
    body: InviteJoinRequest,
    session: AsyncSession = Depends(get_session),
):
    """Join without a session. New accounts are created already verified."""
    user = await org_service.redeem_invite_for_email(
        token, body.email, session, name=body.name
    )
    return InviteJoinResponse(organization_id=user.organization_id, user_id=user.id)
