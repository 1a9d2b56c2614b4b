"""
Organization context service: which organizations a user can act in,
and which one their session currently points at.

Invariant: whenever User.organization_id is set, a Membership row exists
for (user, organization_id), and User.is_admin mirrors that membership's
is_admin flag. Only the functions in this module write those two columns.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

import structlog
from fastapi import HTTPException
from sqlalchemy import exists, false, func, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from gumboard.models.base import as_utc, utcnow
from gumboard.models.invite import SelfServeInvite
from gumboard.models.membership import Membership
from gumboard.models.organization import Organization
from gumboard.models.user import User

log = structlog.get_logger()


class NotAMember(HTTPException):
    """The user has no membership in the target organization."""

    def __init__(self, detail: str = "You are not a member of this organization"):
        super().__init__(status_code=403, detail=detail)


class InviteError(HTTPException):
    """An invite link cannot be redeemed."""

    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

async def _get_user(user_id: str, session: AsyncSession) -> User:
    user = await session.get(User, user_id, populate_existing=True)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


async def get_membership(
    user_id: str, organization_id: str, session: AsyncSession
) -> Optional[Membership]:
    result = await session.execute(
        select(Membership).where(
            Membership.user_id == user_id,
            Membership.organization_id == organization_id,
        )
    )
    return result.scalar_one_or_none()


def _membership_admin_flag(user_id: str, organization_id: str):
    """The membership's is_admin as a scalar subquery, read when the UPDATE runs."""
    return (
        select(Membership.is_admin)
        .where(
            Membership.user_id == user_id,
            Membership.organization_id == organization_id,
        )
        .scalar_subquery()
    )


def _newest_membership_column(user_id: str, column):
    return (
        select(column)
        .where(Membership.user_id == user_id)
        .order_by(Membership.joined_at.desc())
        .limit(1)
        .scalar_subquery()
    )


async def get_user_with_organizations(user_id: str, session: AsyncSession) -> dict:
    """
    The current user, their active organization (with its members) and
    every organization reachable through their memberships, newest first.
    """
    user = await _get_user(user_id, session)

    result = await session.execute(
        select(Membership, Organization)
        .join(Organization, Organization.id == Membership.organization_id)
        .where(Membership.user_id == user_id)
        .order_by(Membership.joined_at.desc())
    )
    organizations = [
        {
            "id": org.id,
            "name": org.name,
            "is_admin": membership.is_admin,
            "joined_at": membership.joined_at,
            "is_current": org.id == user.organization_id,
        }
        for membership, org in result.all()
    ]

    active = None
    if user.organization_id:
        org = await session.get(Organization, user.organization_id)
        if org:
            members = await session.execute(
                select(User, Membership)
                .join(Membership, Membership.user_id == User.id)
                .where(Membership.organization_id == org.id)
                .order_by(Membership.joined_at)
            )
            active = {
                "id": org.id,
                "name": org.name,
                "webhook_url": org.webhook_url,
                "members": [
                    {
                        "id": member.id,
                        "name": member.name,
                        "email": member.email,
                        "is_admin": m.is_admin,
                    }
                    for member, m in members.all()
                ],
            }

    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "is_admin": user.is_admin,
        "organization": active,
        "organizations": organizations,
    }


# ---------------------------------------------------------------------------
# Context changes
# ---------------------------------------------------------------------------

async def switch_organization(
    user_id: str, organization_id: str, session: AsyncSession
) -> None:
    """
    Point the user's session at another of their organizations.

    organization_id and is_admin are written by one UPDATE. Its WHERE
    clause re-checks the membership and is_admin is read from the
    membership by a subquery in the same statement, so a concurrent
    removal or role change cannot leave the cached flag stale.
    Concurrent switches by the same user are last-write-wins.
    """
    await _get_user(user_id, session)
    if await get_membership(user_id, organization_id, session) is None:
        log.warning("org.switch_denied", user_id=user_id, org_id=organization_id)
        raise NotAMember()

    membership_exists = exists().where(
        Membership.user_id == user_id,
        Membership.organization_id == organization_id,
    )
    result = await session.execute(
        update(User)
        .where(User.id == user_id, membership_exists)
        .values(
            organization_id=organization_id,
            is_admin=_membership_admin_flag(user_id, organization_id),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await session.rollback()
        raise NotAMember()

    await session.commit()
    user = await _get_user(user_id, session)
    log.info(
        "org.switched",
        user_id=user_id,
        org_id=organization_id,
        is_admin=user.is_admin,
    )


async def create_organization(
    user_id: str,
    name: str,
    session: AsyncSession,
    webhook_url: Optional[str] = None,
) -> Organization:
    """Create an org, make the creator its admin, and switch them into it."""
    await _get_user(user_id, session)

    org = Organization(name=name, webhook_url=webhook_url)
    session.add(org)
    await session.flush()

    session.add(Membership(user_id=user_id, organization_id=org.id, is_admin=True))
    await session.flush()

    await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(organization_id=org.id, is_admin=True)
        .execution_options(synchronize_session=False)
    )
    await session.commit()

    log.info("org.created", org_id=org.id, creator=user_id)
    return org


async def leave_organization(
    user_id: str, organization_id: str, session: AsyncSession
) -> Optional[str]:
    """
    Remove the user's membership.

    If it was their active organization, the session moves to their most
    recently joined remaining organization, or to none. Returns the new
    active organization id.
    """
    membership = await get_membership(user_id, organization_id, session)
    if membership is None:
        raise NotAMember()

    await session.delete(membership)
    await session.flush()

    user = await _get_user(user_id, session)
    if user.organization_id == organization_id:
        # Both columns come from the newest remaining membership, or NULL/false.
        await session.execute(
            update(User)
            .where(User.id == user_id, User.organization_id == organization_id)
            .values(
                organization_id=_newest_membership_column(user_id, Membership.organization_id),
                is_admin=func.coalesce(
                    _newest_membership_column(user_id, Membership.is_admin), false()
                ),
            )
            .execution_options(synchronize_session=False)
        )

    await session.commit()
    new_active = (await _get_user(user_id, session)).organization_id
    log.info(
        "org.left",
        user_id=user_id,
        org_id=organization_id,
        active_org_id=new_active,
    )
    return new_active


# ---------------------------------------------------------------------------
# Invite redemption
# ---------------------------------------------------------------------------

async def _get_redeemable_invite(
    token: str, session: AsyncSession, now: Optional[datetime] = None
) -> SelfServeInvite:
    invite = await session.get(SelfServeInvite, token, populate_existing=True)
    if invite is None:
        raise InviteError("Invalid or expired invitation link")
    if not invite.is_active:
        raise InviteError("This invitation link has been deactivated")
    if invite.expires_at and as_utc(invite.expires_at) < (now or utcnow()):
        raise InviteError("This invitation link has expired")
    if invite.usage_limit is not None and invite.usage_count >= invite.usage_limit:
        raise InviteError("This invitation link has reached its usage limit")
    return invite


async def _join_via_invite(
    user_id: str, invite: SelfServeInvite, session: AsyncSession
) -> None:
    """Membership first, then the active-org pointer, then the usage count."""
    session.add(
        Membership(user_id=user_id, organization_id=invite.organization_id, is_admin=False)
    )
    try:
        await session.flush()
    except IntegrityError:
        await session.rollback()
        raise InviteError("You are already a member of this organization")

    await session.execute(
        update(User)
        .where(User.id == user_id)
        .values(organization_id=invite.organization_id, is_admin=False)
        .execution_options(synchronize_session=False)
    )

    consumed = update(SelfServeInvite).where(SelfServeInvite.token == invite.token)
    if invite.usage_limit is not None:
        consumed = consumed.where(SelfServeInvite.usage_count < invite.usage_limit)
    result = await session.execute(
        consumed.values(usage_count=SelfServeInvite.usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await session.rollback()
        raise InviteError("This invitation link has reached its usage limit")


async def redeem_invite(token: str, user_id: str, session: AsyncSession) -> str:
    """Join the invite's organization as the signed-in user. Returns the org id."""
    invite = await _get_redeemable_invite(token, session)
    await _get_user(user_id, session)

    if await get_membership(user_id, invite.organization_id, session):
        raise InviteError("You are already a member of this organization")

    organization_id = invite.organization_id
    await _join_via_invite(user_id, invite, session)
    await session.commit()

    log.info("invite.redeemed", user_id=user_id, org_id=organization_id)
    return organization_id


async def redeem_invite_for_email(
    token: str,
    email: str,
    session: AsyncSession,
    name: Optional[str] = None,
) -> User:
    """
    Join through an invite link by email, creating the account if needed.

    New accounts are marked verified since the invite link proves access.
    """
    invite = await _get_redeemable_invite(token, session)

    result = await session.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        user = User(email=email, name=name, email_verified_at=utcnow())
        session.add(user)
        await session.flush()
        log.info("user.created_from_invite", user_id=user.id)
    elif await get_membership(user.id, invite.organization_id, session):
        raise InviteError("You are already a member of this organization")

    user_id = user.id
    organization_id = invite.organization_id
    await _join_via_invite(user_id, invite, session)
    await session.commit()

    log.info("invite.redeemed", user_id=user_id, org_id=organization_id)
    return await _get_user(user_id, session)
