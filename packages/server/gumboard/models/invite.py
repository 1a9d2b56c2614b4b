"""Self-serve invite links."""

from datetime import datetime
import secrets
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import TimestampMixin


def new_invite_token() -> str:
    return secrets.token_urlsafe(24)


class SelfServeInvite(TimestampMixin, SQLModel, table=True):
    __tablename__ = "organization_self_serve_invites"

    token: str = Field(default_factory=new_invite_token, primary_key=True)
    name: str = Field(nullable=False)
    organization_id: str = Field(foreign_key="organizations.id", nullable=False, index=True)
    is_active: bool = Field(default=True, nullable=False)
    expires_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
    usage_limit: Optional[int] = None
    usage_count: int = Field(default=0, nullable=False)
