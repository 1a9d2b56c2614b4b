"""User model."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from .base import IdMixin, utcnow


class User(IdMixin, SQLModel, table=True):
    __tablename__ = "users"

    name: Optional[str] = None
    email: str = Field(unique=True, index=True, nullable=False)
    # Cache of the active membership's is_admin; rewritten on every context change
    is_admin: bool = Field(default=False, nullable=False)
    # Active organization; always one of the user's memberships when set
    organization_id: Optional[str] = Field(
        default=None, foreign_key="organizations.id", index=True
    )
    email_verified_at: Optional[datetime] = Field(
        default=None, sa_type=sa.DateTime(timezone=True)
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=sa.DateTime(timezone=True),
    )
