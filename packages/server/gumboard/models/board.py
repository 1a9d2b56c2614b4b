"""Board model."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import IdMixin, TimestampMixin


class Board(IdMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "boards"

    name: str = Field(nullable=False)
    description: Optional[str] = None
    organization_id: str = Field(foreign_key="organizations.id", nullable=False, index=True)
    created_by: str = Field(foreign_key="users.id", nullable=False)
    is_public: bool = Field(default=False, nullable=False)
