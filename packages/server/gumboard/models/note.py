"""Note model (checklist items stored inline as JSON, soft-deleted)."""

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

from gumboard_shared.schemas.notes import DEFAULT_NOTE_COLOR

from .base import IdMixin, TimestampMixin


class Note(IdMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "notes"

    board_id: str = Field(foreign_key="boards.id", nullable=False, index=True)
    created_by: str = Field(foreign_key="users.id", nullable=False)
    content: str = Field(default="", nullable=False)
    color: str = Field(default=DEFAULT_NOTE_COLOR, nullable=False)
    done: bool = Field(default=False, nullable=False)
    checklist_items: list = Field(default_factory=list, sa_type=sa.JSON, nullable=False)
    deleted_at: Optional[datetime] = Field(default=None, sa_type=sa.DateTime(timezone=True))
