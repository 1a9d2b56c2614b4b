"""Note and checklist schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

DEFAULT_NOTE_COLOR = "#fef3c7"


class ChecklistItem(BaseModel):
    id: str = Field(min_length=1)
    content: str
    checked: bool = False
    order: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class NoteCreate(BaseModel):
    content: str = ""
    color: str = DEFAULT_NOTE_COLOR
    checklist_items: List[ChecklistItem] = Field(default_factory=list)


class NoteUpdate(BaseModel):
    """Partial update. Only the supplied fields are written (last write wins)."""
    content: Optional[str] = None
    color: Optional[str] = None
    done: Optional[bool] = None
    checklist_items: Optional[List[ChecklistItem]] = None


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class NoteAuthor(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None


class NoteResponse(BaseModel):
    id: str
    board_id: str
    content: str
    color: str
    done: bool
    checklist_items: List[ChecklistItem]
    user: NoteAuthor
    created_at: datetime
    updated_at: datetime


class NoteEnvelope(BaseModel):
    note: NoteResponse


class NoteListResponse(BaseModel):
    notes: List[NoteResponse]
