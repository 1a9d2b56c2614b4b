"""
Note API endpoints. Mutations publish board events to the relay.

GET    /api/v1/boards/{board_id}/notes            — List notes
POST   /api/v1/boards/{board_id}/notes            — Create a note
PUT    /api/v1/boards/{board_id}/notes/{note_id}  — Update content, color, done, checklist
DELETE /api/v1/boards/{board_id}/notes/{note_id}  — Soft-delete a note

Clients may send X-Client-Instance-Id; it is echoed in the published
payload as source_instance_id.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from gumboard.core.auth import get_current_user_id
from gumboard.core.database import get_session
from gumboard.services import notes as note_service
from gumboard_shared.schemas.notes import (
    NoteCreate,
    NoteEnvelope,
    NoteListResponse,
    NoteUpdate,
)

router = APIRouter()


@router.get("", response_model=NoteListResponse)
async def list_notes(
    board_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
):
    notes = await note_service.list_notes(board_id, user_id, session)
    return NoteListResponse(notes=notes)


@router.post("", response_model=NoteEnvelope, status_code=201)
async def create_note(
    board_id: str,
    body: NoteCreate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    client_instance_id: Optional[str] = Header(None, alias="X-Client-Instance-Id"),
):
    note = await note_service.create_note(
        board_id, user_id, body, session, source_instance_id=client_instance_id
    )
    return NoteEnvelope(note=note)


@router.put("/{note_id}", response_model=NoteEnvelope)
async def update_note(
    board_id: str,
    note_id: str,
    body: NoteUpdate,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    client_instance_id: Optional[str] = Header(None, alias="X-Client-Instance-Id"),
):
    """Partial update; only supplied fields are written."""
    note = await note_service.update_note(
        board_id, note_id, user_id, body, session, source_instance_id=client_instance_id
    )
    return NoteEnvelope(note=note)


@router.delete("/{note_id}", status_code=204)
async def delete_note(
    board_id: str,
    note_id: str,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
    client_instance_id: Optional[str] = Header(None, alias="X-Client-Instance-Id"),
):
    await note_service.delete_note(
        board_id, note_id, user_id, session, source_instance_id=client_instance_id
    )
