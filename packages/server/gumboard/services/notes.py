"""
Note service: CRUD for sticky notes and their checklists.

Every mutation commits first and only then publishes the board event, so
subscribers never hear about a write that was rolled back.
"""

from __future__ import annotations

from typing import Any, Optional

import structlog
from fastapi import HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from gumboard.core.realtime import publish_board_event
from gumboard.models.base import utcnow
from gumboard.models.board import Board
from gumboard.models.note import Note
from gumboard.models.user import User
from gumboard_shared.schemas.events import BoardEvent
from gumboard_shared.schemas.notes import NoteCreate, NoteResponse, NoteUpdate

log = structlog.get_logger()


async def get_board_for_user(
    board_id: str,
    user_id: str,
    session: AsyncSession,
    *,
    write: bool = False,
) -> Board:
    """
    Resolve a board the user may access.

    Boards in the user's active organization are readable and writable.
    Public boards are readable by anyone signed in. Everything else is 404
    so board ids from other organizations are not confirmed.
    """
    board = await session.get(Board, board_id)
    user = await session.get(User, user_id)
    if not board or not user:
        raise HTTPException(status_code=404, detail="Board not found")

    if board.organization_id == user.organization_id:
        return board
    if board.is_public and not write:
        return board
    raise HTTPException(status_code=404, detail="Board not found")


async def _get_note(board_id: str, note_id: str, session: AsyncSession) -> Note:
    result = await session.execute(
        select(Note).where(
            Note.id == note_id,
            Note.board_id == board_id,
            Note.deleted_at.is_(None),
        )
    )
    note = result.scalar_one_or_none()
    if not note:
        raise HTTPException(status_code=404, detail="Note not found")
    return note


async def _to_response(note: Note, session: AsyncSession) -> NoteResponse:
    author = await session.get(User, note.created_by)
    return NoteResponse(
        id=note.id,
        board_id=note.board_id,
        content=note.content,
        color=note.color,
        done=note.done,
        checklist_items=note.checklist_items or [],
        user={
            "id": note.created_by,
            "name": author.name if author else None,
            "email": author.email if author else None,
        },
        created_at=note.created_at,
        updated_at=note.updated_at,
    )


def _event_payload(data: dict[str, Any], source_instance_id: Optional[str]) -> dict[str, Any]:
    if source_instance_id:
        return {**data, "source_instance_id": source_instance_id}
    return data


async def list_notes(board_id: str, user_id: str, session: AsyncSession) -> list[NoteResponse]:
    await get_board_for_user(board_id, user_id, session)

    result = await session.execute(
        select(Note, User)
        .join(User, User.id == Note.created_by)
        .where(Note.board_id == board_id, Note.deleted_at.is_(None))
        .order_by(Note.created_at)
    )
    return [
        NoteResponse(
            id=note.id,
            board_id=note.board_id,
            content=note.content,
            color=note.color,
            done=note.done,
            checklist_items=note.checklist_items or [],
            user={"id": author.id, "name": author.name, "email": author.email},
            created_at=note.created_at,
            updated_at=note.updated_at,
        )
        for note, author in result.all()
    ]


async def create_note(
    board_id: str,
    user_id: str,
    body: NoteCreate,
    session: AsyncSession,
    *,
    source_instance_id: Optional[str] = None,
) -> NoteResponse:
    await get_board_for_user(board_id, user_id, session, write=True)

    note = Note(
        board_id=board_id,
        created_by=user_id,
        content=body.content,
        color=body.color,
        checklist_items=[item.model_dump() for item in body.checklist_items],
    )
    session.add(note)
    await session.commit()
    await session.refresh(note)

    response = await _to_response(note, session)
    log.info("note.created", board_id=board_id, note_id=note.id, user_id=user_id)

    await publish_board_event(
        board_id,
        BoardEvent.NOTE_CREATED,
        _event_payload(response.model_dump(mode="json"), source_instance_id),
    )
    return response


async def update_note(
    board_id: str,
    note_id: str,
    user_id: str,
    body: NoteUpdate,
    session: AsyncSession,
    *,
    source_instance_id: Optional[str] = None,
) -> NoteResponse:
    """Write only the supplied fields. Concurrent edits are last-write-wins."""
    await get_board_for_user(board_id, user_id, session, write=True)
    note = await _get_note(board_id, note_id, session)

    changes = body.model_dump(exclude_unset=True)
    for field, value in changes.items():
        if value is None:
            continue
        setattr(note, field, value)
    note.updated_at = utcnow()

    session.add(note)
    await session.commit()
    await session.refresh(note)

    response = await _to_response(note, session)
    log.info(
        "note.updated",
        board_id=board_id,
        note_id=note_id,
        fields=sorted(changes),
    )

    await publish_board_event(
        board_id,
        BoardEvent.NOTE_UPDATED,
        _event_payload(response.model_dump(mode="json"), source_instance_id),
    )
    return response


async def delete_note(
    board_id: str,
    note_id: str,
    user_id: str,
    session: AsyncSession,
    *,
    source_instance_id: Optional[str] = None,
) -> None:
    await get_board_for_user(board_id, user_id, session, write=True)
    note = await _get_note(board_id, note_id, session)

    note.deleted_at = utcnow()
    session.add(note)
    await session.commit()

    log.info("note.deleted", board_id=board_id, note_id=note_id, user_id=user_id)
    await publish_board_event(
        board_id,
        BoardEvent.NOTE_DELETED,
        _event_payload({"id": note_id}, source_instance_id),
    )
