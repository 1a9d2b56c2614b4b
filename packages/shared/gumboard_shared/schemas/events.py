"""
Board event envelope shared between the API server and the relay.

The envelope is what the server POSTs to the relay's /emit endpoint and
what the relay fans out to every connection joined to the board's room.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

RELAY_SECRET_HEADER = "x-relay-secret"


class BoardEvent(str, Enum):
    NOTE_CREATED = "note.created"
    NOTE_UPDATED = "note.updated"
    NOTE_DELETED = "note.deleted"


class EventEnvelope(BaseModel):
    """A single board mutation notification. Never persisted."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    board_id: str = Field(alias="boardId", min_length=1)
    event: str = Field(min_length=1)
    payload: Any = None

    def to_wire(self) -> dict[str, Any]:
        """camelCase body accepted by POST /emit."""
        return {"boardId": self.board_id, "event": self.event, "payload": self.payload}

    def to_frame(self) -> dict[str, Any]:
        """Frame sent to WebSocket subscribers."""
        return {"type": self.event, "payload": self.payload}
