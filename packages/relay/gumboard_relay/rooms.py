"""
Board-scoped room registry.

Features:
- One Connection per live WebSocket, joined to zero or more board rooms
- Idempotent join (set semantics), empty rooms are dropped
- Every outbound frame goes through the connection's bounded queue and is
  written by that connection's own writer task, so /emit never waits on a
  socket and a stalled subscriber only delays itself
- Per-connection FIFO keeps each board's events in /emit arrival order
- A send that fails or times out, or a queue that overflows, drops the
  connection from every room and closes it

Room state is only touched from the event loop; join/leave/discard and
the enqueue step of broadcast never await, so they cannot interleave.
"""

from __future__ import annotations

import asyncio
import json
import uuid
from typing import Any

import structlog

from gumboard_shared.schemas.events import EventEnvelope

from .metrics import MetricsCollector, event_label

log = structlog.get_logger()

DEFAULT_SEND_TIMEOUT = 5.0
DEFAULT_QUEUE_SIZE = 256
CLOSE_CODE_SEND_FAILED = 1011
CLOSE_CODE_TOO_SLOW = 1013


class Connection:
    """A WebSocket, the rooms it has joined, and its outbound frame queue."""

    __slots__ = ("websocket", "id", "rooms", "outbox", "writer")

    def __init__(self, websocket: Any, queue_size: int = DEFAULT_QUEUE_SIZE):
        self.websocket = websocket
        self.id = uuid.uuid4().hex
        self.rooms: set[str] = set()
        # (text, event name or None for control frames)
        self.outbox: asyncio.Queue[tuple[str, str | None]] = asyncio.Queue(maxsize=queue_size)
        self.writer: asyncio.Task | None = None

    def __repr__(self) -> str:
        return f"Connection(id={self.id!r}, rooms={sorted(self.rooms)!r})"


class RoomRegistry:
    """
    Owns the board_id -> connections table for the relay process.

    Instantiated once per relay app. Rooms exist only while at least one
    connection is joined to them.
    """

    def __init__(
        self,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
        metrics: MetricsCollector | None = None,
        queue_size: int = DEFAULT_QUEUE_SIZE,
    ) -> None:
        self._rooms: dict[str, set[Connection]] = {}
        self._connections: dict[str, Connection] = {}
        self._send_timeout = send_timeout
        self._queue_size = queue_size
        self._metrics = metrics
        self._closers: set[asyncio.Task] = set()

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    @property
    def room_count(self) -> int:
        return len(self._rooms)

    def members(self, board_id: str) -> set[Connection]:
        return set(self._rooms.get(board_id, ()))

    # --- Connection lifecycle ---

    def register(self, websocket: Any) -> Connection:
        conn = Connection(websocket, queue_size=self._queue_size)
        self._connections[conn.id] = conn
        self._update_gauges()
        log.info("rooms.connected", connection_id=conn.id, total=len(self._connections))
        return conn

    def discard(self, conn: Connection) -> None:
        """Forget a connection, drop it from every room and stop its writer."""
        if self._connections.pop(conn.id, None) is None:
            return
        for board_id in list(conn.rooms):
            self._remove_from_room(conn, board_id)
        writer = conn.writer
        if writer is not None and writer is not asyncio.current_task():
            writer.cancel()
        self._update_gauges()
        log.info("rooms.disconnected", connection_id=conn.id, total=len(self._connections))

    # --- Room membership ---

    def join(self, conn: Connection, board_id: Any) -> bool:
        """
        Add the connection to a board room.

        Returns False (and changes nothing) for non-string or empty board
        ids, or for a connection that has already been discarded.
        """
        if not isinstance(board_id, str) or not board_id:
            return False
        if conn.id not in self._connections:
            return False

        self._rooms.setdefault(board_id, set()).add(conn)
        conn.rooms.add(board_id)
        self._update_gauges()
        log.debug("rooms.joined", connection_id=conn.id, board_id=board_id)
        return True

    def leave(self, conn: Connection, board_id: Any) -> bool:
        if not isinstance(board_id, str) or board_id not in conn.rooms:
            return False
        self._remove_from_room(conn, board_id)
        self._update_gauges()
        log.debug("rooms.left", connection_id=conn.id, board_id=board_id)
        return True

    def _remove_from_room(self, conn: Connection, board_id: str) -> None:
        conn.rooms.discard(board_id)
        members = self._rooms.get(board_id)
        if members is None:
            return
        members.discard(conn)
        if not members:
            del self._rooms[board_id]

    # --- Outbound frames ---

    def send(self, conn: Connection, frame: dict[str, Any]) -> bool:
        """Queue a control frame (pong, error) behind any pending events."""
        return self._enqueue(conn, json.dumps(frame), None)

    async def broadcast(self, envelope: EventEnvelope) -> int:
        """
        Queue the envelope's frame for every connection in its board room.

        Returns the number of connections it was queued for. Never waits
        on a socket; connections whose queue is full are dropped.
        """
        text = json.dumps(envelope.to_frame())
        targets = list(self._rooms.get(envelope.board_id, ()))
        return sum(1 for conn in targets if self._enqueue(conn, text, envelope.event))

    def _enqueue(self, conn: Connection, text: str, event: str | None) -> bool:
        if conn.id not in self._connections:
            return False
        try:
            conn.outbox.put_nowait((text, event))
        except asyncio.QueueFull:
            log.warning("rooms.queue_overflow", connection_id=conn.id, queued=conn.outbox.qsize())
            self._drop(conn, "overflow", CLOSE_CODE_TOO_SLOW)
            return False
        if conn.writer is None:
            conn.writer = asyncio.create_task(self._write_loop(conn))
        return True

    async def _write_loop(self, conn: Connection) -> None:
        while True:
            text, event = await conn.outbox.get()
            try:
                await asyncio.wait_for(
                    conn.websocket.send_text(text), timeout=self._send_timeout
                )
            except asyncio.TimeoutError:
                log.warning("rooms.send_timeout", connection_id=conn.id)
                self._drop(conn, "timeout", CLOSE_CODE_SEND_FAILED)
                return
            except Exception as exc:
                log.warning("rooms.send_failed", connection_id=conn.id, error=repr(exc))
                self._drop(conn, "error", CLOSE_CODE_SEND_FAILED)
                return
            finally:
                conn.outbox.task_done()

            if event is not None and self._metrics:
                self._metrics.inc("events_delivered_total", event=event_label(event))

    def _drop(self, conn: Connection, reason: str, code: int) -> None:
        if self._metrics:
            self._metrics.inc("send_failures_total", reason=reason)
        self.discard(conn)
        task = asyncio.create_task(self._close_quietly(conn, code))
        self._closers.add(task)
        task.add_done_callback(self._closers.discard)

    async def _close_quietly(self, conn: Connection, code: int) -> None:
        try:
            await asyncio.wait_for(conn.websocket.close(code=code), timeout=self._send_timeout)
        except Exception as exc:
            log.debug("rooms.close_failed", connection_id=conn.id, error=repr(exc))

    def _update_gauges(self) -> None:
        if self._metrics:
            self._metrics.set_gauge("connections_active", len(self._connections))
            self._metrics.set_gauge("rooms_active", len(self._rooms))
