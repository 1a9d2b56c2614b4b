"""Tests for the board room registry."""

import asyncio
import json
import time

import pytest

from gumboard_relay.rooms import CLOSE_CODE_SEND_FAILED, CLOSE_CODE_TOO_SLOW, RoomRegistry
from gumboard_shared.schemas.events import EventEnvelope


def _envelope(board_id="board-1", event="note.created", payload=None):
    return EventEnvelope(board_id=board_id, event=event, payload=payload)


async def _drained(*conns, timeout=1.0):
    await asyncio.wait_for(
        asyncio.gather(*(c.outbox.join() for c in conns)), timeout=timeout
    )


async def _eventually(predicate, timeout=1.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        await asyncio.sleep(0.01)
    return False


class TestMembership:

    def test_register_and_discard(self, rooms, make_ws):
        conn = rooms.register(make_ws())
        assert rooms.connection_count == 1
        rooms.discard(conn)
        assert rooms.connection_count == 0

    def test_join_is_idempotent(self, rooms, make_ws):
        conn = rooms.register(make_ws())
        assert rooms.join(conn, "board-1")
        assert rooms.join(conn, "board-1")
        assert rooms.members("board-1") == {conn}
        assert conn.rooms == {"board-1"}

    @pytest.mark.parametrize("board_id", [None, "", 42, {"id": "x"}, ["board-1"]])
    def test_join_rejects_invalid_board_ids(self, rooms, make_ws, board_id):
        conn = rooms.register(make_ws())
        assert rooms.join(conn, board_id) is False
        assert rooms.room_count == 0
        assert conn.rooms == set()

    def test_join_after_discard_is_ignored(self, rooms, make_ws):
        conn = rooms.register(make_ws())
        rooms.discard(conn)
        assert rooms.join(conn, "board-1") is False
        assert rooms.room_count == 0

    def test_leave_drops_empty_room(self, rooms, make_ws):
        conn = rooms.register(make_ws())
        rooms.join(conn, "board-1")
        assert rooms.leave(conn, "board-1")
        assert rooms.room_count == 0
        assert rooms.leave(conn, "board-1") is False

    def test_discard_leaves_every_room(self, rooms, make_ws):
        a = rooms.register(make_ws())
        b = rooms.register(make_ws())
        rooms.join(a, "board-1")
        rooms.join(a, "board-2")
        rooms.join(b, "board-2")

        rooms.discard(a)

        assert rooms.members("board-1") == set()
        assert rooms.members("board-2") == {b}
        assert rooms.room_count == 1

    def test_gauges_track_state(self, rooms, metrics, make_ws):
        conn = rooms.register(make_ws())
        rooms.join(conn, "board-1")
        assert metrics.get("connections_active") == 1
        assert metrics.get("rooms_active") == 1
        rooms.discard(conn)
        assert metrics.get("connections_active") == 0
        assert metrics.get("rooms_active") == 0


class TestBroadcast:

    async def test_delivers_only_to_room_members(self, rooms, make_ws):
        ws_a, ws_b, ws_c = make_ws(), make_ws(), make_ws()
        a = rooms.register(ws_a)
        b = rooms.register(ws_b)
        c = rooms.register(ws_c)
        rooms.join(a, "board-1")
        rooms.join(b, "board-2")

        queued = await rooms.broadcast(_envelope(payload={"id": "n1"}))
        await _drained(a, b, c)

        assert queued == 1
        assert [json.loads(t) for t in ws_a.sent] == [
            {"type": "note.created", "payload": {"id": "n1"}}
        ]
        assert ws_b.sent == []
        assert ws_c.sent == []

    async def test_empty_room_delivers_nothing(self, rooms):
        assert await rooms.broadcast(_envelope(board_id="nobody-here")) == 0

    async def test_payload_forwarded_verbatim(self, rooms, make_ws):
        ws = make_ws()
        conn = rooms.register(ws)
        rooms.join(conn, "board-1")
        payload = {"nested": {"list": [1, 2, {"x": None}]}, "flag": True}

        await rooms.broadcast(_envelope(event="anything.custom", payload=payload))
        await _drained(conn)

        assert json.loads(ws.sent[0]) == {"type": "anything.custom", "payload": payload}

    async def test_preserves_emit_order(self, rooms, make_ws):
        ws = make_ws()
        conn = rooms.register(ws)
        rooms.join(conn, "board-1")

        for i in range(5):
            await rooms.broadcast(_envelope(event="note.updated", payload={"seq": i}))
        rooms.send(conn, {"type": "pong"})
        await _drained(conn)

        frames = [json.loads(t) for t in ws.sent]
        assert [f["payload"]["seq"] for f in frames[:5]] == [0, 1, 2, 3, 4]
        assert frames[5] == {"type": "pong"}

    async def test_failed_connection_is_discarded(self, rooms, metrics, make_ws):
        good, bad = make_ws(), make_ws(fail=True)
        good_conn = rooms.register(good)
        bad_conn = rooms.register(bad)
        rooms.join(good_conn, "board-1")
        rooms.join(bad_conn, "board-1")

        await rooms.broadcast(_envelope())
        await _drained(good_conn)

        assert len(good.sent) == 1
        assert await _eventually(lambda: bad.closed_with == CLOSE_CODE_SEND_FAILED)
        assert rooms.members("board-1") == {good_conn}
        assert rooms.connection_count == 1
        assert metrics.get("send_failures_total", reason="error") == 1
        assert metrics.get("events_delivered_total", event="note.created") == 1

    async def test_slow_connection_times_out(self, metrics, make_ws):
        rooms = RoomRegistry(send_timeout=0.05, metrics=metrics)
        fast, slow = make_ws(), make_ws(hang=True)
        fast_conn = rooms.register(fast)
        slow_conn = rooms.register(slow)
        rooms.join(fast_conn, "board-1")
        rooms.join(slow_conn, "board-1")

        await rooms.broadcast(_envelope())
        await _drained(fast_conn)

        assert len(fast.sent) == 1
        assert await _eventually(lambda: slow_conn not in rooms.members("board-1"))
        assert metrics.get("send_failures_total", reason="timeout") == 1

    async def test_stalled_subscriber_does_not_delay_other_boards(self, metrics, make_ws):
        rooms = RoomRegistry(send_timeout=5.0, metrics=metrics)
        stalled, healthy = make_ws(hang=True), make_ws()
        stalled_conn = rooms.register(stalled)
        healthy_conn = rooms.register(healthy)
        rooms.join(stalled_conn, "board-1")
        rooms.join(healthy_conn, "board-2")

        started = time.monotonic()
        await rooms.broadcast(_envelope(board_id="board-1"))
        await rooms.broadcast(_envelope(board_id="board-1"))
        await rooms.broadcast(_envelope(board_id="board-2", payload={"id": "n2"}))
        await _drained(healthy_conn)
        elapsed = time.monotonic() - started

        assert elapsed < 1.0
        assert json.loads(healthy.sent[0])["payload"] == {"id": "n2"}
        assert stalled_conn in rooms.members("board-1")
        rooms.discard(stalled_conn)

    async def test_stalled_subscriber_does_not_delay_its_own_board(self, make_ws):
        rooms = RoomRegistry(send_timeout=5.0)
        stalled, healthy = make_ws(hang=True), make_ws()
        stalled_conn = rooms.register(stalled)
        healthy_conn = rooms.register(healthy)
        rooms.join(stalled_conn, "board-1")
        rooms.join(healthy_conn, "board-1")

        started = time.monotonic()
        for i in range(3):
            await rooms.broadcast(_envelope(payload={"seq": i}))
        await _drained(healthy_conn)

        assert time.monotonic() - started < 1.0
        assert [json.loads(t)["payload"]["seq"] for t in healthy.sent] == [0, 1, 2]
        rooms.discard(stalled_conn)

    async def test_queue_overflow_drops_connection(self, metrics, make_ws):
        rooms = RoomRegistry(send_timeout=5.0, metrics=metrics, queue_size=2)
        stalled = make_ws(hang=True)
        conn = rooms.register(stalled)
        rooms.join(conn, "board-1")

        # First frame is taken by the writer, two more fill the queue
        results = []
        for i in range(5):
            results.append(await rooms.broadcast(_envelope(payload={"seq": i})))
            await asyncio.sleep(0)

        assert 0 in results
        assert rooms.connection_count == 0
        assert rooms.room_count == 0
        assert await _eventually(lambda: stalled.closed_with == CLOSE_CODE_TOO_SLOW)
        assert metrics.get("send_failures_total", reason="overflow") == 1

    async def test_discard_stops_writer(self, rooms, make_ws):
        conn = rooms.register(make_ws(hang=True))
        rooms.join(conn, "board-1")
        await rooms.broadcast(_envelope())
        await asyncio.sleep(0)
        writer = conn.writer

        rooms.discard(conn)

        assert await _eventually(writer.done)
        assert rooms.send(conn, {"type": "pong"}) is False
