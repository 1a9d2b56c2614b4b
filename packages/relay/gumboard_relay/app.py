"""
Relay HTTP + WebSocket application.

- GET /health — liveness check, no auth
- POST /emit — authenticated ingestion, fans an event out to a board room
- WS /ws — client channel: join-board / leave-board / ping frames

Everything else answers 404 {"error": "Not found"}.
"""

from __future__ import annotations

import hmac
import json
from typing import Optional

import structlog
from fastapi import FastAPI, Header, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gumboard_shared.schemas.events import RELAY_SECRET_HEADER, EventEnvelope

from .config import RelayConfig, load_config
from .metrics import MetricsCollector, event_label
from .rooms import RoomRegistry

log = structlog.get_logger()


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _secret_matches(provided: str | None, expected: str | None) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def create_app(
    config: RelayConfig | None = None,
    *,
    rooms: RoomRegistry | None = None,
    metrics: MetricsCollector | None = None,
) -> FastAPI:
    """Create the relay application with its own room registry."""
    config = config or load_config()
    metrics = metrics or MetricsCollector()
    rooms = rooms or RoomRegistry(
        send_timeout=config.server.send_timeout_seconds,
        metrics=metrics,
        queue_size=config.server.send_queue_size,
    )

    secret = config.auth.secret
    if not secret:
        log.warning("relay.secret_missing", env=config.auth.secret_env)

    app = FastAPI(
        title="Gumboard Relay",
        description="Board-scoped real-time event relay.",
        version="0.1.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.config = config
    app.state.rooms = rooms
    app.state.metrics = metrics

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_methods=["GET", "POST"],
        allow_headers=["Content-Type", RELAY_SECRET_HEADER],
    )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        # Unknown path and wrong method are indistinguishable to callers
        if exc.status_code in (404, 405):
            return _error(404, "Not found")
        return _error(exc.status_code, str(exc.detail))

    @app.get("/health")
    async def health_check():
        return {"ok": True}

    @app.post("/emit")
    async def emit(
        request: Request,
        relay_secret: Optional[str] = Header(None, alias=RELAY_SECRET_HEADER),
    ):
        if not _secret_matches(relay_secret, secret):
            metrics.inc("emit_rejected_total", reason="unauthorized")
            log.warning("relay.emit_unauthorized", client=request.client.host if request.client else None)
            return _error(401, "Unauthorized")

        raw = await request.body()
        try:
            body = json.loads(raw) if raw else {}
        except ValueError:
            metrics.inc("emit_rejected_total", reason="invalid_json")
            return _error(400, "Invalid JSON")
        if not isinstance(body, dict):
            metrics.inc("emit_rejected_total", reason="invalid_json")
            return _error(400, "Invalid JSON")

        board_id = body.get("boardId")
        event = body.get("event")
        if not board_id or not event:
            metrics.inc("emit_rejected_total", reason="missing_fields")
            return _error(400, "Missing boardId or event")

        envelope = EventEnvelope(
            board_id=str(board_id), event=str(event), payload=body.get("payload")
        )
        queued = await rooms.broadcast(envelope)
        metrics.inc("emit_total", event=event_label(envelope.event))
        log.info(
            "relay.emit",
            board_id=envelope.board_id,
            event_name=envelope.event,
            queued=queued,
        )
        return {"ok": True}

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        Real-time board channel.

        Supports frame types:
        - join-board {boardId} → subscribe (invalid ids silently ignored)
        - leave-board {boardId} → unsubscribe
        - ping → pong
        """
        await websocket.accept()
        conn = rooms.register(websocket)

        try:
            while True:
                data = await websocket.receive_text()
                try:
                    frame = json.loads(data)
                except json.JSONDecodeError:
                    rooms.send(conn, {
                        "type": "error",
                        "code": "INVALID_JSON",
                        "message": "Could not parse message as JSON.",
                    })
                    continue

                if not isinstance(frame, dict):
                    continue
                frame_type = frame.get("type")

                if frame_type == "ping":
                    rooms.send(conn, {"type": "pong"})
                elif frame_type == "join-board":
                    rooms.join(conn, frame.get("boardId"))
                elif frame_type == "leave-board":
                    rooms.leave(conn, frame.get("boardId"))

        except WebSocketDisconnect:
            pass
        except Exception as exc:
            log.error("relay.websocket_error", connection_id=conn.id, error=repr(exc))
        finally:
            rooms.discard(conn)

    return app
