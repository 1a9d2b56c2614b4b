"""
Board event publishing to the real-time relay.

Called by mutating endpoints after their write has committed. Publishing is
best-effort: it is a no-op when the relay is not configured, and transport
failures are logged and swallowed so they can never fail the request that
triggered them. No retries, since the envelope carries no ordering token.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from gumboard.core.config import get_settings
from gumboard_shared.schemas.events import RELAY_SECRET_HEADER, BoardEvent, EventEnvelope

log = structlog.get_logger()

_client: httpx.AsyncClient | None = None
_client_loop: asyncio.AbstractEventLoop | None = None


def relay_enabled() -> bool:
    settings = get_settings()
    return bool(settings.relay_url and settings.relay_secret)


def get_client() -> httpx.AsyncClient:
    """Get or create the pooled relay client for the running event loop."""
    global _client, _client_loop
    loop = asyncio.get_running_loop()
    if _client is None or _client.is_closed or _client_loop is not loop:
        # Pooled connections cannot move between loops; the old one is dropped.
        _client = httpx.AsyncClient()
        _client_loop = loop
    return _client


async def close_client() -> None:
    """Close the pooled relay client."""
    global _client, _client_loop
    if _client is not None:
        await _client.aclose()
        _client = None
        _client_loop = None


async def publish_board_event(
    board_id: str,
    event: BoardEvent,
    payload: Any,
    *,
    client: httpx.AsyncClient | None = None,
) -> None:
    """
    POST a board event to the relay's /emit endpoint. Never raises.

    `client` overrides the module's pooled client (see get_client).
    """
    settings = get_settings()
    base_url = settings.relay_url
    secret = settings.relay_secret
    if not base_url or not secret:
        return

    try:
        envelope = EventEnvelope(
            board_id=board_id, event=BoardEvent(event).value, payload=payload
        )
        url = f"{base_url.rstrip('/')}/emit"
        headers = {RELAY_SECRET_HEADER: secret}
        timeout = httpx.Timeout(settings.relay_timeout_seconds)

        resp = await (client or get_client()).post(
            url, json=envelope.to_wire(), headers=headers, timeout=timeout
        )

        if resp.is_success:
            log.debug("realtime.published", board_id=board_id, event_name=envelope.event)
        else:
            log.warning(
                "realtime.publish_rejected",
                board_id=board_id,
                event_name=envelope.event,
                status=resp.status_code,
            )
    except Exception as exc:
        log.error(
            "realtime.publish_failed",
            board_id=board_id,
            event_name=str(event),
            error=repr(exc),
        )
