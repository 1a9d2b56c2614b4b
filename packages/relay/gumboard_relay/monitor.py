"""
Monitoring HTTP server, bound separately from the public relay port.

Exposes:
- GET /metrics — Prometheus-compatible metrics
- GET /status — JSON snapshot of connections and rooms
"""

from __future__ import annotations

from aiohttp import web

from .metrics import MetricsCollector
from .rooms import RoomRegistry


class MonitorServer:
    """Lightweight aiohttp server for operators and scrapers."""

    def __init__(
        self,
        rooms: RoomRegistry,
        host: str = "127.0.0.1",
        port: int = 9091,
        metrics: MetricsCollector | None = None,
    ):
        self._rooms = rooms
        self._host = host
        self._port = port
        self._metrics = metrics or MetricsCollector()
        self._runner: web.AppRunner | None = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/metrics", self._metrics_handler)
        app.router.add_get("/status", self._status_handler)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    async def _status_handler(self, request: web.Request) -> web.Response:
        body = {
            "connections": self._rooms.connection_count,
            "rooms": self._rooms.room_count,
            "metrics": self._metrics.snapshot(),
        }
        return web.json_response(body)

    async def _metrics_handler(self, request: web.Request) -> web.Response:
        return web.Response(
            text=self._metrics.render_prometheus(),
            content_type="text/plain",
        )
