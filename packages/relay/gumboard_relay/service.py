"""
Relay process orchestrator.

Wires the room registry, the public HTTP/WebSocket app (served by uvicorn)
and the monitor server together, and owns their startup and shutdown.
"""

from __future__ import annotations

import asyncio

import structlog
import uvicorn

from .app import create_app
from .config import RelayConfig
from .metrics import MetricsCollector
from .monitor import MonitorServer
from .rooms import RoomRegistry

log = structlog.get_logger()

SHUTDOWN_TIMEOUT = 15.0
STARTUP_POLL_SECONDS = 0.05
STARTUP_POLLS = 100


class RelayService:
    """Single-process relay: one registry, one public server, one monitor."""

    def __init__(self, config: RelayConfig):
        self._config = config
        self._metrics = MetricsCollector()
        self._rooms = RoomRegistry(
            send_timeout=config.server.send_timeout_seconds,
            metrics=self._metrics,
            queue_size=config.server.send_queue_size,
        )
        self._app = create_app(config, rooms=self._rooms, metrics=self._metrics)
        self._monitor = MonitorServer(
            self._rooms,
            host=config.metrics.host,
            port=config.metrics.port,
            metrics=self._metrics,
        )
        self._server = uvicorn.Server(
            uvicorn.Config(
                self._app,
                host=config.server.host,
                port=config.server.port,
                log_config=None,
                access_log=False,
            )
        )
        self._serve_task: asyncio.Task | None = None
        self._running = False

    @property
    def rooms(self) -> RoomRegistry:
        return self._rooms

    @property
    def metrics(self) -> MetricsCollector:
        return self._metrics

    async def start(self) -> None:
        """Start the monitor (if enabled) and the public server."""
        log.info(
            "relay.starting",
            host=self._config.server.host,
            port=self._config.server.port,
        )

        if self._config.metrics.enabled:
            try:
                await self._monitor.start()
                log.info(
                    "relay.monitor_started",
                    host=self._config.metrics.host,
                    port=self._config.metrics.port,
                )
            except OSError as exc:
                log.warning("relay.monitor_start_failed", error=str(exc))

        self._serve_task = asyncio.create_task(self._server.serve())
        for _ in range(STARTUP_POLLS):
            if self._server.started:
                break
            if self._serve_task.done():
                break
            await asyncio.sleep(STARTUP_POLL_SECONDS)
        if not self._server.started:
            await self._monitor.stop()
            raise RuntimeError("Relay server did not start")

        self._running = True
        log.info("relay.started")

    async def stop(self) -> None:
        """Graceful shutdown: stop accepting, close the server, stop the monitor."""
        if not self._running:
            return
        self._running = False
        log.info("relay.stopping", connections=self._rooms.connection_count)

        self._server.should_exit = True
        if self._serve_task:
            try:
                await asyncio.wait_for(self._serve_task, timeout=SHUTDOWN_TIMEOUT)
            except asyncio.TimeoutError:
                self._serve_task.cancel()

        await self._monitor.stop()
        log.info("relay.stopped")

    async def run_forever(self) -> None:
        """Run until uvicorn exits (SIGINT / SIGTERM are handled by uvicorn)."""
        await self.start()
        try:
            if self._serve_task is not None:
                await self._serve_task
        finally:
            await self.stop()
