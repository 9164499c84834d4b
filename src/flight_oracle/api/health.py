"""Health API - a single read-only route for liveness probes."""

from __future__ import annotations

import logging

from aiohttp import web

log = logging.getLogger(__name__)

API_MESSAGE = "An API for use with your Dapp!"


async def handle_api(request: web.Request) -> web.Response:
    return web.json_response({"message": API_MESSAGE})


def create_app() -> web.Application:
    """Build the health application. It never touches chain state."""
    app = web.Application()
    app.router.add_get("/api", handle_api)
    return app


class HealthServer:
    """Runs the health application on the daemon's event loop."""

    def __init__(self, host: str = "127.0.0.1", port: int = 3000) -> None:
        self._host = host
        self._port = port
        self._runner: web.AppRunner | None = None

    @property
    def running(self) -> bool:
        return self._runner is not None

    async def start(self) -> None:
        self._runner = web.AppRunner(create_app())
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()
        log.info("Health API listening on http://%s:%d/api", self._host, self._port)

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            log.info("Health API stopped")
