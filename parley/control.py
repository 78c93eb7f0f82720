"""
Tiny http server for introspecting state
"""

import http
import socket

import humanize
from aiohttp import web

from .config import config
from .decorators import with_logger


@with_logger
class ControlServer:
    def __init__(
        self,
        lobby_server: "ServerInstance",
        host: str,
        port: int
    ):
        self.lobby_server = lobby_server
        self.host = host
        self.port = port

        self.app = web.Application()
        self.runner = web.AppRunner(self.app, access_log=None)

        self.app.add_routes([
            web.get("/status", self.status),
            # Healthcheck endpoints
            web.get("/ready", self.ready)
        ])

    async def start(self) -> None:
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, self.host, self.port)
        await self.site.start()
        self._logger.info(
            "Control server listening on http://%s:%s", self.host, self.port
        )

    async def shutdown(self) -> None:
        await self.runner.cleanup()

    async def status(self, request):
        status = self.lobby_server.status()
        status["uptime_text"] = humanize.naturaldelta(status["uptime"])
        return web.json_response(status)

    async def ready(self, request):
        code_map = {
            True: http.HTTPStatus.OK.value,
            False: http.HTTPStatus.SERVICE_UNAVAILABLE.value
        }

        return web.Response(
            status=code_map[self.lobby_server.started],
            content_type="text/plain"
        )


async def run_control_server(
    lobby_server: "ServerInstance",
    host: str = None,
    port: int = None
) -> ControlServer:
    """
    Initialize the http control server
    """
    if host is None:
        host = socket.gethostbyname(socket.gethostname())
    if port is None:
        port = config.CONTROL_SERVER_PORT

    ctrl_server = ControlServer(lobby_server, host, port)
    await ctrl_server.start()

    return ctrl_server
