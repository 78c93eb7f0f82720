import asyncio
import json
import logging
from typing import Any, Callable

import aiohttp
import pytest

from parley import ServerInstance, WebSocketServerContext, run_control_server
from parley.protocol import (
    DisconnectedError,
    SimpleJsonProtocol,
    WebSocketProtocol
)
from parley.servercontext import ServerContext
from tests.utils import exhaust_callbacks


class WebSocketClient:
    """Test client speaking one JSON object per websocket frame"""

    def __init__(self, session: aiohttp.ClientSession, websocket):
        self.session = session
        self.websocket = websocket

    async def send_message(self, message: dict) -> None:
        await self.websocket.send_str(json.dumps(message))

    async def send_raw(self, data: str) -> None:
        await self.websocket.send_str(data)

    async def read_message(self) -> dict:
        msg = await self.websocket.receive()
        if msg.type != aiohttp.WSMsgType.TEXT:
            raise DisconnectedError(f"Received {msg.type}")
        return json.loads(msg.data)

    async def close(self) -> None:
        await self.websocket.close()
        await self.session.close()


class JsonClient:
    """Test client speaking newline delimited JSON"""

    def __init__(self, proto: SimpleJsonProtocol):
        self.proto = proto

    async def send_message(self, message: dict) -> None:
        await self.proto.send_message(message)

    async def send_raw(self, data: str) -> None:
        await self.proto.send_raw(data.encode() + b"\n")

    async def read_message(self) -> dict:
        return await self.proto.read_message()

    async def close(self) -> None:
        await self.proto.close()


@pytest.fixture
async def lobby_instance():
    instance = ServerInstance("IntegrationTestServer")
    await instance.start_services()

    yield instance

    await instance.shutdown()
    await exhaust_callbacks()


@pytest.fixture
async def lobby_contexts(lobby_instance):
    return {
        "json": await lobby_instance.listen(
            ("127.0.0.1", None),
            protocol_class=SimpleJsonProtocol
        ),
        "ws": await lobby_instance.listen(
            ("127.0.0.1", None),
            protocol_class=WebSocketProtocol,
            path="/ws"
        ),
    }


@pytest.fixture(params=("json", "ws"))
def lobby_server(request, lobby_contexts) -> ServerContext:
    return lobby_contexts[request.param]


@pytest.fixture
async def connect():
    clients = []

    async def make(server: ServerContext):
        client = await connect_client(server)
        clients.append(client)
        return client

    yield make

    for client in clients:
        await client.close()


@pytest.fixture
async def control_server(lobby_instance):
    server = await run_control_server(lobby_instance, "127.0.0.1", 0)

    yield server

    await server.shutdown()


async def connect_client(server: ServerContext):
    host, port = server.addresses[0]
    if isinstance(server, WebSocketServerContext):
        session = aiohttp.ClientSession()
        websocket = await session.ws_connect(
            f"http://{host}:{port}{server.path}"
        )
        return WebSocketClient(session, websocket)

    return JsonClient(
        SimpleJsonProtocol(*(await asyncio.open_connection(host, port)))
    )


async def register(client, name: str, tier: str) -> None:
    await client.send_message({
        "command": "register",
        "name": name,
        "tier": tier
    })


async def _read_until(
    client,
    pred: Callable[[dict[str, Any]], bool]
) -> dict[str, Any]:
    while True:
        msg = await client.read_message()
        try:
            if pred(msg):
                return msg
        except KeyError:
            pass
        except Exception:
            logging.getLogger().warning(
                "read_until predicate raised during message: %s",
                msg,
                exc_info=True
            )


async def read_until_command(
    client,
    command: str,
    timeout: float = 5,
    **kwargs
) -> dict[str, Any]:
    kwargs["command"] = command
    return await asyncio.wait_for(
        _read_until(
            client,
            lambda msg: all(msg[k] == v for k, v in kwargs.items())
        ),
        timeout=timeout
    )
