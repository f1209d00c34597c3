import asyncio
import json

import pytest
from aiohttp import WSMsgType, web
from aiohttp.test_utils import TestServer
from loguru import logger

from accounting import ChannelState, RealtimeChannel
from common.models.api_models import MiningStats
from common.utils.exceptions import MalformedMessageException
from common.test_utils import SESSION_ID, USER_ID


async def _wait_until(predicate, timeout=5.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


class _WsServer:
    """Accepts websocket clients, records what they send and can push messages."""

    def __init__(self, close_first_connection: bool = False):
        self.close_first_connection = close_first_connection
        self.connections = 0
        self.received: list[dict] = []
        self.sockets: list[web.WebSocketResponse] = []
        self.app = web.Application()
        self.app.router.add_get("/", self.handle)

    async def handle(self, request):
        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.connections += 1
        if self.close_first_connection and self.connections == 1:
            await ws.close()
            return ws
        self.sockets.append(ws)
        async for msg in ws:
            if msg.type == WSMsgType.TEXT:
                self.received.append(json.loads(msg.data))
        return ws


async def _serve(server: _WsServer) -> TestServer:
    test_server = TestServer(server.app)
    await test_server.start_server()
    return test_server


def _ws_url(test_server: TestServer) -> str:
    return str(test_server.make_url("/")).replace("http://", "ws://")


def test_send_on_closed_channel_returns_false_without_raising():
    async def scenario():
        channel = RealtimeChannel(url="ws://127.0.0.1:1/")
        assert channel.state is ChannelState.DISCONNECTED
        assert channel.send("mining_stats", {"hashRate": 1}) is False
        stats = MiningStats(user_id=USER_ID, session_id=SESSION_ID, hash_rate=1.0, temperature=50.0)
        assert channel.send_mining_stats(stats) is False

    asyncio.run(scenario())


def test_parse_message_rejects_malformed_input():
    with pytest.raises(MalformedMessageException):
        RealtimeChannel.parse_message("not json")
    with pytest.raises(MalformedMessageException):
        RealtimeChannel.parse_message("[1, 2]")
    with pytest.raises(MalformedMessageException):
        RealtimeChannel.parse_message(json.dumps({"payload": {}}))

    message = RealtimeChannel.parse_message(json.dumps({"type": "balance_update", "payload": {"virtualBalance": 3}}))
    assert message.type == "balance_update"
    assert message.payload == {"virtualBalance": 3}


def test_open_channel_pushes_stats_and_dispatches_inbound_messages():
    server = _WsServer()
    received_first, received_second = [], []

    async def scenario():
        test_server = await _serve(server)
        channel = RealtimeChannel(url=_ws_url(test_server), reconnect_interval=0.05)
        channel.on("balance_update", received_first.append)

        async def replacement(payload):
            received_second.append(payload)

        channel.on("balance_update", replacement)
        try:
            await channel.connect()
            await _wait_until(lambda: channel.is_open and server.sockets)

            stats = MiningStats(user_id=USER_ID, session_id=SESSION_ID, hash_rate=150e6, temperature=62.0)
            assert channel.send_mining_stats(stats) is True
            await _wait_until(lambda: server.received)

            ws = server.sockets[0]
            await ws.send_str("garbage")
            await ws.send_str(json.dumps({"type": "unknown", "payload": 1}))
            await ws.send_str(json.dumps({"type": "balance_update", "payload": {"virtualBalance": 7}}))
            await _wait_until(lambda: received_second)
            assert channel.is_open
        finally:
            await channel.disconnect()
            await test_server.close()

    asyncio.run(scenario())

    assert server.received == [
        {
            "type": "mining_stats",
            "payload": {
                "userId": USER_ID,
                "sessionId": SESSION_ID,
                "hashRate": 150e6,
                "temperature": 62.0,
                "power": 0.0,
            },
        }
    ]
    assert received_first == []
    assert received_second == [{"virtualBalance": 7}]


def test_channel_reconnects_after_drop_and_stops_after_disconnect():
    server = _WsServer(close_first_connection=True)

    async def scenario():
        test_server = await _serve(server)
        channel = RealtimeChannel(url=_ws_url(test_server), reconnect_interval=0.05)
        try:
            await channel.connect()
            await channel.connect()  # second call is a no-op while running
            await _wait_until(lambda: server.connections >= 2 and channel.is_open)

            await channel.disconnect()
            assert channel.state is ChannelState.DISCONNECTED
            assert channel.send("mining_stats", {}) is False

            connections = server.connections
            await asyncio.sleep(0.2)
            assert server.connections == connections
        finally:
            await channel.disconnect()
            await test_server.close()

    asyncio.run(scenario())


def test_unreachable_server_keeps_retrying_without_raising():
    async def scenario():
        channel = RealtimeChannel(url="ws://127.0.0.1:1/", reconnect_interval=0.02)
        await channel.connect()
        await asyncio.sleep(0.15)
        assert channel.state in (ChannelState.CONNECTING, ChannelState.DISCONNECTED)
        assert channel.send("mining_stats", {}) is False
        await channel.disconnect()
        assert channel.state is ChannelState.DISCONNECTED

    asyncio.run(scenario())


def test_binary_frames_are_logged_and_discarded():
    server = _WsServer()
    received = []
    warnings = []
    sink_id = logger.add(lambda message: warnings.append(str(message)), level="WARNING")

    async def scenario():
        test_server = await _serve(server)
        channel = RealtimeChannel(url=_ws_url(test_server), reconnect_interval=0.05)
        channel.on("balance_update", received.append)
        try:
            await channel.connect()
            await _wait_until(lambda: channel.is_open and server.sockets)
            ws = server.sockets[0]
            await ws.send_bytes(b'{"type": "balance_update", "payload": 1}')
            await ws.send_str(json.dumps({"type": "balance_update", "payload": 2}))
            await _wait_until(lambda: received)
            assert channel.is_open
        finally:
            await channel.disconnect()
            await test_server.close()

    try:
        asyncio.run(scenario())
    finally:
        logger.remove(sink_id)

    assert received == [2]
    assert any("Discarding binary realtime frame" in line for line in warnings)
