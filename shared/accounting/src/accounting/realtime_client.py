"""Push channel to the accounting backend.

The channel is a small state machine (``DISCONNECTED -> CONNECTING -> OPEN ->
DISCONNECTED``) driven by one background task. When the socket drops the task
waits a fixed interval and dials again until ``disconnect()`` cancels it.
Outbound messages are best effort: nothing is queued while the socket is down.
"""

from __future__ import annotations

import asyncio
import contextlib
import inspect
import json
from enum import Enum
from typing import Any, Awaitable, Callable

from aiohttp import ClientError, ClientSession, WSMsgType
from common import settings as common_settings
from common.models.api_models import MiningStats, RealtimeMessage
from common.utils.exceptions import MalformedMessageException
from loguru import logger
from pydantic import ValidationError

MessageHandler = Callable[[Any], Awaitable[None] | None]


class ChannelState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"


class RealtimeChannel:
    def __init__(
        self,
        url: str = common_settings.BACKEND_WS_URL,
        reconnect_interval: float = common_settings.REALTIME_RECONNECT_INTERVAL,
        session: ClientSession | None = None,
    ):
        self.url = url
        self.reconnect_interval = reconnect_interval
        self._session = session
        self._owns_session = session is None
        self._handlers: dict[str, MessageHandler] = {}
        self._ws = None
        self._task: asyncio.Task[None] | None = None
        self._send_tasks: set[asyncio.Task] = set()
        self.state = ChannelState.DISCONNECTED

    @property
    def is_open(self) -> bool:
        return self.state is ChannelState.OPEN and self._ws is not None and not self._ws.closed

    def on(self, message_type: str, handler: MessageHandler) -> None:
        """Register the handler for ``message_type``, replacing any previous one."""
        self._handlers[message_type] = handler

    async def connect(self) -> None:
        if self._task is not None and not self._task.done():
            return
        if self._session is None or self._session.closed:
            self._session = ClientSession()
            self._owns_session = True
        self._task = asyncio.create_task(self._run(), name="realtime-channel")

    async def disconnect(self) -> None:
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        if self._ws is not None and not self._ws.closed:
            await self._ws.close()
        self._ws = None
        self.state = ChannelState.DISCONNECTED

        for send_task in list(self._send_tasks):
            send_task.cancel()
        self._send_tasks.clear()

        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
            self._session = None

    def send(self, message_type: str, payload: Any) -> bool:
        """Hand a message to the socket if it is open. Returns False when dropped."""
        if not self.is_open:
            logger.debug(f"Realtime channel not open; dropping '{message_type}' message")
            return False

        try:
            data = json.dumps({"type": message_type, "payload": payload}, default=str)
        except (TypeError, ValueError) as e:
            logger.error(f"Could not serialise '{message_type}' message: {e}")
            return False

        task = asyncio.get_running_loop().create_task(self._ws.send_str(data))
        self._send_tasks.add(task)
        task.add_done_callback(self._on_send_done)
        return True

    def send_mining_stats(self, stats: MiningStats) -> bool:
        return self.send("mining_stats", stats.model_dump(by_alias=True))

    def _on_send_done(self, task: asyncio.Task) -> None:
        self._send_tasks.discard(task)
        if task.cancelled():
            return
        if (exc := task.exception()) is not None:
            logger.warning(f"Realtime send failed: {exc}")

    async def _run(self) -> None:
        while True:
            self.state = ChannelState.CONNECTING
            try:
                async with self._session.ws_connect(self.url) as ws:
                    self._ws = ws
                    self.state = ChannelState.OPEN
                    logger.info(f"Miner WebSocket connected to {self.url}")
                    async for msg in ws:
                        if msg.type == WSMsgType.TEXT:
                            await self._dispatch(msg.data)
                        elif msg.type == WSMsgType.BINARY:
                            logger.warning(f"Discarding binary realtime frame ({len(msg.data)} bytes)")
                        elif msg.type == WSMsgType.ERROR:
                            logger.error(f"Miner WebSocket error: {ws.exception()}")
                            break
            except (ClientError, OSError) as e:
                logger.error(f"Miner WebSocket connection error: {e}")
            finally:
                self._ws = None
                self.state = ChannelState.DISCONNECTED

            logger.info(f"Miner WebSocket disconnected; reconnecting in {self.reconnect_interval:g}s")
            await asyncio.sleep(self.reconnect_interval)

    @staticmethod
    def parse_message(raw: str | bytes) -> RealtimeMessage:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise MalformedMessageException(f"Message is not JSON: {e}") from e
        if not isinstance(data, dict):
            raise MalformedMessageException("Message is not an object")
        try:
            return RealtimeMessage.model_validate(data)
        except ValidationError as e:
            raise MalformedMessageException(f"Message has no valid type: {e}") from e

    async def _dispatch(self, raw: str | bytes) -> None:
        try:
            message = self.parse_message(raw)
        except MalformedMessageException as e:
            logger.warning(f"Discarding realtime message: {e}")
            return

        handler = self._handlers.get(message.type)
        if handler is None:
            logger.debug(f"No handler registered for realtime message type '{message.type}'")
            return
        try:
            result = handler(message.payload)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.exception(f"Realtime handler for '{message.type}' failed: {e}")
