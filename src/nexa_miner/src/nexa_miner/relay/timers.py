"""Cancellable interval timers running on the event loop."""

from __future__ import annotations

import asyncio
import contextlib
from typing import Awaitable, Callable

from loguru import logger


class PeriodicTask:
    """Runs ``callback`` every ``interval`` seconds until stopped.

    A failing callback is logged and the timer keeps going.
    """

    def __init__(
        self,
        name: str,
        interval: float,
        callback: Callable[[], Awaitable[object]],
        *,
        run_immediately: bool = False,
    ) -> None:
        self.name = name
        self.interval = interval
        self._callback = callback
        self._run_immediately = run_immediately
        self._task: asyncio.Task[None] | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self.name)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def _loop(self) -> None:
        if not self._run_immediately:
            await asyncio.sleep(self.interval)
        while True:
            try:
                await self._callback()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.exception(f"Timer '{self.name}' callback failed: {e}")
            await asyncio.sleep(self.interval)
