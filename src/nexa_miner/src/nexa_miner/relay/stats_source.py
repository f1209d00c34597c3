from __future__ import annotations

import asyncio
import random
from typing import Callable

from aiohttp import ClientConnectionError, ClientError, ClientSession, ClientTimeout
from common.models.api_models import MinerSummary
from common.utils.exceptions import TransportException
from loguru import logger
from pydantic import ValidationError

from nexa_miner import settings as miner_settings

from .stats import TelemetrySample


class StatsSourceAdapter:
    """Reads GPU telemetry from the miner's local ``/summary`` endpoint.

    The endpoint is normally absent until the miner has started, so connection
    failures are expected and only occasionally reported to the operator log.
    """

    def __init__(
        self,
        url: str = miner_settings.MINER_SUMMARY_URL,
        operator_log: Callable[[str], None] | None = None,
        waiting_log_probability: float = miner_settings.WAITING_LOG_PROBABILITY,
        rng: random.Random | None = None,
        session: ClientSession | None = None,
    ):
        self.url = url
        self._operator_log = operator_log
        self._waiting_log_probability = waiting_log_probability
        self._rng = rng or random.Random()
        self._session = session
        self._owns_session = session is None

    async def open(self) -> None:
        if self._session is None or self._session.closed:
            self._session = ClientSession(timeout=ClientTimeout(total=miner_settings.STATS_POLL_INTERVAL))
            self._owns_session = True

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def fetch_summary(self) -> MinerSummary:
        await self.open()
        try:
            async with self._session.get(self.url) as response:
                data = await response.json(content_type=None)
        except (ClientConnectionError, asyncio.TimeoutError, OSError) as e:
            raise TransportException(f"Miner API not reachable at {self.url}: {e}") from e
        return MinerSummary.model_validate(data or {})

    async def poll(self) -> TelemetrySample | None:
        """Return the first GPU's reading, or None when the miner has nothing to report."""
        try:
            summary = await self.fetch_summary()
        except TransportException as e:
            logger.debug(str(e))
            if self._operator_log is not None and self._rng.random() < self._waiting_log_probability:
                self._operator_log("Waiting for miner stats...")
            return None
        except (ClientError, ValueError, ValidationError) as e:
            logger.debug(f"Unreadable miner summary from {self.url}: {e}")
            return None

        if not summary.gpus:
            logger.debug("Miner API reachable but reported no GPUs")
            return None

        gpu = summary.gpus[0]
        return TelemetrySample.from_raw(gpu.hashrate, gpu.temperature)
