from __future__ import annotations

from typing import Callable

from aiohttp import ClientSession, ClientTimeout
from common.models.api_models import PoolMinerResponse
from loguru import logger

from nexa_miner import settings as miner_settings


class PoolStatsProbe:
    """Reads the public pool's view of this wallet and reports it in the operator log."""

    def __init__(
        self,
        wallet: str,
        operator_log: Callable[[str], None],
        url_template: str = miner_settings.POOL_STATS_URL,
        coin: str = miner_settings.POOL_COIN,
        timeout: float = miner_settings.POOL_STATS_INTERVAL,
    ):
        self.wallet = wallet
        self.url = url_template.format(wallet=wallet)
        self.coin = coin
        self.timeout = timeout
        self._operator_log = operator_log

    async def fetch(self) -> PoolMinerResponse:
        async with ClientSession(timeout=ClientTimeout(total=self.timeout)) as session:
            async with session.get(self.url) as response:
                response.raise_for_status()
                return PoolMinerResponse.model_validate(await response.json(content_type=None))

    async def refresh(self) -> PoolMinerResponse | None:
        try:
            data = await self.fetch()
        except Exception as e:
            logger.debug(f"Pool stats request to {self.url} failed: {e}")
            self._operator_log("Error fetching pool stats")
            return None

        if data.stats is not None:
            self._operator_log(
                f"Pool Stats - Hashrate: {data.stats.hashrate / 1e6:.2f} MH/s, "
                f"Paid: {data.paid / 1e6:.6f} {self.coin}"
            )
        return data
