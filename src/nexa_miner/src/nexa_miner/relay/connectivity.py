from __future__ import annotations

from aiohttp import ClientSession, ClientTimeout
from common import settings as common_settings
from common.models.api_models import HealthResponse
from common.utils.exceptions import ConnectivityException
from common.utils.metrics import BACKEND_UP_GAUGE
from loguru import logger


class ConnectivityMonitor:
    """Probes ``GET /health`` on the backend. Used for display and as an auth precondition."""

    def __init__(
        self,
        health_url: str = common_settings.BACKEND_HEALTH_URL,
        timeout: float = common_settings.HEALTH_CHECK_TIMEOUT,
        worker: str = "default",
    ):
        self.health_url = health_url
        self.timeout = timeout
        self.worker = worker
        self.connected: bool | None = None  # None until the first probe completes

    async def probe(self) -> bool:
        """Return True only if the backend answers 2xx with ``{"status": "OK"}``. Never raises."""
        try:
            async with ClientSession(timeout=ClientTimeout(total=self.timeout)) as session:
                async with session.get(self.health_url, headers={"Content-Type": "application/json"}) as response:
                    if not 200 <= response.status < 300:
                        logger.debug(f"Backend health check returned {response.status}")
                        return False
                    health = HealthResponse.model_validate(await response.json(content_type=None))
                    return health.status == "OK"
        except Exception as e:
            logger.debug(f"Backend connection check failed: {e}")
            return False

    async def ensure_reachable(self) -> None:
        if not await self.probe():
            raise ConnectivityException(f"Backend not reachable at {self.health_url}")

    async def refresh(self) -> bool:
        """Probe once and remember the result for the dashboard."""
        connected = await self.probe()
        if connected != self.connected:
            if connected:
                logger.success(f"✅ Backend reachable at {self.health_url}")
            else:
                logger.warning(f"Backend unreachable at {self.health_url}")
        self.connected = connected
        BACKEND_UP_GAUGE.labels(worker=self.worker).set(1 if connected else 0)
        return connected

    @property
    def status_text(self) -> str:
        if self.connected is None:
            return "Checking..."
        return "Connected" if self.connected else "Disconnected"
