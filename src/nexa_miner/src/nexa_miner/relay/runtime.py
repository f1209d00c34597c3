"""Wires the relay components together and owns their timers."""

from __future__ import annotations

from accounting import BackendAPIClient, RealtimeChannel, TokenStore
from loguru import logger

from nexa_miner import settings as miner_settings

from .connectivity import ConnectivityMonitor
from .launcher import MinerProcess
from .orchestrator import DiagnosticSink, SessionOrchestrator, log_diagnostic
from .pool_stats import PoolStatsProbe
from .stats import TelemetryTracker
from .stats_source import StatsSourceAdapter
from .timers import PeriodicTask


class MiningRelay:
    """Owns every relay component and the three polling timers.

    ``open()`` starts the timers; ``close()`` cancels them, closes the realtime
    channel (including its pending reconnect) and releases HTTP sessions.
    """

    def __init__(
        self,
        *,
        wallet: str = miner_settings.MINER_WALLET,
        worker: str = miner_settings.MINER_WORKER,
        username: str | None = miner_settings.MINER_USERNAME,
        launch_miner: bool = True,
        api_client: BackendAPIClient | None = None,
        realtime: RealtimeChannel | None = None,
        launcher: MinerProcess | None = None,
        connectivity: ConnectivityMonitor | None = None,
        stats_source: StatsSourceAdapter | None = None,
        pool_stats: PoolStatsProbe | None = None,
        tracker: TelemetryTracker | None = None,
        diagnostic_sink: DiagnosticSink = log_diagnostic,
        stats_interval: float = miner_settings.STATS_POLL_INTERVAL,
        backend_interval: float = miner_settings.BACKEND_CHECK_INTERVAL,
        pool_interval: float = miner_settings.POOL_STATS_INTERVAL,
    ):
        self.tracker = tracker or TelemetryTracker()
        self.api_client = api_client or BackendAPIClient(token_store=TokenStore())
        self.realtime = realtime or RealtimeChannel()
        self.connectivity = connectivity or ConnectivityMonitor(worker=worker)
        self.stats_source = stats_source or StatsSourceAdapter(operator_log=self.tracker.log)
        self.pool_stats = pool_stats or PoolStatsProbe(wallet=wallet, operator_log=self.tracker.log)
        self.orchestrator = SessionOrchestrator(
            api_client=self.api_client,
            realtime=self.realtime,
            launcher=launcher or MinerProcess(),
            connectivity=self.connectivity,
            tracker=self.tracker,
            wallet=wallet,
            worker=worker,
            username=username,
            diagnostic_sink=diagnostic_sink,
            launch_miner=launch_miner,
        )
        self._timers = [
            PeriodicTask("backend-check", backend_interval, self.connectivity.refresh, run_immediately=True),
            PeriodicTask("stats-poll", stats_interval, self.poll_stats),
            PeriodicTask("pool-stats", pool_interval, self.pool_stats.refresh),
        ]
        self._opened = False

    @property
    def timers(self) -> list[PeriodicTask]:
        return list(self._timers)

    async def poll_stats(self) -> None:
        sample = await self.stats_source.poll()
        if sample is not None:
            await self.orchestrator.handle_sample(sample)

    async def open(self) -> None:
        if self._opened:
            return
        await self.api_client.open()
        await self.stats_source.open()
        for timer in self._timers:
            timer.start()
        self._opened = True
        logger.info("Relay timers started")

    async def close(self) -> None:
        if not self._opened:
            return
        for timer in self._timers:
            await timer.stop()
        await self.realtime.disconnect()
        await self.stats_source.close()
        await self.api_client.close()
        self._opened = False
        logger.info("Relay stopped")

    async def __aenter__(self) -> "MiningRelay":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
