"""Telemetry and session relay between the local miner and the accounting backend."""

from .connectivity import ConnectivityMonitor
from .launcher import MinerProcess
from .orchestrator import MinerStatus, MiningSession, RelayState, SessionOrchestrator
from .pool_stats import PoolStatsProbe
from .runtime import MiningRelay
from .stats import TelemetrySample, TelemetryTracker
from .stats_source import StatsSourceAdapter
from .timers import PeriodicTask

__all__ = [
    "ConnectivityMonitor",
    "MinerProcess",
    "MinerStatus",
    "MiningRelay",
    "MiningSession",
    "PeriodicTask",
    "PoolStatsProbe",
    "RelayState",
    "SessionOrchestrator",
    "StatsSourceAdapter",
    "TelemetrySample",
    "TelemetryTracker",
]
