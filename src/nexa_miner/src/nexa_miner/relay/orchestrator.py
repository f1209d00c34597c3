"""Session control for the telemetry relay.

``SessionOrchestrator`` owns the operator identity, the active mining session
and the wallet balance. It sequences authenticate -> start session -> telemetry
updates -> stop session, and decides which failures the operator gets to see:

* session boundaries (authenticate, start, stop) report to the operator log;
* steady-state telemetry updates report only to the diagnostic sink, so a flaky
  network does not flood the operator log every few seconds.
"""

from __future__ import annotations

import asyncio
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable

from common import settings as common_settings
from common.models.api_models import MiningStats, OperatorIdentity
from common.utils.exceptions import ConnectivityException
from common.utils.metrics import HASHRATE_GAUGE, REALTIME_PUSHES, SESSION_UPDATE_FAILURES, TEMPERATURE_GAUGE
from loguru import logger

from nexa_miner import settings as miner_settings

from .stats import TelemetrySample, TelemetryTracker

if TYPE_CHECKING:  # pragma: no cover - type checking helper
    from accounting import BackendAPIClient, RealtimeChannel

    from .connectivity import ConnectivityMonitor
    from .launcher import MinerProcess

DiagnosticSink = Callable[[str, BaseException], None]


def log_diagnostic(context: str, exc: BaseException) -> None:
    """Default sink: record swallowed errors on the loguru channel only."""
    logger.warning(f"{context}: {exc}")


class RelayState(str, Enum):
    IDLE = "idle"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"
    SESSION_ACTIVE = "session_active"


class MinerStatus(str, Enum):
    STOPPED = "stopped"
    RUNNING = "running"
    ERROR = "error"


@dataclass(frozen=True, slots=True)
class MiningSession:
    session_id: str
    started_at: float  # seconds since epoch

    def duration(self, now: float) -> int:
        return max(0, math.floor(now - self.started_at))


class SessionOrchestrator:
    def __init__(
        self,
        *,
        api_client: "BackendAPIClient",
        realtime: "RealtimeChannel",
        launcher: "MinerProcess",
        connectivity: "ConnectivityMonitor",
        tracker: TelemetryTracker,
        wallet: str = miner_settings.MINER_WALLET,
        worker: str = miner_settings.MINER_WORKER,
        username: str | None = miner_settings.MINER_USERNAME,
        algorithm: str = miner_settings.SESSION_ALGORITHM,
        difficulty: str = miner_settings.SESSION_DIFFICULTY,
        diagnostic_sink: DiagnosticSink = log_diagnostic,
        clock: Callable[[], float] = time.time,
        launch_miner: bool = True,
    ):
        self.api_client = api_client
        self.realtime = realtime
        self.launcher = launcher
        self.connectivity = connectivity
        self.tracker = tracker
        self.wallet = wallet
        self.worker = worker
        self.username = username
        self.algorithm = algorithm
        self.difficulty = difficulty
        self.diagnostic_sink = diagnostic_sink
        self.clock = clock
        self.launch_miner = launch_miner

        self.user: OperatorIdentity | None = None
        self.session: MiningSession | None = None
        self.balance: float = 0.0
        self.status = MinerStatus.STOPPED
        self._authenticating = False

    # --- State views -------------------------------------------------------

    @property
    def state(self) -> RelayState:
        if self._authenticating:
            return RelayState.AUTHENTICATING
        if self.user is None:
            return RelayState.IDLE
        if self.session is None:
            return RelayState.AUTHENTICATED
        return RelayState.SESSION_ACTIVE

    def session_duration(self) -> int | None:
        if self.session is None:
            return None
        return self.session.duration(self.clock())

    # --- Session boundaries ------------------------------------------------

    async def authenticate(self) -> bool:
        """Sign the operator in unless already signed in. Returns whether an identity exists."""
        if self.user is not None:
            return True

        try:
            await self.connectivity.ensure_reachable()
        except ConnectivityException as e:
            logger.warning(str(e))
            self.tracker.log("❌ Backend server not running!")
            self.tracker.log(f"💡 Please start the backend at {common_settings.BACKEND_BASE_URL} and try again")
            return False

        self._authenticating = True
        try:
            self.tracker.log("Authenticating user...")
            user = await self.api_client.authenticate(self.wallet, self.username)
        except Exception as e:
            logger.exception(f"Authentication failed: {e}")
            self.tracker.log(f"Authentication failed: {e}")
            return False
        finally:
            self._authenticating = False

        self.user = user
        self.tracker.log(f"Authenticated as {user.username or user.id}")
        await self.refresh_balance(label="Current balance")
        await self.realtime.connect()
        return True

    async def refresh_balance(self, label: str = "Balance") -> float | None:
        if self.user is None:
            return None
        try:
            balance = await self.api_client.get_wallet_balance(self.user.id)
        except Exception as e:
            logger.error(f"Balance refresh failed: {e}")
            self.tracker.log(f"Could not refresh balance: {e}")
            return None
        self.balance = balance
        self.tracker.log(f"{label}: {balance:.2f} {common_settings.BALANCE_CURRENCY}")
        return balance

    async def start_mining(self) -> bool:
        """Launch the miner and open a backend session. Never raises."""
        if self.session is not None:
            self.tracker.log(f"Mining session {self.session.session_id} already active")
            return True

        self.tracker.log("Starting miner...")
        if not await self.authenticate() or self.user is None:
            self.tracker.log("Cannot start mining without authentication")
            return False

        launched = False
        try:
            if self.launch_miner:
                self.tracker.log("Starting mining process...")
                await self.launcher.start(self.wallet, self.worker)
                launched = True
            self.status = MinerStatus.RUNNING

            self.tracker.log("Creating mining session...")
            response = await self.api_client.start_mining_session(
                self.user.id, self.algorithm, self.difficulty, f"GPU: {self.worker}"
            )
        except Exception as e:
            logger.exception(f"Error starting miner: {e}")
            self.status = MinerStatus.ERROR
            self.tracker.log(f"Error starting miner: {e}")
            if launched:
                await self._stop_launcher_quietly()
            return False

        self.session = MiningSession(session_id=response.session_id, started_at=self.clock())
        self.tracker.log("Miner started successfully!")
        self.tracker.log(f"Session ID: {response.session_id}")
        logger.success(f"✅ Mining session {response.session_id} started for user {self.user.id}")
        return True

    async def stop_mining(self) -> None:
        """Stop the miner and close the backend session. Never raises."""
        if self.launch_miner:
            try:
                await self.launcher.stop()
            except Exception as e:
                # The miner may still be running, so the session stays open
                logger.exception(f"Error stopping miner: {e}")
                self.status = MinerStatus.ERROR
                self.tracker.log(f"Error stopping miner: {e}")
                return
        self.status = MinerStatus.STOPPED

        session = self.session
        if session is None or self.user is None:
            self.tracker.log("Miner stopped")
            return

        try:
            await self.api_client.stop_mining_session(session.session_id)
        except Exception as e:
            logger.error(f"Failed to stop mining session {session.session_id}: {e}")
            self.tracker.log(f"Backend did not confirm session stop: {e}")
        finally:
            await self.refresh_balance(label="Final balance")
            self.session = None

        self.tracker.log("Miner stopped")
        logger.info(f"Mining session {session.session_id} closed")

    async def _stop_launcher_quietly(self) -> None:
        try:
            await self.launcher.stop()
        except Exception as e:
            logger.error(f"Could not stop miner after failed start: {e}")

    # --- Steady state ------------------------------------------------------

    async def handle_sample(self, sample: TelemetrySample) -> None:
        """Record a telemetry sample and relay it if a session is active."""
        self.tracker.record_sample(sample)
        self.tracker.log(f"Miner: {sample.hashrate:.2f} MH/s, Temp: {sample.temperature:g}°C")
        HASHRATE_GAUGE.labels(worker=self.worker).set(sample.hashrate_hs)
        TEMPERATURE_GAUGE.labels(worker=self.worker).set(sample.temperature)

        session, user = self.session, self.user
        if session is None or user is None:
            return

        duration = session.duration(self.clock())
        stats = MiningStats(
            user_id=user.id,
            session_id=session.session_id,
            hash_rate=sample.hashrate_hs,
            temperature=sample.temperature,
            power=0.0,
        )
        # The push is queued without waiting, so it runs alongside the REST update
        if self.realtime.send_mining_stats(stats):
            REALTIME_PUSHES.labels(worker=self.worker).inc()
        try:
            await self.api_client.update_mining_session(session.session_id, sample.hashrate_hs, duration)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            SESSION_UPDATE_FAILURES.labels(worker=self.worker).inc()
            self.diagnostic_sink("Failed to update mining session", e)
