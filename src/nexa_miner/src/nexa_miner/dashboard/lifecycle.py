"""Lifecycle management for the dashboard."""

from __future__ import annotations

import asyncio
import contextlib
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from loguru import logger
from rich.console import Console

from .dashboard import RelayDashboard
from .models import RelaySnapshot

if TYPE_CHECKING:  # pragma: no cover - type checking helper
    from ..relay import MiningRelay


class DashboardRunner:
    """Lifecycle manager that streams relay state into the Rich UI."""

    def __init__(
        self,
        *,
        relay: "MiningRelay",
        console: Console | None = None,
        refresh_interval: float = 1.0,
    ) -> None:
        self._relay = relay
        self._console = console
        self._refresh_interval = refresh_interval
        self._snapshot_queue: asyncio.Queue[RelaySnapshot] | None = None
        self._snapshot_task: asyncio.Task[None] | None = None
        self._app_task: asyncio.Task[None] | None = None
        self._dashboard: RelayDashboard | None = None
        self._stop_event = asyncio.Event()
        self._started = False

    @property
    def stopped(self) -> asyncio.Event:
        """Set once the UI or the snapshot worker exits."""
        return self._stop_event

    async def start(self) -> None:
        if self._started:
            return

        self._stop_event.clear()
        self._snapshot_queue = asyncio.Queue(maxsize=5)
        self._dashboard = RelayDashboard(self._snapshot_queue, refresh_interval=self._refresh_interval)
        await self._publish_snapshot(self.build_snapshot())

        self._snapshot_task = asyncio.create_task(self._snapshot_worker(), name="relay-dashboard-snapshots")
        self._app_task = asyncio.create_task(self._run_dashboard(), name="relay-dashboard-ui")
        self._started = True
        logger.info("Dashboard started - snapshot worker and UI tasks created")

    async def stop(self) -> None:
        if not self._started:
            return

        self._stop_event.set()
        for task in (self._snapshot_task, self._app_task):
            if task is None:
                continue
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._snapshot_queue = None
        self._snapshot_task = None
        self._app_task = None
        self._dashboard = None
        self._started = False

    async def _run_dashboard(self) -> None:
        if self._dashboard is None:
            return
        try:
            await self._dashboard.run()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Dashboard UI stopped unexpectedly: {type(e).__name__}: {e}")
            if self._console is not None:
                self._console.print("[red]Dashboard UI encountered an error and was closed.[/]")
                self._console.print(f"[red]Error: {type(e).__name__}: {e}[/]")
        finally:
            self._stop_event.set()

    async def _snapshot_worker(self) -> None:
        consecutive_errors = 0
        max_consecutive_errors = 5
        try:
            while not self._stop_event.is_set():
                try:
                    await self._publish_snapshot(self.build_snapshot())
                    consecutive_errors = 0
                except Exception as e:
                    consecutive_errors += 1
                    logger.exception(f"Error building snapshot (error #{consecutive_errors}): {e}")
                    if consecutive_errors >= max_consecutive_errors:
                        await asyncio.sleep(self._refresh_interval * 2)
                        continue
                await asyncio.sleep(self._refresh_interval)
        finally:
            self._stop_event.set()

    async def _publish_snapshot(self, snapshot: RelaySnapshot) -> None:
        """Publish a snapshot, dropping the oldest one when the queue is full."""
        if self._snapshot_queue is None:
            return
        try:
            self._snapshot_queue.put_nowait(snapshot)
        except asyncio.QueueFull:
            with contextlib.suppress(asyncio.QueueEmpty):
                self._snapshot_queue.get_nowait()
            await self._snapshot_queue.put(snapshot)

    def build_snapshot(self) -> RelaySnapshot:
        relay = self._relay
        orchestrator = relay.orchestrator
        tracker = relay.tracker
        user = orchestrator.user
        latest = tracker.latest
        summary = tracker.hashrate_summary() or {}

        return RelaySnapshot(
            generated_at=datetime.now(tz=timezone.utc),
            relay_state=orchestrator.state.value,
            miner_status=orchestrator.status.value,
            backend_status=relay.connectivity.status_text,
            channel_state=relay.realtime.state.value,
            username=user.username if user else None,
            wallet_address=user.wallet_address if user else orchestrator.wallet,
            worker=orchestrator.worker,
            balance=orchestrator.balance,
            total_mined=user.total_mined if user else None,
            session_id=orchestrator.session.session_id if orchestrator.session else None,
            session_duration=orchestrator.session_duration(),
            latest_hashrate=latest.hashrate if latest else None,
            latest_temperature=latest.temperature if latest else None,
            average_hashrate=summary.get("avg"),
            hashrate_history=tracker.hashrate_series(),
            temperature_history=tracker.temperature_series(),
            log_lines=tracker.log_lines(),
        )
