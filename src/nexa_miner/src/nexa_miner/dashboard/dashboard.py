"""Rich-based dashboard for displaying live miner telemetry."""

from __future__ import annotations

import asyncio
import time

from blessed import Terminal
from loguru import logger
from rich.align import Align
from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .chart import line_chart
from .models import RelaySnapshot
from .utils import NEXA_TITLE, format_duration, format_hashrate, shorten

_STATUS_STYLES = {
    "running": "bold green",
    "stopped": "bold yellow",
    "error": "bold red",
}


def format_relay_state(state: str | None) -> str:
    """Convert a relay state value to natural language."""
    if not state:
        return "—"
    state_map = {
        "idle": "Not signed in",
        "authenticating": "Authenticating",
        "authenticated": "Signed in",
        "session_active": "Mining session active",
    }
    return state_map.get(state, state.replace("_", " ").title())


class RelayDashboard:
    """Full-screen terminal view of the relay: profile, status, charts and operator log."""

    def __init__(self, snapshot_queue: asyncio.Queue[RelaySnapshot], refresh_interval: float = 1.0):
        self.term = Terminal()
        self.console = Console()
        self.layout = Layout()
        self.snapshot_queue = snapshot_queue
        self.refresh_interval = refresh_interval
        self.start_time = time.time()
        self.current_snapshot: RelaySnapshot | None = None

        self.setup_layout()

    def setup_layout(self):
        """Configure the dashboard layout structure."""
        self.layout.split(
            Layout(name="header", size=9),
            Layout(name="main", ratio=1),
            Layout(name="log", size=12),
            Layout(name="footer", size=3),
        )
        self.layout["main"].split_row(
            Layout(name="left_panel", ratio=1, minimum_size=48),
            Layout(name="right_panel", ratio=2),
        )
        self.layout["left_panel"].split(
            Layout(name="profile", ratio=1),
            Layout(name="status", ratio=1),
        )
        self.layout["right_panel"].split(
            Layout(name="hashrate_chart", ratio=1, minimum_size=8),
            Layout(name="temperature_chart", ratio=1, minimum_size=8),
        )

    def generate_header(self):
        snapshot = self.current_snapshot
        subtitle = format_relay_state(snapshot.relay_state) if snapshot else "Waiting for data..."
        return Panel(
            Align.center(Text(NEXA_TITLE, style="bold cyan"), vertical="top"),
            subtitle=Text(f"Relay: {subtitle}", style="bold magenta"),
            style="bold white on black",
            padding=(0, 0),
        )

    def generate_profile(self):
        snapshot = self.current_snapshot
        if snapshot is None or snapshot.username is None and snapshot.wallet_address is None:
            return Panel("Not authenticated", title="Miner Profile", border_style="bright_blue", padding=(0, 1))

        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("", style="cyan", width=14, no_wrap=True)
        table.add_column("", justify="right", style="yellow", no_wrap=True)

        table.add_row("User", snapshot.username or "—")
        table.add_row("Wallet", shorten(snapshot.wallet_address))
        table.add_row("Worker", snapshot.worker or "—")
        table.add_row("BMT Balance", f"{snapshot.balance:.6f} BMT")
        if snapshot.total_mined is not None:
            table.add_row("Total Mined", f"{snapshot.total_mined:.6f} NEXA")
        if snapshot.session_id:
            table.add_row("Session ID", snapshot.session_id)
        return Panel(table, title="Miner Profile", border_style="bright_blue", padding=(0, 1))

    def generate_status(self):
        snapshot = self.current_snapshot
        runtime = int(time.time() - self.start_time)

        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("", style="cyan", width=14, no_wrap=True)
        table.add_column("", justify="right", style="yellow", no_wrap=True)

        table.add_row("Runtime", format_duration(runtime))
        if snapshot is None:
            table.add_row("Debug", f"No snapshot (queue: {self.snapshot_queue.qsize()})")
            return Panel(table, title="Status", border_style="bright_blue", padding=(0, 1))

        status_style = _STATUS_STYLES.get(snapshot.miner_status, "yellow")
        backend_style = "green" if snapshot.backend_status == "Connected" else "red"
        table.add_row("Miner", Text(snapshot.miner_status, style=status_style))
        table.add_row("Backend", Text(snapshot.backend_status, style=backend_style))
        table.add_row("Realtime", snapshot.channel_state)
        table.add_row("Session Time", format_duration(snapshot.session_duration))
        table.add_row("Hashrate", format_hashrate(snapshot.latest_hashrate))
        table.add_row("Avg Hashrate", format_hashrate(snapshot.average_hashrate))
        temperature = f"{snapshot.latest_temperature:g} °C" if snapshot.latest_temperature is not None else "—"
        table.add_row("Temperature", temperature)
        table.add_row("Last Update", snapshot.generated_at.astimezone().strftime("%H:%M:%S"))
        return Panel(table, title="Status", border_style="bright_blue", padding=(0, 1))

    def _chart_panel(self, series: list[float], title: str, border_style: str, include_zero: bool) -> Panel:
        try:
            chart_width = max(30, (self.term.width or 120) - 56)
        except Exception:
            chart_width = 60

        chart = line_chart(series[-chart_width:], height=6, include_zero=include_zero)
        body = chart if chart else "Waiting for data..."
        return Panel(
            Text(body, no_wrap=True, overflow="ignore"),
            title=title,
            border_style=border_style,
            padding=(0, 1),
        )

    def generate_charts(self):
        snapshot = self.current_snapshot
        hashrates = snapshot.hashrate_history if snapshot else []
        temperatures = snapshot.temperature_history if snapshot else []
        return (
            self._chart_panel(hashrates, "Hashrate (MH/s)", "green", include_zero=True),
            self._chart_panel(temperatures, "Temp (°C)", "red", include_zero=False),
        )

    def generate_log(self):
        snapshot = self.current_snapshot
        visible = 10
        lines = snapshot.log_lines[-visible:] if snapshot else []
        body = "\n".join(lines) if lines else "No events yet"
        return Panel(Text(body, style="green"), title="Log", border_style="bright_black", padding=(0, 1))

    def generate_footer(self):
        footer_text = Text("Press Ctrl+C to stop mining and exit", style="bold white on blue")
        return Panel(Align.center(footer_text), style="bold white on black", padding=(0, 1))

    def update_from_snapshot(self, snapshot: RelaySnapshot):
        self.current_snapshot = snapshot

    def render(self):
        """Render the complete dashboard layout."""
        self.layout["header"].update(self.generate_header())
        self.layout["profile"].update(self.generate_profile())
        self.layout["status"].update(self.generate_status())
        hashrate_chart, temperature_chart = self.generate_charts()
        self.layout["hashrate_chart"].update(hashrate_chart)
        self.layout["temperature_chart"].update(temperature_chart)
        self.layout["log"].update(self.generate_log())
        self.layout["footer"].update(self.generate_footer())
        return self.layout

    async def run(self):
        """Run the dashboard with live updates."""
        with Live(self.render(), refresh_per_second=2, screen=True) as live:
            while True:
                snapshot: RelaySnapshot | None = None
                try:
                    while True:
                        snapshot = self.snapshot_queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass

                if snapshot is not None:
                    self.update_from_snapshot(snapshot)

                try:
                    live.update(self.render())
                except Exception as e:
                    logger.exception(f"Error rendering dashboard: {e}")
                    live.update(Panel(f"Dashboard rendering error: {e}", style="red"))

                await asyncio.sleep(self.refresh_interval)
