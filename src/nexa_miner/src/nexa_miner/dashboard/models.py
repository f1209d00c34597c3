"""Data models for the dashboard."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(slots=True)
class RelaySnapshot:
    """Immutable view of relay state handed to the UI on each refresh."""

    generated_at: datetime
    relay_state: str
    miner_status: str
    backend_status: str = "Checking..."
    channel_state: str = "disconnected"
    username: Optional[str] = None
    wallet_address: Optional[str] = None
    worker: Optional[str] = None
    balance: float = 0.0
    total_mined: Optional[float] = None
    session_id: Optional[str] = None
    session_duration: Optional[int] = None  # seconds
    latest_hashrate: Optional[float] = None  # MH/s
    latest_temperature: Optional[float] = None
    average_hashrate: Optional[float] = None
    hashrate_history: list[float] = field(default_factory=list)
    temperature_history: list[float] = field(default_factory=list)
    log_lines: list[str] = field(default_factory=list)
