"""
Telemetry tracker for the relay dashboard.

The tracker keeps two bounded windows: the most recent telemetry samples (used
only for charting) and the operator log (a short human readable audit trail).
Both are plain deques, so appends from timer callbacks never need locking under
the single event loop. The dashboard reads copies on each refresh cycle.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from time import time
from typing import Deque

from nexa_miner import settings as miner_settings


@dataclass(slots=True)
class TelemetrySample:
    """One hashrate/temperature reading from the miner."""

    timestamp: float
    hashrate: float  # MH/s
    temperature: float  # °C

    @property
    def hashrate_hs(self) -> float:
        return self.hashrate * 1e6

    @classmethod
    def from_raw(cls, hashrate_hs: float, temperature: float, *, timestamp: float | None = None) -> "TelemetrySample":
        return cls(
            timestamp=time() if timestamp is None else timestamp,
            hashrate=hashrate_hs / 1e6,
            temperature=temperature,
        )


@dataclass(slots=True)
class TelemetryTracker:
    """Accumulates samples and operator log lines for dashboard consumption."""

    window_size: int = miner_settings.TELEMETRY_WINDOW_SIZE
    log_size: int = miner_settings.LOG_BUFFER_SIZE
    _samples: Deque[TelemetrySample] = field(default_factory=deque)
    _log: Deque[str] = field(default_factory=deque)

    def __post_init__(self) -> None:
        # Ensure deque maxlen respects configuration
        self._samples = deque(self._samples, maxlen=self.window_size)
        self._log = deque(self._log, maxlen=self.log_size)

    # --- Recording helpers -------------------------------------------------

    def record_sample(self, sample: TelemetrySample) -> None:
        """Append a sample; the oldest one falls off once the window is full."""
        self._samples.append(sample)

    def log(self, message: str, *, now: datetime | None = None) -> None:
        """Append a timestamped line to the operator log."""
        stamp = (now or datetime.now()).strftime("%H:%M:%S")
        self._log.append(f"{stamp} - {message}")

    # --- Aggregated views --------------------------------------------------

    @property
    def latest(self) -> TelemetrySample | None:
        return self._samples[-1] if self._samples else None

    def samples(self) -> list[TelemetrySample]:
        return list(self._samples)

    def hashrate_series(self) -> list[float]:
        return [sample.hashrate for sample in self._samples]

    def temperature_series(self) -> list[float]:
        return [sample.temperature for sample in self._samples]

    def log_lines(self) -> list[str]:
        return list(self._log)

    def hashrate_summary(self) -> dict[str, float] | None:
        """Return min/avg/max hashrate over the window if available."""
        if not self._samples:
            return None
        rates = self.hashrate_series()
        return {
            "min": min(rates),
            "max": max(rates),
            "avg": sum(rates) / len(rates),
            "latest": rates[-1],
        }
