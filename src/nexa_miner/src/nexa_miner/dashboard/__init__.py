"""
Rich-based dashboard for the mining relay.

Snapshots are built from the relay on their own task so the relay keeps
running even if the UI is disabled or fails.
"""

from .dashboard import RelayDashboard
from .lifecycle import DashboardRunner
from .models import RelaySnapshot

__all__ = [
    "DashboardRunner",
    "RelayDashboard",
    "RelaySnapshot",
]
