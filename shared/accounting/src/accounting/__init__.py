"""Clients for the backend accounting service (REST, realtime push, token storage)."""

from .api_client import BackendAPIClient
from .realtime_client import ChannelState, RealtimeChannel
from .token_store import TokenStore

__all__ = ["BackendAPIClient", "ChannelState", "RealtimeChannel", "TokenStore"]
