"""Leaderboard event fan-out: broadcast adapters and WebSocket relay."""
from .broadcast_adapter import BroadcastAdapter, LEADERBOARD_CHANNEL
from .in_memory_adapter import InMemoryAdapter
