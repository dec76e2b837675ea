"""
In-Memory Broadcast Adapter (Development Mode)

Local-only broadcast implementation using asyncio.Queue.
No Redis dependency for development/testing.
"""
import asyncio
import json
import logging
from typing import Dict, Any, Set, Optional
from .broadcast_adapter import BroadcastAdapter

logger = logging.getLogger(__name__)


class InMemoryAdapter(BroadcastAdapter):
    """
    In-memory broadcast adapter for single-process deployments.

    Events only reach subscribers in the same process.
    """

    def __init__(self, max_queue_size: int = 100):
        self.max_queue_size = max_queue_size
        self._channels: Dict[str, Set[asyncio.Queue]] = {}
        self._lock = asyncio.Lock()

    async def publish(self, channel: str, message: Dict[str, Any]) -> None:
        """
        Publish message to in-memory channel.

        Args:
            channel: Channel name
            message: Message payload
        """
        self.validate_message(message)

        serialized = self._serialize_message(message)

        async with self._lock:
            queues = list(self._channels.get(channel, ()))

        for queue in queues:
            try:
                queue.put_nowait(serialized)
            except asyncio.QueueFull:
                # Slow subscriber: drop, it can re-read the leaderboard
                logger.warning(f"Subscriber queue full on {channel}, dropping event")

    async def subscribe(self, channel: str):
        """
        Subscribe to channel and yield messages until the adapter closes.

        Args:
            channel: Channel name
        Yields:
            Parsed message dicts
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self.max_queue_size)

        async with self._lock:
            self._channels.setdefault(channel, set()).add(queue)

        try:
            while True:
                serialized: Optional[str] = await queue.get()
                if serialized is None:
                    break
                try:
                    yield json.loads(serialized)
                except json.JSONDecodeError:
                    # Skip corrupted messages
                    continue
        finally:
            async with self._lock:
                if channel in self._channels:
                    self._channels[channel].discard(queue)
                    if not self._channels[channel]:
                        del self._channels[channel]

    def get_subscriber_count(self, channel: str) -> int:
        """Get number of active subscribers for a channel."""
        return len(self._channels.get(channel, ()))

    async def close(self) -> None:
        """Close all channels."""
        async with self._lock:
            for queues in self._channels.values():
                for queue in queues:
                    try:
                        queue.put_nowait(None)  # Signal shutdown
                    except asyncio.QueueFull:
                        pass
            self._channels.clear()
