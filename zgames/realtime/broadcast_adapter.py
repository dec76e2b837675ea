"""
Broadcast Adapter Interface

Abstract base class for leaderboard event fan-out.
Delivery-only: the database remains the source of truth, and a subscriber
that misses an event re-reads the leaderboard instead of replaying.
"""
import abc
import json
import hashlib
from typing import Dict, Any


LEADERBOARD_CHANNEL = "leaderboardUpdated"


class BroadcastAdapter(abc.ABC):
    """
    Abstract base class for broadcast adapters.

    Guarantees:
    - Deterministic message serialization (sort_keys=True)
    - Best-effort, at-most-once delivery (no acknowledgment, no replay)
    """

    REQUIRED_FIELDS = ("type", "tournament_id", "event_hash")

    @abc.abstractmethod
    async def publish(self, channel: str, message: Dict[str, Any]) -> None:
        """
        Publish message to channel.

        Args:
            channel: Channel name (e.g., "leaderboardUpdated")
            message: Message payload (must contain type, tournament_id and event_hash)
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def subscribe(self, channel: str):
        """
        Subscribe to channel and yield messages.

        Args:
            channel: Channel name to subscribe to
        Yields:
            Parsed message dict
        """
        raise NotImplementedError

    @abc.abstractmethod
    async def close(self) -> None:
        """Close adapter connections."""
        raise NotImplementedError

    def _serialize_message(self, message: Dict[str, Any]) -> str:
        """
        Serialize message deterministically.

        Args:
            message: Message dict to serialize
        Returns:
            Compact JSON string with sorted keys
        """
        return json.dumps(message, sort_keys=True, separators=(',', ':'), default=str)

    def compute_message_hash(self, message: Dict[str, Any]) -> str:
        """
        Compute SHA256 hash of message for integrity.

        Args:
            message: Message dict (event_hash itself is excluded)
        Returns:
            Hex digest of SHA256 hash
        """
        payload = {k: v for k, v in message.items() if k != "event_hash"}
        serialized = self._serialize_message(payload)
        return hashlib.sha256(serialized.encode()).hexdigest()

    def validate_message(self, message: Dict[str, Any]) -> bool:
        """
        Validate message has the fields subscribers rely on.

        Raises:
            ValueError: If required fields missing
        """
        missing = [f for f in self.REQUIRED_FIELDS if f not in message]
        if missing:
            raise ValueError(f"Message missing required fields: {missing}")
        return True
