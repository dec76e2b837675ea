"""
Change Notifier

Publishes leaderboardUpdated after a scoring transaction commits.
Fire-and-forget: failures are logged and never reach the caller, whose
scores are already durable.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from zgames.exceptions import NotificationError
from zgames.realtime.broadcast_adapter import BroadcastAdapter, LEADERBOARD_CHANNEL

logger = logging.getLogger(__name__)

EVENT_TYPE = "leaderboardUpdated"


class ChangeNotifier:
    """Post-commit event publisher for leaderboard changes."""

    def __init__(self, adapter: Optional[BroadcastAdapter] = None, channel: str = LEADERBOARD_CHANNEL):
        self.adapter = adapter
        self.channel = channel

    def build_event(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        event = {
            "type": EVENT_TYPE,
            "tournament_id": payload.get("tournament_id"),
            "game_id": payload.get("game_id"),
            "mode": payload.get("mode"),
            "request_id": payload.get("request_id"),
            "version": payload.get("version"),
            "timestamp": payload.get("timestamp") or datetime.utcnow().isoformat(),
        }
        event["event_hash"] = self.adapter.compute_message_hash(event)
        return event

    async def publish(self, payload: Dict[str, Any]) -> bool:
        """
        Publish a leaderboardUpdated event.

        Args:
            payload: tournament_id, game_id, mode, request_id, timestamp
                (version optional)
        Returns:
            True if the event was handed to the adapter, False otherwise
        """
        if self.adapter is None:
            logger.debug("No broadcast adapter configured, skipping leaderboardUpdated")
            return False

        try:
            event = self.build_event(payload)
            await self.adapter.publish(self.channel, event)
        except Exception as e:
            error = NotificationError(f"Failed to publish {EVENT_TYPE}: {e}")
            logger.exception(
                f"{error.message} (tournament={payload.get('tournament_id')}, "
                f"request={payload.get('request_id')})"
            )
            return False

        logger.info(
            f"Published {EVENT_TYPE} for tournament {event['tournament_id']} "
            f"game {event['game_id']} (request {event['request_id']})"
        )
        return True
