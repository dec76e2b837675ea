"""
WebSocket Connection Manager

Relays leaderboardUpdated events from the broadcast adapter to the
WebSocket clients connected to this worker. Clients are read-only; a client
that misses an event re-fetches the leaderboard over HTTP.
"""
import asyncio
import json
import logging
from datetime import datetime
from typing import Dict, Any, Optional

from fastapi import WebSocket

from .broadcast_adapter import BroadcastAdapter, LEADERBOARD_CHANNEL

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Manages local WebSocket connections.

    Per-worker state:
    - Local WebSocket connections and their outgoing queues

    Cluster-wide state:
    - The broadcast adapter channel the relay task listens on
    """

    def __init__(
        self,
        broadcast_adapter: BroadcastAdapter,
        channel: str = LEADERBOARD_CHANNEL,
        max_queue_size: int = 100
    ):
        self.broadcast_adapter = broadcast_adapter
        self.channel = channel
        self.max_queue_size = max_queue_size

        # {websocket: metadata}
        self.connections: Dict[WebSocket, Dict[str, Any]] = {}

        # Outgoing queue per WebSocket for backpressure
        self.message_queues: Dict[WebSocket, asyncio.Queue] = {}

        self._sender_tasks: Dict[WebSocket, asyncio.Task] = {}
        self._relay_task: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Start relaying adapter events to local connections."""
        if self._relay_task is None:
            self._relay_task = asyncio.create_task(self._relay())

    async def stop(self) -> None:
        """Stop the relay and release every connection queue."""
        if self._relay_task is not None:
            self._relay_task.cancel()
            try:
                await self._relay_task
            except asyncio.CancelledError:
                pass
            self._relay_task = None

        for websocket in list(self.connections):
            await self.disconnect(websocket)

    async def connect(self, websocket: WebSocket, client_id: Optional[str] = None) -> None:
        """
        Accept new WebSocket connection.

        Args:
            websocket: WebSocket object
            client_id: Optional caller-supplied identifier, for logs only
        """
        await websocket.accept()

        self.connections[websocket] = {
            "client_id": client_id,
            "connected_at": datetime.utcnow(),
        }
        self.message_queues[websocket] = asyncio.Queue(maxsize=self.max_queue_size)
        self._sender_tasks[websocket] = asyncio.create_task(self._message_sender(websocket))

        logger.info(f"Leaderboard client connected ({client_id or 'anonymous'}), total={len(self.connections)}")

    async def disconnect(self, websocket: WebSocket) -> None:
        """Remove WebSocket connection."""
        self.connections.pop(websocket, None)

        queue = self.message_queues.pop(websocket, None)
        if queue is not None:
            try:
                queue.put_nowait(None)  # Shutdown signal
            except asyncio.QueueFull:
                pass

        task = self._sender_tasks.pop(websocket, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    def broadcast_local(self, message: Dict[str, Any]) -> int:
        """
        Queue a message for every local connection.

        Returns:
            Number of connections the message was queued for
        """
        serialized = json.dumps(message, sort_keys=True, default=str)
        delivered = 0

        for websocket, queue in list(self.message_queues.items()):
            try:
                queue.put_nowait(serialized)
            except asyncio.QueueFull:
                # Backpressure: drop oldest message
                try:
                    queue.get_nowait()
                    queue.put_nowait(serialized)
                except (asyncio.QueueEmpty, asyncio.QueueFull):
                    continue
            delivered += 1

        return delivered

    async def _relay(self) -> None:
        try:
            async for message in self.broadcast_adapter.subscribe(self.channel):
                self.broadcast_local(message)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"Leaderboard relay on {self.channel} stopped")

    async def _message_sender(self, websocket: WebSocket) -> None:
        """
        Background task to send messages from queue to WebSocket.
        """
        queue = self.message_queues.get(websocket)
        if not queue:
            return

        while True:
            message = await queue.get()
            if message is None:
                break
            try:
                await websocket.send_text(message)
            except Exception as e:
                logger.info(f"Leaderboard client send failed, dropping connection: {e}")
                await self.disconnect(websocket)
                break

    def get_connection_count(self) -> int:
        """Get number of active local connections."""
        return len(self.connections)


# Global connection manager instance (initialized on startup)
_connection_manager: Optional[ConnectionManager] = None


def get_connection_manager() -> Optional[ConnectionManager]:
    """Get global connection manager instance."""
    return _connection_manager


def set_connection_manager(manager: Optional[ConnectionManager]) -> None:
    """Set global connection manager instance."""
    global _connection_manager
    _connection_manager = manager
