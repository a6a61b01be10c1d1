"""WebSocket change broadcaster.

Pushes snapshot, aggregate and tracker-delta events to connected
subscribers. Each subscriber gets one full-state push when it connects,
then live events only (no backlog).

Pattern: per-client send lock + optional per-source filter. The lock
orders messages per client, so the initial state always arrives before
any event broadcast after registration.
"""

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from starlette.websockets import WebSocket

from community_pulse.broadcast.config import BroadcastConfig
from community_pulse.observability.metrics import get_metrics

logger = logging.getLogger(__name__)

TOPIC_INITIAL_STATE = "initial_state"
TOPIC_SOURCE_UPDATED = "source_updated"
TOPIC_STATS_UPDATED = "stats_updated"
TOPIC_ACTIVITY_UPDATED = "activity_updated"
TOPIC_VOICE_UPDATED = "voice_updated"
TOPIC_MEMBER_UPDATED = "member_updated"
TOPIC_HEARTBEAT = "heartbeat"


def encode_message(topic: str, payload: Any) -> str:
    return json.dumps({
        "type": topic,
        "data": payload,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    })


@dataclass
class ClientConnection:
    """A connected WebSocket subscriber with an optional source filter."""

    ws: WebSocket
    source_id: str | None = None
    connected_at: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)


class ChangeBroadcaster:
    """Manages WebSocket subscribers and fans out change events.

    Lifecycle:
        1. ``start()`` - spawn the heartbeat task
        2. ``connect(ws, initial_state)`` / ``disconnect(ws)`` - manage clients
        3. ``broadcast(topic, payload)`` - push to matching clients
        4. ``stop()`` - cancel heartbeat, forget clients
    """

    def __init__(self, config: BroadcastConfig | None = None) -> None:
        self._config = config or BroadcastConfig()
        self._clients: dict[WebSocket, ClientConnection] = {}
        self._heartbeat_task: asyncio.Task | None = None
        self._running = False

    @property
    def active_connections(self) -> int:
        """Number of currently connected WebSocket clients."""
        return len(self._clients)

    async def connect(
        self,
        ws: WebSocket,
        initial_state: Callable[[], Any],
        source_id: str | None = None,
    ) -> bool:
        """Register a subscriber and send it the current full state.

        ``initial_state`` is evaluated right after registration, with the
        client's send lock held, so every later broadcast queues behind it.

        Returns:
            True if registered, False if max connections reached or the
            initial push failed.
        """
        if len(self._clients) >= self._config.max_connections:
            return False

        client = ClientConnection(ws=ws, source_id=source_id)
        async with client.send_lock:
            self._clients[ws] = client
            get_metrics().set_ws_connections(len(self._clients))
            logger.info(
                "WebSocket client connected (total=%d, source_id=%s)",
                len(self._clients), source_id,
            )
            try:
                await self._send_raw(client, encode_message(TOPIC_INITIAL_STATE, initial_state()))
            except Exception as e:
                logger.warning("Initial state push failed: %s", e)
                self.disconnect(ws)
                return False
        return True

    def disconnect(self, ws: WebSocket) -> None:
        """Remove a WebSocket client."""
        removed = self._clients.pop(ws, None)
        if removed:
            get_metrics().set_ws_connections(len(self._clients))
            logger.info(
                "WebSocket client disconnected (total=%d)", len(self._clients),
            )

    async def broadcast(
        self,
        topic: str,
        payload: Any,
        source_id: str | None = None,
    ) -> int:
        """Send an event to every matching subscriber.

        Args:
            topic: Event type.
            payload: JSON-serializable body.
            source_id: Source the event is about (None for aggregate events).

        Returns:
            Number of clients the event was delivered to.
        """
        if not self._clients:
            return 0

        message = encode_message(topic, payload)
        targets = [
            client for client in list(self._clients.values())
            if self._matches_filter(client, source_id)
        ]
        results = await asyncio.gather(
            *(self._send(client, message) for client in targets)
        )
        get_metrics().record_broadcast(topic, sum(results))
        return sum(results)

    async def send_to(self, ws: WebSocket, topic: str, payload: Any) -> bool:
        """Reply to one subscriber (client-initiated requests)."""
        client = self._clients.get(ws)
        if client is None:
            return False
        return await self._send(client, encode_message(topic, payload))

    async def start(self) -> None:
        """Start the heartbeat background task."""
        if self._running:
            return
        self._running = True
        self._heartbeat_task = asyncio.create_task(
            self._send_heartbeats(), name="change-broadcaster-heartbeat",
        )
        logger.info(
            "ChangeBroadcaster started (heartbeat=%ds, max_connections=%d)",
            self._config.heartbeat_interval, self._config.max_connections,
        )

    async def stop(self) -> None:
        """Stop the heartbeat task and forget all clients."""
        self._running = False

        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            try:
                await self._heartbeat_task
            except asyncio.CancelledError:
                pass
            self._heartbeat_task = None

        self._clients.clear()
        get_metrics().set_ws_connections(0)
        logger.info("ChangeBroadcaster stopped")

    @staticmethod
    def _matches_filter(client: ClientConnection, source_id: str | None) -> bool:
        """Aggregate events go to everyone; source events respect the filter."""
        if source_id is None or client.source_id is None:
            return True
        return client.source_id == source_id

    async def _send(self, client: ClientConnection, message: str) -> bool:
        async with client.send_lock:
            if client.ws not in self._clients:
                return False
            try:
                await self._send_raw(client, message)
                return True
            except Exception as e:
                logger.debug("Dropping WebSocket client after send failure: %s", e)
                self.disconnect(client.ws)
                return False

    async def _send_raw(self, client: ClientConnection, message: str) -> None:
        async with asyncio.timeout(self._config.send_timeout_seconds):
            await client.ws.send_text(message)

    async def _send_heartbeats(self) -> None:
        """Background task: send periodic heartbeat pings to all clients."""
        try:
            while self._running:
                await asyncio.sleep(self._config.heartbeat_interval)
                if self._clients:
                    await self.broadcast(
                        TOPIC_HEARTBEAT, {"subscribers": len(self._clients)},
                    )
        except asyncio.CancelledError:
            pass
