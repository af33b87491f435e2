"""Dashboard WebSocket fan-out"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional, Set
from starlette.websockets import WebSocket, WebSocketState
from app.models import events
from app.services.stats import StatsAggregator

logger = logging.getLogger(__name__)


def is_open(connection: WebSocket) -> bool:
    return (
        connection.client_state == WebSocketState.CONNECTED
        and connection.application_state == WebSocketState.CONNECTED
    )


class DashboardBroadcaster:
    """
    Tracks connected dashboard sockets and pushes events to them.

    Membership heals itself: any socket found closed, or whose send raises,
    is dropped during the broadcast that noticed it.
    """

    def __init__(self, stats: StatsAggregator, interval: float = 30, initial_delay: float = 1.0):
        self.stats = stats
        self.interval = interval
        self.initial_delay = initial_delay
        self.subscribers: Set[WebSocket] = set()
        self._ticker: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()

    def subscribe(self, connection: WebSocket):
        self.subscribers.add(connection)
        logger.info(f"Dashboard client connected. Total clients: {len(self.subscribers)}")

    def unsubscribe(self, connection: WebSocket):
        if connection in self.subscribers:
            self.subscribers.discard(connection)
            logger.info(f"Dashboard client removed. Total clients: {len(self.subscribers)}")

    async def broadcast(self, event: Dict[str, Any]) -> int:
        """Send one event to every open subscriber, returns how many got it"""
        message = json.dumps(event, default=str)
        targets = []
        for connection in list(self.subscribers):
            if is_open(connection):
                targets.append(connection)
            else:
                self.unsubscribe(connection)

        # Concurrent sends; a failed send drops only that subscriber
        results = await asyncio.gather(
            *(connection.send_text(message) for connection in targets),
            return_exceptions=True,
        )
        delivered = 0
        for connection, result in zip(targets, results):
            if isinstance(result, Exception):
                logger.warning(f"Error broadcasting to dashboard client: {result}")
                self.unsubscribe(connection)
            else:
                delivered += 1
        logger.debug(f"Broadcast {event.get('type')} to {delivered} dashboard client(s)")
        return delivered

    async def send(self, connection: WebSocket, event: Dict[str, Any]) -> bool:
        """Send an event to a single subscriber"""
        if not is_open(connection):
            self.unsubscribe(connection)
            return False
        try:
            await connection.send_text(json.dumps(event, default=str))
            return True
        except Exception as e:
            logger.warning(f"Error sending to dashboard client: {e}")
            self.unsubscribe(connection)
            return False

    async def send_stats(self, connection: WebSocket) -> bool:
        if not is_open(connection):
            return False
        stats = await self.stats.get_stats()
        return await self.send(connection, events.stats_update(stats.to_payload()))

    async def send_initial_stats(self, connection: WebSocket):
        await asyncio.sleep(self.initial_delay)
        if await self.send_stats(connection):
            logger.info("Initial dashboard stats sent")

    async def handle_message(self, connection: WebSocket, raw: str):
        """Handle a message a dashboard client sent us"""
        try:
            message = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Ignoring invalid dashboard message: {raw[:100]!r}")
            return

        message_type = message.get("type") if isinstance(message, dict) else None
        if message_type == "ping":
            await self.send(connection, events.pong())
        elif message_type == "requestStats":
            await self.send_stats(connection)
        else:
            logger.debug(f"Ignoring dashboard message type: {message_type}")

    async def push_stats(self) -> int:
        """Aggregate once and broadcast to everyone"""
        if not self.subscribers:
            return 0
        stats = await self.stats.get_stats()
        return await self.broadcast(events.stats_update(stats.to_payload()))

    async def _tick(self):
        while True:
            await asyncio.sleep(self.interval)
            logger.debug(f"Periodic broadcast check. Dashboard clients: {len(self.subscribers)}")
            if self.subscribers:
                task = asyncio.create_task(self._push_stats_safely())
                self._pending.add(task)
                task.add_done_callback(self._pending.discard)

    async def _push_stats_safely(self):
        try:
            await self.push_stats()
        except Exception as e:
            logger.error(f"Error in periodic stats broadcast: {e}")

    def start(self):
        """Start the periodic stats push"""
        if self._ticker is None or self._ticker.done():
            self._ticker = asyncio.create_task(self._tick())
            logger.info(f"Dashboard stats broadcast every {self.interval}s")

    async def stop(self):
        if self._ticker is not None:
            self._ticker.cancel()
            try:
                await self._ticker
            except asyncio.CancelledError:
                pass
            self._ticker = None
        for task in list(self._pending):
            task.cancel()
