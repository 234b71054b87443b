"""
Fan-out of auction state changes to connected viewers.

The engine only needs ``publish(event_name, payload)``. Publishing is
fire-and-forget: it never blocks the caller and a failure never propagates
into the state change that triggered it.
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)

# Event names
CURRENT_PLAYER_CHANGED = 'current_player_changed'
BID_UPDATED = 'bid_updated'
PLAYER_SOLD = 'player_sold'
SETTINGS_UPDATED = 'settings_updated'


class Broadcaster:
    """Publishing capability injected into the ledger and session controller.

    The base class only logs; it is what offline tools (import, export) use.
    """

    def publish(self, event_name: str, payload: dict) -> None:
        logger.debug(f"Event {event_name}: {payload}")


def safe_publish(broadcaster: Optional[Broadcaster], event_name: str, payload: dict) -> None:
    """Publish an event, logging instead of raising on failure."""
    if broadcaster is None:
        return
    try:
        broadcaster.publish(event_name, payload)
    except Exception as e:
        logger.error(f"Failed to publish {event_name}: {e}", exc_info=True)


class WebSocketBroadcaster(Broadcaster):
    """Broadcast events as ``{"event", "payload"}`` JSON to every open socket.

    Request handlers run on worker threads, so ``publish`` only hands the
    message to a queue on the server's event loop; a worker task drains the
    queue and does the actual sends.
    """

    def __init__(self):
        self.active_connections: List[WebSocket] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._queue: Optional[asyncio.Queue] = None
        self._worker: Optional[asyncio.Task] = None

    async def start(self) -> None:
        """Bind to the running loop and start the send worker."""
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._worker = self._loop.create_task(self._drain())
        logger.info("WebSocket broadcaster started")

    async def stop(self) -> None:
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
        self._worker = None
        self._loop = None
        self._queue = None
        logger.info("WebSocket broadcaster stopped")

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info(f"Viewer connected ({len(self.active_connections)} open)")

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
            logger.info(f"Viewer disconnected ({len(self.active_connections)} open)")

    def publish(self, event_name: str, payload: dict) -> None:
        if not self.active_connections:
            return
        if self._loop is None or self._queue is None:
            logger.warning(f"Broadcaster not started, dropping {event_name}")
            return

        message = {'event': event_name, 'payload': payload}
        asyncio.run_coroutine_threadsafe(self._queue.put(message), self._loop)

    async def broadcast(self, message: dict) -> None:
        """Send one message to every connection, dropping dead sockets."""
        for websocket in list(self.active_connections):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.warning(f"Dropping viewer after failed send: {e}")
                self.disconnect(websocket)

    async def _drain(self) -> None:
        while True:
            message = await self._queue.get()
            await self.broadcast(message)
