"""Connection management for the local feed websockets."""

from __future__ import annotations

import logging
from typing import Any, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class FeedConnectionManager:
    """Track the websocket clients following the activity feed."""

    def __init__(self) -> None:
        self._connections: Set[WebSocket] = set()

    def __len__(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket) -> None:
        """Accept ``websocket`` and add it to the broadcast pool."""

        await websocket.accept()
        self._connections.add(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self._connections.discard(websocket)

    async def broadcast(self, message: dict[str, Any]) -> None:
        """Send ``message`` to every client, dropping the ones that fail."""

        for connection in list(self._connections):
            try:
                await connection.send_json(message)
            except Exception:
                logger.debug("Dropping feed websocket after failed send", exc_info=True)
                self.disconnect(connection)


__all__ = ["FeedConnectionManager"]
