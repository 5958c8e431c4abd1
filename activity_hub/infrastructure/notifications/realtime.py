"""Forward feed and counter changes to the local websocket clients."""

from __future__ import annotations

import asyncio
import copy
from dataclasses import asdict
from typing import Any, Iterable

from anyio import from_thread

from activity_hub.domain.entities import ActivityItem

from .manager import FeedConnectionManager

FEED_EVENT = "feed"
COUNTERS_EVENT = "counters"


def serialize_item(item: ActivityItem) -> dict[str, Any]:
    """Return the JSON representation of ``item`` sent over the websocket."""

    payload = asdict(item)
    payload.pop("raw", None)
    payload["category"] = item.category.value
    payload["priority"] = item.priority.value
    payload["timestamp"] = item.timestamp.isoformat()
    return payload


class RealtimeEventPublisher:
    """Schedule ``{"type", "data"}`` messages on the connection manager."""

    def __init__(self, manager: FeedConnectionManager) -> None:
        self._manager = manager

    def dispatch(self, *, event_type: str, payload: Any) -> None:
        message = {"type": event_type, "data": copy.deepcopy(payload)}
        self._schedule_send(message)

    def publish_feed(self, items: Iterable[ActivityItem]) -> None:
        self.dispatch(event_type=FEED_EVENT, payload=[serialize_item(item) for item in items])

    def publish_counters(self, counters: dict[str, int]) -> None:
        self.dispatch(event_type=COUNTERS_EVENT, payload=dict(counters))

    def _schedule_send(self, message: dict[str, Any]) -> None:
        if not len(self._manager):
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            from_thread.run(self._manager.broadcast, message)
        else:
            loop.create_task(self._manager.broadcast(message))


__all__ = [
    "COUNTERS_EVENT",
    "FEED_EVENT",
    "RealtimeEventPublisher",
    "serialize_item",
]
