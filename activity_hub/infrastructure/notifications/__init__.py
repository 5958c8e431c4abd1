"""Push transport and realtime fan-out helpers for the infrastructure layer."""

from .connectors import AiohttpPushConnection, AiohttpPushConnector
from .manager import FeedConnectionManager
from .realtime import (
    COUNTERS_EVENT,
    FEED_EVENT,
    RealtimeEventPublisher,
    serialize_item,
)
from .transport import (
    ALL_EVENTS,
    ConnectionClosed,
    ConnectionSnapshot,
    EventHandler,
    PushConnection,
    PushConnector,
    SessionHandle,
    TransportError,
    TransportSession,
    parse_frame,
)

__all__ = [
    "ALL_EVENTS",
    "AiohttpPushConnection",
    "AiohttpPushConnector",
    "COUNTERS_EVENT",
    "ConnectionClosed",
    "ConnectionSnapshot",
    "EventHandler",
    "FEED_EVENT",
    "FeedConnectionManager",
    "PushConnection",
    "PushConnector",
    "RealtimeEventPublisher",
    "SessionHandle",
    "TransportError",
    "TransportSession",
    "parse_frame",
    "serialize_item",
]
