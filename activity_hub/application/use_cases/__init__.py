"""Aggregate application use cases."""

from .activity import ActivityAggregator
from .counters import COUNTER_KEYS, NotificationCounterStore, counter_key
from .feed_view import DateRange, FeedQuery, StatusBucket, status_color, view
from .normalization import normalize_event, normalize_record
from .session import ActivitySession

__all__ = [
    "ActivityAggregator",
    "ActivitySession",
    "COUNTER_KEYS",
    "DateRange",
    "FeedQuery",
    "NotificationCounterStore",
    "StatusBucket",
    "counter_key",
    "normalize_event",
    "normalize_record",
    "status_color",
    "view",
]
