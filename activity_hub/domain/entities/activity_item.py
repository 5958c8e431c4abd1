"""Domain entity describing an item of the live activity feed."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Mapping

LIVE_ACTIVITY_COUNTER = "liveActivity"
STATUS_INFO = "info"


class Category(str, Enum):
    """Coarse routing key used by filters and unread counters."""

    LEAVE = "LEAVE"
    TASK = "TASK"
    TASK_UPDATE = "TASK_UPDATE"
    ATTENDANCE = "ATTENDANCE"
    CHAT = "CHAT"

    @classmethod
    def parse(cls, value: "Category | str") -> "Category":
        """Return the member matching ``value`` regardless of case."""

        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            msg = f"Unknown activity category: {value!r}"
            raise ValueError(msg) from None


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class ActivityItem:
    """Normalized, displayable unit of the aggregated feed.

    Items are never mutated. An update of the underlying domain entity is
    represented by a new item carrying the same ``id``.
    """

    id: str
    category: Category
    title: str
    subtitle: str
    description: str
    timestamp: datetime
    status: str
    priority: Priority
    is_live: bool = False
    raw: Mapping[str, Any] = field(default_factory=dict, compare=False, repr=False)


__all__ = [
    "ActivityItem",
    "Category",
    "LIVE_ACTIVITY_COUNTER",
    "Priority",
    "STATUS_INFO",
]
