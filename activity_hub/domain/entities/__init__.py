"""Domain entities exposed by the engine."""

from .activity_item import (
    LIVE_ACTIVITY_COUNTER,
    STATUS_INFO,
    ActivityItem,
    Category,
    Priority,
)
from .push_event import (
    EVENT_ATTENDANCE_LOG,
    EVENT_CONNECTED,
    EVENT_CONNECTION_ERROR,
    EVENT_DASHBOARD_UPDATE,
    EVENT_LEAVE_APPLICATION,
    EVENT_NEW_MESSAGE,
    EVENT_ONLINE_USERS,
    EVENT_TASK_ASSIGNED,
    EVENT_TASK_UPDATE,
    PushEnvelope,
    SessionIdentity,
)

__all__ = [
    "ActivityItem",
    "Category",
    "EVENT_ATTENDANCE_LOG",
    "EVENT_CONNECTED",
    "EVENT_CONNECTION_ERROR",
    "EVENT_DASHBOARD_UPDATE",
    "EVENT_LEAVE_APPLICATION",
    "EVENT_NEW_MESSAGE",
    "EVENT_ONLINE_USERS",
    "EVENT_TASK_ASSIGNED",
    "EVENT_TASK_UPDATE",
    "LIVE_ACTIVITY_COUNTER",
    "Priority",
    "PushEnvelope",
    "STATUS_INFO",
    "SessionIdentity",
]
