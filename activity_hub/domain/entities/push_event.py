"""Domain entities exchanged with the push transport."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

EVENT_LEAVE_APPLICATION = "LEAVE_APPLICATION"
EVENT_TASK_ASSIGNED = "TASK_ASSIGNED"
EVENT_TASK_UPDATE = "TASK_UPDATE"
EVENT_ATTENDANCE_LOG = "ATTENDANCE_LOG"
EVENT_NEW_MESSAGE = "NEW_MESSAGE"
EVENT_DASHBOARD_UPDATE = "DASHBOARD_UPDATE"

# Lifecycle events published by the transport itself.
EVENT_CONNECTED = "connected"
EVENT_CONNECTION_ERROR = "connectionError"
EVENT_ONLINE_USERS = "update_online_users"


@dataclass(frozen=True)
class PushEnvelope:
    """Typed notification delivered by the push transport."""

    type: str
    data: Mapping[str, Any] = field(default_factory=dict)
    message: str | None = None


@dataclass(frozen=True)
class SessionIdentity:
    """Authenticated user a push connection is scoped to."""

    user_id: str
    tenant_id: str
    auth_token: str = field(repr=False, compare=False, default="")


__all__ = [
    "EVENT_ATTENDANCE_LOG",
    "EVENT_CONNECTED",
    "EVENT_CONNECTION_ERROR",
    "EVENT_DASHBOARD_UPDATE",
    "EVENT_LEAVE_APPLICATION",
    "EVENT_NEW_MESSAGE",
    "EVENT_ONLINE_USERS",
    "EVENT_TASK_ASSIGNED",
    "EVENT_TASK_UPDATE",
    "PushEnvelope",
    "SessionIdentity",
]
