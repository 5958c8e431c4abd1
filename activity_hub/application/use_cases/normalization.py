"""Table-driven mapping of domain records and push events into activity items."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Mapping

from activity_hub.domain.entities import (
    EVENT_ATTENDANCE_LOG,
    EVENT_LEAVE_APPLICATION,
    EVENT_NEW_MESSAGE,
    EVENT_TASK_ASSIGNED,
    EVENT_TASK_UPDATE,
    STATUS_INFO,
    ActivityItem,
    Category,
    Priority,
    PushEnvelope,
)
from activity_hub.utils import now_in_app_timezone, parse_timestamp

logger = logging.getLogger(__name__)

Payload = Mapping[str, Any]
TextBuilder = Callable[[Payload, "str | None"], str]

_PENDING_STATUSES = frozenset({"pending"})
_OPEN_STATUSES = frozenset({"todo", "in_progress", "unread"})
_PRIORITY_ALIASES = {
    "urgent": Priority.HIGH,
    "critical": Priority.HIGH,
    "normal": Priority.MEDIUM,
}


class MalformedRecordError(ValueError):
    """Raised internally when a payload lacks the fields an item requires."""


@dataclass(frozen=True)
class CategoryMapping:
    """Describe how one kind of payload becomes an :class:`ActivityItem`."""

    category: Category
    id_prefix: str
    id_fields: tuple[str, ...]
    timestamp_fields: tuple[str, ...]
    title: TextBuilder
    subtitle: TextBuilder
    description: TextBuilder
    status: Callable[[Payload], str]
    default_status: str = STATUS_INFO


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _first(payload: Payload, *keys: str) -> Any:
    for key in keys:
        value = payload.get(key)
        if value not in (None, ""):
            return value
    return None


def _employee_title(fallback: str | None) -> TextBuilder:
    def build(payload: Payload, _message: str | None) -> str:
        name = _text(payload.get("employee_name"))
        if name:
            return name
        employee_id = payload.get("employee_id")
        if employee_id not in (None, ""):
            return f"Employee #{employee_id}"
        return fallback or "Unknown employee"

    return build


def _constant(value: str) -> TextBuilder:
    return lambda _payload, _message: value


def _message_or(*keys: str) -> TextBuilder:
    """Prefer the envelope message, then the first non-empty payload field."""

    def build(payload: Payload, message: str | None) -> str:
        if message:
            return _text(message)
        return _text(_first(payload, *keys))

    return build


def _field_or_message(*keys: str) -> TextBuilder:
    """Prefer the payload fields, then the envelope message."""

    def build(payload: Payload, message: str | None) -> str:
        value = _first(payload, *keys)
        if value is not None:
            return _text(value)
        return _text(message)

    return build


def _status_field(default: str) -> Callable[[Payload], str]:
    def build(payload: Payload) -> str:
        status = _text(payload.get("status")).lower()
        return status or default

    return build


def _leave_subtitle(payload: Payload, _message: str | None) -> str:
    leave_type = _text(payload.get("leave_type"))
    return f"{leave_type} Request" if leave_type else "Leave Request"


def _attendance_subtitle(payload: Payload, _message: str | None) -> str:
    return "Clocked Out" if payload.get("clock_out") else "Clocked In"


def _attendance_description(payload: Payload, message: str | None) -> str:
    if message:
        return _text(message)
    if payload.get("clock_out"):
        return f"Worked: {payload.get('work_hours') or 0}h"
    clock_in = _text(payload.get("clock_in"))
    return f"Clocked in at {clock_in}" if clock_in else ""


def _task_update_subtitle(payload: Payload, _message: str | None) -> str:
    task_id = payload.get("task_id")
    return f"Task #{task_id}" if task_id not in (None, "") else "Task"


def _conversation_title(payload: Payload, _message: str | None) -> str:
    full_name = " ".join(
        part
        for part in (
            _text(payload.get("other_user_first_name")),
            _text(payload.get("other_user_last_name")),
        )
        if part
    )
    if full_name:
        return full_name
    email = _text(payload.get("other_user_email"))
    if email:
        return email
    return f"User #{payload.get('other_user_id')}"


def _sender_title(payload: Payload, _message: str | None) -> str:
    name = _text(_first(payload, "sender_name", "sender_email"))
    return name or f"User #{payload.get('sender_id')}"


def _conversation_status(payload: Payload) -> str:
    try:
        unread = int(payload.get("unread_count") or 0)
    except (TypeError, ValueError):
        unread = 0
    return "unread" if unread > 0 else STATUS_INFO


_LEAVE_TIMESTAMPS = ("updated_at", "created_at")
_TASK_TIMESTAMPS = ("updated_at", "created_at")
_ATTENDANCE_TIMESTAMPS = ("clock_out", "clock_in", "updated_at", "created_at", "date")

RECORD_MAPPINGS: dict[Category, CategoryMapping] = {
    Category.LEAVE: CategoryMapping(
        category=Category.LEAVE,
        id_prefix="leave",
        id_fields=("leave_id",),
        timestamp_fields=_LEAVE_TIMESTAMPS,
        title=_employee_title(None),
        subtitle=_leave_subtitle,
        description=_field_or_message("reason"),
        status=_status_field("pending"),
        default_status="pending",
    ),
    Category.TASK: CategoryMapping(
        category=Category.TASK,
        id_prefix="task",
        id_fields=("task_id",),
        timestamp_fields=_TASK_TIMESTAMPS,
        title=lambda payload, _message: _text(payload.get("title")) or "Untitled task",
        subtitle=_constant("Task Created"),
        description=_field_or_message("description"),
        status=_status_field("todo"),
        default_status="todo",
    ),
    Category.TASK_UPDATE: CategoryMapping(
        category=Category.TASK_UPDATE,
        id_prefix="task-update",
        id_fields=("update_id", "task_update_id"),
        timestamp_fields=("created_at", "updated_at"),
        title=_constant("Task Update"),
        subtitle=_task_update_subtitle,
        description=_field_or_message("update_text", "comment", "description"),
        status=_status_field(STATUS_INFO),
    ),
    Category.ATTENDANCE: CategoryMapping(
        category=Category.ATTENDANCE,
        id_prefix="att",
        id_fields=("attendance_id",),
        timestamp_fields=_ATTENDANCE_TIMESTAMPS,
        title=_employee_title(None),
        subtitle=_attendance_subtitle,
        description=_attendance_description,
        status=lambda _payload: STATUS_INFO,
    ),
    Category.CHAT: CategoryMapping(
        category=Category.CHAT,
        id_prefix="chat",
        id_fields=("other_user_id",),
        timestamp_fields=("last_message_time", "updated_at", "created_at"),
        title=_conversation_title,
        subtitle=_constant("Conversation"),
        description=_field_or_message("last_message"),
        status=_conversation_status,
    ),
}

EVENT_MAPPINGS: dict[str, CategoryMapping] = {
    EVENT_LEAVE_APPLICATION: CategoryMapping(
        category=Category.LEAVE,
        id_prefix="leave",
        id_fields=("leave_id",),
        timestamp_fields=("timestamp",) + _LEAVE_TIMESTAMPS,
        title=_employee_title("New Leave Request"),
        subtitle=_leave_subtitle,
        description=_message_or("reason"),
        status=_status_field("pending"),
        default_status="pending",
    ),
    EVENT_TASK_ASSIGNED: CategoryMapping(
        category=Category.TASK,
        id_prefix="task",
        id_fields=("task_id",),
        timestamp_fields=("timestamp",) + _TASK_TIMESTAMPS,
        title=lambda payload, _message: _text(payload.get("title")) or "New Task",
        subtitle=_constant("Task Assigned"),
        description=_message_or("description"),
        status=_status_field("todo"),
        default_status="todo",
    ),
    EVENT_TASK_UPDATE: RECORD_MAPPINGS[Category.TASK_UPDATE],
    EVENT_ATTENDANCE_LOG: CategoryMapping(
        category=Category.ATTENDANCE,
        id_prefix="att",
        id_fields=("attendance_id",),
        timestamp_fields=("timestamp",) + _ATTENDANCE_TIMESTAMPS,
        title=_employee_title("Attendance Alert"),
        subtitle=_attendance_subtitle,
        description=_attendance_description,
        status=lambda _payload: STATUS_INFO,
    ),
    EVENT_NEW_MESSAGE: CategoryMapping(
        category=Category.CHAT,
        id_prefix="chat",
        id_fields=("sender_id",),
        timestamp_fields=("timestamp", "created_at"),
        title=_sender_title,
        subtitle=_constant("New Message"),
        description=_field_or_message("message", "last_message"),
        status=lambda _payload: "unread",
    ),
}


def derive_priority(category: Category, status: str, payload: Payload) -> Priority:
    """Return the priority of an item from its payload and status."""

    explicit = _text(payload.get("priority")).lower()
    if explicit:
        if explicit in _PRIORITY_ALIASES:
            return _PRIORITY_ALIASES[explicit]
        try:
            return Priority(explicit)
        except ValueError:
            pass
    if status in _PENDING_STATUSES:
        return Priority.HIGH
    if status in _OPEN_STATUSES or category is Category.CHAT:
        return Priority.MEDIUM
    return Priority.LOW


def _resolve_identifier(mapping: CategoryMapping, payload: Payload, timestamp: datetime) -> str:
    identifier = _first(payload, *mapping.id_fields)
    if identifier is not None:
        return f"{mapping.id_prefix}-{identifier}"
    if mapping.category is Category.TASK_UPDATE and payload.get("task_id") not in (None, ""):
        # Update rows without their own key are unique per task and instant.
        return f"{mapping.id_prefix}-{payload['task_id']}-{int(timestamp.timestamp() * 1000)}"
    msg = f"missing identifier field ({', '.join(mapping.id_fields)})"
    raise MalformedRecordError(msg)


def _resolve_timestamp(
    mapping: CategoryMapping, payload: Payload, fallback: datetime | None
) -> datetime:
    for key in mapping.timestamp_fields:
        parsed = parse_timestamp(payload.get(key))
        if parsed is not None:
            return parsed
    if fallback is not None:
        return fallback
    msg = f"missing timestamp field ({', '.join(mapping.timestamp_fields)})"
    raise MalformedRecordError(msg)


def _build_item(
    mapping: CategoryMapping,
    payload: Payload,
    *,
    message: str | None,
    fallback_timestamp: datetime | None,
    is_live: bool,
) -> ActivityItem:
    if not isinstance(payload, Mapping):
        raise MalformedRecordError(f"expected a mapping, got {type(payload).__name__}")

    timestamp = _resolve_timestamp(mapping, payload, fallback_timestamp)
    status = mapping.status(payload) or mapping.default_status
    return ActivityItem(
        id=_resolve_identifier(mapping, payload, timestamp),
        category=mapping.category,
        title=mapping.title(payload, message),
        subtitle=mapping.subtitle(payload, message),
        description=mapping.description(payload, message),
        timestamp=timestamp,
        status=status,
        priority=derive_priority(mapping.category, status, payload),
        is_live=is_live,
        raw=dict(payload),
    )


def normalize_record(category: Category | str, record: Any) -> ActivityItem | None:
    """Map a bulk-fetched ``record`` of ``category`` into an activity item.

    Returns ``None`` (after logging a diagnostic) when the record cannot be
    represented, e.g. because it lacks an identifier or a timestamp.
    """

    try:
        mapping = RECORD_MAPPINGS[Category.parse(category)]
        return _build_item(
            mapping, record, message=None, fallback_timestamp=None, is_live=False
        )
    except (MalformedRecordError, KeyError, TypeError, ValueError, AttributeError) as exc:
        logger.warning("Dropping malformed %s record: %s", category, exc)
        return None


def normalize_event(
    envelope: PushEnvelope, *, received_at: datetime | None = None
) -> ActivityItem | None:
    """Map a push ``envelope`` into a live activity item.

    Events that do not describe feed activity (dashboard refresh hints,
    lifecycle notifications) yield ``None`` without a diagnostic. Events without
    a timestamp are stamped with ``received_at`` (defaults to now).
    """

    mapping = EVENT_MAPPINGS.get(envelope.type)
    if mapping is None:
        return None

    try:
        return _build_item(
            mapping,
            envelope.data,
            message=envelope.message,
            fallback_timestamp=received_at or now_in_app_timezone(),
            is_live=True,
        )
    except (MalformedRecordError, KeyError, TypeError, ValueError, AttributeError) as exc:
        logger.warning("Dropping malformed %s event: %s", envelope.type, exc)
        return None


__all__ = [
    "CategoryMapping",
    "EVENT_MAPPINGS",
    "RECORD_MAPPINGS",
    "derive_priority",
    "normalize_event",
    "normalize_record",
]
