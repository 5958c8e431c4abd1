"""Stateless filtering and searching over the canonical activity list."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable

from activity_hub.domain.entities import ActivityItem, Category
from activity_hub.utils import ensure_app_timezone, now_in_app_timezone, start_of_day


class StatusBucket(str, Enum):
    ALL = "all"
    PENDING_LIKE = "pending-like"
    RESOLVED_LIKE = "resolved-like"


class DateRange(str, Enum):
    ALL = "all"
    TODAY = "today"
    LAST_7_DAYS = "last-7-days"


PENDING_LIKE_STATUSES = frozenset({"pending", "todo", "in_progress"})
RESOLVED_LIKE_STATUSES = frozenset({"approved", "completed", "rejected"})

# Selecting tasks in the feed also shows their progress updates.
_CATEGORY_ALIASES: dict[Category, frozenset[Category]] = {
    Category.TASK: frozenset({Category.TASK, Category.TASK_UPDATE}),
}

_GREEN_STATUSES = frozenset({"approved", "completed", "present"})
_RED_STATUSES = frozenset({"rejected", "cancelled", "absent"})
_AMBER_STATUSES = frozenset({"pending", "todo"})


@dataclass(frozen=True)
class FeedQuery:
    """Filters applied by :func:`view`; every dimension defaults to "all"."""

    category: Category | None = None
    status_bucket: StatusBucket = StatusBucket.ALL
    date_range: DateRange = DateRange.ALL
    search_text: str = ""

    @classmethod
    def build(
        cls,
        *,
        category: Category | str | None = None,
        status_bucket: StatusBucket | str | None = None,
        date_range: DateRange | str | None = None,
        search_text: str | None = None,
    ) -> "FeedQuery":
        """Create a query from loosely typed inputs (``"all"`` means no filter)."""

        parsed_category = None
        if category not in (None, "", "all", "ALL"):
            parsed_category = Category.parse(category)
        return cls(
            category=parsed_category,
            status_bucket=StatusBucket(status_bucket or StatusBucket.ALL),
            date_range=DateRange(date_range or DateRange.ALL),
            search_text=(search_text or "").strip(),
        )


def status_bucket_of(status: str) -> StatusBucket | None:
    """Classify a raw status token; ``None`` for statuses outside both buckets."""

    normalized = (status or "").lower()
    if normalized in PENDING_LIKE_STATUSES:
        return StatusBucket.PENDING_LIKE
    if normalized in RESOLVED_LIKE_STATUSES:
        return StatusBucket.RESOLVED_LIKE
    return None


def status_color(status: str) -> str:
    """Return the badge color the feed uses for ``status``."""

    normalized = (status or "").lower()
    if normalized in _GREEN_STATUSES:
        return "green"
    if normalized in _RED_STATUSES:
        return "red"
    if normalized in _AMBER_STATUSES:
        return "amber"
    return "gray"


def date_window(
    date_range: DateRange, now: datetime
) -> tuple[datetime | None, datetime | None]:
    """Return the inclusive start and exclusive end of ``date_range``."""

    if date_range is DateRange.TODAY:
        start = start_of_day(now)
        return start, start + timedelta(days=1)
    if date_range is DateRange.LAST_7_DAYS:
        return now - timedelta(days=7), None
    return None, None


def matches_text(item: ActivityItem, search_text: str) -> bool:
    needle = search_text.lower()
    return any(
        needle in (value or "").lower()
        for value in (item.title, item.subtitle, item.description)
    )


def view(
    items: Iterable[ActivityItem],
    query: FeedQuery | None = None,
    *,
    now: datetime | None = None,
) -> list[ActivityItem]:
    """Return the items matching every active filter, in their input order.

    ``now`` is evaluated on each call (wall clock by default), so the "today"
    partition moves with time.
    """

    query = query or FeedQuery()
    categories = None
    if query.category is not None:
        categories = _CATEGORY_ALIASES.get(query.category, frozenset({query.category}))
    start, end = date_window(query.date_range, ensure_app_timezone(now) or now_in_app_timezone())

    selected: list[ActivityItem] = []
    for item in items:
        if categories is not None and item.category not in categories:
            continue
        if (
            query.status_bucket is not StatusBucket.ALL
            and status_bucket_of(item.status) is not query.status_bucket
        ):
            continue
        if start is not None and item.timestamp < start:
            continue
        if end is not None and item.timestamp >= end:
            continue
        if query.search_text and not matches_text(item, query.search_text):
            continue
        selected.append(item)
    return selected


__all__ = [
    "DateRange",
    "FeedQuery",
    "PENDING_LIKE_STATUSES",
    "RESOLVED_LIKE_STATUSES",
    "StatusBucket",
    "date_window",
    "matches_text",
    "status_bucket_of",
    "status_color",
    "view",
]
