"""Tests for filtering and searching the activity feed."""

from __future__ import annotations

import pytest

from activity_hub.application.use_cases import DateRange, FeedQuery, StatusBucket, status_color, view
from activity_hub.domain.entities import ActivityItem, Category, Priority

from .fakes import utc

NOW = utc(2024, 5, 10, 15)


def _item(item_id, category, status, when, title="Item", description=""):
    return ActivityItem(
        id=item_id,
        category=category,
        title=title,
        subtitle="",
        description=description,
        timestamp=when,
        status=status,
        priority=Priority.LOW,
    )


@pytest.fixture
def items():
    return [
        _item("leave-1", Category.LEAVE, "pending", utc(2024, 5, 10, 9), title="Ana Pérez"),
        _item("task-1", Category.TASK, "in_progress", utc(2024, 5, 10, 8), title="Quarterly report"),
        _item("task-update-1", Category.TASK_UPDATE, "info", utc(2024, 5, 10, 7), description="Draft uploaded"),
        _item("leave-2", Category.LEAVE, "approved", utc(2024, 5, 10, 6)),
        _item("task-2", Category.TASK, "todo", utc(2024, 5, 8, 12)),
        _item("leave-3", Category.LEAVE, "rejected", utc(2024, 5, 1, 12)),
        _item("att-1", Category.ATTENDANCE, "info", utc(2024, 4, 20, 8), title="Luis"),
    ]


def _ids(selected):
    return [item.id for item in selected]


def test_today_and_pending_like(items):
    query = FeedQuery(date_range=DateRange.TODAY, status_bucket=StatusBucket.PENDING_LIKE)

    assert _ids(view(items, query, now=NOW)) == ["leave-1", "task-1"]


def test_no_filters_returns_everything_in_input_order(items):
    assert _ids(view(items, now=NOW)) == _ids(items)


def test_task_filter_includes_task_updates(items):
    selected = view(items, FeedQuery(category=Category.TASK), now=NOW)

    assert _ids(selected) == ["task-1", "task-update-1", "task-2"]


def test_resolved_like_in_the_last_seven_days(items):
    query = FeedQuery.build(status_bucket="resolved-like", date_range="last-7-days")

    assert _ids(view(items, query, now=NOW)) == ["leave-2"]


def test_search_is_case_insensitive_over_title_and_description(items):
    assert _ids(view(items, FeedQuery(search_text="REPORT"), now=NOW)) == ["task-1"]
    assert _ids(view(items, FeedQuery(search_text="draft"), now=NOW)) == ["task-update-1"]
    assert view(items, FeedQuery(search_text="nothing matches"), now=NOW) == []


def test_filters_combine_with_and(items):
    query = FeedQuery.build(category="leave", status_bucket="pending-like", search_text="ana")

    assert _ids(view(items, query, now=NOW)) == ["leave-1"]


def test_today_moves_with_the_clock(items):
    query = FeedQuery(date_range=DateRange.TODAY)

    assert _ids(view(items, query, now=utc(2024, 5, 8, 20))) == ["task-2"]


def test_build_treats_all_and_blank_as_no_filter():
    assert FeedQuery.build(category="all", status_bucket="", date_range=None) == FeedQuery()


def test_build_rejects_unknown_values():
    with pytest.raises(ValueError):
        FeedQuery.build(status_bucket="sometimes")
    with pytest.raises(ValueError):
        FeedQuery.build(category="payroll")


@pytest.mark.parametrize(
    ("status", "color"),
    [("approved", "green"), ("completed", "green"), ("rejected", "red"), ("pending", "amber"), ("info", "gray")],
)
def test_status_color(status, color):
    assert status_color(status) == color
