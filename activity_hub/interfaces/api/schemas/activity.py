"""Pydantic schemas for activity feed endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from activity_hub.application.use_cases.feed_view import status_color
from activity_hub.domain.entities import ActivityItem


class ActivityItemRead(BaseModel):
    id: str = Field(..., description="Stable identifier, unique across categories")
    category: str = Field(..., description="Category used for filters and counters")
    title: str
    subtitle: str
    description: str
    timestamp: datetime = Field(..., description="Moment the underlying event happened")
    status: str
    status_color: str = Field(..., description="Badge color derived from the status")
    priority: str
    is_live: bool = Field(False, description="Whether the item arrived through the push channel")

    model_config = ConfigDict(from_attributes=True)

    @classmethod
    def from_item(cls, item: ActivityItem) -> "ActivityItemRead":
        return cls(
            id=item.id,
            category=item.category.value,
            title=item.title,
            subtitle=item.subtitle,
            description=item.description,
            timestamp=item.timestamp,
            status=item.status,
            status_color=status_color(item.status),
            priority=item.priority.value,
            is_live=item.is_live,
        )


class FeedRefreshResponse(BaseModel):
    accepted: int = Field(..., description="Records merged into the feed by this refresh")
    total: int = Field(..., description="Items retained after the refresh")


__all__ = ["ActivityItemRead", "FeedRefreshResponse"]
