"""Pydantic models describing unread counter payloads."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class ReadMarkRead(BaseModel):
    """Result of marking one category as read."""

    category: str
    read_at: datetime
    counters: dict[str, int] = Field(default_factory=dict)


class ViewingUpdate(BaseModel):
    viewing: bool = Field(..., description="Whether the user is looking at the category")


class ViewingRead(BaseModel):
    category: str
    viewing: bool


__all__ = ["ReadMarkRead", "ViewingRead", "ViewingUpdate"]
