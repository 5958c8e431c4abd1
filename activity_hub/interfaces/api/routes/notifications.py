"""Endpoints exposing the unread counters."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from activity_hub.application.use_cases import ActivitySession
from activity_hub.interfaces.api.dependencies import (
    get_authenticated_session,
    parse_counter_category,
)
from activity_hub.interfaces.api.schemas import ReadMarkRead, ViewingRead, ViewingUpdate

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("/counters", response_model=dict[str, int])
async def read_counters(
    session: ActivitySession = Depends(get_authenticated_session),
) -> dict[str, int]:
    """Return the unread count of every category plus ``liveActivity``."""

    return session.counters()


@router.post("/counters/refresh", response_model=dict[str, int])
async def refresh_counters(
    session: ActivitySession = Depends(get_authenticated_session),
) -> dict[str, int]:
    return await session.refresh_counters()


@router.post("/{category}/read", response_model=ReadMarkRead)
async def mark_category_as_read(
    category: str = Depends(parse_counter_category),
    session: ActivitySession = Depends(get_authenticated_session),
) -> ReadMarkRead:
    """Reset the counter of ``category`` and persist its read mark."""

    read_at = await session.mark_as_read_async(category)
    return ReadMarkRead(category=category, read_at=read_at, counters=session.counters())


@router.put("/{category}/viewing", response_model=ViewingRead)
async def update_viewing(
    payload: ViewingUpdate,
    category: str = Depends(parse_counter_category),
    session: ActivitySession = Depends(get_authenticated_session),
) -> ViewingRead:
    session.set_viewing(category, payload.viewing)
    return ViewingRead(category=category, viewing=payload.viewing)


__all__ = ["router"]
