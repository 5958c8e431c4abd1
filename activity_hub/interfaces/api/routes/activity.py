"""Endpoints and websocket handler for the live activity feed."""

from __future__ import annotations

from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Query,
    WebSocket,
    WebSocketDisconnect,
    status,
)

from activity_hub.application.use_cases import ActivitySession, FeedQuery
from activity_hub.infrastructure.notifications import COUNTERS_EVENT, FEED_EVENT, serialize_item
from activity_hub.interfaces.api.dependencies import (
    get_authenticated_session,
    get_feed_manager,
    resolve_activity_session,
)
from activity_hub.interfaces.api.schemas import ActivityItemRead, FeedRefreshResponse

router = APIRouter(prefix="/activity", tags=["activity"])


@router.get("/feed", response_model=list[ActivityItemRead])
async def read_feed(
    category: str | None = Query(None, description="Category filter, 'all' for every category"),
    status_bucket: str | None = Query(None, description="all, pending-like or resolved-like"),
    date_range: str | None = Query(None, description="all, today or last-7-days"),
    search: str | None = Query(None, description="Case-insensitive text searched in the items"),
    session: ActivitySession = Depends(get_authenticated_session),
) -> list[ActivityItemRead]:
    """Return the filtered feed, newest first."""

    try:
        query = FeedQuery.build(
            category=category,
            status_bucket=status_bucket,
            date_range=date_range,
            search_text=search,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(exc)) from exc
    return [ActivityItemRead.from_item(item) for item in session.feed(query)]


@router.post("/refresh", response_model=FeedRefreshResponse)
async def refresh_feed(
    session: ActivitySession = Depends(get_authenticated_session),
) -> FeedRefreshResponse:
    """Fetch every domain service again and merge the results."""

    accepted = await session.refresh_feed()
    return FeedRefreshResponse(accepted=accepted, total=len(session.aggregator))


@router.websocket("/ws")
async def activity_websocket(websocket: WebSocket) -> None:
    """Stream feed snapshots and counter updates to a local client."""

    try:
        session = resolve_activity_session(websocket.app.state)
    except HTTPException:
        await websocket.close(code=1011)
        return
    if not session.is_authenticated:
        await websocket.close(code=1008)
        return

    manager = get_feed_manager(websocket)
    await manager.connect(websocket)
    try:
        await websocket.send_json(
            {"type": FEED_EVENT, "data": [serialize_item(item) for item in session.feed()]}
        )
        await websocket.send_json({"type": COUNTERS_EVENT, "data": session.counters()})
        while True:
            try:
                message = await websocket.receive_json()
            except WebSocketDisconnect:
                raise
            except ValueError:
                continue

            if isinstance(message, dict) and message.get("type") == "ping":
                await websocket.send_json({"type": "pong"})
    except WebSocketDisconnect:
        manager.disconnect(websocket)
    except Exception:
        manager.disconnect(websocket)
        raise


__all__ = ["router"]
