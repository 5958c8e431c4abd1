"""FastAPI dependency utilities."""

from fastapi import Depends, HTTPException, Request, WebSocket, status

from activity_hub.application.use_cases import ActivitySession, counter_key
from activity_hub.infrastructure.notifications import FeedConnectionManager


def resolve_activity_session(state: object) -> ActivitySession:
    """Return the session stored on the application state."""

    session = getattr(state, "activity_session", None)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Activity engine is not running",
        )
    return session


async def get_activity_session(request: Request) -> ActivitySession:
    return resolve_activity_session(request.app.state)


async def get_authenticated_session(
    session: ActivitySession = Depends(get_activity_session),
) -> ActivitySession:
    """Return the session, rejecting requests made before a login."""

    if not session.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No active session; log in first",
        )
    return session


def get_feed_manager(websocket: WebSocket) -> FeedConnectionManager:
    return websocket.app.state.feed_manager


def parse_counter_category(category: str) -> str:
    """Translate a path segment into a counter key or answer 404."""

    try:
        return counter_key(category)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown category '{category}'",
        ) from exc
