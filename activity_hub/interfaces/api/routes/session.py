"""Endpoints starting and ending the activity session."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from activity_hub.application.use_cases import ActivitySession
from activity_hub.interfaces.api.dependencies import get_activity_session
from activity_hub.interfaces.api.schemas import LoginRequest, SessionRead

router = APIRouter(prefix="/session", tags=["session"])


def _session_to_schema(session: ActivitySession) -> SessionRead:
    snapshot = session.connection()
    identity = session.identity
    return SessionRead(
        authenticated=identity is not None,
        connected=snapshot.connected,
        user_id=identity.user_id if identity else None,
        tenant_id=identity.tenant_id if identity else None,
        online_users=list(snapshot.online_users),
        last_error=snapshot.last_error,
    )


@router.get("", response_model=SessionRead)
async def read_session(session: ActivitySession = Depends(get_activity_session)) -> SessionRead:
    return _session_to_schema(session)


@router.post("/login", response_model=SessionRead)
async def login(
    payload: LoginRequest,
    session: ActivitySession = Depends(get_activity_session),
) -> SessionRead:
    """Authenticate the engine for a user and connect the push channel."""

    await session.login(payload.user_id, payload.auth_token, payload.tenant_id)
    return _session_to_schema(session)


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
async def logout(session: ActivitySession = Depends(get_activity_session)) -> Response:
    await session.logout()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


__all__ = ["router"]
