from fastapi import FastAPI

from .activity import router as activity_router
from .notifications import router as notifications_router
from .session import router as session_router


def register_routes(app: FastAPI) -> None:
    """Register every API router on the FastAPI application."""

    app.include_router(session_router)
    app.include_router(activity_router)
    app.include_router(notifications_router)
