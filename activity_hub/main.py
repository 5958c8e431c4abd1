from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from activity_hub.application.use_cases import ActivitySession
from activity_hub.config import Settings, get_settings
from activity_hub.infrastructure.database import build_session_factory
from activity_hub.infrastructure.notifications import (
    AiohttpPushConnector,
    FeedConnectionManager,
    RealtimeEventPublisher,
    TransportSession,
)
from activity_hub.infrastructure.repositories import ReadStateRepository
from activity_hub.interfaces.api.routes import register_routes

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], ActivitySession]


def build_activity_session(settings: Settings | None = None) -> ActivitySession:
    """Assemble a session backed by the websocket push channel and SQL storage."""

    settings = settings or get_settings()
    transport = TransportSession(
        AiohttpPushConnector(settings.push_url),
        queue_size=settings.transport_queue_size,
    )
    repository = ReadStateRepository(build_session_factory(settings.read_state_database_url))
    return ActivitySession(transport, read_state_repository=repository, settings=settings)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Run the activity session for the lifetime of the application."""

    session = app.state.session_factory()
    manager = FeedConnectionManager()
    publisher = RealtimeEventPublisher(manager)
    async with session:
        unsubscribers = [
            session.aggregator.subscribe(publisher.publish_feed),
            session.counter_store.subscribe(publisher.publish_counters),
        ]
        app.state.activity_session = session
        app.state.feed_manager = manager
        try:
            yield
        finally:
            for unsubscribe in unsubscribers:
                unsubscribe()
            app.state.activity_session = None
    logger.info("Activity session stopped")


def create_app(
    session_factory: SessionFactory | None = None,
    *,
    allowed_origins: list[str] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    app = FastAPI(title="Activity Hub", lifespan=lifespan)
    app.state.session_factory = session_factory or build_activity_session
    app.state.activity_session = None

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["http://localhost:3000"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_routes(app)
    return app
