"""Database configuration and session management for the client storage."""

from __future__ import annotations

import logging

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


def _is_memory_sqlite(database_url: str) -> bool:
    return database_url in {"sqlite://", "sqlite:///:memory:"}


def build_engine(database_url: str) -> Engine:
    """Create an engine for ``database_url``.

    In-memory SQLite databases are bound to a single shared connection so every
    session sees the same data.
    """

    if _is_memory_sqlite(database_url):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True)


def initialize_database(engine: Engine) -> None:
    """Ensure all ORM models have corresponding database tables."""

    from activity_hub.infrastructure import models  # noqa: F401  # ensure models are imported

    Base.metadata.create_all(bind=engine, checkfirst=True)


def build_session_factory(database_url: str) -> sessionmaker[Session]:
    """Return a session factory bound to an initialized database."""

    engine = build_engine(database_url)
    initialize_database(engine)
    logger.debug("Client storage initialized at %s", engine.url.render_as_string(hide_password=True))
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


__all__ = [
    "Base",
    "build_engine",
    "build_session_factory",
    "initialize_database",
]
