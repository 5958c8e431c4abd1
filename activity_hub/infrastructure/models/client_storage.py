"""SQLAlchemy model for the durable key/value client storage."""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text

from activity_hub.infrastructure.database import Base


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class ClientStorageModel(Base):
    """Key/value entry scoped by tenant and user through its key."""

    __tablename__ = "client_storage"

    key = Column(String(255), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)


__all__ = ["ClientStorageModel"]
