"""Persistence helpers for the per-user category read marks."""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Callable, Mapping, Protocol

from sqlalchemy.orm import Session

from activity_hub.infrastructure.models import ClientStorageModel
from activity_hub.utils import parse_timestamp

logger = logging.getLogger(__name__)

ReadState = dict[str, datetime]


def read_state_key(tenant_id: str, user_id: str) -> str:
    """Return the storage key holding the read state of a tenant user."""

    return f"{tenant_id}.{user_id}.read_state"


def serialize_read_state(state: Mapping[str, datetime]) -> str:
    return json.dumps({category: value.isoformat() for category, value in state.items()})


def deserialize_read_state(raw: str | None) -> ReadState:
    """Parse a stored JSON map, skipping entries that are not timestamps."""

    if not raw:
        return {}
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring corrupted read state payload")
        return {}
    if not isinstance(payload, dict):
        return {}

    state: ReadState = {}
    for category, value in payload.items():
        parsed = parse_timestamp(value)
        if parsed is not None:
            state[str(category)] = parsed
    return state


class ReadStateStore(Protocol):
    def load(self, tenant_id: str, user_id: str) -> ReadState:
        ...

    def save(self, tenant_id: str, user_id: str, state: Mapping[str, datetime]) -> None:
        ...


class ReadStateRepository:
    """Store read marks in the ``client_storage`` table."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def load(self, tenant_id: str, user_id: str) -> ReadState:
        session = self._session_factory()
        try:
            model = session.get(ClientStorageModel, read_state_key(tenant_id, user_id))
            return deserialize_read_state(model.value if model else None)
        finally:
            session.close()

    def save(self, tenant_id: str, user_id: str, state: Mapping[str, datetime]) -> None:
        key = read_state_key(tenant_id, user_id)
        session = self._session_factory()
        try:
            model = session.get(ClientStorageModel, key)
            if model is None:
                model = ClientStorageModel(key=key)
            model.value = serialize_read_state(state)
            session.add(model)
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()


class InMemoryReadStateRepository:
    """Read state store kept in process memory, serialized like the real one."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def load(self, tenant_id: str, user_id: str) -> ReadState:
        return deserialize_read_state(self._entries.get(read_state_key(tenant_id, user_id)))

    def save(self, tenant_id: str, user_id: str, state: Mapping[str, datetime]) -> None:
        self._entries[read_state_key(tenant_id, user_id)] = serialize_read_state(state)

    def raw(self, key: str) -> str | None:
        return self._entries.get(key)


__all__ = [
    "InMemoryReadStateRepository",
    "ReadState",
    "ReadStateRepository",
    "ReadStateStore",
    "deserialize_read_state",
    "read_state_key",
    "serialize_read_state",
]
