"""Tests for the SQL-backed read state persistence."""

from __future__ import annotations

import pytest
from sqlalchemy.exc import SQLAlchemyError

from activity_hub.infrastructure.database import build_session_factory
from activity_hub.infrastructure.models import ClientStorageModel
from activity_hub.infrastructure.repositories import ReadStateRepository, read_state_key
from activity_hub.infrastructure.repositories.read_state_repository import (
    deserialize_read_state,
    serialize_read_state,
)

from .fakes import utc


@pytest.fixture
def session_factory():
    return build_session_factory("sqlite://")


def test_save_then_load_round_trips_per_user(session_factory):
    repository = ReadStateRepository(session_factory)
    state = {"LEAVE": utc(2024, 5, 1, 9), "CHAT": utc(2024, 5, 2, 18, 30)}

    repository.save("acme", "u1", state)

    assert repository.load("acme", "u1") == state
    assert repository.load("acme", "u2") == {}
    assert repository.load("globex", "u1") == {}


def test_save_overwrites_the_existing_entry(session_factory):
    repository = ReadStateRepository(session_factory)
    repository.save("acme", "u1", {"LEAVE": utc(2024, 5, 1, 9)})

    repository.save("acme", "u1", {"LEAVE": utc(2024, 5, 3, 9), "TASK": utc(2024, 5, 3, 10)})

    session = session_factory()
    try:
        rows = session.query(ClientStorageModel).all()
    finally:
        session.close()
    assert [row.key for row in rows] == [read_state_key("acme", "u1")]
    assert repository.load("acme", "u1")["LEAVE"] == utc(2024, 5, 3, 9)


def test_save_errors_propagate_to_the_caller(session_factory, monkeypatch):
    repository = ReadStateRepository(session_factory)

    def broken_serialize(_state):
        raise SQLAlchemyError("write failed")

    monkeypatch.setattr(
        "activity_hub.infrastructure.repositories.read_state_repository.serialize_read_state",
        broken_serialize,
    )

    with pytest.raises(SQLAlchemyError):
        repository.save("acme", "u1", {"LEAVE": utc(2024, 5, 1, 9)})
    assert repository.load("acme", "u1") == {}


def test_read_state_key_is_scoped_by_tenant_and_user():
    assert read_state_key("acme", "42") == "acme.42.read_state"


def test_corrupted_payloads_deserialize_to_empty_state():
    assert deserialize_read_state(None) == {}
    assert deserialize_read_state("{not json") == {}
    assert deserialize_read_state("[1, 2]") == {}
    assert deserialize_read_state('{"LEAVE": "yesterday", "TASK": "2024-05-01T09:00:00+00:00"}') == {
        "TASK": utc(2024, 5, 1, 9)
    }
    assert deserialize_read_state(serialize_read_state({"CHAT": utc(2024, 1, 1)})) == {
        "CHAT": utc(2024, 1, 1)
    }
