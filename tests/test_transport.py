"""Tests for the push transport session."""

from __future__ import annotations

import logging

import anyio
import pytest

from activity_hub.infrastructure.notifications import TransportSession, parse_frame

from .fakes import FakePushConnector, settle


def _task_frame(task_id):
    return {"type": "TASK_ASSIGNED", "data": {"task_id": task_id, "title": f"Task {task_id}"}}


@pytest.mark.anyio
async def test_connect_joins_the_user_group_and_delivers_in_order():
    connector = FakePushConnector()
    typed, everything = [], []

    async with TransportSession(connector) as transport:
        transport.subscribe("TASK_ASSIGNED", typed.append)
        transport.subscribe("*", lambda envelope: everything.append(envelope.type))

        handle = await transport.connect(42, "secret", "acme")
        for task_id in (1, 2, 3):
            await connector.connection.push(_task_frame(task_id))
        await settle()

        assert handle.connected is True
        assert handle.identity.user_id == "42"
        assert connector.opened[0].auth_token == "secret"
        assert connector.connection.sent == [{"type": "join", "data": "42"}]
        assert [envelope.data["task_id"] for envelope in typed] == [1, 2, 3]
        assert everything == ["connected", "TASK_ASSIGNED", "TASK_ASSIGNED", "TASK_ASSIGNED"]
        assert transport.snapshot().connected is True


@pytest.mark.anyio
async def test_async_handlers_are_awaited():
    connector = FakePushConnector()
    seen = []

    async def handler(envelope):
        await anyio.sleep(0)
        seen.append(envelope.data["task_id"])

    async with TransportSession(connector) as transport:
        transport.subscribe("TASK_ASSIGNED", handler)
        await transport.connect("1", "t", "acme")
        await connector.connection.push(_task_frame(7))
        await settle()

    assert seen == [7]


@pytest.mark.anyio
async def test_connect_is_idempotent_per_identity():
    connector = FakePushConnector()

    async with TransportSession(connector) as transport:
        await transport.connect("1", "token", "acme")
        await transport.connect("1", "token", "acme")
        assert len(connector.opened) == 1

        await transport.connect("2", "token", "acme")
        assert len(connector.opened) == 2
        assert connector.connections[0].closed is True
        assert transport.snapshot().user_id == "2"


@pytest.mark.anyio
async def test_connection_error_handler_can_reconnect():
    connector = FakePushConnector()
    handles, tasks = [], []

    async with TransportSession(connector) as transport:

        async def reconnect(envelope):
            handles.append(await transport.connect("1", "token", "acme"))

        transport.subscribe("connectionError", reconnect)
        transport.subscribe("TASK_ASSIGNED", tasks.append)
        await transport.connect("1", "token", "acme")
        dropped = connector.connection

        await dropped.close_from_server()
        await settle()
        await connector.connection.push(_task_frame(5))
        await settle()

        assert len(connector.opened) == 2
        assert [handle.connected for handle in handles] == [True]
        assert dropped.closed is True
        assert connector.connection is not dropped
        assert [envelope.data["task_id"] for envelope in tasks] == [5]
        assert transport.snapshot().connected is True


@pytest.mark.anyio
async def test_handler_can_disconnect_without_blocking():
    connector = FakePushConnector()
    errors, everything = [], []

    async with TransportSession(connector) as transport:

        async def log_out(envelope):
            errors.append(envelope.data["error"])
            await transport.disconnect()

        transport.subscribe("connectionError", log_out)
        transport.subscribe("*", lambda envelope: everything.append(envelope.type))
        await transport.connect("1", "token", "acme")
        connection = connector.connection

        with anyio.fail_after(5):
            await connection.fail("auth expired")
            await settle()

        assert errors == ["auth expired"]
        assert everything == ["connected"]
        assert connection.closed is True
        assert transport.identity is None
        assert transport.snapshot().connected is False


@pytest.mark.anyio
async def test_handler_can_switch_identity():
    connector = FakePushConnector()
    seen = []

    async with TransportSession(connector) as transport:

        async def switch(envelope):
            seen.append(envelope.data["task_id"])
            await transport.connect("2", "token", "acme")

        transport.subscribe("TASK_ASSIGNED", switch)
        await transport.connect("1", "token", "acme")
        first = connector.connection

        with anyio.fail_after(5):
            await first.push(_task_frame(1))
            await settle()
            await first.push(_task_frame(2))
            await settle()

        assert seen == [1]
        assert first.closed is True
        assert transport.snapshot().user_id == "2"
        assert connector.connection.sent == [{"type": "join", "data": "2"}]


@pytest.mark.anyio
async def test_no_handler_runs_after_disconnect_returns():
    connector = FakePushConnector()
    started = anyio.Event()
    calls, later = [], []

    async def slow(envelope):
        calls.append("start")
        started.set()
        await anyio.sleep(10)
        calls.append("end")

    async with TransportSession(connector) as transport:
        transport.subscribe("TASK_ASSIGNED", slow)
        transport.subscribe("TASK_ASSIGNED", later.append)
        await transport.connect("1", "token", "acme")
        connection = connector.connection
        await connection.push(_task_frame(1))
        await started.wait()

        await transport.disconnect()
        await connection.push(_task_frame(2))
        await settle()

        assert calls == ["start"]
        assert later == []
        assert connection.closed is True
        assert transport.snapshot().connected is False


@pytest.mark.anyio
async def test_refused_connection_is_reported_as_an_event(caplog):
    connector = FakePushConnector(refuse=True)
    errors = []

    async with TransportSession(connector) as transport:
        transport.subscribe("connectionError", errors.append)
        with caplog.at_level(logging.WARNING):
            handle = await transport.connect("1", "bad-token", "acme")

        assert handle.connected is False
        assert errors[0].data["error"] == "authentication rejected"
        assert transport.snapshot().last_error == "authentication rejected"
        assert "failed" in caplog.text


@pytest.mark.anyio
async def test_dropped_connection_publishes_connection_error():
    connector = FakePushConnector()
    errors = []

    async with TransportSession(connector) as transport:
        transport.subscribe("connectionError", errors.append)
        await transport.connect("1", "token", "acme")

        await connector.connection.fail("network unreachable")
        await settle()

        assert [envelope.data["error"] for envelope in errors] == ["network unreachable"]
        snapshot = transport.snapshot()
        assert snapshot.connected is False
        assert snapshot.last_error == "network unreachable"
        assert connector.connection.closed is True


@pytest.mark.anyio
async def test_server_close_is_reported_and_reconnect_is_possible():
    connector = FakePushConnector()
    errors = []

    async with TransportSession(connector) as transport:
        transport.subscribe("connectionError", errors.append)
        await transport.connect("1", "token", "acme")
        await connector.connection.close_from_server()
        await settle()

        handle = await transport.connect("1", "token", "acme")

        assert len(errors) == 1
        assert handle.connected is True
        assert len(connector.opened) == 2


@pytest.mark.anyio
async def test_online_users_and_malformed_frames(caplog):
    connector = FakePushConnector()
    typed = []

    async with TransportSession(connector) as transport:
        transport.subscribe("TASK_ASSIGNED", typed.append)
        await transport.connect("1", "token", "acme")
        with caplog.at_level(logging.WARNING):
            await connector.connection.push({"data": {"no": "type"}})
            await connector.connection.push({"type": "update_online_users", "data": [3, 4]})
            await connector.connection.push(_task_frame(5))
            await settle()

        assert transport.snapshot().online_users == (3, 4)
        assert len(typed) == 1
        assert "Dropping malformed push frame" in caplog.text


@pytest.mark.anyio
async def test_failing_handler_does_not_stop_delivery(caplog):
    connector = FakePushConnector()
    seen = []

    def broken(_envelope):
        raise RuntimeError("handler bug")

    async with TransportSession(connector) as transport:
        transport.subscribe("TASK_ASSIGNED", broken)
        unsubscribe = transport.subscribe("TASK_ASSIGNED", seen.append)
        await transport.connect("1", "token", "acme")
        with caplog.at_level(logging.ERROR):
            await connector.connection.push(_task_frame(1))
            await settle()
        unsubscribe()
        await connector.connection.push(_task_frame(2))
        await settle()

    assert len(seen) == 1
    assert "Handler for TASK_ASSIGNED events failed" in caplog.text


@pytest.mark.anyio
async def test_connect_requires_an_entered_session():
    transport = TransportSession(FakePushConnector())

    with pytest.raises(RuntimeError):
        await transport.connect("1", "token", "acme")


def test_parse_frame():
    envelope = parse_frame({"type": "NEW_MESSAGE", "data": {"sender_id": 1}, "message": "hi"})

    assert envelope.type == "NEW_MESSAGE"
    assert envelope.message == "hi"
    assert parse_frame({"type": "DASHBOARD_UPDATE"}).data == {}
    assert parse_frame({"type": ""}) is None
    assert parse_frame("garbage") is None
    assert parse_frame(None) is None
