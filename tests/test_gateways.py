"""Tests for the HTTP gateways and their concurrent fan-out."""

from __future__ import annotations

import logging

import httpx
import pytest

from activity_hub.config import Settings
from activity_hub.domain.entities import Category, SessionIdentity
from activity_hub.infrastructure.gateways import (
    GatewayError,
    HttpDomainGateway,
    build_default_gateways,
    build_http_client,
    clamp_limit,
    count_all,
    count_by_status,
    extract_records,
    fetch_all,
    sum_unread_field,
)

LEAVES = [
    {"leave_id": 1, "status": "pending", "created_at": "2024-05-01T09:00:00Z"},
    {"leave_id": 2, "status": "approved", "created_at": "2024-05-01T10:00:00Z"},
]
TASKS = [
    {"task_id": 1, "status": "todo"},
    {"task_id": 2, "status": "in_progress"},
    {"task_id": 3, "status": "completed"},
]
CONVERSATIONS = [
    {"other_user_id": 4, "unread_count": 2},
    {"other_user_id": 5, "unread_count": "3"},
    {"other_user_id": 6, "unread_count": None},
]


def _handler(requests):
    def handle(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        path = request.url.path
        if path == "/api/leaves":
            if request.url.params.get("status") == "pending":
                return httpx.Response(200, json={"data": LEAVES[:1]})
            return httpx.Response(200, json={"data": LEAVES})
        if path == "/api/tasks":
            return httpx.Response(200, json=TASKS)
        if path == "/api/attendance":
            return httpx.Response(500, json={"error": "down"})
        if path == "/api/attendance/regularize":
            return httpx.Response(200, content=b"not json")
        if path == "/api/chat/conversations":
            return httpx.Response(200, json={"data": CONVERSATIONS})
        return httpx.Response(404)

    return handle


@pytest.fixture
def requests():
    return []


@pytest.fixture
def client(requests):
    return httpx.AsyncClient(
        base_url="http://hr.test/api",
        transport=httpx.MockTransport(_handler(requests)),
    )


@pytest.mark.anyio
async def test_fetch_all_collects_successes_and_skips_failures(client, caplog):
    gateways = build_default_gateways(client)

    with caplog.at_level(logging.WARNING):
        results = await fetch_all(gateways, limit=100)

    assert set(results) == {Category.LEAVE, Category.TASK, Category.CHAT}
    assert len(results[Category.LEAVE]) == 2
    assert len(results[Category.TASK]) == 3
    assert "ATTENDANCE" in caplog.text
    await client.aclose()


@pytest.mark.anyio
async def test_fetch_recent_clamps_the_limit(client, requests):
    gateway = HttpDomainGateway(category=Category.TASK, client=client, recent_path="/tasks")

    await gateway.fetch_recent(500)
    await gateway.fetch_recent(1)

    assert [request.url.params["limit"] for request in requests] == ["50", "5"]
    await client.aclose()


@pytest.mark.anyio
async def test_count_all_uses_each_service_pending_query(client):
    counts = await count_all(build_default_gateways(client))

    assert counts == {Category.LEAVE: 1, Category.TASK: 2, Category.CHAT: 5}
    await client.aclose()


@pytest.mark.anyio
async def test_gateway_errors_carry_their_category(client):
    gateway = HttpDomainGateway(category=Category.ATTENDANCE, client=client, recent_path="/attendance")

    with pytest.raises(GatewayError) as excinfo:
        await gateway.fetch_recent(10)

    assert excinfo.value.category is Category.ATTENDANCE
    assert "500" in str(excinfo.value)
    await client.aclose()


@pytest.mark.anyio
async def test_gateway_without_unread_query_reports_nothing(client):
    gateway = HttpDomainGateway(category=Category.TASK_UPDATE, client=client, recent_path="/tasks")

    assert await gateway.count_unread() is None
    await client.aclose()


@pytest.mark.anyio
async def test_network_errors_become_gateway_errors():
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(
        base_url="http://hr.test/api", transport=httpx.MockTransport(refuse)
    ) as client:
        gateway = HttpDomainGateway(category=Category.LEAVE, client=client, recent_path="/leaves")
        with pytest.raises(GatewayError):
            await gateway.fetch_recent(10)


def test_build_http_client_sends_tenant_and_bearer_headers():
    settings = Settings(api_base_url="http://hr.test/api", http_timeout_seconds=3)
    identity = SessionIdentity(user_id="1", tenant_id="acme", auth_token="secret")

    client = build_http_client(settings, identity)

    assert client.headers["x-tenant-id"] == "acme"
    assert client.headers["Authorization"] == "Bearer secret"
    assert str(client.base_url) == "http://hr.test/api/"
    assert client.timeout.read == 3


def test_record_helpers():
    assert extract_records({"data": [{"a": 1}, "junk"]}) == [{"a": 1}]
    assert extract_records([{"a": 1}]) == [{"a": 1}]
    assert extract_records({"data": None}) == []
    with pytest.raises(TypeError):
        extract_records({"data": "nope"})
    assert clamp_limit(0) == 5
    assert clamp_limit(20) == 20
    assert count_by_status({"Pending"})([{"status": "pending"}, {"status": "approved"}]) == 1
    assert sum_unread_field()([{"unread_count": 2}, {"unread_count": "x"}, {}]) == 2
