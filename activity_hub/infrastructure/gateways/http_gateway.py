"""HTTP adapters for the per-category "list recent items" queries."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol, Sequence, runtime_checkable

import httpx

from activity_hub.config import MAX_FETCH_LIMIT, MIN_FETCH_LIMIT, Settings
from activity_hub.domain.entities import Category, SessionIdentity

logger = logging.getLogger(__name__)

Record = dict[str, Any]
UnreadCounter = Callable[[Sequence[Record]], int]


class GatewayError(RuntimeError):
    """Raised when a domain service cannot answer a query."""

    def __init__(self, category: Category, message: str) -> None:
        super().__init__(f"{category.value}: {message}")
        self.category = category


@runtime_checkable
class DomainGateway(Protocol):
    """Contract shared by every domain service adapter."""

    category: Category

    async def fetch_recent(self, limit: int) -> list[Record]:
        ...

    async def count_unread(self) -> int | None:
        ...


def clamp_limit(limit: int) -> int:
    """Keep ``limit`` inside the range accepted by the list endpoints."""

    return max(MIN_FETCH_LIMIT, min(MAX_FETCH_LIMIT, int(limit)))


def extract_records(payload: Any) -> list[Record]:
    """Return the record list from a ``{data: [...]}`` or bare list payload."""

    if isinstance(payload, dict):
        payload = payload.get("data", [])
    if payload is None:
        return []
    if not isinstance(payload, list):
        raise TypeError(f"expected a list of records, got {type(payload).__name__}")
    return [record for record in payload if isinstance(record, dict)]


def count_by_status(statuses: Iterable[str]) -> UnreadCounter:
    """Build a counter of records whose ``status`` is in ``statuses``."""

    accepted = frozenset(status.lower() for status in statuses)

    def count(records: Sequence[Record]) -> int:
        return sum(
            1 for record in records if str(record.get("status") or "").lower() in accepted
        )

    return count


def sum_unread_field(field_name: str = "unread_count") -> UnreadCounter:
    """Build a counter adding up a numeric ``field_name`` of every record."""

    def count(records: Sequence[Record]) -> int:
        total = 0
        for record in records:
            try:
                total += max(0, int(record.get(field_name) or 0))
            except (TypeError, ValueError):
                continue
        return total

    return count


@dataclass
class HttpDomainGateway:
    """Query a domain service list endpoint through a shared ``httpx`` client."""

    category: Category
    client: httpx.AsyncClient
    recent_path: str
    unread_path: str | None = None
    unread_counter: UnreadCounter | None = None
    unread_params: dict[str, Any] = field(default_factory=dict)

    async def fetch_recent(self, limit: int) -> list[Record]:
        """Return the most recent records of the category."""

        payload = await self._get(self.recent_path, {"limit": clamp_limit(limit)})
        return self._records(payload)

    async def count_unread(self) -> int | None:
        """Return the server-side unread/pending count, if the service has one."""

        if self.unread_path is None or self.unread_counter is None:
            return None
        payload = await self._get(self.unread_path, dict(self.unread_params))
        return self.unread_counter(self._records(payload))

    def _records(self, payload: Any) -> list[Record]:
        try:
            return extract_records(payload)
        except TypeError as exc:
            raise GatewayError(self.category, str(exc)) from exc

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        try:
            response = await self.client.get(path, params=params)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise GatewayError(
                self.category,
                f"{path} responded with status {exc.response.status_code}",
            ) from exc
        except httpx.HTTPError as exc:
            raise GatewayError(self.category, f"{path} request failed: {exc}") from exc
        except ValueError as exc:
            raise GatewayError(self.category, f"{path} returned invalid JSON") from exc


def build_http_client(settings: Settings, identity: SessionIdentity) -> httpx.AsyncClient:
    """Return an ``httpx`` client authenticated for ``identity``."""

    headers = {"x-tenant-id": identity.tenant_id}
    if identity.auth_token:
        headers["Authorization"] = f"Bearer {identity.auth_token}"
    return httpx.AsyncClient(
        base_url=settings.api_base_url,
        headers=headers,
        timeout=settings.http_timeout_seconds,
    )


def build_default_gateways(client: httpx.AsyncClient) -> list[HttpDomainGateway]:
    """Return the gateways for the leave, task, attendance and chat services."""

    return [
        HttpDomainGateway(
            category=Category.LEAVE,
            client=client,
            recent_path="/leaves",
            unread_path="/leaves",
            unread_counter=count_by_status({"pending"}),
            unread_params={"status": "pending"},
        ),
        HttpDomainGateway(
            category=Category.TASK,
            client=client,
            recent_path="/tasks",
            unread_path="/tasks",
            unread_counter=count_by_status({"todo", "in_progress"}),
        ),
        HttpDomainGateway(
            category=Category.ATTENDANCE,
            client=client,
            recent_path="/attendance",
            unread_path="/attendance/regularize",
            unread_counter=count_by_status({"pending"}),
        ),
        HttpDomainGateway(
            category=Category.CHAT,
            client=client,
            recent_path="/chat/conversations",
            unread_path="/chat/conversations",
            unread_counter=sum_unread_field(),
        ),
    ]


__all__ = [
    "DomainGateway",
    "GatewayError",
    "HttpDomainGateway",
    "build_default_gateways",
    "build_http_client",
    "clamp_limit",
    "count_by_status",
    "extract_records",
    "sum_unread_field",
]
