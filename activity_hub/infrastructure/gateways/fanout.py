"""Concurrent, failure-tolerant queries across every configured gateway."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Iterable, TypeVar

import anyio

from activity_hub.domain.entities import Category

from .http_gateway import DomainGateway, GatewayError, Record

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _gather(
    gateways: Iterable[DomainGateway],
    call: Callable[[DomainGateway], Awaitable[T]],
    operation: str,
) -> dict[Category, T]:
    results: dict[Category, T] = {}

    async def run(gateway: DomainGateway) -> None:
        try:
            results[gateway.category] = await call(gateway)
        except GatewayError as exc:
            logger.warning("Gateway %s failed during %s: %s", gateway.category.value, operation, exc)
        except Exception:
            logger.exception(
                "Unexpected error in gateway %s during %s", gateway.category.value, operation
            )

    async with anyio.create_task_group() as task_group:
        for gateway in gateways:
            task_group.start_soon(run, gateway)
    return results


async def fetch_all(
    gateways: Iterable[DomainGateway], limit: int
) -> dict[Category, list[Record]]:
    """Fetch recent records from every gateway concurrently.

    Only successful gateways appear in the result; a failed gateway is logged
    and contributes nothing.
    """

    return await _gather(gateways, lambda gateway: gateway.fetch_recent(limit), "fetch")


async def count_all(gateways: Iterable[DomainGateway]) -> dict[Category, int]:
    """Return the server-side unread counts of every gateway that reports one."""

    counts = await _gather(gateways, lambda gateway: gateway.count_unread(), "count")
    return {category: count for category, count in counts.items() if count is not None}


__all__ = ["count_all", "fetch_all"]
