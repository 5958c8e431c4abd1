"""Per-user composition of transport, gateways, feed and counters."""

from __future__ import annotations

import logging
from contextlib import AsyncExitStack
from datetime import datetime
from typing import Any, Iterable

import anyio
import httpx
from anyio.abc import TaskGroup

from activity_hub.config import Settings, get_settings
from activity_hub.domain.entities import (
    EVENT_CONNECTED,
    EVENT_CONNECTION_ERROR,
    EVENT_DASHBOARD_UPDATE,
    ActivityItem,
    Category,
    PushEnvelope,
    SessionIdentity,
)
from activity_hub.infrastructure.gateways import (
    DomainGateway,
    build_default_gateways,
    build_http_client,
)
from activity_hub.infrastructure.notifications import (
    ALL_EVENTS,
    ConnectionSnapshot,
    SessionHandle,
    TransportSession,
)
from activity_hub.infrastructure.repositories import ReadStateStore
from activity_hub.utils import now_in_app_timezone

from .activity import ActivityAggregator
from .counters import NotificationCounterStore
from .feed_view import FeedQuery, view
from .normalization import normalize_event

logger = logging.getLogger(__name__)

_COUNTER_REFRESH_TRIGGERS = frozenset({EVENT_CONNECTED, EVENT_DASHBOARD_UPDATE})


class ActivitySession:
    """Explicitly constructed engine instance for one authenticated user at a time.

    ``gateways`` may be given for embedding and tests; when omitted, the
    session builds the HTTP gateways from ``settings`` at every login and
    closes their client at logout. Use it as an async context manager: the
    background hydrate and counter refresh tasks live in its task group.
    """

    def __init__(
        self,
        transport: TransportSession,
        gateways: Iterable[DomainGateway] | None = None,
        read_state_repository: ReadStateStore | None = None,
        settings: Settings | None = None,
    ) -> None:
        if read_state_repository is None:
            raise ValueError("A read state repository is required")
        self._settings = settings or get_settings()
        self._transport = transport
        self._static_gateways = list(gateways) if gateways is not None else None
        self._gateways: list[DomainGateway] = []
        self._http_client: httpx.AsyncClient | None = None
        self.aggregator = ActivityAggregator(self._settings.feed_max_items)
        self.counter_store = NotificationCounterStore(read_state_repository)
        self._identity: SessionIdentity | None = None
        self._exit_stack: AsyncExitStack | None = None
        self._task_group: TaskGroup | None = None
        self._login_tasks: TaskGroup | None = None
        self._login_scope: anyio.CancelScope | None = None
        self._login_finished: anyio.Event | None = None
        self._transport.subscribe(ALL_EVENTS, self._on_event)

    async def __aenter__(self) -> "ActivitySession":
        self._exit_stack = AsyncExitStack()
        await self._exit_stack.enter_async_context(self._transport)
        self._task_group = await self._exit_stack.enter_async_context(
            anyio.create_task_group()
        )
        return self

    async def __aexit__(self, *exc_info: Any) -> bool | None:
        try:
            await self.logout()
        finally:
            exit_stack, self._exit_stack, self._task_group = self._exit_stack, None, None
            if exit_stack is not None:
                return await exit_stack.__aexit__(*exc_info)
        return None

    @property
    def identity(self) -> SessionIdentity | None:
        return self._identity

    @property
    def is_authenticated(self) -> bool:
        return self._identity is not None

    def connection(self) -> ConnectionSnapshot:
        return self._transport.snapshot()

    async def login(
        self, user_id: str | int, auth_token: str, tenant_id: str
    ) -> SessionHandle:
        """Start a session: reset state, connect and schedule the initial loads."""

        if self._task_group is None:
            raise RuntimeError("ActivitySession must be entered with 'async with' first")

        identity = SessionIdentity(
            user_id=str(user_id), tenant_id=str(tenant_id), auth_token=auth_token
        )
        if self._identity is not None:
            if self._identity == identity and self._transport.snapshot().connected:
                return SessionHandle(identity=identity, connected=True)
            await self.logout()

        self._identity = identity
        self.aggregator.clear()
        self.counter_store.load(identity.tenant_id, identity.user_id)
        self._gateways = self._build_gateways(identity)
        self.counter_store.set_gateways(self._gateways)

        await self._task_group.start(self._run_login_tasks)
        self._start_background(self.refresh_feed)

        handle = await self._transport.connect(
            identity.user_id, identity.auth_token, identity.tenant_id
        )
        if not handle.connected:
            # No "connected" event will arrive to trigger the first reconciliation.
            self._start_background(self.refresh_counters)
        logger.info("Activity session started for user %s (tenant %s)", identity.user_id, identity.tenant_id)
        return handle

    async def logout(self) -> None:
        """Stop event delivery and background work, then forget the user."""

        await self._transport.disconnect()

        scope, finished = self._login_scope, self._login_finished
        self._login_scope = self._login_finished = self._login_tasks = None
        if scope is not None:
            scope.cancel()
            if finished is not None:
                with anyio.CancelScope(shield=True):
                    await finished.wait()

        if self._http_client is not None:
            client, self._http_client = self._http_client, None
            with anyio.CancelScope(shield=True):
                await client.aclose()

        identity, self._identity = self._identity, None
        self._gateways = []
        self.counter_store.set_gateways(())
        self.aggregator.clear()
        self.counter_store.reset()
        if identity is not None:
            logger.info("Activity session ended for user %s", identity.user_id)

    def feed(self, query: FeedQuery | None = None, *, now: datetime | None = None) -> list[ActivityItem]:
        return view(self.aggregator.snapshot(), query, now=now)

    def counters(self) -> dict[str, int]:
        return self.counter_store.counters()

    def mark_as_read(self, category: Category | str) -> datetime:
        return self.counter_store.mark_as_read(category)

    async def mark_as_read_async(self, category: Category | str) -> datetime:
        return await self.counter_store.mark_as_read_async(category)

    def set_viewing(self, category: Category | str, viewing: bool) -> None:
        self.counter_store.set_viewing(category, viewing)

    async def refresh_feed(self) -> int:
        """Fetch every gateway again and merge the results into the feed."""

        return await self.aggregator.refresh(self._gateways, self._settings.fetch_limit)

    async def refresh_counters(self) -> dict[str, int]:
        return await self.counter_store.refresh_from_server()

    def _build_gateways(self, identity: SessionIdentity) -> list[DomainGateway]:
        if self._static_gateways is not None:
            return list(self._static_gateways)
        self._http_client = build_http_client(self._settings, identity)
        return list(build_default_gateways(self._http_client))

    async def _run_login_tasks(self, *, task_status=anyio.TASK_STATUS_IGNORED) -> None:
        finished = anyio.Event()
        self._login_finished = finished
        try:
            with anyio.CancelScope() as scope:
                async with anyio.create_task_group() as task_group:
                    self._login_scope = scope
                    self._login_tasks = task_group
                    task_group.start_soon(self._refresh_counters_periodically)
                    task_status.started()
        finally:
            finished.set()

    async def _refresh_counters_periodically(self) -> None:
        interval = self._settings.counter_refresh_interval_seconds
        while True:
            await anyio.sleep(interval)
            await self.refresh_counters()

    def _start_background(self, func: Any) -> None:
        if self._login_tasks is None:
            logger.debug("No active login; skipping %s", getattr(func, "__name__", func))
            return
        self._login_tasks.start_soon(self._guarded, func)

    async def _guarded(self, func: Any) -> None:
        try:
            await func()
        except Exception:
            logger.exception("Background task %s failed", getattr(func, "__name__", func))

    def _on_event(self, envelope: PushEnvelope) -> None:
        if envelope.type in _COUNTER_REFRESH_TRIGGERS:
            self._start_background(self.refresh_counters)
            return
        if envelope.type == EVENT_CONNECTION_ERROR:
            logger.debug("Push transport reported: %s", envelope.data.get("error"))
            return

        item = normalize_event(envelope, received_at=now_in_app_timezone())
        if item is None:
            return
        self.aggregator.apply_item(item)
        self.counter_store.apply_live_event(item)


__all__ = ["ActivitySession"]
