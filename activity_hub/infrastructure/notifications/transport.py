"""Lifecycle of the authenticated push connection and typed event delivery."""

from __future__ import annotations

import inspect
import logging
from collections import defaultdict
from contextlib import AsyncExitStack
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, DefaultDict, Protocol, Union

import anyio
from anyio.abc import TaskGroup
from anyio.streams.memory import MemoryObjectReceiveStream, MemoryObjectSendStream
from pydantic import BaseModel, Field, ValidationError, field_validator

from activity_hub.domain.entities import (
    EVENT_CONNECTED,
    EVENT_CONNECTION_ERROR,
    EVENT_ONLINE_USERS,
    PushEnvelope,
    SessionIdentity,
)

logger = logging.getLogger(__name__)

ALL_EVENTS = "*"
JOIN_FRAME_TYPE = "join"

EventHandler = Callable[[PushEnvelope], Union[None, Awaitable[None]]]


class TransportError(ConnectionError):
    """Raised by connectors when the push channel fails."""


class ConnectionClosed(TransportError):
    """Raised by :meth:`PushConnection.receive` once the peer closed the channel."""


class PushConnection(Protocol):
    async def receive(self) -> Any:
        ...

    async def send(self, message: dict[str, Any]) -> None:
        ...

    async def close(self) -> None:
        ...


class PushConnector(Protocol):
    async def open(self, identity: SessionIdentity) -> PushConnection:
        ...


class PushFrame(BaseModel):
    """Wire representation of an inbound push envelope."""

    type: str = Field(..., min_length=1)
    data: dict[str, Any] = Field(default_factory=dict)
    message: str | None = None

    @field_validator("data", mode="before")
    @classmethod
    def _wrap_sequences(cls, value: Any) -> Any:
        if value is None:
            return {}
        if isinstance(value, (list, tuple)):
            return {"items": list(value)}
        return value

    def to_envelope(self) -> PushEnvelope:
        return PushEnvelope(type=self.type, data=self.data, message=self.message)


def parse_frame(frame: Any) -> PushEnvelope | None:
    """Validate a raw frame, returning ``None`` for anything malformed."""

    if frame is None:
        return None
    try:
        return PushFrame.model_validate(frame).to_envelope()
    except ValidationError as exc:
        logger.warning("Dropping malformed push frame: %s", exc.errors(include_url=False))
        return None


@dataclass(frozen=True)
class SessionHandle:
    """Result of :meth:`TransportSession.connect`."""

    identity: SessionIdentity
    connected: bool


@dataclass(frozen=True)
class ConnectionSnapshot:
    connected: bool
    user_id: str | None = None
    tenant_id: str | None = None
    online_users: tuple[Any, ...] = ()
    last_error: str | None = None


class _ActiveConnection:
    def __init__(self, identity: SessionIdentity, connection: PushConnection) -> None:
        self.identity = identity
        self.connection = connection
        self.scope = anyio.CancelScope()
        self.finished = anyio.Event()
        # ``active`` gates delivery; ``alive`` drops once the channel has failed.
        self.active = True
        self.alive = True
        self.dispatcher: int | None = None


class TransportSession:
    """Own one live push channel per authenticated user.

    Inbound frames are read by a receive loop and published onto an in-memory
    channel; a dispatcher task drains the channel and invokes the subscribers
    registered for each event type, in receipt order. The session must be used
    as an async context manager so these tasks have a task group to run in.
    """

    def __init__(self, connector: PushConnector, *, queue_size: int = 256) -> None:
        self._connector = connector
        self._queue_size = queue_size
        self._handlers: DefaultDict[str, list[EventHandler]] = defaultdict(list)
        self._exit_stack: AsyncExitStack | None = None
        self._task_group: TaskGroup | None = None
        self._current: _ActiveConnection | None = None
        self._connected = False
        self._online_users: tuple[Any, ...] = ()
        self._last_error: str | None = None

    async def __aenter__(self) -> "TransportSession":
        self._exit_stack = AsyncExitStack()
        self._task_group = await self._exit_stack.enter_async_context(
            anyio.create_task_group()
        )
        return self

    async def __aexit__(self, *exc_info: Any) -> bool | None:
        try:
            await self.disconnect()
        finally:
            exit_stack, self._exit_stack, self._task_group = self._exit_stack, None, None
            if exit_stack is not None:
                return await exit_stack.__aexit__(*exc_info)
        return None

    @property
    def identity(self) -> SessionIdentity | None:
        return self._current.identity if self._current else None

    def snapshot(self) -> ConnectionSnapshot:
        """Return the current connection state."""

        identity = self.identity
        return ConnectionSnapshot(
            connected=self._connected,
            user_id=identity.user_id if identity else None,
            tenant_id=identity.tenant_id if identity else None,
            online_users=self._online_users,
            last_error=self._last_error,
        )

    async def connect(
        self, user_id: str | int, auth_token: str, tenant_id: str
    ) -> SessionHandle:
        """Open the push channel for an identity and join its routing group.

        Calling again for the same identity while connected is a no-op; a
        different identity tears the previous connection down first. Transport
        failures are published as ``connectionError`` events, never raised.
        """

        if self._task_group is None:
            raise RuntimeError("TransportSession must be entered with 'async with' first")

        identity = SessionIdentity(
            user_id=str(user_id), tenant_id=str(tenant_id), auth_token=auth_token
        )
        current = self._current
        if (
            current is not None
            and current.active
            and current.alive
            and current.identity == identity
        ):
            return SessionHandle(identity=identity, connected=self._connected)
        if current is not None:
            await self.disconnect()

        connection = None
        try:
            connection = await self._connector.open(identity)
            await connection.send({"type": JOIN_FRAME_TYPE, "data": identity.user_id})
        except (TransportError, OSError) as exc:
            if connection is not None:
                with anyio.CancelScope(shield=True):
                    await connection.close()
            logger.warning("Push connection for user %s failed: %s", identity.user_id, exc)
            self._last_error = str(exc)
            await self._dispatch_direct(
                PushEnvelope(type=EVENT_CONNECTION_ERROR, data={"error": str(exc)})
            )
            return SessionHandle(identity=identity, connected=False)

        active = _ActiveConnection(identity, connection)
        send_stream, receive_stream = anyio.create_memory_object_stream(self._queue_size)
        send_stream.send_nowait(
            PushEnvelope(
                type=EVENT_CONNECTED,
                data={"user_id": identity.user_id, "tenant_id": identity.tenant_id},
            )
        )
        self._current = active
        self._connected = True
        self._last_error = None
        self._task_group.start_soon(self._run, active, send_stream, receive_stream)
        logger.info("Push connection opened for user %s (tenant %s)", identity.user_id, identity.tenant_id)
        return SessionHandle(identity=identity, connected=True)

    def subscribe(self, event_type: str, handler: EventHandler) -> Callable[[], None]:
        """Register ``handler`` for ``event_type`` (``"*"`` for every event)."""

        self._handlers[event_type].append(handler)

        def unsubscribe() -> None:
            handlers = self._handlers.get(event_type)
            if handlers and handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    async def disconnect(self) -> None:
        """Release the channel; no handler runs once this returns."""

        current, self._current = self._current, None
        self._connected = False
        self._online_users = ()
        if current is None:
            return
        current.active = False
        if anyio.get_current_task().id == current.dispatcher:
            # Called from a handler; the dispatch loop cancels once it returns.
            logger.info("Push connection released for user %s", current.identity.user_id)
            return
        current.scope.cancel()
        with anyio.CancelScope(shield=True):
            await current.finished.wait()
        logger.info("Push connection closed for user %s", current.identity.user_id)

    async def _run(
        self,
        active: _ActiveConnection,
        send_stream: MemoryObjectSendStream[PushEnvelope],
        receive_stream: MemoryObjectReceiveStream[PushEnvelope],
    ) -> None:
        try:
            with active.scope:
                async with anyio.create_task_group() as task_group:
                    task_group.start_soon(self._receive_loop, active, send_stream)
                    task_group.start_soon(self._dispatch_loop, active, receive_stream)
        finally:
            with anyio.CancelScope(shield=True):
                try:
                    await active.connection.close()
                except (TransportError, OSError) as exc:
                    logger.debug("Error while closing push connection: %s", exc)
            active.active = False
            active.alive = False
            if self._current is active:
                self._connected = False
            active.finished.set()

    async def _receive_loop(
        self, active: _ActiveConnection, send_stream: MemoryObjectSendStream[PushEnvelope]
    ) -> None:
        async with send_stream:
            while True:
                try:
                    frame = await active.connection.receive()
                except ConnectionClosed as exc:
                    reason = str(exc) or "connection closed"
                    logger.warning("Push connection closed by peer: %s", reason)
                    await self._publish_error(active, send_stream, reason)
                    return
                except (TransportError, OSError) as exc:
                    logger.warning("Push connection error: %s", exc)
                    await self._publish_error(active, send_stream, str(exc))
                    return

                envelope = parse_frame(frame)
                if envelope is not None:
                    await send_stream.send(envelope)

    async def _publish_error(
        self,
        active: _ActiveConnection,
        send_stream: MemoryObjectSendStream[PushEnvelope],
        reason: str,
    ) -> None:
        active.alive = False
        if self._current is active:
            self._connected = False
            self._last_error = reason
        await send_stream.send(
            PushEnvelope(type=EVENT_CONNECTION_ERROR, data={"error": reason})
        )

    async def _dispatch_loop(
        self,
        active: _ActiveConnection,
        receive_stream: MemoryObjectReceiveStream[PushEnvelope],
    ) -> None:
        active.dispatcher = anyio.get_current_task().id
        async with receive_stream:
            async for envelope in receive_stream:
                if envelope.type == EVENT_ONLINE_USERS:
                    self._online_users = tuple(
                        envelope.data.get("items") or envelope.data.get("users") or ()
                    )
                await self._deliver(envelope, lambda: active.active)
                if not active.active:
                    active.scope.cancel()
                    return

    async def _dispatch_direct(self, envelope: PushEnvelope) -> None:
        await self._deliver(envelope, lambda: True)

    async def _deliver(self, envelope: PushEnvelope, is_active: Callable[[], bool]) -> None:
        handlers = list(self._handlers.get(envelope.type, ())) + list(
            self._handlers.get(ALL_EVENTS, ())
        )
        for handler in handlers:
            if not is_active():
                return
            try:
                result = handler(envelope)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Handler for %s events failed", envelope.type)


__all__ = [
    "ALL_EVENTS",
    "ConnectionClosed",
    "ConnectionSnapshot",
    "EventHandler",
    "PushConnection",
    "PushConnector",
    "PushFrame",
    "SessionHandle",
    "TransportError",
    "TransportSession",
    "parse_frame",
]
