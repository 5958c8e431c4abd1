"""aiohttp websocket implementation of the push connector contract."""

from __future__ import annotations

import json
import logging
from typing import Any

import aiohttp

from activity_hub.domain.entities import SessionIdentity

from .transport import ConnectionClosed, TransportError

logger = logging.getLogger(__name__)

_CLOSING_TYPES = frozenset(
    {aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSING, aiohttp.WSMsgType.CLOSED}
)


class AiohttpPushConnection:
    """Wrap an :class:`aiohttp.ClientWebSocketResponse` as a push connection."""

    def __init__(
        self,
        websocket: aiohttp.ClientWebSocketResponse,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._websocket = websocket
        self._session = session

    async def receive(self) -> Any:
        message = await self._websocket.receive()
        if message.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
            try:
                return json.loads(message.data)
            except (TypeError, ValueError):
                logger.warning("Ignoring non-JSON push frame")
                return None
        if message.type in _CLOSING_TYPES:
            raise ConnectionClosed(f"closed with code {self._websocket.close_code}")
        if message.type == aiohttp.WSMsgType.ERROR:
            raise TransportError(str(self._websocket.exception() or "websocket error"))
        return None

    async def send(self, message: dict[str, Any]) -> None:
        try:
            await self._websocket.send_json(message)
        except (ConnectionResetError, aiohttp.ClientError) as exc:
            raise TransportError(str(exc)) from exc

    async def close(self) -> None:
        try:
            await self._websocket.close()
        finally:
            if self._session is not None:
                await self._session.close()


class AiohttpPushConnector:
    """Open push connections against ``url`` authenticated with the session token.

    The tenant travels in the ``tenantId`` query parameter and the token as a
    bearer ``Authorization`` header. When no ``session`` is given each
    connection owns (and closes) a private :class:`aiohttp.ClientSession`.
    """

    def __init__(
        self,
        url: str,
        *,
        session: aiohttp.ClientSession | None = None,
        heartbeat: float | None = 30.0,
    ) -> None:
        self._url = url
        self._session = session
        self._heartbeat = heartbeat

    async def open(self, identity: SessionIdentity) -> AiohttpPushConnection:
        session = self._session or aiohttp.ClientSession()
        owns_session = self._session is None
        headers = {}
        if identity.auth_token:
            headers["Authorization"] = f"Bearer {identity.auth_token}"
        try:
            websocket = await session.ws_connect(
                self._url,
                params={"tenantId": identity.tenant_id},
                headers=headers,
                heartbeat=self._heartbeat,
            )
        except (aiohttp.ClientError, OSError) as exc:
            if owns_session:
                await session.close()
            raise TransportError(f"Unable to reach push endpoint {self._url}: {exc}") from exc
        return AiohttpPushConnection(websocket, session if owns_session else None)


__all__ = ["AiohttpPushConnection", "AiohttpPushConnector"]
