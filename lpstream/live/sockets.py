"""
Socket factories for channel connections.

A channel never constructs its transport directly; it is handed a factory
that opens a WebSocket for a URL. The default factory uses aiohttp. Tests
substitute an in-memory implementation of the same shape.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Optional, Protocol

import aiohttp

logger = logging.getLogger(__name__)


class ChannelSocket(Protocol):
    """The subset of ``aiohttp.ClientWebSocketResponse`` a channel relies on."""

    @property
    def closed(self) -> bool: ...

    def __aiter__(self) -> AsyncIterator[aiohttp.WSMessage]: ...

    async def send_str(self, data: str) -> None: ...

    async def close(self) -> Any: ...


class SocketFactory(Protocol):
    async def __call__(self, url: str) -> ChannelSocket: ...


class AiohttpSocketFactory:
    """
    Opens WebSockets through a single lazily created ``aiohttp.ClientSession``.

    The session is shared by every channel built from this factory and is
    released by ``close()``.
    """

    def __init__(
        self,
        heartbeat_s: Optional[float] = 30.0,
        connect_timeout_s: float = 30.0,
    ) -> None:
        self._heartbeat_s = heartbeat_s
        self._connect_timeout_s = connect_timeout_s
        self._session: Optional[aiohttp.ClientSession] = None

    async def __call__(self, url: str) -> aiohttp.ClientWebSocketResponse:
        if self._session is None or self._session.closed:
            timeout = aiohttp.ClientTimeout(total=self._connect_timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)

        logger.info(f"Opening WebSocket {url}")
        return await self._session.ws_connect(url, heartbeat=self._heartbeat_s)

    async def close(self) -> None:
        """Close the shared HTTP session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
