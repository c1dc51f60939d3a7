"""
Shared fixtures: an in-memory WebSocket stand-in for channel tests.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import aiohttp
import pytest


@dataclass
class FakeMessage:
    type: aiohttp.WSMsgType
    data: Any = None


class FakeSocket:
    """Async-iterable socket fed by the test."""

    def __init__(self, url: str) -> None:
        self.url = url
        self.closed = False
        self.close_calls = 0
        self.sent: list[str] = []
        self._inbox: asyncio.Queue[Optional[FakeMessage]] = asyncio.Queue()

    def push_text(self, data: str) -> None:
        self._inbox.put_nowait(FakeMessage(aiohttp.WSMsgType.TEXT, data))

    def push_binary(self, data: bytes) -> None:
        self._inbox.put_nowait(FakeMessage(aiohttp.WSMsgType.BINARY, data))

    def push_error(self, error: Exception) -> None:
        self._inbox.put_nowait(FakeMessage(aiohttp.WSMsgType.ERROR, error))

    def drop(self) -> None:
        """Server-side abnormal close."""
        self._inbox.put_nowait(None)

    def __aiter__(self) -> "FakeSocket":
        return self

    async def __anext__(self) -> FakeMessage:
        msg = await self._inbox.get()
        if msg is None:
            self.closed = True
            raise StopAsyncIteration
        return msg

    async def send_str(self, data: str) -> None:
        if self.closed:
            raise ConnectionResetError("socket is closed")
        self.sent.append(data)

    async def close(self) -> None:
        self.close_calls += 1
        if not self.closed:
            self.closed = True
            self._inbox.put_nowait(None)


class FakeSocketFactory:
    """Records every open attempt; can be told to refuse connections."""

    def __init__(self) -> None:
        self.urls: list[str] = []
        self.sockets: list[FakeSocket] = []
        self.always_fail = False
        self.fail_paths: set[str] = set()

    @property
    def attempts(self) -> int:
        return len(self.urls)

    def sockets_for(self, path: str) -> list[FakeSocket]:
        return [s for s in self.sockets if s.url.endswith(path)]

    async def __call__(self, url: str) -> FakeSocket:
        self.urls.append(url)
        if self.always_fail or any(url.endswith(p) for p in self.fail_paths):
            raise aiohttp.ClientConnectionError(f"connection refused: {url}")
        socket = FakeSocket(url)
        self.sockets.append(socket)
        return socket


WaitUntil = Callable[..., Awaitable[None]]


async def _wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.001)


@pytest.fixture
def socket_factory() -> FakeSocketFactory:
    """Fresh fake socket factory for each test."""
    return FakeSocketFactory()


@pytest.fixture
def wait_until() -> WaitUntil:
    """Poll a predicate on the running loop until it holds."""
    return _wait_until


POSITION_FRAME = (
    '{"type":"position_update","position_address":"Pxyz","timestamp":"t1",'
    '"data":{"value_usd":"100.00","pnl_percent":"2.5","il_percent":"0.1","in_range":true}}'
)

ALERT_FRAME = (
    '{"type":"alert","level":"critical","title":"Out of range",'
    '"message":"Position Pxyz left its range","timestamp":"t2"}'
)


@pytest.fixture
def position_frame() -> str:
    return POSITION_FRAME


@pytest.fixture
def alert_frame() -> str:
    return ALERT_FRAME
