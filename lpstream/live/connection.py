"""
Channel Connection for live update streams.

Owns one WebSocket's full lifecycle:
- Connection establishment through an injected socket factory
- Frame decoding and fan-out to subscribers
- Exponential backoff reconnection, bounded by an attempt budget
- Deterministic teardown of the socket and any pending reconnect timer
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import aiohttp
import orjson

from lpstream.live.backoff import backoff_delay
from lpstream.live.config import ChannelConfig, PageLocation
from lpstream.live.decoder import MessageDecoder
from lpstream.live.errors import ExhaustedRetriesError, TransportError
from lpstream.live.messages import Envelope
from lpstream.live.registry import Handler, SubscriberRegistry, Subscription
from lpstream.live.sockets import ChannelSocket, SocketFactory
from lpstream.live.types import ChannelHealth, ConnectionMetrics, ConnectionState

logger = logging.getLogger(__name__)


class ChannelConnection:
    """
    Manages a single channel's WebSocket with automatic reconnection.

    State Machine:
        [DISCONNECTED] --connect()--> [CONNECTING] --open--> [CONNECTED]
                                           ^                      |
                                           |                close / error
                                      timer fires                 |
                                           |                      v
                                  [RECONNECT_SCHEDULED] <--(attempts left)
                                                                  |
                              [DISCONNECTED] <--(budget spent)----+

        disconnect() from any state -> [DISCONNECTED], terminal until connect()

    All callbacks run on the event loop that called ``connect()``. At most
    one socket and one reconnect timer are live at a time; a generation
    number fences off callbacks from sockets that have been superseded.

    Usage:
        connection = ChannelConnection(
            config=ChannelConfig("positions", "/ws/positions"),
            location=PageLocation.from_url("https://lp.example.com"),
            socket_factory=AiohttpSocketFactory(),
        )
        connection.subscribe(on_position)
        connection.connect()
        # ... later ...
        await connection.aclose()
    """

    def __init__(
        self,
        config: ChannelConfig,
        location: PageLocation,
        socket_factory: SocketFactory,
        decoder: Optional[MessageDecoder] = None,
        registry: Optional[SubscriberRegistry[Envelope]] = None,
        on_state_change: Optional[Callable[[ConnectionState], None]] = None,
        on_error: Optional[Callable[[TransportError], None]] = None,
        on_exhausted: Optional[Callable[[ExhaustedRetriesError], None]] = None,
    ) -> None:
        """
        Initialize the channel connection.

        Args:
            config: Channel configuration
            location: Page location the socket URL is derived from
            socket_factory: Async callable opening a WebSocket for a URL
            decoder: Frame decoder (one is created if omitted)
            registry: Subscriber registry (one is created if omitted)
            on_state_change: Optional callback for state changes
            on_error: Optional callback for transport errors
            on_exhausted: Optional callback when the reconnect budget is spent
        """
        self._config = config
        self._name = config.name
        self._url = location.ws_url(config.endpoint_path)
        self._socket_factory = socket_factory
        self._decoder = decoder or MessageDecoder(name=f"{config.name}_decoder")
        self._registry: SubscriberRegistry[Envelope] = registry or SubscriberRegistry(
            name=f"{config.name}_subscribers"
        )
        self._on_state_change = on_state_change
        self._on_error = on_error
        self._on_exhausted = on_exhausted

        # State
        self._state = ConnectionState.DISCONNECTED
        self._ws: Optional[ChannelSocket] = None
        self._socket_task: Optional[asyncio.Task[None]] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None
        self._reconnect_attempt = 0
        self._generation = 0
        self._closing_tasks: set[asyncio.Task[None]] = set()

        # Metrics
        self._metrics = ConnectionMetrics()
        self._connected_at: Optional[datetime] = None
        self._last_message_at: Optional[datetime] = None
        self._last_error: Optional[str] = None
        self._last_error_at: Optional[datetime] = None

    @property
    def name(self) -> str:
        return self._name

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if currently connected."""
        return self._state == ConnectionState.CONNECTED

    @property
    def url(self) -> str:
        """Channel WebSocket URL."""
        return self._url

    @property
    def config(self) -> ChannelConfig:
        return self._config

    @property
    def reconnect_attempt(self) -> int:
        """Consecutive failed attempts since the last successful open."""
        return self._reconnect_attempt

    @property
    def metrics(self) -> ConnectionMetrics:
        return self._metrics

    @property
    def decoder(self) -> MessageDecoder:
        return self._decoder

    @property
    def registry(self) -> SubscriberRegistry[Envelope]:
        return self._registry

    def subscribe(self, handler: Handler[Envelope]) -> Subscription:
        """Register a handler for every envelope decoded on this channel."""
        return self._registry.subscribe(handler)

    def _set_state(self, new_state: ConnectionState) -> None:
        """Update state and notify listener."""
        old_state = self._state
        self._state = new_state

        if old_state != new_state:
            logger.debug(f"[{self._name}] State: {old_state.value} -> {new_state.value}")
            if self._on_state_change:
                try:
                    self._on_state_change(new_state)
                except Exception as e:
                    logger.warning(f"[{self._name}] State change callback error: {e}")

    # --- Lifecycle ---

    def connect(self) -> None:
        """
        Open the channel socket.

        No-op while connecting or connected. From RECONNECT_SCHEDULED the
        pending timer is cancelled and the socket is opened immediately.
        Must be called from within a running event loop.
        """
        if self._state in (ConnectionState.CONNECTED, ConnectionState.CONNECTING):
            logger.debug(f"[{self._name}] Already connected or connecting")
            return

        self._cancel_reconnect_timer()
        self._reconnect_attempt = 0
        self._open_socket()

    def disconnect(self) -> None:
        """
        Close the channel and stop reconnecting.

        Cancels any pending reconnect timer and the socket task, and closes
        the socket in the background. Once this returns no further envelope is
        dispatched and no further socket is opened until ``connect()``.
        """
        self._generation += 1
        self._cancel_reconnect_timer()

        task = self._socket_task
        self._socket_task = None
        if task is not None and not task.done():
            task.cancel()
            self._track_closing(task)

        ws = self._ws
        self._ws = None
        if ws is not None and not ws.closed:
            self._schedule_close(ws)

        self._connected_at = None
        if self._state != ConnectionState.DISCONNECTED:
            logger.info(f"[{self._name}] Disconnected")
        self._set_state(ConnectionState.DISCONNECTED)

    async def aclose(self) -> None:
        """Disconnect and wait for the socket task and socket close to finish."""
        self.disconnect()

        if self._closing_tasks:
            await asyncio.gather(*self._closing_tasks, return_exceptions=True)

    async def send(self, message: Any) -> bool:
        """
        Send a JSON-serialisable control message on the open socket.

        Returns:
            False if the channel is not connected, True once sent.

        Raises:
            TransportError: If the socket rejects the write
        """
        ws = self._ws
        if self._state != ConnectionState.CONNECTED or ws is None or ws.closed:
            logger.debug(f"[{self._name}] Not connected, dropping outbound message")
            return False

        payload = orjson.dumps(message).decode("utf-8")
        try:
            await ws.send_str(payload)
        except (aiohttp.ClientError, ConnectionError) as e:
            raise TransportError(
                f"Failed to send on {self._name}: {e}",
                url=self._url,
                reconnect_attempt=self._reconnect_attempt,
                component="ChannelConnection",
            ) from e

        self._metrics.messages_sent += 1
        return True

    # --- Socket task ---

    def _open_socket(self) -> None:
        loop = asyncio.get_running_loop()
        self._generation += 1
        generation = self._generation
        self._metrics.connection_attempts += 1
        self._set_state(ConnectionState.CONNECTING)

        # A state callback may have disconnected us
        if generation != self._generation:
            return

        logger.info(f"[{self._name}] Connecting to {self._url}")
        self._socket_task = loop.create_task(
            self._run_socket(generation), name=f"{self._name}_socket"
        )

    async def _run_socket(self, generation: int) -> None:
        """Open one socket and pump its frames until it closes or fails."""
        try:
            ws = await self._socket_factory(self._url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._on_transport_lost(generation, e)
            return

        if generation != self._generation:
            await self._close_socket(ws)
            return

        self._ws = ws
        self._on_open()

        error: Optional[BaseException] = None
        try:
            async for msg in ws:
                if generation != self._generation:
                    break

                if msg.type == aiohttp.WSMsgType.TEXT:
                    self._on_frame(msg.data)

                elif msg.type == aiohttp.WSMsgType.BINARY:
                    logger.debug(f"[{self._name}] Received binary frame (ignored)")

                elif msg.type == aiohttp.WSMsgType.ERROR:
                    error = msg.data if isinstance(msg.data, BaseException) else None
                    logger.error(f"[{self._name}] WebSocket error: {msg.data}")
                    break

                elif msg.type in (aiohttp.WSMsgType.CLOSE, aiohttp.WSMsgType.CLOSED):
                    break

        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = e

        if generation != self._generation:
            return

        self._on_transport_lost(generation, error)
        if not ws.closed:
            self._schedule_close(ws)

    def _on_open(self) -> None:
        self._reconnect_attempt = 0
        self._connected_at = datetime.now(timezone.utc)
        self._set_state(ConnectionState.CONNECTED)
        logger.info(f"[{self._name}] Connected")

    def _on_frame(self, data: str) -> None:
        self._metrics.frames_received += 1
        self._metrics.bytes_received += len(data.encode("utf-8"))
        self._last_message_at = datetime.now(timezone.utc)

        envelope = self._decoder.decode(data)
        if envelope is None:
            self._metrics.decode_failures += 1
            return

        generation = self._generation
        self._registry.dispatch(
            envelope, should_continue=lambda: generation == self._generation
        )
        self._metrics.envelopes_dispatched += 1

    def _on_transport_lost(self, generation: int, cause: Optional[BaseException]) -> None:
        """Handle a close or error: schedule a reconnect or give up."""
        if generation != self._generation:
            return

        self._socket_task = None
        self._ws = None
        self._connected_at = None
        self._reconnect_attempt += 1
        self._metrics.transport_errors += 1
        self._last_error = str(cause) if cause is not None else "connection closed"
        self._last_error_at = datetime.now(timezone.utc)

        error = TransportError(
            f"Channel {self._name} lost its socket: {self._last_error}",
            url=self._url,
            reconnect_attempt=self._reconnect_attempt,
            component="ChannelConnection",
        )
        if self._on_error:
            try:
                self._on_error(error)
            except Exception as cb_err:
                logger.warning(f"[{self._name}] Error callback failed: {cb_err}")

        if self._reconnect_attempt <= self._config.max_reconnect_attempts:
            delay = backoff_delay(self._reconnect_attempt, self._config.base_reconnect_delay_s)
            logger.warning(
                f"[{self._name}] Connection lost (attempt {self._reconnect_attempt}), "
                f"reconnecting in {delay:.2f}s: {self._last_error}"
            )
            loop = asyncio.get_running_loop()
            self._reconnect_handle = loop.call_later(delay, self._on_reconnect_timer)
            self._metrics.reconnects_scheduled += 1
            self._set_state(ConnectionState.RECONNECT_SCHEDULED)
            return

        self._set_state(ConnectionState.DISCONNECTED)
        exhausted = ExhaustedRetriesError(
            f"Gave up on {self._name} after {self._config.max_reconnect_attempts} reconnect attempts",
            url=self._url,
            reconnect_attempt=self._reconnect_attempt,
            component="ChannelConnection",
        )
        logger.error(f"[{self._name}] {exhausted}")
        if self._on_exhausted:
            try:
                self._on_exhausted(exhausted)
            except Exception as cb_err:
                logger.warning(f"[{self._name}] Exhausted callback failed: {cb_err}")

    def _on_reconnect_timer(self) -> None:
        self._reconnect_handle = None
        if self._state != ConnectionState.RECONNECT_SCHEDULED:
            return
        self._open_socket()

    def _cancel_reconnect_timer(self) -> None:
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

    def _schedule_close(self, ws: ChannelSocket) -> None:
        task = asyncio.get_running_loop().create_task(
            self._close_socket(ws), name=f"{self._name}_close"
        )
        self._track_closing(task)

    def _track_closing(self, task: asyncio.Task[None]) -> None:
        self._closing_tasks.add(task)
        task.add_done_callback(self._closing_tasks.discard)

    async def _close_socket(self, ws: ChannelSocket) -> None:
        try:
            await ws.close()
        except Exception as e:
            logger.warning(f"[{self._name}] Error closing socket: {e}")

    def get_health(self) -> ChannelHealth:
        """Get current channel health snapshot."""
        return ChannelHealth(
            name=self._name,
            state=self._state,
            url=self._url,
            reconnect_attempt=self._reconnect_attempt,
            connected_since=self._connected_at,
            last_message_at=self._last_message_at,
            frames_received=self._metrics.frames_received,
            envelopes_dispatched=self._metrics.envelopes_dispatched,
            decode_failures=self._metrics.decode_failures,
            transport_errors=self._metrics.transport_errors,
            last_error=self._last_error,
            last_error_at=self._last_error_at,
        )
