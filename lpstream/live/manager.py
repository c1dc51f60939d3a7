"""
Live Updates Manager - dual-channel orchestration.

Owns the ``positions`` and ``alerts`` channel connections and binds their
lifecycle to the consumer's mount/unmount boundary. The two channels share
no socket, no state and no backoff counter.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Optional, Union

from lpstream.live.config import ChannelConfig, ChannelName, LiveClientConfig
from lpstream.live.connection import ChannelConnection
from lpstream.live.decoder import MessageDecoder
from lpstream.live.errors import (
    DecodeFailure,
    ExhaustedRetriesError,
    TransportError,
    UnknownChannelError,
)
from lpstream.live.messages import Envelope
from lpstream.live.registry import Handler, SubscriberRegistry, Subscription
from lpstream.live.sockets import AiohttpSocketFactory, SocketFactory
from lpstream.live.types import ChannelHealth, ConnectionState

logger = logging.getLogger(__name__)


class LiveUpdatesManager:
    """
    Top-level orchestration for the positions and alerts channels.

    Missed events are never replayed: consumers should re-fetch snapshot
    state over REST when a channel returns to CONNECTED.

    Usage:
        manager = LiveUpdatesManager(
            LiveClientConfig(location=PageLocation.from_url("https://lp.example.com"))
        )
        manager.subscribe_positions(render_position)
        manager.subscribe_alerts(show_toast)

        async with manager.mounted():
            ...  # channels live while mounted
    """

    def __init__(
        self,
        config: Optional[LiveClientConfig] = None,
        socket_factory: Optional[SocketFactory] = None,
        on_exhausted: Optional[Callable[[str, ExhaustedRetriesError], None]] = None,
        on_decode_failure: Optional[Callable[[str, DecodeFailure], None]] = None,
        name: str = "live_updates",
    ) -> None:
        """
        Initialize the manager.

        Args:
            config: Client configuration (defaults to localhost over http)
            socket_factory: Opens sockets for both channels; when omitted an
                aiohttp-backed factory is created and owned by the manager
            on_exhausted: Called with (channel, error) when a channel gives up
            on_decode_failure: Called with (channel, failure) for dropped frames
            name: Name for logging purposes
        """
        self._config = config or LiveClientConfig()
        self._name = name
        self._on_exhausted = on_exhausted
        self._on_decode_failure = on_decode_failure

        self._owned_factory: Optional[AiohttpSocketFactory] = None
        if socket_factory is None:
            self._owned_factory = AiohttpSocketFactory(heartbeat_s=self._config.heartbeat_s)
            socket_factory = self._owned_factory
        self._socket_factory = socket_factory

        self._channels: dict[str, ChannelConnection] = {}
        for channel_config in self._config.channels().values():
            self._channels[channel_config.name] = self._build_channel(channel_config)

        self._errors_count = 0

    def _build_channel(self, channel_config: ChannelConfig) -> ChannelConnection:
        channel = channel_config.name
        return ChannelConnection(
            config=channel_config,
            location=self._config.location,
            socket_factory=self._socket_factory,
            decoder=MessageDecoder(
                on_failure=lambda err: self._on_channel_decode_failure(channel, err),
                name=f"{channel}_decoder",
            ),
            registry=SubscriberRegistry(name=f"{channel}_subscribers"),
            on_state_change=lambda state: self._on_channel_state_change(channel, state),
            on_error=lambda err: self._on_channel_error(channel, err),
            on_exhausted=lambda err: self._on_channel_exhausted(channel, err),
        )

    @property
    def config(self) -> LiveClientConfig:
        """Get configuration."""
        return self._config

    @property
    def positions(self) -> ChannelConnection:
        return self._channels[self._config.positions.name]

    @property
    def alerts(self) -> ChannelConnection:
        return self._channels[self._config.alerts.name]

    def channel(self, name: Union[str, ChannelName]) -> ChannelConnection:
        """
        Look up a channel by configured name or logical channel.

        Raises:
            UnknownChannelError: If no such channel exists
        """
        if isinstance(name, ChannelName):
            name = self._config.channels()[name].name
        try:
            return self._channels[name]
        except KeyError:
            raise UnknownChannelError(
                f"Unknown channel: {name!r}",
                channel=name,
                component="LiveUpdatesManager",
                details={"available": sorted(self._channels)},
            ) from None

    # --- Lifecycle ---

    def connect_all(self) -> None:
        """Connect both channels. Must be called from within a running event loop."""
        logger.info(f"[{self._name}] Connecting all channels")
        for connection in self._channels.values():
            connection.connect()

    def disconnect_all(self) -> None:
        """
        Disconnect both channels.

        Synchronously cancels pending reconnect timers and socket tasks; no
        envelope is dispatched after this returns.
        """
        logger.info(f"[{self._name}] Disconnecting all channels")
        for connection in self._channels.values():
            connection.disconnect()

    async def aclose(self) -> None:
        """Disconnect, wait for sockets to close and release the owned HTTP session."""
        for connection in self._channels.values():
            try:
                await connection.aclose()
            except Exception as e:
                logger.warning(f"[{self._name}] Error closing {connection.name}: {e}")

        if self._owned_factory is not None:
            await self._owned_factory.close()

    @asynccontextmanager
    async def mounted(self) -> AsyncIterator[LiveUpdatesManager]:
        """Connect on entry and tear everything down on exit."""
        self.connect_all()
        try:
            yield self
        finally:
            await self.aclose()

    # --- Subscriptions ---

    def subscribe(
        self, channel: Union[str, ChannelName], handler: Handler[Envelope]
    ) -> Subscription:
        """Subscribe a handler to one channel."""
        return self.channel(channel).subscribe(handler)

    def subscribe_positions(self, handler: Handler[Envelope]) -> Subscription:
        return self.positions.subscribe(handler)

    def subscribe_alerts(self, handler: Handler[Envelope]) -> Subscription:
        return self.alerts.subscribe(handler)

    async def send(self, channel: Union[str, ChannelName], message: Any) -> bool:
        """Send a control message on one channel."""
        return await self.channel(channel).send(message)

    # --- Channel callbacks ---

    def _on_channel_state_change(self, channel: str, state: ConnectionState) -> None:
        if state == ConnectionState.CONNECTED:
            logger.info(f"[{self._name}] {channel} connected")
        elif state == ConnectionState.RECONNECT_SCHEDULED:
            logger.warning(f"[{self._name}] {channel} lost, reconnect scheduled")
        else:
            logger.debug(f"[{self._name}] {channel} state: {state.value}")

    def _on_channel_error(self, channel: str, error: TransportError) -> None:
        self._errors_count += 1
        logger.debug(f"[{self._name}] {channel} transport error: {error}")

    def _on_channel_exhausted(self, channel: str, error: ExhaustedRetriesError) -> None:
        if self._on_exhausted:
            try:
                self._on_exhausted(channel, error)
            except Exception as cb_err:
                logger.warning(f"[{self._name}] Exhausted callback failed: {cb_err}")

    def _on_channel_decode_failure(self, channel: str, failure: DecodeFailure) -> None:
        if self._on_decode_failure:
            self._on_decode_failure(channel, failure)

    # --- Public methods ---

    def get_health(self) -> dict[str, ChannelHealth]:
        """Get a health snapshot per channel."""
        return {name: connection.get_health() for name, connection in self._channels.items()}

    def get_stats(self) -> dict[str, Any]:
        """Get statistics summary."""
        stats: dict[str, Any] = {"errors_count": self._errors_count}
        for name, connection in self._channels.items():
            metrics = connection.metrics
            stats[name] = {
                "state": connection.state.value,
                "connection_attempts": metrics.connection_attempts,
                "frames_received": metrics.frames_received,
                "envelopes_dispatched": metrics.envelopes_dispatched,
                "decode_failures": metrics.decode_failures,
                "transport_errors": metrics.transport_errors,
                "subscribers": len(connection.registry),
                "decoder_by_reason": dict(connection.decoder.stats.by_reason),
            }
        return stats
