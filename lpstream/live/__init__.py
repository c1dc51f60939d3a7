"""
Live Update Client Module.

Delivers server-pushed position valuations and operator alerts over two
independent WebSocket channels, reconnecting with exponential backoff.

Components:
- LiveUpdatesManager: Dual-channel orchestration and mount/unmount lifecycle
- ChannelConnection: One socket's lifecycle, reconnection and teardown
- MessageDecoder: Frame validation into PositionUpdate / AlertUpdate envelopes
- SubscriberRegistry: Fan-out of envelopes to handlers
- backoff_delay: Reconnect delay schedule

Usage:
    from lpstream.live import LiveClientConfig, LiveUpdatesManager, PageLocation

    config = LiveClientConfig(location=PageLocation.from_url("https://lp.example.com"))
    manager = LiveUpdatesManager(config)
    manager.subscribe_positions(print)
    async with manager.mounted():
        await asyncio.Event().wait()
"""

from lpstream.live.backoff import backoff_delay
from lpstream.live.config import ChannelConfig, ChannelName, LiveClientConfig, PageLocation
from lpstream.live.connection import ChannelConnection
from lpstream.live.decoder import MessageDecoder
from lpstream.live.errors import (
    ConfigurationError,
    DecodeFailure,
    ExhaustedRetriesError,
    LiveStreamError,
    TransportError,
    UnknownChannelError,
)
from lpstream.live.manager import LiveUpdatesManager
from lpstream.live.messages import (
    AlertSeverity,
    AlertUpdate,
    Envelope,
    PositionUpdate,
    PositionValuation,
)
from lpstream.live.registry import SubscriberRegistry, Subscription
from lpstream.live.sockets import AiohttpSocketFactory
from lpstream.live.types import ChannelHealth, ConnectionState

__all__ = [
    # Main entry point
    "LiveUpdatesManager",
    "LiveClientConfig",
    "ChannelConfig",
    "ChannelName",
    "PageLocation",
    # Components
    "ChannelConnection",
    "MessageDecoder",
    "SubscriberRegistry",
    "Subscription",
    "AiohttpSocketFactory",
    "backoff_delay",
    # Types
    "ConnectionState",
    "ChannelHealth",
    "Envelope",
    "PositionUpdate",
    "PositionValuation",
    "AlertUpdate",
    "AlertSeverity",
    # Errors
    "LiveStreamError",
    "TransportError",
    "ExhaustedRetriesError",
    "DecodeFailure",
    "ConfigurationError",
    "UnknownChannelError",
]
