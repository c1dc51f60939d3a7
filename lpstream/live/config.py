"""
Configuration types for the live update client.

Provides immutable, validated configuration dataclasses for the channel
connections and the page location they are derived from.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from urllib.parse import urlsplit

from lpstream.live.errors import ConfigurationError


class ChannelName(str, Enum):
    """The two logical channels served by the backend."""

    POSITIONS = "positions"
    ALERTS = "alerts"


# Backend WebSocket endpoints
CHANNEL_ENDPOINTS: dict[ChannelName, str] = {
    ChannelName.POSITIONS: "/ws/positions",
    ChannelName.ALERTS: "/ws/alerts",
}

# Page scheme -> WebSocket scheme
WS_SCHEMES: dict[str, str] = {
    "http": "ws",
    "https": "wss",
}


@dataclass(frozen=True)
class PageLocation:
    """Scheme and host of the page the client is served from."""

    scheme: str = "http"
    host: str = "localhost"

    def __post_init__(self) -> None:
        if self.scheme not in WS_SCHEMES:
            raise ConfigurationError(
                "scheme must be http or https",
                field="scheme",
                value=self.scheme,
            )
        if not self.host:
            raise ConfigurationError("host must not be empty", field="host")

    @classmethod
    def from_url(cls, url: str) -> PageLocation:
        """Build a location from a page address such as ``https://app.example.com``."""
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise ConfigurationError(
                "page url must include scheme and host",
                field="url",
                value=url,
            )
        return cls(scheme=parts.scheme.lower(), host=parts.netloc)

    def ws_url(self, endpoint_path: str) -> str:
        """Upgrade the page scheme (http->ws, https->wss) and append the endpoint path."""
        return f"{WS_SCHEMES[self.scheme]}://{self.host}{endpoint_path}"


@dataclass(frozen=True)
class ChannelConfig:
    """Configuration for a single channel connection."""

    name: str
    endpoint_path: str

    # Reconnection behavior
    base_reconnect_delay_s: float = 1.0
    max_reconnect_attempts: int = 5

    def __post_init__(self) -> None:
        if not self.name:
            raise ConfigurationError("name must not be empty", field="name")
        if not self.endpoint_path.startswith("/"):
            raise ConfigurationError(
                "endpoint_path must start with '/'",
                field="endpoint_path",
                value=self.endpoint_path,
            )
        if self.base_reconnect_delay_s <= 0:
            raise ConfigurationError(
                "base_reconnect_delay_s must be positive",
                field="base_reconnect_delay_s",
                value=self.base_reconnect_delay_s,
            )
        if self.max_reconnect_attempts < 0:
            raise ConfigurationError(
                "max_reconnect_attempts must be non-negative",
                field="max_reconnect_attempts",
                value=self.max_reconnect_attempts,
            )


def default_channel_config(channel: ChannelName) -> ChannelConfig:
    """Default configuration for one of the two known channels."""
    return ChannelConfig(name=channel.value, endpoint_path=CHANNEL_ENDPOINTS[channel])


@dataclass(frozen=True)
class LiveClientConfig:
    """
    Immutable top-level configuration for the dual-channel client.

    Example:
        config = LiveClientConfig(
            location=PageLocation.from_url("https://lp.example.com"),
            positions=ChannelConfig("positions", "/ws/positions", max_reconnect_attempts=10),
        )
    """

    location: PageLocation = field(default_factory=PageLocation)
    positions: ChannelConfig = field(
        default_factory=lambda: default_channel_config(ChannelName.POSITIONS)
    )
    alerts: ChannelConfig = field(
        default_factory=lambda: default_channel_config(ChannelName.ALERTS)
    )

    # aiohttp client heartbeat; None disables it
    heartbeat_s: float | None = 30.0

    def __post_init__(self) -> None:
        if self.positions.name == self.alerts.name:
            raise ConfigurationError(
                "channel names must be distinct",
                field="alerts.name",
                value=self.alerts.name,
            )
        if self.heartbeat_s is not None and self.heartbeat_s <= 0:
            raise ConfigurationError(
                "heartbeat_s must be positive",
                field="heartbeat_s",
                value=self.heartbeat_s,
            )

    def channels(self) -> dict[ChannelName, ChannelConfig]:
        """Channel configurations keyed by logical channel."""
        return {
            ChannelName.POSITIONS: self.positions,
            ChannelName.ALERTS: self.alerts,
        }
