"""
Unit tests for live client configuration.
"""

import pytest

from lpstream.live.config import (
    CHANNEL_ENDPOINTS,
    ChannelConfig,
    ChannelName,
    LiveClientConfig,
    PageLocation,
)
from lpstream.live.errors import ConfigurationError


class TestPageLocation:
    """Tests for PageLocation."""

    def test_http_upgrades_to_ws(self) -> None:
        """Test http pages get ws sockets."""
        location = PageLocation(scheme="http", host="localhost:3000")
        assert location.ws_url("/ws/positions") == "ws://localhost:3000/ws/positions"

    def test_https_upgrades_to_wss(self) -> None:
        """Test https pages get wss sockets."""
        location = PageLocation.from_url("https://lp.example.com/dashboard?tab=1")
        assert location.scheme == "https"
        assert location.host == "lp.example.com"
        assert location.ws_url("/ws/alerts") == "wss://lp.example.com/ws/alerts"

    def test_from_url_keeps_port(self) -> None:
        """Test the host keeps an explicit port."""
        location = PageLocation.from_url("HTTP://127.0.0.1:8080")
        assert location.ws_url("/ws/alerts") == "ws://127.0.0.1:8080/ws/alerts"

    def test_invalid_scheme(self) -> None:
        """Test non-http schemes are rejected."""
        with pytest.raises(ConfigurationError) as exc_info:
            PageLocation(scheme="ftp", host="example.com")
        assert "scheme must be http or https" in str(exc_info.value)

    def test_from_url_requires_host(self) -> None:
        """Test a bare path is rejected."""
        with pytest.raises(ConfigurationError):
            PageLocation.from_url("/just/a/path")


class TestChannelConfig:
    """Tests for ChannelConfig."""

    def test_defaults(self) -> None:
        """Test default reconnect behavior."""
        config = ChannelConfig(name="positions", endpoint_path="/ws/positions")
        assert config.base_reconnect_delay_s == 1.0
        assert config.max_reconnect_attempts == 5

    def test_frozen(self) -> None:
        """Test configuration cannot be mutated."""
        config = ChannelConfig(name="positions", endpoint_path="/ws/positions")
        with pytest.raises(AttributeError):
            config.max_reconnect_attempts = 10  # type: ignore[misc]

    def test_invalid_path(self) -> None:
        """Test endpoint paths must be absolute."""
        with pytest.raises(ConfigurationError) as exc_info:
            ChannelConfig(name="positions", endpoint_path="ws/positions")
        assert "endpoint_path must start with '/'" in str(exc_info.value)

    def test_invalid_delay(self) -> None:
        """Test non-positive delay raises error."""
        with pytest.raises(ConfigurationError) as exc_info:
            ChannelConfig(name="positions", endpoint_path="/ws", base_reconnect_delay_s=0)
        assert "base_reconnect_delay_s must be positive" in str(exc_info.value)

    def test_invalid_attempts(self) -> None:
        """Test negative reconnect attempts raises error."""
        with pytest.raises(ConfigurationError) as exc_info:
            ChannelConfig(name="positions", endpoint_path="/ws", max_reconnect_attempts=-1)
        assert "max_reconnect_attempts must be non-negative" in str(exc_info.value)


class TestLiveClientConfig:
    """Tests for LiveClientConfig."""

    def test_default_endpoints(self) -> None:
        """Test the two channels use the fixed backend endpoints."""
        config = LiveClientConfig()
        assert config.positions.endpoint_path == "/ws/positions"
        assert config.alerts.endpoint_path == "/ws/alerts"
        assert config.channels() == {
            ChannelName.POSITIONS: config.positions,
            ChannelName.ALERTS: config.alerts,
        }
        assert CHANNEL_ENDPOINTS[ChannelName.ALERTS] == "/ws/alerts"

    def test_distinct_channel_names(self) -> None:
        """Test the two channels cannot share a name."""
        with pytest.raises(ConfigurationError):
            LiveClientConfig(
                positions=ChannelConfig(name="same", endpoint_path="/ws/positions"),
                alerts=ChannelConfig(name="same", endpoint_path="/ws/alerts"),
            )

    def test_invalid_heartbeat(self) -> None:
        """Test a non-positive heartbeat is rejected."""
        with pytest.raises(ConfigurationError):
            LiveClientConfig(heartbeat_s=0)
