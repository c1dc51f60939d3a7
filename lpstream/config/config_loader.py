"""
Purpose:
    - Loads a live client config file (TOML)
    - Validates the raw tables and builds a LiveClientConfig

Example file:

    [location]
    url = "https://lp.example.com"

    [positions]
    base_reconnect_delay_s = 1.0
    max_reconnect_attempts = 5

    [alerts]
    max_reconnect_attempts = 10
"""

import tomllib
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from lpstream.live.config import (
    CHANNEL_ENDPOINTS,
    ChannelConfig,
    ChannelName,
    LiveClientConfig,
    PageLocation,
)
from lpstream.live.errors import ConfigurationError


class LocationSection(BaseModel):
    model_config = ConfigDict(extra="forbid")
    url: str = "http://localhost"


class ChannelSection(BaseModel):
    model_config = ConfigDict(extra="forbid")
    endpoint_path: Optional[str] = None
    base_reconnect_delay_s: float = 1.0
    max_reconnect_attempts: int = 5


class ClientSection(BaseModel):
    model_config = ConfigDict(extra="forbid")
    heartbeat_s: Optional[float] = 30.0


class LoadedConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")
    location: LocationSection = LocationSection()
    client: ClientSection = ClientSection()
    positions: ChannelSection = ChannelSection()
    alerts: ChannelSection = ChannelSection()


class ConfigLoader:
    """
    Config-loader; loading toml file.
    """

    def __init__(self, base_dir: str = ".") -> None:
        self._base_dir = base_dir

    def load(self, file_name: str) -> dict[str, Any]:
        path = Path(file_name)
        if not path.is_absolute():
            path = Path(self._base_dir) / file_name

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with path.open("rb") as f:
            return tomllib.load(f)

    def load_client_config(
        self, file_name: Optional[str] = None, url: Optional[str] = None
    ) -> LiveClientConfig:
        """Build a LiveClientConfig from a file; ``url`` overrides ``[location].url``."""
        raw = self.load(file_name) if file_name else {}
        return build_client_config(raw, url=url)


def build_client_config(raw: dict[str, Any], url: Optional[str] = None) -> LiveClientConfig:
    try:
        loaded = LoadedConfig.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0]
        raise ConfigurationError(
            f"Invalid live client config: {first['msg']}",
            field=".".join(str(p) for p in first["loc"]),
            component="ConfigLoader",
        ) from e

    location = PageLocation.from_url(url or loaded.location.url)
    return LiveClientConfig(
        location=location,
        positions=_channel(ChannelName.POSITIONS, loaded.positions),
        alerts=_channel(ChannelName.ALERTS, loaded.alerts),
        heartbeat_s=loaded.client.heartbeat_s,
    )


def _channel(channel: ChannelName, section: ChannelSection) -> ChannelConfig:
    return ChannelConfig(
        name=channel.value,
        endpoint_path=section.endpoint_path or CHANNEL_ENDPOINTS[channel],
        base_reconnect_delay_s=section.base_reconnect_delay_s,
        max_reconnect_attempts=section.max_reconnect_attempts,
    )
