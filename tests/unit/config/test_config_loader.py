from __future__ import annotations

from pathlib import Path

import pytest

from lpstream.config.config_loader import ConfigLoader, build_client_config
from lpstream.live.errors import ConfigurationError

CONFIG_TOML = """
[location]
url = "https://lp.example.com"

[client]
heartbeat_s = 15.0

[positions]
base_reconnect_delay_s = 0.5
max_reconnect_attempts = 8

[alerts]
endpoint_path = "/ws/v2/alerts"
"""


def _write(tmp_path: Path, text: str, name: str = "live.toml") -> Path:
    path = tmp_path / name
    path.write_text(text)
    return path


def test_load_client_config(tmp_path: Path) -> None:
    _write(tmp_path, CONFIG_TOML)
    config = ConfigLoader(base_dir=str(tmp_path)).load_client_config("live.toml")

    assert config.location.scheme == "https"
    assert config.location.host == "lp.example.com"
    assert config.heartbeat_s == 15.0
    assert config.positions.name == "positions"
    assert config.positions.endpoint_path == "/ws/positions"
    assert config.positions.base_reconnect_delay_s == 0.5
    assert config.positions.max_reconnect_attempts == 8
    assert config.alerts.endpoint_path == "/ws/v2/alerts"
    assert config.alerts.max_reconnect_attempts == 5


def test_url_override(tmp_path: Path) -> None:
    path = _write(tmp_path, CONFIG_TOML)
    config = ConfigLoader().load_client_config(str(path), url="http://127.0.0.1:9000")

    assert config.location.ws_url(config.alerts.endpoint_path) == "ws://127.0.0.1:9000/ws/v2/alerts"


def test_defaults_without_file() -> None:
    config = ConfigLoader().load_client_config()

    assert config.location.ws_url(config.positions.endpoint_path) == "ws://localhost/ws/positions"
    assert config.positions.max_reconnect_attempts == 5
    assert config.positions.base_reconnect_delay_s == 1.0


def test_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        ConfigLoader(base_dir=str(tmp_path)).load("nope.toml")


def test_unknown_key_rejected() -> None:
    with pytest.raises(ConfigurationError) as exc_info:
        build_client_config({"positions": {"max_attempts": 3}})
    assert exc_info.value.field == "positions.max_attempts"


def test_invalid_value_rejected() -> None:
    with pytest.raises(ConfigurationError):
        build_client_config({"alerts": {"max_reconnect_attempts": -1}})
