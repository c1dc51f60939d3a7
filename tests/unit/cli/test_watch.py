import asyncio
import io
import json
from pathlib import Path
from typing import Any

import pytest

from lpstream.cli.watch import build_parser, format_envelope, watch
from lpstream.live.config import ChannelConfig, LiveClientConfig, PageLocation
from lpstream.live.decoder import MessageDecoder


def test_build_parser():
    p = build_parser()
    assert p.prog == "lpstream-watch"
    args = p.parse_args(["--url", "https://lp.example.com", "--config", "live.toml"])
    assert args.url == "https://lp.example.com"
    assert args.config == Path("live.toml")
    assert args.channel == "all"
    assert args.log_level == "INFO"


def test_format_envelope(position_frame: str):
    envelope = MessageDecoder().decode(position_frame)
    line = json.loads(format_envelope("positions", envelope))

    assert line["channel"] == "positions"
    assert line["type"] == "position_update"
    assert line["position_address"] == "Pxyz"
    assert line["data"]["value_usd"] == "100.00"
    assert line["data"]["in_range"] is True


@pytest.mark.asyncio
async def test_watch_prints_envelopes(socket_factory: Any, wait_until: Any, alert_frame: str):
    config = LiveClientConfig(location=PageLocation.from_url("http://localhost:8000"))
    out = io.StringIO()
    stop = asyncio.Event()

    task = asyncio.create_task(
        watch(config, ["alerts"], out=out, stop=stop, socket_factory=socket_factory)
    )
    await wait_until(lambda: len(socket_factory.sockets_for("/ws/alerts")) == 1)
    socket_factory.sockets_for("/ws/alerts")[0].push_text(alert_frame)
    await wait_until(lambda: out.getvalue() != "")

    stop.set()
    assert await task == 0

    line = json.loads(out.getvalue().splitlines()[0])
    assert line["channel"] == "alerts"
    assert line["severity"] == "critical"
    assert all(s.closed for s in socket_factory.sockets)


@pytest.mark.asyncio
async def test_watch_exits_when_channels_give_up(socket_factory: Any):
    config = LiveClientConfig(
        positions=ChannelConfig(
            "positions", "/ws/positions", base_reconnect_delay_s=0.001, max_reconnect_attempts=1
        ),
        alerts=ChannelConfig(
            "alerts", "/ws/alerts", base_reconnect_delay_s=0.001, max_reconnect_attempts=1
        ),
    )
    socket_factory.always_fail = True

    code = await asyncio.wait_for(
        watch(config, ["positions", "alerts"], out=io.StringIO(), socket_factory=socket_factory),
        timeout=2.0,
    )

    assert code == 1
    assert socket_factory.attempts == 4


@pytest.mark.asyncio
async def test_watch_ignores_unwatched_channel_giving_up(socket_factory: Any, wait_until: Any):
    config = LiveClientConfig(
        positions=ChannelConfig(
            "positions", "/ws/positions", base_reconnect_delay_s=0.001, max_reconnect_attempts=1
        ),
    )
    socket_factory.fail_paths.add("/ws/positions")
    stop = asyncio.Event()

    task = asyncio.create_task(
        watch(config, ["alerts"], out=io.StringIO(), stop=stop, socket_factory=socket_factory)
    )
    # Initial attempt plus one reconnect, then positions gives up
    await wait_until(
        lambda: sum(url.endswith("/ws/positions") for url in socket_factory.urls) == 2
    )
    await asyncio.sleep(0.02)
    assert not task.done()

    stop.set()
    assert await task == 0
