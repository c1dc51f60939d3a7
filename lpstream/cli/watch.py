"""lpstream-watch CLI entrypoint.

Connects the positions and alerts channels and prints every decoded envelope
as one JSON line on stdout until interrupted.

Usage: lpstream-watch --url https://lp.example.com [--config live.toml] [--log-level INFO]
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

import orjson

from lpstream.config.config_loader import ConfigLoader
from lpstream.live.config import LiveClientConfig
from lpstream.live.errors import ConfigurationError, ExhaustedRetriesError
from lpstream.live.messages import Envelope
from lpstream.live.manager import LiveUpdatesManager
from lpstream.live.sockets import SocketFactory

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """
    Return the CLI argument parser.
    """
    p = argparse.ArgumentParser(prog="lpstream-watch", description="Stream live LP updates")
    p.add_argument("--url", help="Page address the sockets are derived from")
    p.add_argument("--config", type=Path, required=False, help="Path to a TOML config file")
    p.add_argument(
        "--channel",
        choices=["positions", "alerts", "all"],
        default="all",
        help="Which channel(s) to print",
    )
    p.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    return p


def format_envelope(channel: str, envelope: Envelope) -> str:
    """One JSON line per envelope, tagged with its channel."""
    payload = {"channel": channel, **envelope.model_dump(mode="json")}
    return orjson.dumps(payload).decode("utf-8")


async def watch(
    config: LiveClientConfig,
    channels: list[str],
    out: TextIO = sys.stdout,
    stop: Optional[asyncio.Event] = None,
    socket_factory: Optional[SocketFactory] = None,
) -> int:
    """Stream envelopes until ``stop`` is set or every watched channel gives up."""
    stop = stop or asyncio.Event()
    exhausted: set[str] = set()

    def on_exhausted(channel: str, error: ExhaustedRetriesError) -> None:
        exhausted.add(channel)
        if exhausted >= set(channels):
            stop.set()

    manager = LiveUpdatesManager(config, socket_factory=socket_factory, on_exhausted=on_exhausted)
    for channel in channels:
        manager.subscribe(
            channel, lambda env, ch=channel: print(format_envelope(ch, env), file=out, flush=True)
        )

    async with manager.mounted():
        await stop.wait()

    return 1 if exhausted >= set(channels) else 0


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint wrapper compatible with setuptools scripts."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = ConfigLoader().load_client_config(
            str(args.config) if args.config else None, url=args.url
        )
    except (ConfigurationError, FileNotFoundError) as e:
        parser.error(str(e))

    channels = (
        [config.positions.name, config.alerts.name]
        if args.channel == "all"
        else [getattr(config, args.channel).name]
    )

    try:
        return asyncio.run(watch(config, channels))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
