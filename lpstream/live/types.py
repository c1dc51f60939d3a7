"""
Shared types, enums, and data structures for the live update client.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class ConnectionState(str, Enum):
    """State machine for an individual channel connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECT_SCHEDULED = "reconnect_scheduled"


@dataclass
class ConnectionMetrics:
    """Counters for a channel connection, kept across reconnects."""

    connection_attempts: int = 0
    frames_received: int = 0
    bytes_received: int = 0
    envelopes_dispatched: int = 0
    decode_failures: int = 0
    transport_errors: int = 0
    reconnects_scheduled: int = 0
    messages_sent: int = 0


@dataclass
class ChannelHealth:
    """Health snapshot for a single channel."""

    name: str
    state: ConnectionState
    url: str
    reconnect_attempt: int = 0
    connected_since: Optional[datetime] = None
    last_message_at: Optional[datetime] = None
    frames_received: int = 0
    envelopes_dispatched: int = 0
    decode_failures: int = 0
    transport_errors: int = 0
    last_error: Optional[str] = None
    last_error_at: Optional[datetime] = None

    @property
    def is_healthy(self) -> bool:
        """Check if channel is connected."""
        return self.state == ConnectionState.CONNECTED

    @property
    def uptime_s(self) -> Optional[float]:
        """Connection uptime in seconds, or None if not connected."""
        if self.connected_since is None:
            return None
        now = datetime.now(timezone.utc)
        return (now - self.connected_since).total_seconds()

    @property
    def seconds_since_message(self) -> Optional[float]:
        """Seconds since last frame, or None if no frames yet."""
        if self.last_message_at is None:
            return None
        now = datetime.now(timezone.utc)
        return (now - self.last_message_at).total_seconds()
