"""
Custom exceptions for the live update client.

Exception hierarchy:
- LiveStreamError (base)
  - TransportError: WebSocket close/error on a channel
    - ExhaustedRetriesError: reconnect attempt budget spent
  - DecodeFailure: malformed or unrecognized frame
  - ConfigurationError: invalid configuration
  - UnknownChannelError: lookup of a channel that does not exist
"""

from __future__ import annotations

from typing import Any, Optional


class LiveStreamError(Exception):
    """Base exception for all live stream errors."""

    def __init__(
        self,
        message: str,
        *,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.component = component
        self.details = details or {}
        super().__init__(message)

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.component:
            parts.append(f"[component={self.component}]")
        if self.details:
            parts.append(f"[details={self.details}]")
        return " ".join(parts)


class TransportError(LiveStreamError):
    """Raised when a channel's WebSocket fails to open, errors, or closes."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        reconnect_attempt: int = 0,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.url = url
        self.reconnect_attempt = reconnect_attempt
        details = details or {}
        if url:
            details["url"] = url
        details["reconnect_attempt"] = reconnect_attempt
        super().__init__(message, component=component, details=details)


class ExhaustedRetriesError(TransportError):
    """Reported once when a channel has spent its reconnect attempt budget."""


class DecodeFailure(LiveStreamError):
    """Raised when an inbound frame cannot be turned into an Envelope."""

    MALFORMED_JSON = "malformed_json"
    NOT_AN_OBJECT = "not_an_object"
    MISSING_TYPE = "missing_type"
    UNKNOWN_TYPE = "unknown_type"
    SCHEMA_MISMATCH = "schema_mismatch"

    def __init__(
        self,
        message: str,
        *,
        reason: str,
        raw_data: Optional[str] = None,
        expected_type: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.reason = reason
        self.raw_data = raw_data
        self.expected_type = expected_type
        details = details or {}
        details["reason"] = reason
        if expected_type:
            details["expected_type"] = expected_type
        # Don't include raw_data in details to avoid log spam
        super().__init__(message, component=component, details=details)


class ConfigurationError(LiveStreamError):
    """Raised when configuration is invalid."""

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.field = field
        self.value = value
        details = details or {}
        if field:
            details["field"] = field
        if value is not None:
            details["value"] = str(value)
        super().__init__(message, component=component, details=details)


class UnknownChannelError(LiveStreamError):
    """Raised when a channel name does not match a configured channel."""

    def __init__(
        self,
        message: str,
        *,
        channel: Optional[str] = None,
        component: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        self.channel = channel
        details = details or {}
        if channel:
            details["channel"] = channel
        super().__init__(message, component=component, details=details)
