"""
Message Decoder for live update channels.

Turns raw text frames into validated Envelopes. A frame that cannot be
decoded is reported and dropped; it never propagates past ``decode()`` so a
single bad frame cannot terminate the stream.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Union

import orjson
from pydantic import ValidationError

from lpstream.live.errors import DecodeFailure
from lpstream.live.messages import ENVELOPE_ADAPTER, ENVELOPE_TYPES, Envelope

logger = logging.getLogger(__name__)


@dataclass
class DecoderStats:
    """Statistics for frame decoding."""

    total_frames: int = 0
    decoded: int = 0
    failures: int = 0
    by_type: dict[str, int] = field(default_factory=dict)
    by_reason: dict[str, int] = field(default_factory=dict)


class MessageDecoder:
    """
    Decodes JSON text frames into ``PositionUpdate`` / ``AlertUpdate`` envelopes.

    Usage:
        decoder = MessageDecoder(on_failure=lambda err: print(err.reason))
        envelope = decoder.decode('{"type": "alert", ...}')
        if envelope is not None:
            registry.dispatch(envelope)
    """

    def __init__(
        self,
        on_failure: Optional[Callable[[DecodeFailure], None]] = None,
        name: str = "decoder",
    ) -> None:
        self._on_failure = on_failure
        self._name = name
        self._stats = DecoderStats()

    @property
    def stats(self) -> DecoderStats:
        """Get decoding statistics."""
        return self._stats

    def decode(self, raw: Union[str, bytes]) -> Optional[Envelope]:
        """
        Decode a frame, returning None when it is rejected.

        Rejections are counted, logged and handed to the ``on_failure`` hook.
        """
        self._stats.total_frames += 1

        try:
            envelope = self.parse(raw)
        except DecodeFailure as e:
            self._record_failure(e)
            return None

        self._stats.decoded += 1
        self._stats.by_type[envelope.type] = self._stats.by_type.get(envelope.type, 0) + 1
        return envelope

    def parse(self, raw: Union[str, bytes]) -> Envelope:
        """
        Decode a frame.

        Raises:
            DecodeFailure: If the frame is not a valid envelope
        """
        raw_text = raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else raw

        try:
            data: Any = orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            raise DecodeFailure(
                f"Malformed JSON: {e}",
                reason=DecodeFailure.MALFORMED_JSON,
                raw_data=raw_text,
                component=self._name,
            ) from e

        if not isinstance(data, dict):
            raise DecodeFailure(
                f"Expected JSON object, got {type(data).__name__}",
                reason=DecodeFailure.NOT_AN_OBJECT,
                raw_data=raw_text,
                component=self._name,
            )

        tag = data.get("type")
        if tag is None:
            raise DecodeFailure(
                "Frame has no type field",
                reason=DecodeFailure.MISSING_TYPE,
                raw_data=raw_text,
                component=self._name,
            )

        if not isinstance(tag, str) or tag not in ENVELOPE_TYPES:
            raise DecodeFailure(
                f"Unknown frame type: {tag!r}",
                reason=DecodeFailure.UNKNOWN_TYPE,
                raw_data=raw_text,
                component=self._name,
            )

        try:
            return ENVELOPE_ADAPTER.validate_python(data)
        except ValidationError as e:
            fields = sorted({_field_path(err["loc"], tag) for err in e.errors()})
            raise DecodeFailure(
                f"Frame does not match {tag} schema: {', '.join(fields)}",
                reason=DecodeFailure.SCHEMA_MISMATCH,
                raw_data=raw_text,
                expected_type=tag,
                component=self._name,
            ) from e

    def _record_failure(self, error: DecodeFailure) -> None:
        self._stats.failures += 1
        self._stats.by_reason[error.reason] = self._stats.by_reason.get(error.reason, 0) + 1
        logger.warning(f"[{self._name}] Dropping frame: {error}")

        if self._on_failure:
            try:
                self._on_failure(error)
            except Exception as cb_err:
                logger.warning(f"[{self._name}] Decode failure callback error: {cb_err}")

    def reset_stats(self) -> None:
        """Reset decoding statistics."""
        self._stats = DecoderStats()


def _field_path(loc: tuple[Any, ...], tag: str) -> str:
    # Union errors are located under the discriminator value first
    if loc[:1] == (tag,):
        loc = loc[1:]
    return ".".join(str(p) for p in loc)
