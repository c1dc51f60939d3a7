"""
Envelope models for server-pushed events.

Every frame carries a ``type`` tag selecting one of two variants:

    {"type": "position_update", "position_address": "...", "timestamp": "...",
     "data": {"value_usd": "100.00", "pnl_percent": "2.5",
              "il_percent": "0.1", "in_range": true}}

    {"type": "alert", "level": "warning", "title": "...", "message": "...",
     "timestamp": "..."}
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter

POSITION_UPDATE = "position_update"
ALERT = "alert"


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class _WireModel(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)


class PositionValuation(_WireModel):
    value_usd: Decimal  # valuation in quote currency
    pnl_percent: Decimal
    il_percent: Decimal  # impermanent loss
    in_range: bool


class PositionUpdate(_WireModel):
    """Valuation tick for a single liquidity position."""

    type: Literal["position_update"] = POSITION_UPDATE
    position_address: str
    timestamp: str
    data: PositionValuation

    @property
    def value_usd(self) -> Decimal:
        return self.data.value_usd

    @property
    def pnl_percent(self) -> Decimal:
        return self.data.pnl_percent

    @property
    def il_percent(self) -> Decimal:
        return self.data.il_percent

    @property
    def in_range(self) -> bool:
        return self.data.in_range


class AlertUpdate(_WireModel):
    """Operator alert. The backend sends the severity as ``level``."""

    type: Literal["alert"] = ALERT
    severity: AlertSeverity = Field(validation_alias=AliasChoices("level", "severity"))
    title: str
    message: str
    timestamp: str


Envelope = Annotated[Union[PositionUpdate, AlertUpdate], Field(discriminator="type")]

ENVELOPE_TYPES = frozenset({POSITION_UPDATE, ALERT})

ENVELOPE_ADAPTER: TypeAdapter[Envelope] = TypeAdapter(Envelope)
