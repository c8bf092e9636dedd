from __future__ import annotations

from typing import Optional

from pydantic import Field, field_validator

from core.domain.entities.base_entity import DomainEntity


class TradeEventEntity(DomainEntity):
    """
    A single normalized swap for a pair.

    Consumed once by the aggregator and never stored verbatim.
    timestamp_ms is epoch milliseconds; price/volume are already scaled by token decimals.
    """

    timestamp_ms: int = Field(ge=0, alias="timestamp")
    price: float = Field(ge=0.0)
    volume: float = Field(ge=0.0)
    pair_id: str = Field(alias="pair")

    raw_event_id: Optional[str] = None

    @field_validator("pair_id")
    @classmethod
    def _strip_pair(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("pair is required")
        return v
