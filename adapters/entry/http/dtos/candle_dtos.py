from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class CandleOutDTO(BaseModel):
    time: int
    open: float
    high: float
    low: float
    close: float


class VolumeOutDTO(BaseModel):
    time: int
    value: float
    color: Optional[str] = None


class PairStatsOutDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    last_price: float = Field(default=0.0, alias="lastPrice")
    change_24h: float = Field(default=0.0, alias="change24h")
    volume_24h: float = Field(default=0.0, alias="volume24h")
    market_cap: float = Field(default=0.0, alias="marketCap")


class CandlesOutDTO(BaseModel):
    """
    Chart snapshot: merged history + live candles, colored volume bars and pair stats.
    """

    candles: List[CandleOutDTO] = Field(default_factory=list)
    volume: List[VolumeOutDTO] = Field(default_factory=list)
    stats: PairStatsOutDTO = Field(default_factory=PairStatsOutDTO)


class PairOutDTO(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    address: str
    token0: str
    token1: str
    token0_symbol: str = Field(alias="token0Symbol")
    token1_symbol: str = Field(alias="token1Symbol")
    volume_usd: str = Field(alias="volumeUSD")
    reserve_usd: str = Field(alias="reserveUSD")


class PairsOutDTO(BaseModel):
    pairs: List[PairOutDTO] = Field(default_factory=list)


class TradeIngestDTO(BaseModel):
    """
    Manual trade for local testing (dev route).

    timestamp is epoch milliseconds; the trade is folded into every supported interval.
    """

    pair: str = Field(..., description="Pair id / address")
    timestamp: int = Field(..., ge=0, description="Epoch milliseconds")
    price: float = Field(..., ge=0)
    volume: float = Field(default=0.0, ge=0)
    raw_event_id: Optional[str] = Field(default=None)

    @field_validator("pair")
    @classmethod
    def _strip_pair(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("pair is required")
        return v


class TradeIngestOutDTO(BaseModel):
    accepted: bool
    series: List[str] = Field(default_factory=list)
