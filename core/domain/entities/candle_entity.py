# core/domain/entities/candle_entity.py
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import Field

from core.domain.entities.base_entity import DomainEntity


class VolumeColor(str, Enum):
    UP = "up"
    DOWN = "down"
    NEUTRAL = "neutral"


class CandleEntity(DomainEntity):
    """
    Represents one OHLC bucket for a (pair, interval) series.

    `time` is the bucket start in seconds (what the chart client expects), always a
    multiple of the interval duration. The bucket is created by the first trade in its
    window and mutated in place by later trades of the same window.
    """

    time: int
    open: float
    high: float
    low: float
    close: float

    @classmethod
    def opened_at(cls, *, bucket_start_ms: int, price: float) -> "CandleEntity":
        p = float(price)
        return cls(time=int(bucket_start_ms) // 1000, open=p, high=p, low=p, close=p)

    def apply_trade(self, price: float) -> None:
        """Update high/low/close with a trade price. Open is never touched."""
        p = float(price)
        if p > self.high:
            self.high = p
        if p < self.low:
            self.low = p
        self.close = p

    def direction(self) -> VolumeColor:
        if self.close > self.open:
            return VolumeColor.UP
        if self.close < self.open:
            return VolumeColor.DOWN
        return VolumeColor.NEUTRAL


class VolumeBucketEntity(DomainEntity):
    """
    Aggregated traded volume for one bucket, kept in lock-step with CandleEntity.

    `color` is not ground truth: it is filled from the paired candle when the bucket
    leaves the aggregator.
    """

    time: int
    value: float = Field(ge=0.0)
    color: Optional[VolumeColor] = None

    @classmethod
    def opened_at(cls, *, bucket_start_ms: int, amount: float) -> "VolumeBucketEntity":
        return cls(time=int(bucket_start_ms) // 1000, value=float(amount))

    def add(self, amount: float) -> None:
        self.value += float(amount)
