from __future__ import annotations

from typing import List

from pydantic import Field

from core.domain.entities.base_entity import DomainEntity
from core.domain.entities.candle_entity import CandleEntity, VolumeBucketEntity


class PairStatsEntity(DomainEntity):
    """
    Summary statistics shown next to the chart.

    market_cap comes from external reserve data; 0 means unknown.
    """

    last_price: float = Field(default=0.0, alias="lastPrice")
    change_24h: float = Field(default=0.0, alias="change24h")
    volume_24h: float = Field(default=0.0, alias="volume24h")
    market_cap: float = Field(default=0.0, alias="marketCap")


class MergedSeriesEntity(DomainEntity):
    """
    Read-time combination of historical and live data for one series key.
    """

    pair_id: str = Field(alias="pair")
    interval: str
    candles: List[CandleEntity] = Field(default_factory=list)
    volume: List[VolumeBucketEntity] = Field(default_factory=list)
    stats: PairStatsEntity = Field(default_factory=PairStatsEntity)
