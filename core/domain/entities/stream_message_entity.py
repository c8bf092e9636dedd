from __future__ import annotations

from typing import Annotated, Literal, Union

from pydantic import Field

from core.domain.entities.base_entity import DomainEntity
from core.domain.entities.candle_entity import CandleEntity, VolumeBucketEntity
from core.domain.entities.series_entity import PairStatsEntity


class ConnectedMessage(DomainEntity):
    type: Literal["connected"] = "connected"
    pair: str
    interval: str


class CandleUpdateMessage(DomainEntity):
    type: Literal["candle"] = "candle"
    candle: CandleEntity


class VolumeUpdateMessage(DomainEntity):
    type: Literal["volume"] = "volume"
    volume: VolumeBucketEntity


class StatsUpdateMessage(DomainEntity):
    type: Literal["stats"] = "stats"
    stats: PairStatsEntity


# Live feed message, tagged by `type`
StreamMessage = Annotated[
    Union[ConnectedMessage, CandleUpdateMessage, VolumeUpdateMessage, StatsUpdateMessage],
    Field(discriminator="type"),
]
