"""
Merge of externally fetched history with live aggregator buckets.

Live-authoritative merge: on a bucket-time collision the live candle replaces the historical
one (the live bucket may still be forming), while volumes from both sides are summed since
they can describe disjoint trade subsets of the same bucket.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional

from core.domain.entities.candle_entity import CandleEntity, VolumeBucketEntity, VolumeColor
from core.domain.entities.series_entity import MergedSeriesEntity, PairStatsEntity
from core.services.interval_service import ONE_DAY_MS

DEFAULT_MERGE_LIMIT = 200


def merge_candles(
    historical: Iterable[CandleEntity],
    live: Iterable[CandleEntity],
    limit: int = DEFAULT_MERGE_LIMIT,
) -> List[CandleEntity]:
    by_time: Dict[int, CandleEntity] = {}
    for c in sorted(historical, key=lambda x: x.time):
        by_time[c.time] = c.model_copy()
    for c in sorted(live, key=lambda x: x.time):
        by_time[c.time] = c.model_copy()

    merged = [by_time[t] for t in sorted(by_time)]
    return _tail(merged, limit)


def merge_volumes(
    historical: Iterable[VolumeBucketEntity],
    live: Iterable[VolumeBucketEntity],
    limit: int = DEFAULT_MERGE_LIMIT,
) -> List[VolumeBucketEntity]:
    by_time: Dict[int, VolumeBucketEntity] = {}
    for v in list(historical) + list(live):
        current = by_time.get(v.time)
        if current is None:
            by_time[v.time] = VolumeBucketEntity(time=v.time, value=float(v.value))
        else:
            current.value += float(v.value)

    merged = [by_time[t] for t in sorted(by_time)]
    return _tail(merged, limit)


def color_volumes(volumes: List[VolumeBucketEntity], candles: Iterable[CandleEntity]) -> List[VolumeBucketEntity]:
    by_time = {c.time: c for c in candles}
    for v in volumes:
        c = by_time.get(v.time)
        v.color = c.direction() if c is not None else VolumeColor.NEUTRAL
    return volumes


def compute_pair_stats(
    candles: List[CandleEntity],
    volumes: List[VolumeBucketEntity],
    *,
    interval_ms: int,
    current_price: Optional[float] = None,
    market_cap: Optional[float] = None,
) -> PairStatsEntity:
    """
    lastPrice / change24h / volume24h / marketCap for an ascending series.

    The 24h reference candle sits `candles_per_day` buckets before the newest one and is
    clamped to the oldest available candle when the series is shorter.
    """
    candles_per_day = max(1, ONE_DAY_MS // max(1, int(interval_ms)))

    if current_price is not None:
        last_price = float(current_price)
    elif candles:
        last_price = float(candles[-1].close)
    else:
        last_price = 0.0

    change_24h = 0.0
    if candles:
        ref = candles[max(0, len(candles) - 1 - candles_per_day)]
        if ref.open:
            change_24h = (last_price - ref.open) / ref.open * 100.0

    volume_24h = float(sum(v.value for v in volumes[-candles_per_day:]))

    return PairStatsEntity(
        last_price=last_price,
        change_24h=change_24h,
        volume_24h=volume_24h,
        market_cap=float(market_cap) if market_cap else 0.0,
    )


def merge_with_historical(
    historical_candles: Iterable[CandleEntity],
    historical_volumes: Iterable[VolumeBucketEntity],
    live_candles: Iterable[CandleEntity],
    live_volumes: Iterable[VolumeBucketEntity],
    *,
    pair_id: str,
    interval: str,
    interval_ms: int,
    limit: int = DEFAULT_MERGE_LIMIT,
    current_price: Optional[float] = None,
    market_cap: Optional[float] = None,
) -> MergedSeriesEntity:
    candles = merge_candles(historical_candles, live_candles, limit)
    volumes = color_volumes(merge_volumes(historical_volumes, live_volumes, limit), candles)

    stats = compute_pair_stats(
        candles,
        volumes,
        interval_ms=interval_ms,
        current_price=current_price,
        market_cap=market_cap,
    )
    return MergedSeriesEntity(
        pair_id=pair_id,
        interval=interval,
        candles=candles,
        volume=volumes,
        stats=stats,
    )


def _tail(items: list, limit: int) -> list:
    if limit <= 0:
        return []
    return items[-int(limit):]
