from __future__ import annotations

from typing import Dict, List, Optional

from adapters.external.memory.bucket_index import BucketIndex
from core.domain.entities.candle_entity import CandleEntity
from core.repositories.candle_repository import CandleRepository
from core.services.series_key_service import SeriesKey


class CandleRepositoryMemory(CandleRepository):
    """
    In-memory candle store.

    One BucketIndex per series key, keyed by bucket start in ms. Readers get copies so a
    bucket handed out can never change under them.
    """

    def __init__(self) -> None:
        self._series: Dict[SeriesKey, BucketIndex[CandleEntity]] = {}

    def upsert(self, series_key: SeriesKey, bucket_start_ms: int, price: float) -> CandleEntity:
        index = self._series.get(series_key)
        if index is None:
            index = self._series[series_key] = BucketIndex()

        candle = index.get(int(bucket_start_ms))
        if candle is None:
            candle = CandleEntity.opened_at(bucket_start_ms=int(bucket_start_ms), price=price)
            index.put(int(bucket_start_ms), candle)
        else:
            candle.apply_trade(price)

        return candle.model_copy()

    def query(self, series_key: SeriesKey, limit: int) -> List[CandleEntity]:
        index = self._series.get(series_key)
        if index is None:
            return []
        return [c.model_copy() for c in index.tail(int(limit))]

    def latest(self, series_key: SeriesKey) -> Optional[CandleEntity]:
        out = self.query(series_key, 1)
        return out[0] if out else None

    def get(self, series_key: SeriesKey, bucket_start_ms: int) -> Optional[CandleEntity]:
        index = self._series.get(series_key)
        if index is None:
            return None
        candle = index.get(int(bucket_start_ms))
        return candle.model_copy() if candle is not None else None

    def latest_bucket_start(self, series_key: SeriesKey) -> Optional[int]:
        index = self._series.get(series_key)
        return index.last_key() if index is not None else None

    def compact(self, series_key: SeriesKey, keep: int) -> int:
        index = self._series.get(series_key)
        return index.drop_oldest(keep) if index is not None else 0

    def count(self, series_key: SeriesKey) -> int:
        index = self._series.get(series_key)
        return len(index) if index is not None else 0

    def series_keys(self) -> List[SeriesKey]:
        return list(self._series)

    def drop(self, series_key: SeriesKey) -> int:
        index = self._series.pop(series_key, None)
        return len(index) if index is not None else 0
