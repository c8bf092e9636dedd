from __future__ import annotations

from typing import Dict, List, Optional

from adapters.external.memory.bucket_index import BucketIndex
from core.domain.entities.candle_entity import VolumeBucketEntity
from core.repositories.volume_repository import VolumeRepository
from core.services.series_key_service import SeriesKey


class VolumeRepositoryMemory(VolumeRepository):
    """
    In-memory volume store, parallel to CandleRepositoryMemory.
    """

    def __init__(self) -> None:
        self._series: Dict[SeriesKey, BucketIndex[VolumeBucketEntity]] = {}

    def upsert_volume(self, series_key: SeriesKey, bucket_start_ms: int, amount: float) -> VolumeBucketEntity:
        index = self._series.get(series_key)
        if index is None:
            index = self._series[series_key] = BucketIndex()

        bucket = index.get(int(bucket_start_ms))
        if bucket is None:
            bucket = VolumeBucketEntity.opened_at(bucket_start_ms=int(bucket_start_ms), amount=amount)
            index.put(int(bucket_start_ms), bucket)
        else:
            bucket.add(amount)

        return bucket.model_copy()

    def query(self, series_key: SeriesKey, limit: int) -> List[VolumeBucketEntity]:
        index = self._series.get(series_key)
        if index is None:
            return []
        return [v.model_copy() for v in index.tail(int(limit))]

    def latest(self, series_key: SeriesKey) -> Optional[VolumeBucketEntity]:
        out = self.query(series_key, 1)
        return out[0] if out else None

    def get(self, series_key: SeriesKey, bucket_start_ms: int) -> Optional[VolumeBucketEntity]:
        index = self._series.get(series_key)
        if index is None:
            return None
        bucket = index.get(int(bucket_start_ms))
        return bucket.model_copy() if bucket is not None else None

    def compact(self, series_key: SeriesKey, keep: int) -> int:
        index = self._series.get(series_key)
        return index.drop_oldest(keep) if index is not None else 0

    def count(self, series_key: SeriesKey) -> int:
        index = self._series.get(series_key)
        return len(index) if index is not None else 0

    def drop(self, series_key: SeriesKey) -> int:
        index = self._series.pop(series_key, None)
        return len(index) if index is not None else 0
