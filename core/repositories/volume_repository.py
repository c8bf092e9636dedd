from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from core.domain.entities.candle_entity import VolumeBucketEntity
from core.services.series_key_service import SeriesKey


class VolumeRepository(ABC):
    """
    Per series key, ordered volume buckets. Volume is additive and order-independent.
    """

    @abstractmethod
    def upsert_volume(self, series_key: SeriesKey, bucket_start_ms: int, amount: float) -> VolumeBucketEntity:
        """
        Create the bucket with value=amount, or add amount to it.
        """
        raise NotImplementedError

    @abstractmethod
    def query(self, series_key: SeriesKey, limit: int) -> List[VolumeBucketEntity]: ...

    @abstractmethod
    def latest(self, series_key: SeriesKey) -> Optional[VolumeBucketEntity]: ...

    @abstractmethod
    def get(self, series_key: SeriesKey, bucket_start_ms: int) -> Optional[VolumeBucketEntity]: ...

    @abstractmethod
    def compact(self, series_key: SeriesKey, keep: int) -> int: ...

    @abstractmethod
    def count(self, series_key: SeriesKey) -> int: ...

    @abstractmethod
    def drop(self, series_key: SeriesKey) -> int: ...
