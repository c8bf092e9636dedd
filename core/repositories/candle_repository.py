from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from core.domain.entities.candle_entity import CandleEntity
from core.services.series_key_service import SeriesKey


class CandleRepository(ABC):
    """
    Per series key, ordered OHLC buckets keyed by bucket start time.

    Implementations are not required to be thread-safe: CandleAggregator serializes access.
    """

    @abstractmethod
    def upsert(self, series_key: SeriesKey, bucket_start_ms: int, price: float) -> CandleEntity:
        """
        Create the bucket with open=high=low=close=price, or fold the price into it.
        """
        raise NotImplementedError

    @abstractmethod
    def query(self, series_key: SeriesKey, limit: int) -> List[CandleEntity]:
        """
        Most recent `limit` buckets in ascending time order (copies).
        """
        raise NotImplementedError

    @abstractmethod
    def latest(self, series_key: SeriesKey) -> Optional[CandleEntity]: ...

    @abstractmethod
    def get(self, series_key: SeriesKey, bucket_start_ms: int) -> Optional[CandleEntity]: ...

    @abstractmethod
    def latest_bucket_start(self, series_key: SeriesKey) -> Optional[int]: ...

    @abstractmethod
    def compact(self, series_key: SeriesKey, keep: int) -> int:
        """
        Drop the oldest buckets so at most `keep` remain. Returns how many were dropped.
        """
        raise NotImplementedError

    @abstractmethod
    def count(self, series_key: SeriesKey) -> int: ...

    @abstractmethod
    def drop(self, series_key: SeriesKey) -> int:
        """
        Remove the whole series. Returns how many buckets were dropped.
        """
        raise NotImplementedError

    @abstractmethod
    def series_keys(self) -> List[SeriesKey]: ...
