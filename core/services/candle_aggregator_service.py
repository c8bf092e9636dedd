from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional, Tuple

from core.domain.entities.candle_entity import CandleEntity, VolumeBucketEntity, VolumeColor
from core.domain.entities.trade_event_entity import TradeEventEntity
from core.domain.errors import InvalidInputError
from core.repositories.candle_repository import CandleRepository
from core.repositories.volume_repository import VolumeRepository
from core.services.interval_service import IntervalService
from core.services.series_key_service import SeriesKey, SeriesKeyService


class CandleAggregator:
    """
    Single entry point that folds trade events into candle + volume buckets.

    Behavior:
      - bucket = floor(ts / duration) * duration for the requested interval
      - candle and volume for the same event are applied under one per-series lock,
        so readers never see one without the other
      - events older than `late_event_grace_buckets` intervals behind the newest bucket
        are dropped (None disables the check)
      - each series keeps at most `max_buckets_per_series` buckets (None disables)

    The instance is owned by the hosting process (see FeedSupervisor) and passed to
    whoever needs it.
    """

    def __init__(
        self,
        *,
        candle_repository: CandleRepository,
        volume_repository: VolumeRepository,
        interval_service: IntervalService,
        max_buckets_per_series: Optional[int] = 5000,
        late_event_grace_buckets: Optional[int] = 1,
        logger: logging.Logger | None = None,
    ):
        self._candles = candle_repository
        self._volumes = volume_repository
        self._intervals = interval_service
        self._max_buckets = int(max_buckets_per_series) if max_buckets_per_series else None
        self._grace = int(late_event_grace_buckets) if late_event_grace_buckets is not None else None
        self._logger = logger or logging.getLogger(self.__class__.__name__)

        self._registry_lock = threading.Lock()
        self._locks: Dict[SeriesKey, threading.Lock] = {}

    @property
    def intervals(self) -> IntervalService:
        return self._intervals

    def _lock_for(self, key: SeriesKey) -> threading.Lock:
        lock = self._locks.get(key)
        if lock is None:
            with self._registry_lock:
                lock = self._locks.setdefault(key, threading.Lock())
        return lock

    @staticmethod
    def _key(pair_id: str, interval: str) -> SeriesKey:
        key = SeriesKeyService.build(pair_id=pair_id, interval=interval)
        if not key.pair_id:
            raise InvalidInputError("pair is required")
        if not key.interval:
            raise InvalidInputError("interval is required")
        return key

    # -------------------------
    # Ingest
    # -------------------------
    def ingest(self, event: TradeEventEntity, interval: str) -> bool:
        """
        Fold one trade into the (pair, interval) series.

        Returns False when the event was dropped by the late-event policy.
        """
        key = self._key(event.pair_id, interval)
        duration = self._intervals.duration_ms(key.interval)
        bucket_start = (int(event.timestamp_ms) // duration) * duration

        with self._lock_for(key):
            newest = self._candles.latest_bucket_start(key)
            if self._grace is not None and newest is not None and bucket_start < newest - self._grace * duration:
                self._logger.warning(
                    "Dropping late trade series=%s bucket=%s newest=%s ts=%s",
                    key,
                    bucket_start,
                    newest,
                    event.timestamp_ms,
                )
                return False

            self._candles.upsert(key, bucket_start, event.price)
            self._volumes.upsert_volume(key, bucket_start, event.volume)

            if self._max_buckets is not None:
                slack = max(1, self._max_buckets // 10)
                if self._candles.count(key) > self._max_buckets + slack:
                    dropped = self._candles.compact(key, self._max_buckets)
                    self._volumes.compact(key, self._max_buckets)
                    self._logger.debug("Compacted series=%s dropped=%s", key, dropped)

        return True

    def ingest_all(self, event: TradeEventEntity, intervals: Iterable[str]) -> List[SeriesKey]:
        """
        Fan one trade out to several intervals. Returns the series keys actually updated.
        """
        updated: List[SeriesKey] = []
        for itv in intervals:
            if self.ingest(event, itv):
                updated.append(self._key(event.pair_id, itv))
        return updated

    # -------------------------
    # Queries
    # -------------------------
    def get_candles(self, pair_id: str, interval: str, limit: int = 100) -> List[CandleEntity]:
        key = self._key(pair_id, interval)
        with self._lock_for(key):
            return self._candles.query(key, int(limit))

    def get_volumes(self, pair_id: str, interval: str, limit: int = 100) -> List[VolumeBucketEntity]:
        """
        Most recent volume buckets, colored from the paired candle.
        """
        key = self._key(pair_id, interval)
        with self._lock_for(key):
            volumes = self._volumes.query(key, int(limit))
            candles = self._candles.query(key, int(limit))

        by_time = {c.time: c for c in candles}
        for v in volumes:
            c = by_time.get(v.time)
            v.color = c.direction() if c is not None else VolumeColor.NEUTRAL
        return volumes

    def get_latest_candle(self, pair_id: str, interval: str) -> Optional[CandleEntity]:
        key = self._key(pair_id, interval)
        with self._lock_for(key):
            return self._candles.latest(key)

    def get_latest_volume(self, pair_id: str, interval: str) -> Optional[VolumeBucketEntity]:
        candle, volume = self.get_latest(pair_id, interval)
        return volume

    def get_latest(
        self, pair_id: str, interval: str
    ) -> Tuple[Optional[CandleEntity], Optional[VolumeBucketEntity]]:
        """
        Latest candle and its volume bucket read in one critical section.
        """
        key = self._key(pair_id, interval)
        with self._lock_for(key):
            candle = self._candles.latest(key)
            volume = self._volumes.latest(key)

        if volume is not None:
            volume.color = candle.direction() if candle is not None else VolumeColor.NEUTRAL
        return candle, volume

    def get_bucket(
        self, pair_id: str, interval: str, bucket_start_ms: int
    ) -> Tuple[Optional[CandleEntity], Optional[VolumeBucketEntity]]:
        """
        Candle and volume of one bucket, read together like get_latest().
        """
        key = self._key(pair_id, interval)
        with self._lock_for(key):
            candle = self._candles.get(key, int(bucket_start_ms))
            volume = self._volumes.get(key, int(bucket_start_ms))

        if volume is not None:
            volume.color = candle.direction() if candle is not None else VolumeColor.NEUTRAL
        return candle, volume

    # -------------------------
    # Eviction
    # -------------------------
    def drop_pair(self, pair_id: str) -> int:
        """
        Forget every interval series of a pair. Returns the number of candle buckets dropped.
        """
        pair = SeriesKeyService.build(pair_id=pair_id, interval="").pair_id
        dropped = 0
        for key in self._candles.series_keys():
            if key.pair_id != pair:
                continue
            with self._lock_for(key):
                dropped += self._candles.drop(key)
                self._volumes.drop(key)
        return dropped
