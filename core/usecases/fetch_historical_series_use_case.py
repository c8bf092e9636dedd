from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional, Tuple

from adapters.external.memory.candle_repository_memory import CandleRepositoryMemory
from adapters.external.memory.volume_repository_memory import VolumeRepositoryMemory
from core.domain.entities.candle_entity import CandleEntity, VolumeBucketEntity
from core.repositories.pair_market_repository import PairMarketRepository
from core.services.candle_aggregator_service import CandleAggregator
from core.services.interval_service import IntervalService


class FetchHistoricalSeriesUseCase:
    """
    Builds historical candles/volumes for a pair from the swap history of the source.

    Swaps for the last `limit` buckets are bucketed with a throwaway CandleAggregator so
    history and live data follow exactly the same bucketing rules. Nothing is retained.
    """

    def __init__(
        self,
        *,
        market_repository: PairMarketRepository,
        interval_service: IntervalService,
        max_swaps: int = 5000,
        clock: Callable[[], float] = time.time,
        logger: logging.Logger | None = None,
    ):
        self._market = market_repository
        self._intervals = interval_service
        self._max_swaps = int(max_swaps)
        self._clock = clock
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    async def execute(
        self,
        *,
        pair_id: str,
        interval: str,
        limit: int,
        until_ms: Optional[int] = None,
    ) -> Tuple[List[CandleEntity], List[VolumeBucketEntity]]:
        end_ms = int(until_ms) if until_ms is not None else int(self._clock() * 1000)
        duration = self._intervals.duration_ms(interval)
        since_ms = self._intervals.bucket_start_ms(end_ms, interval) - (max(1, int(limit)) - 1) * duration

        swaps = await self._market.get_swaps(
            pair_id=pair_id,
            since_ms=max(0, since_ms),
            until_ms=end_ms,
            limit=self._max_swaps,
        )

        scratch = CandleAggregator(
            candle_repository=CandleRepositoryMemory(),
            volume_repository=VolumeRepositoryMemory(),
            interval_service=self._intervals,
            max_buckets_per_series=None,
            late_event_grace_buckets=None,
            logger=self._logger,
        )
        for swap in swaps:
            scratch.ingest(swap, interval)

        candles = scratch.get_candles(pair_id, interval, limit)
        volumes = scratch.get_volumes(pair_id, interval, limit)
        self._logger.debug(
            "Historical series pair=%s interval=%s swaps=%s candles=%s",
            pair_id,
            interval,
            len(swaps),
            len(candles),
        )
        return candles, volumes
