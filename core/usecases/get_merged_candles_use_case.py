from __future__ import annotations

import asyncio
import logging
from typing import Callable, Dict, List, Optional, Tuple

from core.domain.entities.candle_entity import CandleEntity, VolumeBucketEntity
from core.domain.entities.pair_entity import PairQuoteEntity
from core.domain.entities.series_entity import MergedSeriesEntity
from core.domain.errors import InvalidInputError, UpstreamUnavailableError
from core.repositories.pair_market_repository import PairMarketRepository
from core.services.candle_aggregator_service import CandleAggregator
from core.services.historical_merge_service import DEFAULT_MERGE_LIMIT, merge_with_historical
from core.usecases.fetch_historical_series_use_case import FetchHistoricalSeriesUseCase


class GetMergedCandlesUseCase:
    """
    Point-in-time chart snapshot: history + live buckets + stats for one (pair, interval).

    Behavior:
      - validates pair and interval (InvalidInputError, nothing fetched)
      - fetches history and the current quote concurrently, each with a timeout
      - upstream failures degrade to empty history / unknown quote; live data is still served
      - history stops where the live feed for the pair started, so both sides stay disjoint
    """

    def __init__(
        self,
        *,
        aggregator: CandleAggregator,
        fetch_historical_uc: FetchHistoricalSeriesUseCase,
        market_repository: PairMarketRepository,
        upstream_timeout_s: float = 10.0,
        quote_cache: Optional[Dict[str, PairQuoteEntity]] = None,
        live_since_lookup: Optional[Callable[[str], Optional[int]]] = None,
        logger: logging.Logger | None = None,
    ):
        self._aggregator = aggregator
        self._fetch_historical = fetch_historical_uc
        self._market = market_repository
        self._timeout_s = float(upstream_timeout_s)
        self._quotes = quote_cache if quote_cache is not None else {}
        self._live_since = live_since_lookup
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    async def execute(
        self,
        *,
        pair_id: Optional[str],
        interval: Optional[str],
        limit: int = DEFAULT_MERGE_LIMIT,
    ) -> MergedSeriesEntity:
        pair = (pair_id or "").strip()
        itv = (interval or "").strip()
        if not pair or not itv:
            raise InvalidInputError("Missing pair or interval")

        intervals = self._aggregator.intervals
        if not intervals.is_supported(itv):
            raise InvalidInputError(
                f"Unsupported interval '{itv}'. Expected one of: {', '.join(intervals.supported_intervals())}"
            )
        if int(limit) < 1:
            raise InvalidInputError("limit must be >= 1")

        (hist_candles, hist_volumes), quote = await asyncio.gather(
            self._historical(pair, itv, int(limit)),
            self._quote(pair),
        )

        live_candles = self._aggregator.get_candles(pair, itv, int(limit))
        live_volumes = self._aggregator.get_volumes(pair, itv, int(limit))

        return merge_with_historical(
            hist_candles,
            hist_volumes,
            live_candles,
            live_volumes,
            pair_id=pair,
            interval=itv,
            interval_ms=intervals.duration_ms(itv),
            limit=int(limit),
            current_price=quote.price if quote is not None else None,
            market_cap=quote.reserve_usd if quote is not None else None,
        )

    async def _historical(
        self, pair: str, interval: str, limit: int
    ) -> Tuple[List[CandleEntity], List[VolumeBucketEntity]]:
        live_since = self._live_since(pair.lower()) if self._live_since is not None else None
        # The feed ingests trades at live_since itself, history must end strictly before it
        until_ms = live_since - 1 if live_since is not None else None
        try:
            return await asyncio.wait_for(
                self._fetch_historical.execute(pair_id=pair, interval=interval, limit=limit, until_ms=until_ms),
                timeout=self._timeout_s,
            )
        except (UpstreamUnavailableError, asyncio.TimeoutError) as exc:
            self._logger.warning("Historical fetch unavailable pair=%s interval=%s: %r", pair, interval, exc)
            return [], []

    async def _quote(self, pair: str) -> Optional[PairQuoteEntity]:
        try:
            quote = await asyncio.wait_for(self._market.get_pair_quote(pair_id=pair), timeout=self._timeout_s)
        except (UpstreamUnavailableError, asyncio.TimeoutError) as exc:
            self._logger.warning("Pair quote unavailable pair=%s: %r", pair, exc)
            return self._quotes.get(pair.lower())

        if quote is not None:
            self._quotes[pair.lower()] = quote
        return quote
