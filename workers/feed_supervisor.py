from __future__ import annotations

import contextlib
import logging
from typing import Dict, List, Optional

from adapters.external.memory.candle_repository_memory import CandleRepositoryMemory
from adapters.external.memory.volume_repository_memory import VolumeRepositoryMemory
from adapters.external.simulated.simulated_pair_repository import SimulatedPairRepository
from adapters.external.thegraph.pancakeswap_pair_repository_thegraph import PancakeSwapPairRepositoryTheGraph
from adapters.external.thegraph.thegraph_http_client import TheGraphHttpClient
from config.settings import Settings, settings as default_settings
from core.domain.entities.pair_entity import PairQuoteEntity
from core.repositories.pair_market_repository import PairMarketRepository
from core.services.candle_aggregator_service import CandleAggregator
from core.services.interval_service import IntervalService
from core.services.subscription_hub_service import SubscriptionHub
from core.usecases.fetch_historical_series_use_case import FetchHistoricalSeriesUseCase
from core.usecases.get_merged_candles_use_case import GetMergedCandlesUseCase
from core.usecases.ingest_trade_stream_use_case import IngestTradeStreamUseCase
from core.usecases.list_pairs_use_case import ListPairsUseCase
from core.usecases.stream_pair_updates_use_case import StreamPairUpdatesUseCase


class FeedSupervisor:
    """
    High-level owner of the live candle state for api-dex-candles.

    Responsibilities:
    - Build the aggregator, subscription hub and market data source (DI root, no singletons).
    - Run ingestion feeds: pinned pairs (FEED_PAIRS) for the process lifetime, other pairs
      only while they have live subscribers (ref-counted).
    - Expose the use cases the HTTP layer needs.
    - Close feeds and external clients on stop().
    """

    def __init__(
        self,
        *,
        config: Settings | None = None,
        market_repository: Optional[PairMarketRepository] = None,
        autostart_feeds: bool = True,
    ) -> None:
        self._settings = config or default_settings
        self._logger = logging.getLogger(self.__class__.__name__)
        self._autostart_feeds = bool(autostart_feeds)

        self.intervals = IntervalService(fallback_interval=self._settings.DEFAULT_INTERVAL)
        self.aggregator = CandleAggregator(
            candle_repository=CandleRepositoryMemory(),
            volume_repository=VolumeRepositoryMemory(),
            interval_service=self.intervals,
            max_buckets_per_series=self._settings.MAX_BUCKETS_PER_SERIES,
            late_event_grace_buckets=self._settings.LATE_EVENT_GRACE_BUCKETS,
        )
        self.hub = SubscriptionHub(max_queue=self._settings.STREAM_QUEUE_SIZE)
        self.market = market_repository or self._build_market_repository()

        self._quotes: Dict[str, PairQuoteEntity] = {}
        self._feeds: Dict[str, IngestTradeStreamUseCase] = {}
        self._feed_refs: Dict[str, int] = {}
        self._pinned: set[str] = set()
        self._started = False

        self.stream_uc = StreamPairUpdatesUseCase(
            aggregator=self.aggregator,
            hub=self.hub,
            quote_cache=self._quotes,
            on_subscribe=self.acquire_feed,
            on_unsubscribe=self.release_feed,
            keepalive_s=self._settings.STREAM_KEEPALIVE_S,
        )
        self.fetch_historical_uc = FetchHistoricalSeriesUseCase(
            market_repository=self.market,
            interval_service=self.intervals,
        )
        self.merged_candles_uc = GetMergedCandlesUseCase(
            aggregator=self.aggregator,
            fetch_historical_uc=self.fetch_historical_uc,
            market_repository=self.market,
            upstream_timeout_s=self._settings.UPSTREAM_TIMEOUT_S,
            quote_cache=self._quotes,
            live_since_lookup=self.live_since,
        )
        self.list_pairs_uc = ListPairsUseCase(
            market_repository=self.market,
            upstream_timeout_s=self._settings.UPSTREAM_TIMEOUT_S,
        )
        # Ingests manual trades (dev route) with the same fan-out + publish path as feeds
        self.manual_ingest_uc = IngestTradeStreamUseCase(
            pair_id="manual",
            intervals=self.intervals.supported_intervals(),
            poll_every_s=self._settings.FEED_POLL_EVERY_S,
            aggregator=self.aggregator,
            fetch_fn=self._no_swaps,
            publisher=self.stream_uc,
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def started(self) -> bool:
        return self._started

    def _build_market_repository(self) -> PairMarketRepository:
        source = (self._settings.MARKET_SOURCE or "").lower().strip()
        if source == "thegraph":
            try:
                http = TheGraphHttpClient(
                    endpoint=self._settings.THEGRAPH_ENDPOINT,
                    api_key=self._settings.THEGRAPH_API_KEY,
                    timeout_s=self._settings.THEGRAPH_TIMEOUT_S,
                )
                return PancakeSwapPairRepositoryTheGraph(http_client=http)
            except Exception as exc:
                self._logger.exception("Could not build TheGraph client (using simulated): %s", exc)
        elif source != "simulated":
            self._logger.warning("Unknown MARKET_SOURCE=%s (using simulated).", source)
        return SimulatedPairRepository(tick_s=self._settings.SIMULATED_TICK_S)

    @staticmethod
    async def _no_swaps(since_ms: int, until_ms: int) -> list:
        return []

    async def start(self) -> None:
        """
        Start pinned feeds (FEED_PAIRS).
        """
        self._started = True
        if not self._autostart_feeds:
            self._logger.info("Feed autostart disabled; live data comes from manual ingest only.")
            return

        for pair in self._settings.FEED_PAIRS:
            pair_id = pair.strip().lower()
            self._pinned.add(pair_id)
            self._ensure_feed(pair_id)

        self._logger.info(
            "Feed supervisor started. source=%s pinned=%s",
            self.market.__class__.__name__,
            sorted(self._pinned),
        )

    async def stop(self) -> None:
        """
        Stop feeds and close external clients.
        """
        feeds: List[IngestTradeStreamUseCase] = list(self._feeds.values())
        self._feeds.clear()
        self._feed_refs.clear()

        for feed in feeds:
            with contextlib.suppress(Exception):
                await feed.stop()

        with contextlib.suppress(Exception):
            await self.market.aclose()

        self._started = False
        self._logger.info("Feed supervisor stopped. feeds=%s", len(feeds))

    # -------------------------
    # Feeds
    # -------------------------
    def _ensure_feed(self, pair_id: str) -> IngestTradeStreamUseCase:
        feed = self._feeds.get(pair_id)
        if feed is not None:
            return feed

        async def fetch_fn(since_ms: int, until_ms: int):
            return await self.market.get_swaps(pair_id=pair_id, since_ms=since_ms, until_ms=until_ms)

        feed = IngestTradeStreamUseCase(
            pair_id=pair_id,
            intervals=self.intervals.supported_intervals(),
            poll_every_s=self._settings.FEED_POLL_EVERY_S,
            aggregator=self.aggregator,
            fetch_fn=fetch_fn,
            publisher=self.stream_uc,
        )
        self._feeds[pair_id] = feed
        feed.start()
        self._logger.info("Feed started pair=%s poll_every_s=%s", pair_id, self._settings.FEED_POLL_EVERY_S)
        return feed

    def acquire_feed(self, pair_id: str) -> None:
        """
        Called when a live subscriber attaches to a pair.
        """
        pair = pair_id.strip().lower()
        self._feed_refs[pair] = self._feed_refs.get(pair, 0) + 1
        if self._autostart_feeds and self._started:
            self._ensure_feed(pair)

    def release_feed(self, pair_id: str) -> None:
        """
        Called when a live subscriber detaches. Idempotent once the count reaches zero.

        The last release of a non-pinned pair stops its feed and drops its live buckets,
        so later snapshots take that range from history alone.
        """
        pair = pair_id.strip().lower()
        refs = self._feed_refs.get(pair, 0) - 1
        if refs > 0:
            self._feed_refs[pair] = refs
            return

        self._feed_refs.pop(pair, None)
        if pair in self._pinned:
            return

        feed = self._feeds.pop(pair, None)
        if feed is not None:
            feed.cancel()
            # History owns this range once the feed is gone
            dropped = self.aggregator.drop_pair(pair)
            self._logger.info("Feed stopped pair=%s (no subscribers) dropped_buckets=%s", pair, dropped)

    def live_since(self, pair_id: str) -> Optional[int]:
        """
        Timestamp (ms) from which the live feed for a pair owns the data, None without a feed.
        """
        feed = self._feeds.get(pair_id.strip().lower())
        return feed.started_at_ms if feed is not None else None

    def get_feed(self, pair_id: str) -> Optional[IngestTradeStreamUseCase]:
        return self._feeds.get(pair_id.strip().lower())

    def feed_pairs(self) -> List[str]:
        return sorted(self._feeds)
