from __future__ import annotations

import logging
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional

from core.domain.entities.pair_entity import PairQuoteEntity
from core.domain.entities.stream_message_entity import (
    CandleUpdateMessage,
    ConnectedMessage,
    StatsUpdateMessage,
    StreamMessage,
    VolumeUpdateMessage,
)
from core.services.candle_aggregator_service import CandleAggregator
from core.services.historical_merge_service import compute_pair_stats
from core.services.series_key_service import SeriesKey, SeriesKeyService
from core.services.subscription_hub_service import SubscriptionHub


class StreamPairUpdatesUseCase:
    """
    Live feed for one (pair, interval): subscription lifecycle + per-event update messages.

    Per ingested event a subscriber receives at most one candle, one volume and one stats
    message, in that order. Closing a stream only affects that subscriber.
    """

    def __init__(
        self,
        *,
        aggregator: CandleAggregator,
        hub: SubscriptionHub,
        quote_cache: Optional[Dict[str, PairQuoteEntity]] = None,
        on_subscribe: Optional[Callable[[str], None]] = None,
        on_unsubscribe: Optional[Callable[[str], None]] = None,
        keepalive_s: float = 15.0,
        logger: logging.Logger | None = None,
    ):
        self._aggregator = aggregator
        self._hub = hub
        self._quotes = quote_cache if quote_cache is not None else {}
        self._on_subscribe = on_subscribe
        self._on_unsubscribe = on_unsubscribe
        self._keepalive_s = float(keepalive_s)
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    def build_update_messages(self, key: SeriesKey, bucket_start_ms: Optional[int] = None) -> List[StreamMessage]:
        """
        candle -> volume -> stats for one bucket of `key` (empty if no data yet).

        `bucket_start_ms` selects the bucket a trade landed in, which is older than the
        newest one for a late trade. Defaults to the newest bucket.
        """
        if bucket_start_ms is None:
            candle, volume = self._aggregator.get_latest(key.pair_id, key.interval)
        else:
            candle, volume = self._aggregator.get_bucket(key.pair_id, key.interval, bucket_start_ms)
        if candle is None:
            return []

        intervals = self._aggregator.intervals
        per_day = intervals.candles_per_day(key.interval)
        candles = self._aggregator.get_candles(key.pair_id, key.interval, per_day + 1)
        volumes = self._aggregator.get_volumes(key.pair_id, key.interval, per_day)

        quote = self._quotes.get(key.pair_id)
        stats = compute_pair_stats(
            candles,
            volumes,
            interval_ms=intervals.duration_ms(key.interval),
            market_cap=quote.reserve_usd if quote is not None else None,
        )

        messages: List[StreamMessage] = [CandleUpdateMessage(candle=candle)]
        if volume is not None:
            messages.append(VolumeUpdateMessage(volume=volume))
        messages.append(StatsUpdateMessage(stats=stats))
        return messages

    def publish_updates(self, key: SeriesKey, bucket_start_ms: Optional[int] = None) -> int:
        if not self._hub.has_subscribers(key):
            return 0
        messages = self.build_update_messages(key, bucket_start_ms)
        if not messages:
            return 0
        return self._hub.publish(key, messages)

    async def stream(
        self,
        *,
        pair_id: str,
        interval: str,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
    ) -> AsyncIterator[Optional[StreamMessage]]:
        """
        Yield `connected`, then live messages. None is yielded on idle keep-alive ticks.

        The subscription (and the pair feed reference) is released when the generator is
        closed, cancelled or the client disconnects.
        """
        key = SeriesKeyService.build(pair_id=pair_id, interval=interval)
        sub = self._hub.subscribe(key)
        acquired = False
        try:
            if self._on_subscribe is not None:
                self._on_subscribe(key.pair_id)
                acquired = True

            yield ConnectedMessage(pair=pair_id, interval=interval)

            while not sub.closed:
                if is_disconnected is not None and await is_disconnected():
                    self._logger.info("Client disconnected series=%s", key)
                    break
                msg = await sub.get(timeout=self._keepalive_s)
                if msg is None and sub.closed:
                    break
                yield msg
        finally:
            sub.close()
            if acquired and self._on_unsubscribe is not None:
                self._on_unsubscribe(key.pair_id)
