# core/usecases/ingest_trade_stream_use_case.py
from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Sequence, Set

from core.domain.entities.trade_event_entity import TradeEventEntity
from core.domain.errors import UpstreamUnavailableError
from core.services.candle_aggregator_service import CandleAggregator
from core.services.series_key_service import SeriesKey
from core.usecases.stream_pair_updates_use_case import StreamPairUpdatesUseCase

FetchSwapsFn = Callable[[int, int], Awaitable[List[TradeEventEntity]]]


class IngestTradeStreamUseCase:
    """
    Polls a swap source for one pair and folds every new trade into the aggregator.

    Each cycle:
      - fetches swaps with since_ms <= ts <= now (cursor = last seen timestamp)
      - drops swaps already seen at the cursor timestamp (sources return >= cursor)
      - ingests each trade into every configured interval
      - publishes candle/volume/stats updates for series that have subscribers

    A bad trade is logged and dropped; a failing source is logged and retried with backoff.
    Neither stops the loop.
    """

    def __init__(
        self,
        *,
        pair_id: str,
        intervals: Sequence[str],
        poll_every_s: float,
        aggregator: CandleAggregator,
        fetch_fn: FetchSwapsFn,
        publisher: Optional[StreamPairUpdatesUseCase] = None,
        start_ms: Optional[int] = None,
        max_backoff_s: float = 30.0,
        clock: Callable[[], float] = time.time,
        logger: logging.Logger | None = None,
    ):
        self._pair_id = pair_id
        self._intervals = list(intervals)
        self._poll_every_s = float(poll_every_s)
        self._aggregator = aggregator
        self._fetch_fn = fetch_fn
        self._publisher = publisher
        self._max_backoff_s = float(max_backoff_s)
        self._clock = clock
        self._logger = logger or logging.getLogger(self.__class__.__name__)

        self.started_at_ms = int(start_ms) if start_ms is not None else int(self._clock() * 1000)
        self._cursor_ms = self.started_at_ms
        self._seen_at_cursor: Set[str] = set()

        self._task: asyncio.Task | None = None
        self._stop = asyncio.Event()

    @property
    def pair_id(self) -> str:
        return self._pair_id

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the polling loop in background."""
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    def cancel(self) -> None:
        """Request the polling loop to stop without waiting for it."""
        self._stop.set()
        if self._task is not None:
            self._task.cancel()

    async def stop(self) -> None:
        """Stop the polling loop and wait for it to finish."""
        self._stop.set()
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

    def ingest_event(self, event: TradeEventEntity) -> List[SeriesKey]:
        """
        Ingest one trade into every interval and notify subscribers.
        """
        updated = self._aggregator.ingest_all(event, self._intervals)
        if self._publisher is not None:
            intervals = self._aggregator.intervals
            for key in updated:
                self._publisher.publish_updates(key, intervals.bucket_start_ms(event.timestamp_ms, key.interval))
        return updated

    async def poll_once(self) -> int:
        """
        One fetch + ingest cycle. Returns the number of trades ingested.
        """
        now_ms = int(self._clock() * 1000)
        events = await self._fetch_fn(self._cursor_ms, now_ms)

        ingested = 0
        for event in sorted(events, key=lambda e: e.timestamp_ms):
            try:
                if event.timestamp_ms < self._cursor_ms:
                    continue
                event_id = event.raw_event_id or f"{event.timestamp_ms}:{event.price}:{event.volume}"
                if event.timestamp_ms == self._cursor_ms and event_id in self._seen_at_cursor:
                    continue

                self.ingest_event(event)
                ingested += 1

                if event.timestamp_ms > self._cursor_ms:
                    self._cursor_ms = event.timestamp_ms
                    self._seen_at_cursor = set()
                self._seen_at_cursor.add(event_id)
            except Exception as exc:
                self._logger.exception("Dropping trade pair=%s event=%s: %s", self._pair_id, event, exc)

        return ingested

    async def _run(self) -> None:
        backoff = self._poll_every_s
        while not self._stop.is_set():
            delay = self._poll_every_s
            try:
                await self.poll_once()
                backoff = self._poll_every_s
            except UpstreamUnavailableError as exc:
                self._logger.warning("Swap source unavailable pair=%s: %s (retry in %.1fs)", self._pair_id, exc, backoff)
                delay = backoff
                backoff = min(backoff * 2, self._max_backoff_s)
            except Exception as exc:
                self._logger.exception("Ingest loop error pair=%s: %s", self._pair_id, exc)

            await asyncio.sleep(delay)
