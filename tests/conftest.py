import asyncio
import os
import sys

import pytest

# Flat layout: make the repo root importable when pytest runs without an install
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

from adapters.external.memory.candle_repository_memory import CandleRepositoryMemory  # noqa: E402
from adapters.external.memory.volume_repository_memory import VolumeRepositoryMemory  # noqa: E402
from core.domain.entities.trade_event_entity import TradeEventEntity  # noqa: E402
from core.domain.errors import UpstreamUnavailableError  # noqa: E402
from core.repositories.pair_market_repository import PairMarketRepository  # noqa: E402
from core.services.candle_aggregator_service import CandleAggregator  # noqa: E402
from core.services.interval_service import IntervalService  # noqa: E402


def make_trade(ts_ms, price, volume=1.0, pair="0xPAIR", event_id=None):
    return TradeEventEntity(
        timestamp_ms=ts_ms,
        price=price,
        volume=volume,
        pair_id=pair,
        raw_event_id=event_id,
    )


def make_aggregator(*, max_buckets=5000, grace=1):
    return CandleAggregator(
        candle_repository=CandleRepositoryMemory(),
        volume_repository=VolumeRepositoryMemory(),
        interval_service=IntervalService(),
        max_buckets_per_series=max_buckets,
        late_event_grace_buckets=grace,
    )


class FakeMarketRepository(PairMarketRepository):
    """In-memory market source; set `fail=True` to simulate an unavailable upstream."""

    def __init__(self, *, pairs=None, quote=None, swaps=None, fail=False, delay_s=0.0):
        self.pairs = list(pairs or [])
        self.quote = quote
        self.swaps = list(swaps or [])
        self.fail = fail
        self.delay_s = delay_s
        self.swap_calls = []

    async def _maybe_fail(self):
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.fail:
            raise UpstreamUnavailableError("source down")

    async def get_top_pairs(self, *, limit=20):
        await self._maybe_fail()
        return self.pairs[:limit]

    async def get_pair_quote(self, *, pair_id):
        await self._maybe_fail()
        return self.quote

    async def get_swaps(self, *, pair_id, since_ms, until_ms, limit=5000):
        self.swap_calls.append((pair_id, since_ms, until_ms))
        await self._maybe_fail()
        return [s for s in self.swaps if since_ms <= s.timestamp_ms <= until_ms][:limit]


@pytest.fixture
def aggregator():
    return make_aggregator()
