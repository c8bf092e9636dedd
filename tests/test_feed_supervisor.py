import pytest

from adapters.external.simulated.simulated_pair_repository import SimulatedPairRepository
from adapters.external.thegraph.pancakeswap_pair_repository_thegraph import PancakeSwapPairRepositoryTheGraph
from conftest import FakeMarketRepository, make_trade
from config.settings import Settings
from workers.feed_supervisor import FeedSupervisor


class _TestSettings(Settings):
    FEED_PAIRS: list[str] = ["0xPINNED"]
    FEED_POLL_EVERY_S: float = 60.0


@pytest.mark.asyncio
async def test_feeds_are_ref_counted_per_pair():
    sup = FeedSupervisor(config=_TestSettings(), market_repository=FakeMarketRepository())
    await sup.start()
    try:
        assert sup.feed_pairs() == ["0xpinned"]

        sup.acquire_feed("0xABC")
        sup.acquire_feed("0xabc")
        assert "0xabc" in sup.feed_pairs()
        assert sup.live_since("0xABC") is not None

        sup.release_feed("0xabc")
        assert "0xabc" in sup.feed_pairs()

        sup.release_feed("0xabc")
        assert "0xabc" not in sup.feed_pairs()
        assert sup.live_since("0xabc") is None

        # pinned feeds outlive their subscribers
        sup.acquire_feed("0xpinned")
        sup.release_feed("0xpinned")
        assert "0xpinned" in sup.feed_pairs()
    finally:
        await sup.stop()

    assert sup.feed_pairs() == []
    assert not sup.started


@pytest.mark.asyncio
async def test_autostart_disabled_runs_no_feeds():
    sup = FeedSupervisor(config=_TestSettings(), market_repository=FakeMarketRepository(), autostart_feeds=False)
    await sup.start()
    sup.acquire_feed("0xabc")
    assert sup.feed_pairs() == []
    await sup.stop()


def test_market_source_selection():
    class _Simulated(Settings):
        MARKET_SOURCE: str = "simulated"

    class _TheGraph(Settings):
        MARKET_SOURCE: str = "thegraph"

    assert isinstance(FeedSupervisor(config=_Simulated()).market, SimulatedPairRepository)
    assert isinstance(FeedSupervisor(config=_TheGraph()).market, PancakeSwapPairRepositoryTheGraph)


@pytest.mark.asyncio
async def test_snapshot_volume_is_not_double_counted_after_release():
    market = FakeMarketRepository()
    sup = FeedSupervisor(config=_TestSettings(), market_repository=market)
    await sup.start()
    try:
        sup.acquire_feed("0xabc")
        feed = sup.get_feed("0xabc")
        market.swaps.append(make_trade(feed.started_at_ms, 2.0, volume=5.0, pair="0xabc", event_id="s1"))
        assert await feed.poll_once() == 1

        subscribed = await sup.merged_candles_uc.execute(pair_id="0xabc", interval="1m")
        assert [v.value for v in subscribed.volume] == [5.0]

        sup.release_feed("0xabc")
        assert sup.aggregator.get_candles("0xabc", "1m") == []

        released = await sup.merged_candles_uc.execute(pair_id="0xabc", interval="1m")
        assert [v.value for v in released.volume] == [5.0]
        assert released.candles[0].close == 2.0
    finally:
        await sup.stop()


@pytest.mark.asyncio
async def test_pinned_pair_keeps_live_buckets_after_release():
    sup = FeedSupervisor(config=_TestSettings(), market_repository=FakeMarketRepository())
    await sup.start()
    try:
        sup.aggregator.ingest(make_trade(0, 1.0, pair="0xpinned"), "1m")
        sup.acquire_feed("0xpinned")
        sup.release_feed("0xpinned")
        assert len(sup.aggregator.get_candles("0xpinned", "1m")) == 1
    finally:
        await sup.stop()
