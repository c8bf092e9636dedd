import pytest

from adapters.external.simulated.simulated_pair_repository import SimulatedPairRepository
from conftest import FakeMarketRepository, make_aggregator, make_trade
from core.domain.entities.pair_entity import PairQuoteEntity, TradingPairEntity
from core.domain.errors import InvalidInputError
from core.services.interval_service import IntervalService
from core.usecases.fetch_historical_series_use_case import FetchHistoricalSeriesUseCase
from core.usecases.get_merged_candles_use_case import GetMergedCandlesUseCase
from core.usecases.list_pairs_use_case import ListPairsUseCase

NOW_S = 1_700_000_000.0


def _merged_uc(market, aggregator, **kwargs):
    fetch = FetchHistoricalSeriesUseCase(
        market_repository=market,
        interval_service=aggregator.intervals,
        clock=lambda: NOW_S,
    )
    return GetMergedCandlesUseCase(
        aggregator=aggregator,
        fetch_historical_uc=fetch,
        market_repository=market,
        **kwargs,
    )


@pytest.mark.asyncio
async def test_history_and_live_are_merged_with_stats():
    now_ms = int(NOW_S * 1000)
    market = FakeMarketRepository(
        swaps=[make_trade(now_ms - 120_000, 5.0, volume=2.0), make_trade(now_ms - 60_000, 6.0, volume=2.0)],
        quote=PairQuoteEntity(pair_id="0xpair", price=6.5, reserve_usd=9_999.0),
    )
    aggregator = make_aggregator()
    aggregator.ingest(make_trade(now_ms - 60_000, 7.0, volume=1.0), "1m")

    result = await _merged_uc(market, aggregator).execute(pair_id="0xPAIR", interval="1m", limit=50)

    assert len(result.candles) == 2
    assert result.candles[-1].close == 7.0
    assert result.volume[-1].value == 3.0
    assert result.stats.last_price == 6.5
    assert result.stats.market_cap == 9_999.0


@pytest.mark.asyncio
async def test_unavailable_upstream_serves_live_data_only():
    market = FakeMarketRepository(fail=True)
    aggregator = make_aggregator()
    aggregator.ingest(make_trade(0, 10.0, volume=1.0), "1m")
    quotes = {"0xpair": PairQuoteEntity(pair_id="0xpair", price=None, reserve_usd=42.0)}

    result = await _merged_uc(market, aggregator, quote_cache=quotes).execute(pair_id="0xpair", interval="1m")

    assert [c.close for c in result.candles] == [10.0]
    assert result.stats.last_price == 10.0
    assert result.stats.market_cap == 42.0


@pytest.mark.asyncio
async def test_slow_upstream_times_out():
    market = FakeMarketRepository(delay_s=1.0)
    aggregator = make_aggregator()

    result = await _merged_uc(market, aggregator, upstream_timeout_s=0.01).execute(pair_id="0xpair", interval="5m")

    assert result.candles == []
    assert result.volume == []
    assert result.stats.last_price == 0.0


@pytest.mark.asyncio
async def test_history_stops_where_live_feed_starts():
    market = FakeMarketRepository()
    aggregator = make_aggregator()

    await _merged_uc(market, aggregator, live_since_lookup=lambda pair: 123_000).execute(
        pair_id="0xpair", interval="1m", limit=3
    )

    assert market.swap_calls == [("0xpair", 0, 122_999)]


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "pair,interval,limit",
    [(None, "1m", 10), ("0xpair", None, 10), ("  ", "1m", 10), ("0xpair", "3m", 10), ("0xpair", "1m", 0)],
)
async def test_invalid_input(pair, interval, limit):
    market = FakeMarketRepository()
    with pytest.raises(InvalidInputError):
        await _merged_uc(market, make_aggregator()).execute(pair_id=pair, interval=interval, limit=limit)
    assert market.swap_calls == []


@pytest.mark.asyncio
async def test_simulated_history_fills_requested_buckets():
    market = SimulatedPairRepository(tick_s=5.0, clock=lambda: NOW_S)
    fetch = FetchHistoricalSeriesUseCase(
        market_repository=market,
        interval_service=IntervalService(),
        clock=lambda: NOW_S,
    )

    candles, volumes = await fetch.execute(pair_id="0x16b9a82891338f9ba80e2d6970fdda79d1eb0dae", interval="1m", limit=10)

    assert len(candles) == 10
    assert [c.time for c in candles] == [v.time for v in volumes]
    assert all(c.low <= c.open <= c.high and c.low <= c.close <= c.high for c in candles)

    again, _ = await fetch.execute(pair_id="0x16b9a82891338f9ba80e2d6970fdda79d1eb0dae", interval="1m", limit=10)
    assert again == candles


@pytest.mark.asyncio
async def test_list_pairs_falls_back_to_empty():
    pair = TradingPairEntity(
        address="0xpair",
        token0="0xa",
        token1="0xb",
        token0_symbol="AAA",
        token1_symbol="BBB",
    )
    assert await ListPairsUseCase(market_repository=FakeMarketRepository(pairs=[pair])).execute() == [pair]
    assert await ListPairsUseCase(market_repository=FakeMarketRepository(fail=True)).execute() == []
