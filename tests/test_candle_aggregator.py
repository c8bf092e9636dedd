import random
import threading

import pytest

from conftest import make_aggregator, make_trade
from core.domain.entities.candle_entity import VolumeColor
from core.domain.errors import InvalidInputError
from core.services.series_key_service import SeriesKeyService


def test_trades_fold_into_minute_buckets(aggregator):
    aggregator.ingest(make_trade(0, 100.0), "1m")
    aggregator.ingest(make_trade(30_000, 110.0), "1m")
    aggregator.ingest(make_trade(90_000, 90.0), "1m")

    candles = aggregator.get_candles("0xPAIR", "1m")
    assert [c.time for c in candles] == [0, 60]

    first, second = candles
    assert (first.open, first.high, first.low, first.close) == (100.0, 110.0, 100.0, 110.0)
    assert (second.open, second.high, second.low, second.close) == (90.0, 90.0, 90.0, 90.0)

    latest_only = aggregator.get_candles("0xPAIR", "1m", 1)
    assert len(latest_only) == 1
    assert latest_only[0].time == 60


def test_volume_sums_and_colors(aggregator):
    aggregator.ingest(make_trade(0, 100.0, volume=2.5), "1m")
    aggregator.ingest(make_trade(10_000, 105.0, volume=1.5), "1m")
    aggregator.ingest(make_trade(60_000, 104.0, volume=3.0), "1m")
    aggregator.ingest(make_trade(70_000, 101.0, volume=1.0), "1m")
    aggregator.ingest(make_trade(120_000, 99.0, volume=0.0), "1m")

    volumes = aggregator.get_volumes("0xPAIR", "1m")
    assert [v.value for v in volumes] == [4.0, 4.0, 0.0]
    assert [v.color for v in volumes] == [VolumeColor.UP, VolumeColor.DOWN, VolumeColor.NEUTRAL]


def test_ohlc_invariants_hold_for_random_trades():
    agg = make_aggregator(grace=None)
    rng = random.Random(7)
    for _ in range(500):
        agg.ingest(make_trade(rng.randrange(0, 3_600_000), rng.uniform(1, 1000)), "5m")

    for c in agg.get_candles("0xPAIR", "5m", 1000):
        assert c.low <= min(c.open, c.close)
        assert c.high >= max(c.open, c.close)
        assert (c.time * 1000) % 300_000 == 0


def test_volume_is_order_independent():
    trades = [make_trade(ts, 10.0, volume=v) for ts, v in [(1_000, 1.25), (2_000, 3.5), (59_000, 0.25), (61_000, 2.0)]]

    forward = make_aggregator(grace=None)
    backward = make_aggregator(grace=None)
    for t in trades:
        forward.ingest(t, "1m")
    for t in reversed(trades):
        backward.ingest(t, "1m")

    assert [v.value for v in forward.get_volumes("0xPAIR", "1m")] == [
        v.value for v in backward.get_volumes("0xPAIR", "1m")
    ]


def test_query_is_ascending_and_limited(aggregator):
    for i in range(10):
        aggregator.ingest(make_trade(i * 60_000, 100.0 + i), "1m")

    candles = aggregator.get_candles("0xPAIR", "1m", 3)
    assert [c.time for c in candles] == [420, 480, 540]
    assert aggregator.get_candles("0xPAIR", "1m", 0) == []
    assert aggregator.get_candles("0xOTHER", "1m") == []


def test_series_key_is_case_insensitive_on_pair(aggregator):
    aggregator.ingest(make_trade(0, 1.0, pair="0xABC"), "1m")
    aggregator.ingest(make_trade(1_000, 2.0, pair=" 0xabc "), "1m")

    candles = aggregator.get_candles("0xAbC", "1m")
    assert len(candles) == 1
    assert candles[0].close == 2.0


def test_late_trades_are_rejected():
    agg = make_aggregator(grace=1)
    assert agg.ingest(make_trade(180_000, 100.0), "1m")

    assert not agg.ingest(make_trade(60_000, 50.0), "1m")
    assert agg.ingest(make_trade(120_000, 101.0), "1m")

    assert [c.time for c in agg.get_candles("0xPAIR", "1m")] == [120, 180]


def test_returned_candles_are_copies(aggregator):
    aggregator.ingest(make_trade(0, 100.0), "1m")
    snapshot = aggregator.get_latest_candle("0xPAIR", "1m")

    aggregator.ingest(make_trade(1_000, 200.0), "1m")
    assert snapshot.close == 100.0
    assert aggregator.get_latest_candle("0xPAIR", "1m").close == 200.0


def test_retention_trims_candles_and_volumes_together():
    agg = make_aggregator(max_buckets=10)
    for i in range(12):
        agg.ingest(make_trade(i * 60_000, 100.0, volume=1.0), "1m")

    candles = agg.get_candles("0xPAIR", "1m", 100)
    volumes = agg.get_volumes("0xPAIR", "1m", 100)
    assert len(candles) == 10
    assert [c.time for c in candles] == [v.time for v in volumes]
    assert candles[0].time == 120


def test_ingest_all_fans_out(aggregator):
    keys = aggregator.ingest_all(make_trade(90_000, 5.0), ["1m", "5m", "1h"])
    assert [str(k) for k in keys] == ["0xpair:1m", "0xpair:5m", "0xpair:1h"]

    candle, volume = aggregator.get_latest("0xPAIR", "5m")
    assert candle.time == 0
    assert volume.value == 1.0


def test_missing_interval_is_invalid(aggregator):
    with pytest.raises(InvalidInputError):
        aggregator.ingest(make_trade(0, 1.0), " ")
    with pytest.raises(InvalidInputError):
        aggregator.get_candles("", "1m")


def test_concurrent_producers_and_reader_see_consistent_buckets():
    agg = make_aggregator(max_buckets=None, grace=None)
    producers, per_producer = 4, 500
    mismatches = []
    done = threading.Event()

    def produce(worker):
        for i in range(per_producer):
            agg.ingest(make_trade((worker * per_producer + i) * 100, 10.0 + worker, volume=0.5), "1m")

    def read():
        while not done.is_set():
            candle, volume = agg.get_latest("0xpair", "1m")
            if (candle is None) != (volume is None) or (candle is not None and candle.time != volume.time):
                mismatches.append((candle, volume))

    reader = threading.Thread(target=read)
    reader.start()
    threads = [threading.Thread(target=produce, args=(w,)) for w in range(producers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    done.set()
    reader.join(timeout=10)

    assert mismatches == []
    total = sum(v.value for v in agg.get_volumes("0xpair", "1m", 1000))
    assert total == producers * per_producer * 0.5
    assert len(agg.get_candles("0xpair", "1m", 1000)) == len(agg.get_volumes("0xpair", "1m", 1000))


def test_producers_on_different_series_do_not_block_each_other():
    agg = make_aggregator()
    agg.ingest(make_trade(0, 1.0, pair="0xa"), "1m")
    busy = agg._lock_for(SeriesKeyService.build(pair_id="0xa", interval="1m"))

    worker = threading.Thread(target=agg.ingest, args=(make_trade(0, 2.0, pair="0xb"), "1m"))
    with busy:
        worker.start()
        worker.join(timeout=2)
        assert not worker.is_alive()

    assert agg.get_latest_candle("0xb", "1m").close == 2.0


def test_get_bucket_reads_one_colored_bucket(aggregator):
    aggregator.ingest(make_trade(0, 10.0, volume=1.0), "1m")
    aggregator.ingest(make_trade(30_000, 8.0, volume=2.0), "1m")
    aggregator.ingest(make_trade(60_000, 9.0, volume=4.0), "1m")

    candle, volume = aggregator.get_bucket("0xpair", "1m", 0)
    assert (candle.time, candle.close) == (0, 8.0)
    assert (volume.time, volume.value) == (0, 3.0)
    assert volume.color == VolumeColor.DOWN

    assert aggregator.get_bucket("0xpair", "1m", 120_000) == (None, None)


def test_drop_pair_forgets_every_interval_of_that_pair_only(aggregator):
    aggregator.ingest_all(make_trade(0, 1.0, pair="0xA"), ["1m", "1h"])
    aggregator.ingest(make_trade(0, 1.0, pair="0xB"), "1m")

    assert aggregator.drop_pair("0xa") == 2
    assert aggregator.get_candles("0xa", "1m") == []
    assert aggregator.get_volumes("0xa", "1h") == []
    assert len(aggregator.get_volumes("0xb", "1m")) == 1
    assert aggregator.drop_pair("0xa") == 0
