import pytest

from core.domain.errors import InvalidInputError
from core.services.swap_normalization_service import SwapNormalizationService


def test_price_and_volume_from_raw_on_chain_amounts():
    # 2 token0 (18 decimals) swapped for 600 token1 (6 decimals)
    event = SwapNormalizationService.normalize(
        pair_id="0xPair",
        timestamp_ms=1_700_000_000_000,
        amount0_in="2000000000000000000",
        amount1_in="0",
        amount0_out="0",
        amount1_out="600000000",
        decimals0=18,
        decimals1=6,
    )
    assert event.price == pytest.approx(300.0)
    assert event.volume == pytest.approx(600.0)
    assert event.pair_id == "0xPair"


def test_amount_usd_preferred_for_volume():
    event = SwapNormalizationService.normalize(
        pair_id="0xpair",
        timestamp_ms=0,
        amount0_in="1.5",
        amount1_in="0",
        amount0_out="0",
        amount1_out="3",
        amount_usd="42.5",
    )
    assert event.price == pytest.approx(2.0)
    assert event.volume == pytest.approx(42.5)


def test_swap_without_token0_flow_is_invalid():
    with pytest.raises(InvalidInputError):
        SwapNormalizationService.normalize(
            pair_id="0xpair",
            timestamp_ms=0,
            amount0_in="0",
            amount1_in="5",
            amount0_out="0",
            amount1_out="0",
        )


def test_non_numeric_amount_is_invalid():
    with pytest.raises(InvalidInputError):
        SwapNormalizationService.to_decimal("abc")


def test_subgraph_swap_timestamp_is_seconds():
    event = SwapNormalizationService.from_subgraph_swap(
        pair_id="0xpair",
        swap={
            "id": "0xtx-0",
            "timestamp": "1700000000",
            "amount0In": "0",
            "amount1In": "10",
            "amount0Out": "4",
            "amount1Out": "0",
            "amountUSD": "0",
        },
    )
    assert event.timestamp_ms == 1_700_000_000_000
    assert event.price == pytest.approx(2.5)
    assert event.volume == pytest.approx(10.0)
    assert event.raw_event_id == "0xtx-0"


def test_subgraph_swap_without_timestamp_is_invalid():
    with pytest.raises(InvalidInputError):
        SwapNormalizationService.from_subgraph_swap(pair_id="0xpair", swap={"id": "x"})
