from __future__ import annotations

from typing import Optional

from pydantic import Field

from core.domain.entities.base_entity import DomainEntity


class TradingPairEntity(DomainEntity):
    """
    A tradable pair as listed by the market data source (e.g. a PancakeSwap pair).

    volume_usd / reserve_usd are kept as strings: subgraph BigDecimals can exceed float precision.
    """

    address: str
    token0: str
    token1: str
    token0_symbol: str = Field(alias="token0Symbol")
    token1_symbol: str = Field(alias="token1Symbol")
    token0_decimals: Optional[int] = Field(default=None, alias="token0Decimals")
    token1_decimals: Optional[int] = Field(default=None, alias="token1Decimals")
    volume_usd: str = Field(default="0", alias="volumeUSD")
    reserve_usd: str = Field(default="0", alias="reserveUSD")


class PairQuoteEntity(DomainEntity):
    """
    Current price and liquidity snapshot for a pair, used only for stats.
    """

    pair_id: str
    price: Optional[float] = None
    reserve_usd: Optional[float] = None
