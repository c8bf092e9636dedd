from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List, Optional

from core.domain.entities.pair_entity import PairQuoteEntity, TradingPairEntity
from core.domain.entities.trade_event_entity import TradeEventEntity


class PairMarketRepository(ABC):
    """
    External market data for pairs (subgraph, simulator, ...).

    Implementations raise UpstreamUnavailableError when the source fails or times out.
    """

    @abstractmethod
    async def get_top_pairs(self, *, limit: int = 20) -> List[TradingPairEntity]:
        """
        Most traded pairs, highest volume first.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_pair_quote(self, *, pair_id: str) -> Optional[PairQuoteEntity]:
        """
        Current price (token1 per token0) and USD reserves for a pair, None if unknown.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_swaps(
        self,
        *,
        pair_id: str,
        since_ms: int,
        until_ms: int,
        limit: int = 5000,
    ) -> List[TradeEventEntity]:
        """
        Normalized swaps with since_ms <= timestamp <= until_ms, ascending by timestamp.
        """
        raise NotImplementedError

    async def aclose(self) -> None:
        return None
