from __future__ import annotations

import asyncio
import logging
from typing import List

from core.domain.entities.pair_entity import TradingPairEntity
from core.domain.errors import UpstreamUnavailableError
from core.repositories.pair_market_repository import PairMarketRepository


class ListPairsUseCase:
    """
    Top pairs for the pair picker. An unavailable source yields an empty list.
    """

    def __init__(
        self,
        *,
        market_repository: PairMarketRepository,
        upstream_timeout_s: float = 10.0,
        logger: logging.Logger | None = None,
    ):
        self._market = market_repository
        self._timeout_s = float(upstream_timeout_s)
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    async def execute(self, *, limit: int = 20) -> List[TradingPairEntity]:
        try:
            return await asyncio.wait_for(self._market.get_top_pairs(limit=int(limit)), timeout=self._timeout_s)
        except (UpstreamUnavailableError, asyncio.TimeoutError) as exc:
            self._logger.warning("Top pairs unavailable: %r", exc)
            return []
