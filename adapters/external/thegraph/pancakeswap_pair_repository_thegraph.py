from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from adapters.external.thegraph.thegraph_http_client import TheGraphHttpClient
from core.domain.entities.pair_entity import PairQuoteEntity, TradingPairEntity
from core.domain.entities.trade_event_entity import TradeEventEntity
from core.domain.errors import InvalidInputError
from core.repositories.pair_market_repository import PairMarketRepository
from core.services.swap_normalization_service import SwapNormalizationService

TOP_PAIRS_QUERY = """
query TopPairs($first: Int!) {
  pairs(first: $first, orderBy: volumeUSD, orderDirection: desc, where: {volumeUSD_gt: "1000"}) {
    id
    token0 { id symbol decimals }
    token1 { id symbol decimals }
    volumeUSD
    reserveUSD
  }
}
"""

PAIR_QUOTE_QUERY = """
query PairQuote($id: ID!) {
  pair(id: $id) {
    id
    token0Price
    token1Price
    reserveUSD
  }
}
"""

SWAPS_QUERY = """
query Swaps($pair: String!, $since: BigInt!, $until: BigInt!, $first: Int!) {
  swaps(
    first: $first
    orderBy: timestamp
    orderDirection: asc
    where: {pair: $pair, timestamp_gte: $since, timestamp_lte: $until}
  ) {
    id
    timestamp
    amount0In
    amount1In
    amount0Out
    amount1Out
    amountUSD
  }
}
"""


class PancakeSwapPairRepositoryTheGraph(PairMarketRepository):
    """
    PancakeSwap (V2 exchange subgraph) market data via The Graph.

    Pricing convention:
      - swap price = token1 per token0, matching the subgraph's `token1Price`
      - subgraph amounts are already decimal-scaled BigDecimal strings
    """

    PAGE_SIZE = 1000

    def __init__(
        self,
        *,
        http_client: TheGraphHttpClient,
        logger: logging.Logger | None = None,
    ) -> None:
        self._http = http_client
        self._logger = logger or logging.getLogger(self.__class__.__name__)

    async def aclose(self) -> None:
        await self._http.aclose()

    async def get_top_pairs(self, *, limit: int = 20) -> List[TradingPairEntity]:
        data = await self._http.query(query=TOP_PAIRS_QUERY, variables={"first": int(limit)})

        out: List[TradingPairEntity] = []
        for row in data.get("pairs") or []:
            if not isinstance(row, dict):
                continue
            token0 = row.get("token0") if isinstance(row.get("token0"), dict) else {}
            token1 = row.get("token1") if isinstance(row.get("token1"), dict) else {}
            out.append(
                TradingPairEntity(
                    address=str(row.get("id") or "").lower(),
                    token0=str(token0.get("id") or "").lower(),
                    token1=str(token1.get("id") or "").lower(),
                    token0_symbol=str(token0.get("symbol") or ""),
                    token1_symbol=str(token1.get("symbol") or ""),
                    token0_decimals=int(token0["decimals"]) if token0.get("decimals") is not None else None,
                    token1_decimals=int(token1["decimals"]) if token1.get("decimals") is not None else None,
                    volume_usd=str(row.get("volumeUSD") or "0"),
                    reserve_usd=str(row.get("reserveUSD") or "0"),
                )
            )
        return out

    async def get_pair_quote(self, *, pair_id: str) -> Optional[PairQuoteEntity]:
        pair = str(pair_id).strip().lower()
        data = await self._http.query(query=PAIR_QUOTE_QUERY, variables={"id": pair})
        row: Dict[str, Any] = data.get("pair") or {}
        if not row:
            return None

        token1_price = row.get("token1Price")
        reserve_usd = row.get("reserveUSD")
        return PairQuoteEntity(
            pair_id=pair,
            price=float(token1_price) if token1_price is not None else None,
            reserve_usd=float(reserve_usd) if reserve_usd is not None else None,
        )

    async def get_swaps(
        self,
        *,
        pair_id: str,
        since_ms: int,
        until_ms: int,
        limit: int = 5000,
    ) -> List[TradeEventEntity]:
        """
        Page through swaps by timestamp (the subgraph caps `first` at 1000).

        Pages overlap on the boundary second (timestamp_gte), duplicates are dropped by id.
        """
        pair = str(pair_id).strip().lower()
        since_s = int(since_ms) // 1000
        until_s = int(until_ms) // 1000

        events: List[TradeEventEntity] = []
        seen: set[str] = set()

        while len(events) < limit and since_s <= until_s:
            data = await self._http.query(
                query=SWAPS_QUERY,
                variables={
                    "pair": pair,
                    "since": str(since_s),
                    "until": str(until_s),
                    "first": self.PAGE_SIZE,
                },
            )
            rows = [r for r in (data.get("swaps") or []) if isinstance(r, dict)]

            new_rows = 0
            for row in rows:
                swap_id = str(row.get("id") or "")
                if swap_id and swap_id in seen:
                    continue
                seen.add(swap_id)
                new_rows += 1
                try:
                    events.append(SwapNormalizationService.from_subgraph_swap(pair_id=pair, swap=row))
                except InvalidInputError as exc:
                    self._logger.warning("Skipping malformed swap pair=%s id=%s: %s", pair, swap_id, exc)

            if len(rows) < self.PAGE_SIZE or new_rows == 0:
                break
            since_s = int(rows[-1].get("timestamp") or until_s + 1)

        return events[:limit]
