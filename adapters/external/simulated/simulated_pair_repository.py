from __future__ import annotations

import hashlib
import math
import random
import time
from typing import Callable, List, Optional

from core.domain.entities.pair_entity import PairQuoteEntity, TradingPairEntity
from core.domain.entities.trade_event_entity import TradeEventEntity
from core.repositories.pair_market_repository import PairMarketRepository

DEMO_PAIRS = [
    ("0x16b9a82891338f9ba80e2d6970fdda79d1eb0dae", "USDT", "WBNB"),
    ("0x58f876857a02d6762e0101bb5c46a8c1ed44dc16", "WBNB", "BUSD"),
    ("0x0ed7e52944161450477ee417de9cd3a859b14fd0", "Cake", "WBNB"),
    ("0x7efaef62fddcca950418312c6c91aef321375a00", "USDT", "BUSD"),
    ("0x74e4716e431f45807dcf19f284c7aa99f18a4fbc", "ETH", "WBNB"),
]


class SimulatedPairRepository(PairMarketRepository):
    """
    Offline market source for demos and tests.

    Prices are a deterministic function of (pair, timestamp): a base price in [100, 1000)
    derived from the pair id, two slow waves and a small seeded jitter. Repeated queries over
    the same window return the same swaps, and the live feed continues the same curve.

    Swaps sit on a grid of `tick_s` seconds; wide windows coarsen the grid so a query never
    produces more than `limit` swaps (volume is scaled up accordingly).
    """

    def __init__(
        self,
        *,
        tick_s: float = 5.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._tick_ms = max(1, int(float(tick_s) * 1000))
        self._clock = clock

    @staticmethod
    def _seed(*parts: object) -> int:
        raw = ":".join(str(p) for p in parts).encode()
        return int.from_bytes(hashlib.sha256(raw).digest()[:8], "big")

    def _base_price(self, pair_id: str) -> float:
        return 100.0 + (self._seed(pair_id) % 900_000) / 1000.0

    def price_at(self, pair_id: str, ts_ms: int) -> float:
        pair = pair_id.strip().lower()
        t = ts_ms / 1000.0
        phase = (self._seed(pair, "phase") % 6283) / 1000.0
        wave = 0.04 * math.sin(t / 5400.0 + phase) + 0.015 * math.sin(t / 900.0 + 2 * phase)
        jitter = random.Random(self._seed(pair, ts_ms)).uniform(-0.002, 0.002)
        return self._base_price(pair) * (1.0 + wave + jitter)

    def _volume_at(self, pair_id: str, ts_ms: int, scale: float) -> float:
        return random.Random(self._seed(pair_id, ts_ms, "v")).uniform(0.0, 10_000.0) * scale

    async def get_top_pairs(self, *, limit: int = 20) -> List[TradingPairEntity]:
        out: List[TradingPairEntity] = []
        for address, sym0, sym1 in DEMO_PAIRS[: max(0, int(limit))]:
            out.append(
                TradingPairEntity(
                    address=address,
                    token0=f"sim:{sym0.lower()}",
                    token1=f"sim:{sym1.lower()}",
                    token0_symbol=sym0,
                    token1_symbol=sym1,
                    token0_decimals=18,
                    token1_decimals=18,
                    volume_usd=f"{self._seed(address, 'vol') % 10_000_000_000 / 100:.2f}",
                    reserve_usd=f"{self._seed(address, 'res') % 1_000_000_000 / 100:.2f}",
                )
            )
        return out

    async def get_pair_quote(self, *, pair_id: str) -> Optional[PairQuoteEntity]:
        pair = pair_id.strip().lower()
        now_ms = int(self._clock() * 1000)
        return PairQuoteEntity(
            pair_id=pair,
            price=self.price_at(pair, (now_ms // self._tick_ms) * self._tick_ms),
            reserve_usd=float(self._seed(pair, "res") % 1_000_000_000 / 100),
        )

    async def get_swaps(
        self,
        *,
        pair_id: str,
        since_ms: int,
        until_ms: int,
        limit: int = 5000,
    ) -> List[TradeEventEntity]:
        pair = pair_id.strip().lower()
        if until_ms < since_ms or limit <= 0:
            return []

        span = int(until_ms) - int(since_ms)
        steps = math.ceil(span / max(1, int(limit)) / self._tick_ms) if span > 0 else 1
        step_ms = max(1, steps) * self._tick_ms
        scale = step_ms / self._tick_ms

        first = -(-int(since_ms) // step_ms) * step_ms
        events: List[TradeEventEntity] = []
        ts = first
        while ts <= until_ms and len(events) < limit:
            events.append(
                TradeEventEntity(
                    timestamp_ms=ts,
                    price=self.price_at(pair, ts),
                    volume=self._volume_at(pair, ts, scale),
                    pair_id=pair,
                    raw_event_id=f"sim-{pair}-{ts}",
                )
            )
            ts += step_ms
        return events
