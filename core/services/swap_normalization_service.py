from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from core.domain.entities.trade_event_entity import TradeEventEntity
from core.domain.errors import InvalidInputError


class SwapNormalizationService:
    """
    Turns raw swap amounts into a normalized TradeEventEntity.

    Pricing convention (V2 pair):
      price  = token1 per token0 = (amount1In + amount1Out) / (amount0In + amount0Out)
      volume = amountUSD when the source provides it, else the token1 side of the swap

    Amounts may be on-chain integers (scaled by `decimals`) or already-scaled decimal strings
    (subgraph BigDecimal, decimals=0). All math stays in Decimal until the final float().
    """

    @staticmethod
    def to_decimal(raw: Any, decimals: int = 0) -> Decimal:
        if raw is None or raw == "":
            return Decimal(0)
        try:
            value = Decimal(str(raw))
        except InvalidOperation as exc:
            raise InvalidInputError(f"not a number: {raw!r}") from exc
        if decimals:
            value = value.scaleb(-int(decimals))
        return value

    @classmethod
    def normalize(
        cls,
        *,
        pair_id: str,
        timestamp_ms: int,
        amount0_in: Any,
        amount1_in: Any,
        amount0_out: Any,
        amount1_out: Any,
        decimals0: int = 0,
        decimals1: int = 0,
        amount_usd: Any = None,
        raw_event_id: Optional[str] = None,
    ) -> TradeEventEntity:
        a0 = cls.to_decimal(amount0_in, decimals0) + cls.to_decimal(amount0_out, decimals0)
        a1 = cls.to_decimal(amount1_in, decimals1) + cls.to_decimal(amount1_out, decimals1)

        if a0 <= 0 or a1 < 0:
            raise InvalidInputError(f"swap without token0 flow pair={pair_id} id={raw_event_id}")

        price = a1 / a0
        usd = cls.to_decimal(amount_usd) if amount_usd not in (None, "") else None
        volume = usd if usd is not None and usd > 0 else a1

        return TradeEventEntity(
            timestamp_ms=int(timestamp_ms),
            price=float(price),
            volume=float(volume),
            pair_id=pair_id,
            raw_event_id=raw_event_id,
        )

    @classmethod
    def from_subgraph_swap(cls, *, pair_id: str, swap: Dict[str, Any]) -> TradeEventEntity:
        """
        Normalize a PancakeSwap subgraph `Swap` entity (amounts already decimal-scaled,
        timestamp in seconds).
        """
        ts = swap.get("timestamp")
        if ts is None:
            raise InvalidInputError(f"swap without timestamp id={swap.get('id')}")

        return cls.normalize(
            pair_id=pair_id,
            timestamp_ms=int(ts) * 1000,
            amount0_in=swap.get("amount0In"),
            amount1_in=swap.get("amount1In"),
            amount0_out=swap.get("amount0Out"),
            amount1_out=swap.get("amount1Out"),
            amount_usd=swap.get("amountUSD"),
            raw_event_id=swap.get("id"),
        )
