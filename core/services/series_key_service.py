from __future__ import annotations

from typing import NamedTuple


class SeriesKey(NamedTuple):
    pair_id: str
    interval: str

    def __str__(self) -> str:
        return f"{self.pair_id}:{self.interval}"


class SeriesKeyService:
    """
    Builds canonical series keys for candle/volume partitions.

    Rules:
    - pair id is stripped and lowercased (pair addresses are case-insensitive hex)
    - interval label is stripped only ("1m" and "1M" are not the same thing upstream)
    """

    @staticmethod
    def build(*, pair_id: str, interval: str) -> SeriesKey:
        pair = (pair_id or "").strip().lower()
        itv = (interval or "").strip()
        return SeriesKey(pair_id=pair, interval=itv)
