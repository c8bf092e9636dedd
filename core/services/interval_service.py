from __future__ import annotations

from typing import Dict, List

ONE_MINUTE_MS = 60_000
ONE_DAY_MS = 86_400_000

INTERVALS_MS: Dict[str, int] = {
    "1m": ONE_MINUTE_MS,
    "5m": 5 * ONE_MINUTE_MS,
    "15m": 15 * ONE_MINUTE_MS,
    "1h": 60 * ONE_MINUTE_MS,
    "4h": 4 * 60 * ONE_MINUTE_MS,
    "1d": ONE_DAY_MS,
    "1w": 7 * ONE_DAY_MS,
}


class IntervalService:
    """
    Static interval table: label -> duration in milliseconds.

    Unknown labels fail closed to the fallback duration instead of raising. Callers that
    accept user input must check `is_supported()` first; the fallback is a safety net only.
    """

    def __init__(self, *, fallback_interval: str = "1h") -> None:
        if fallback_interval not in INTERVALS_MS:
            raise ValueError(f"fallback_interval must be one of {sorted(INTERVALS_MS)}")
        self._fallback_ms = INTERVALS_MS[fallback_interval]

    @staticmethod
    def supported_intervals() -> List[str]:
        return list(INTERVALS_MS)

    @staticmethod
    def is_supported(label: str) -> bool:
        return (label or "").strip() in INTERVALS_MS

    def duration_ms(self, label: str) -> int:
        return INTERVALS_MS.get((label or "").strip(), self._fallback_ms)

    def bucket_start_ms(self, timestamp_ms: int, label: str) -> int:
        d = self.duration_ms(label)
        return (int(timestamp_ms) // d) * d

    def candles_per_day(self, label: str) -> int:
        """
        Number of buckets covering ~24h. Intervals longer than a day count as 1.
        """
        return max(1, ONE_DAY_MS // self.duration_ms(label))
