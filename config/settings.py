"""
Application configuration for api-dex-candles.

Centralizes environment variables using python-dotenv.

Note:
- Live candles are kept in memory only; nothing here points at a database.
- MARKET_SOURCE=simulated (default) generates random-walk swaps; "thegraph" queries the subgraph.
"""

import os
from dotenv import load_dotenv

load_dotenv()


def _csv(value: str) -> list[str]:
    return [s.strip() for s in (value or "").split(",") if s.strip()]


def _optional_int(value: str | None) -> int | None:
    """
    Empty, "none" or "null" mean unset (None); anything else must be an int.
    """
    raw = (value or "").strip()
    if raw.lower() in ("", "none", "null"):
        return None
    return int(raw)


class Settings:
    """
    Configuration settings for the api-dex-candles service.
    """

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    APP_NAME: str = os.getenv("APP_NAME", "api-dex-candles")

    # Aggregation
    DEFAULT_INTERVAL: str = os.getenv("DEFAULT_INTERVAL", "1h")
    MERGE_LIMIT: int = int(os.getenv("MERGE_LIMIT", "200"))
    MAX_BUCKETS_PER_SERIES: int = int(os.getenv("MAX_BUCKETS_PER_SERIES", "5000"))
    # Empty or "none" accepts late trades of any age
    LATE_EVENT_GRACE_BUCKETS: int | None = _optional_int(os.getenv("LATE_EVENT_GRACE_BUCKETS", "1"))

    # Market data source: "thegraph" | "simulated"
    MARKET_SOURCE: str = os.getenv("MARKET_SOURCE", "simulated").lower()
    THEGRAPH_ENDPOINT: str = os.getenv(
        "THEGRAPH_ENDPOINT",
        "https://api.thegraph.com/subgraphs/name/pancakeswap/exchange",
    )
    THEGRAPH_API_KEY: str = os.getenv("THEGRAPH_API_KEY", "")
    THEGRAPH_TIMEOUT_S: float = float(os.getenv("THEGRAPH_TIMEOUT_S", "20"))
    UPSTREAM_TIMEOUT_S: float = float(os.getenv("UPSTREAM_TIMEOUT_S", "10"))
    TOP_PAIRS_LIMIT: int = int(os.getenv("TOP_PAIRS_LIMIT", "20"))

    # Feeds
    FEED_PAIRS: list[str] = _csv(os.getenv("FEED_PAIRS", ""))
    FEED_POLL_EVERY_S: float = float(os.getenv("FEED_POLL_EVERY_S", "5"))
    SIMULATED_TICK_S: float = float(os.getenv("SIMULATED_TICK_S", "5"))

    # Live stream (SSE)
    STREAM_QUEUE_SIZE: int = int(os.getenv("STREAM_QUEUE_SIZE", "256"))
    STREAM_KEEPALIVE_S: float = float(os.getenv("STREAM_KEEPALIVE_S", "15"))
    STREAM_RETRY_MS: int = int(os.getenv("STREAM_RETRY_MS", "5000"))

    ENABLE_DEV_ROUTES: bool = os.getenv("ENABLE_DEV_ROUTES", "true").lower() == "true"


settings = Settings()
