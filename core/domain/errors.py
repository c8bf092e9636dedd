from __future__ import annotations


class CandleFeedError(Exception):
    """Base error for the candle feed service."""


class InvalidInputError(CandleFeedError):
    """Missing or malformed pair / interval / trade fields. Surfaced to the caller as-is."""


class UpstreamUnavailableError(CandleFeedError):
    """
    The subgraph (or another external source) failed or timed out.

    Use cases recover from this locally with empty/zero defaults.
    """
