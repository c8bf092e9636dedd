from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from core.domain.entities.trade_event_entity import TradeEventEntity
from core.domain.errors import InvalidInputError
from workers.feed_supervisor import FeedSupervisor

from .deps import get_supervisor
from .dtos.candle_dtos import (
    CandlesOutDTO,
    PairOutDTO,
    PairsOutDTO,
    TradeIngestDTO,
    TradeIngestOutDTO,
)
from .sse import KEEPALIVE_FRAME, SSE_HEADERS, encode_event

router = APIRouter(prefix="/api", tags=["candles"])
dev_router = APIRouter(prefix="/api/dev", tags=["dev"])

logger = logging.getLogger(__name__)


@router.get("/candles", response_model=CandlesOutDTO)
async def get_candles(
    pair: Optional[str] = Query(None, description="Pair id / address"),
    interval: Optional[str] = Query(None, description='Interval label, e.g. "1m", "1h"'),
    limit: Optional[int] = Query(None, description="Max candles returned (default MERGE_LIMIT)"),
    supervisor: FeedSupervisor = Depends(get_supervisor),
) -> CandlesOutDTO:
    """
    History + live candles for a pair, with volume bars and 24h stats.

    400 when pair or interval is missing, or the interval is not supported.
    """
    merged = await supervisor.merged_candles_uc.execute(
        pair_id=pair,
        interval=interval,
        limit=limit if limit is not None else supervisor.settings.MERGE_LIMIT,
    )
    return CandlesOutDTO.model_validate(merged.to_dict())


@router.get("/pairs", response_model=PairsOutDTO)
async def list_pairs(supervisor: FeedSupervisor = Depends(get_supervisor)) -> PairsOutDTO:
    pairs = await supervisor.list_pairs_uc.execute(limit=supervisor.settings.TOP_PAIRS_LIMIT)
    return PairsOutDTO(pairs=[PairOutDTO.model_validate(p.to_dict()) for p in pairs])


@router.get("/stream")
async def stream_updates(
    request: Request,
    pair: Optional[str] = Query(None),
    interval: Optional[str] = Query(None),
    supervisor: FeedSupervisor = Depends(get_supervisor),
) -> StreamingResponse:
    """
    Server-Sent Events: `connected`, then candle/volume/stats per ingested trade.
    """
    pair_id = (pair or "").strip()
    itv = (interval or "").strip()
    if not pair_id or not itv:
        raise InvalidInputError("Missing pair or interval")
    if not supervisor.intervals.is_supported(itv):
        raise InvalidInputError(
            f"Unsupported interval '{itv}'. Expected one of: {', '.join(supervisor.intervals.supported_intervals())}"
        )

    retry_ms = supervisor.settings.STREAM_RETRY_MS

    async def gen():
        first = True
        messages = supervisor.stream_uc.stream(
            pair_id=pair_id,
            interval=itv,
            is_disconnected=request.is_disconnected,
        )
        try:
            async for msg in messages:
                if msg is None:
                    yield KEEPALIVE_FRAME
                    continue
                yield encode_event(msg.to_dict(), retry_ms=retry_ms if first else None)
                first = False
        finally:
            await messages.aclose()

    logger.info("SSE stream opened pair=%s interval=%s", pair_id, itv)
    return StreamingResponse(gen(), media_type="text/event-stream", headers=SSE_HEADERS)


@dev_router.post("/trades", response_model=TradeIngestOutDTO)
async def ingest_trade(
    dto: TradeIngestDTO,
    supervisor: FeedSupervisor = Depends(get_supervisor),
) -> TradeIngestOutDTO:
    """
    Fold one manual trade into every supported interval and notify live subscribers.
    """
    event = TradeEventEntity(
        timestamp_ms=dto.timestamp,
        price=dto.price,
        volume=dto.volume,
        pair_id=dto.pair,
        raw_event_id=dto.raw_event_id,
    )
    updated = supervisor.manual_ingest_uc.ingest_event(event)
    return TradeIngestOutDTO(accepted=bool(updated), series=[str(k) for k in updated])
