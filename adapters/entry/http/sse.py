from __future__ import annotations

import json
from typing import Any, Dict, Optional

KEEPALIVE_FRAME = ": ping\n\n"

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def encode_event(payload: Dict[str, Any], *, retry_ms: Optional[int] = None) -> str:
    """
    One SSE frame: optional `retry:` line, then `data: <json>` and a blank line.
    """
    head = f"retry: {int(retry_ms)}\n" if retry_ms is not None else ""
    return f"{head}data: {json.dumps(payload, separators=(',', ':'))}\n\n"
