from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from core.domain.errors import UpstreamUnavailableError


class TheGraphHttpClient:
    """
    Minimal The Graph client.

    Uses POST JSON:
      { "query": "...", "variables": {...} }

    Authorization (gateway only):
      Bearer {api_key}

    Transport errors, non-2xx responses and GraphQL `errors` all surface as
    UpstreamUnavailableError.
    """

    def __init__(
        self,
        *,
        endpoint: str,
        api_key: Optional[str] = None,
        timeout_s: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._endpoint = str(endpoint).strip()
        self._api_key = (api_key or "").strip()
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout_s, connect=5.0),
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def query(self, *, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"

        payload = {
            "query": query,
            "variables": variables or {},
        }
        try:
            r = await self._client.post(self._endpoint, headers=headers, json=payload)
            r.raise_for_status()
            data = r.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise UpstreamUnavailableError(f"subgraph request failed: {exc}") from exc

        if not isinstance(data, dict):
            raise UpstreamUnavailableError(f"unexpected subgraph payload type={type(data).__name__}")
        if data.get("errors"):
            raise UpstreamUnavailableError(f"subgraph errors: {data['errors']}")
        return data.get("data") or {}
