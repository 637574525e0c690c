"""
Client for the upstream swap service (LDS) status endpoints.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

import httpx
import structlog

logger = structlog.get_logger()


@dataclass
class SwapStatusInfo:
    """Status of one swap as reported upstream."""

    status: str
    failure_reason: Optional[str] = None


def _chunks(ids: list[str], size: int) -> list[list[str]]:
    return [ids[i:i + size] for i in range(0, len(ids), size)]


class SwapStatusService:
    """
    Batched status lookups against LDS.

    A chunk that fails is logged and reported as empty, so callers keep the
    last known status for those swaps.
    """

    def __init__(self, base_url: str, chunk_size: int = 64, timeout: float = 20.0):
        self.base_url = base_url.rstrip("/")
        self.chunk_size = chunk_size
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout)
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_current_status(self, swap_ids: list[str]) -> dict[str, SwapStatusInfo]:
        """Current upstream status keyed by swap id (missing ids are unknown)."""
        if not swap_ids:
            return {}

        results = await asyncio.gather(
            *(self._fetch_chunk(chunk) for chunk in _chunks(swap_ids, self.chunk_size))
        )
        merged: dict[str, SwapStatusInfo] = {}
        for result in results:
            merged.update(result)
        return merged

    async def _fetch_chunk(self, ids: list[str]) -> dict[str, SwapStatusInfo]:
        client = await self._get_client()
        try:
            if len(ids) == 1:
                response = await client.get(f"/v2/swap/{ids[0]}")
            else:
                response = await client.get("/v2/swap/status", params=[("ids", i) for i in ids])

            if response.is_error:
                logger.warning("swap_status_fetch_failed", ids=ids, status_code=response.status_code)
                return {}

            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("swap_status_fetch_error", ids=ids, error=str(e))
            return {}

        if len(ids) == 1:
            data = {ids[0]: data}
        return self._parse(data)

    @staticmethod
    def _parse(data: Any) -> dict[str, SwapStatusInfo]:
        if not isinstance(data, dict):
            return {}
        parsed: dict[str, SwapStatusInfo] = {}
        for swap_id, entry in data.items():
            if not isinstance(entry, dict):
                continue
            status = entry.get("status")
            if not isinstance(status, str):
                continue
            reason = entry.get("failureReason")
            parsed[swap_id] = SwapStatusInfo(
                status=status,
                failure_reason=reason if isinstance(reason, str) else None,
            )
        return parsed
