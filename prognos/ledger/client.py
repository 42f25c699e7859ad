from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import httpx

from prognos.config import LedgerSettings

from .models import TransactionRecord


logger = logging.getLogger(__name__)


class StacksLedgerClient:
    """
    Async client for the Stacks node API.

    - ``fetch_transaction`` returns None for unknown or still-pending ids (404)
    - Transient HTTP errors are retried with exponential backoff
    """

    def __init__(
        self,
        *,
        base_url: Optional[str] = None,
        settings: Optional[LedgerSettings] = None,
        timeout_seconds: Optional[float] = None,
        max_retries: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings or LedgerSettings()
        self.base_url = (base_url or self.settings.base_url()).rstrip("/")
        self.max_retries = self.settings.max_retries if max_retries is None else max_retries
        timeout = self.settings.timeout_seconds if timeout_seconds is None else timeout_seconds
        limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
        self._client = httpx.AsyncClient(timeout=timeout, limits=limits, transport=transport)

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "StacksLedgerClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def fetch_transaction(self, tx_id: str) -> Optional[TransactionRecord]:
        payload = await self._get_json(f"{self.base_url}/extended/v1/tx/{tx_id}")
        if payload is None:
            logger.debug({"ledger_tx_missing": {"tx_id": tx_id}})
            return None
        return TransactionRecord.model_validate(payload)

    async def current_block_height(self) -> Optional[int]:
        payload = await self._get_json(f"{self.base_url}/extended/v1/status")
        if not isinstance(payload, dict):
            return None
        tip = payload.get("chain_tip") or {}
        height = tip.get("block_height")
        return int(height) if height else None

    async def confirmation_count(self, tx_id: str) -> int:
        record = await self.fetch_transaction(tx_id)
        if record is None or not record.block_height:
            return 0
        height = await self.current_block_height()
        if not height:
            return 0
        return max(0, height - record.block_height + 1)

    async def _get_json(self, url: str) -> Any:
        attempt = 0
        backoff = 0.5
        while True:
            try:
                resp = await self._client.get(url, headers={"Accept": "application/json"})
                resp.raise_for_status()
                return resp.json()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                if status == 404:
                    return None
                if 400 <= status < 500 and status != 429:
                    raise
                if attempt >= self.max_retries:
                    raise
                logger.warning({"ledger_http_retry": {"url": url, "status": status, "attempt": attempt}})
                await asyncio.sleep(backoff)
            except (httpx.RequestError, httpx.TimeoutException) as exc:
                if attempt >= self.max_retries:
                    raise
                logger.warning({"ledger_http_retry": {"url": url, "error": str(exc), "attempt": attempt}})
                await asyncio.sleep(backoff)
            attempt += 1
            backoff *= 2


__all__ = ["StacksLedgerClient"]
