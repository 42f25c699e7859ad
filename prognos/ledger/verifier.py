"""Stake transaction verification against the Stacks ledger."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Optional

import httpx
from pydantic import ValidationError

from prognos.config import LedgerSettings

from .client import StacksLedgerClient
from .models import MICRO_STX_PER_STX, TransactionRecord, stx_to_micro


logger = logging.getLogger(__name__)

_TX_ID_RE = re.compile(r"^0x[a-fA-F0-9]{64}$")

# Blocks of history allowed per minute of transaction age.
BLOCKS_PER_MINUTE = 10


def is_valid_transaction_id(tx_id: object) -> bool:
    return isinstance(tx_id, str) and bool(_TX_ID_RE.match(tx_id))


@dataclass(frozen=True)
class Verification:
    verified: bool
    error: Optional[str] = None
    record: Optional[TransactionRecord] = None


class LedgerVerifier:
    def __init__(self, client: StacksLedgerClient, settings: Optional[LedgerSettings] = None):
        self.client = client
        self.settings = settings or client.settings

    async def verify_stake(
        self,
        tx_id: str,
        sender: str,
        amount: float,
        max_age_minutes: int = 30,
    ) -> Verification:
        """Check that ``tx_id`` is a settled transfer of ``amount`` STX from ``sender``."""
        if not is_valid_transaction_id(tx_id):
            return Verification(False, "Invalid transaction id format")

        try:
            record = await self.client.fetch_transaction(tx_id)
        except (httpx.HTTPError, ValidationError) as exc:
            logger.warning({"ledger_verify": {"tx_id": tx_id, "error": str(exc)}})
            return Verification(False, f"Failed to fetch transaction: {exc}")

        if record is None:
            return Verification(False, "Transaction not found or still pending")
        if record.tx_type != "token_transfer":
            return Verification(False, "Transaction is not a token transfer", record)
        if record.tx_status != "success":
            return Verification(False, f"Transaction failed with status: {record.tx_status}", record)
        if record.sender_address != sender:
            return Verification(False, "Transaction sender does not match expected address", record)

        platform = self.settings.platform_address
        if platform and record.token_transfer and record.token_transfer.recipient_address != platform:
            return Verification(False, "Transaction recipient is not the platform address", record)

        expected = stx_to_micro(amount)
        actual = record.amount_micro_stx
        tolerance = self.settings.amount_tolerance * MICRO_STX_PER_STX
        if abs(actual - expected) > tolerance:
            return Verification(
                False,
                f"Transaction amount mismatch. Expected: {amount} STX, Got: {actual / MICRO_STX_PER_STX} STX",
                record,
            )

        if record.block_height and max_age_minutes > 0:
            current = await self._current_height()
            if current and record.block_height < current - max_age_minutes * BLOCKS_PER_MINUTE:
                return Verification(False, "Transaction is too old", record)

        return Verification(True, None, record)

    async def _current_height(self) -> Optional[int]:
        try:
            return await self.client.current_block_height()
        except httpx.HTTPError as exc:
            # age check is skipped when the tip is unknown
            logger.warning({"ledger_block_height": {"error": str(exc)}})
            return None


__all__ = ["BLOCKS_PER_MINUTE", "Verification", "LedgerVerifier", "is_valid_transaction_id"]
