"""Stacks API payloads used for stake verification."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


MICRO_STX_PER_STX = 1_000_000


class TokenTransfer(BaseModel):
    model_config = ConfigDict(extra="ignore")

    recipient_address: str
    amount: int = Field(default=0, description="micro-STX, sent as a decimal string")
    memo: Optional[str] = None


class TransactionRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tx_id: str
    tx_type: str
    tx_status: str
    sender_address: str
    token_transfer: Optional[TokenTransfer] = None
    fee_rate: Optional[str] = None
    block_height: Optional[int] = None
    canonical: Optional[bool] = None

    @property
    def amount_micro_stx(self) -> int:
        return self.token_transfer.amount if self.token_transfer else 0

    @property
    def memo(self) -> Optional[str]:
        return self.token_transfer.memo if self.token_transfer else None


def stx_to_micro(amount: float) -> int:
    return int(amount * MICRO_STX_PER_STX)


__all__ = ["MICRO_STX_PER_STX", "TokenTransfer", "TransactionRecord", "stx_to_micro"]
