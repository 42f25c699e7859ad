from .client import StacksLedgerClient
from .models import MICRO_STX_PER_STX, TokenTransfer, TransactionRecord
from .verifier import LedgerVerifier, Verification, is_valid_transaction_id

__all__ = [
    "StacksLedgerClient",
    "LedgerVerifier",
    "Verification",
    "TransactionRecord",
    "TokenTransfer",
    "MICRO_STX_PER_STX",
    "is_valid_transaction_id",
]
