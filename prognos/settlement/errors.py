"""Settlement error taxonomy.

Interactive callers (resolve, claim, stake) receive these directly; the
resolution scheduler logs them per pool and moves on.
"""

from __future__ import annotations

from typing import Optional

from prognos.shared.enums import ClaimReason


class SettlementError(Exception):
    """Base class for every settlement failure."""


class NotFound(SettlementError):
    pass


class PoolNotFound(NotFound):
    def __init__(self, pool_id: str):
        super().__init__(f"pool {pool_id} not found")
        self.pool_id = pool_id


class PredictionNotFound(NotFound):
    reason = ClaimReason.NO_PREDICTION

    def __init__(self, pool_id: str, subject_id: str):
        super().__init__(f"no prediction for subject {subject_id} in pool {pool_id}")
        self.pool_id = pool_id
        self.subject_id = subject_id


class AlreadyResolved(SettlementError):
    def __init__(self, pool_id: str):
        super().__init__(f"pool {pool_id} is already resolved")
        self.pool_id = pool_id


class InvalidOutcome(SettlementError):
    pass


class InvalidPredictionFormat(SettlementError):
    def __init__(self, raw: object, detail: Optional[str] = None):
        message = f"invalid prediction value {raw!r}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.raw = raw


class InvalidStake(SettlementError):
    pass


class InvalidSubject(SettlementError):
    """Missing or blank subject identifier."""


class TransactionReused(InvalidStake):
    def __init__(self, transaction_id: str):
        super().__init__("Transaction has already been used for another stake")
        self.transaction_id = transaction_id


class DeadlinePassed(SettlementError):
    def __init__(self, pool_id: str):
        super().__init__(f"pool {pool_id} deadline has passed")
        self.pool_id = pool_id


class PoolNotResolved(SettlementError):
    reason = ClaimReason.POOL_NOT_RESOLVED

    def __init__(self, pool_id: str):
        super().__init__(f"pool {pool_id} is not yet resolved")
        self.pool_id = pool_id


class AlreadyClaimed(SettlementError):
    reason = ClaimReason.ALREADY_CLAIMED

    def __init__(self, pool_id: str, subject_id: str):
        super().__init__(f"rewards already claimed by {subject_id} in pool {pool_id}")
        self.pool_id = pool_id
        self.subject_id = subject_id


class NoRewardAvailable(SettlementError):
    reason = ClaimReason.NO_REWARD_AVAILABLE

    def __init__(self, pool_id: str, subject_id: str):
        super().__init__(f"no reward available for {subject_id} in pool {pool_id}")
        self.pool_id = pool_id
        self.subject_id = subject_id


class ConcurrencyConflict(SettlementError):
    """A conditional write lost to a concurrent writer in an unexpected way."""


class StoreUnavailable(SettlementError):
    """Transient store failure (connectivity, lock timeout). Safe to retry."""


class LedgerVerificationFailed(SettlementError):
    def __init__(self, message: str, record: Optional[dict] = None):
        super().__init__(message)
        self.record = record


CLAIM_ERRORS = {
    ClaimReason.NO_PREDICTION: PredictionNotFound,
    ClaimReason.POOL_NOT_RESOLVED: PoolNotResolved,
    ClaimReason.ALREADY_CLAIMED: AlreadyClaimed,
    ClaimReason.NO_REWARD_AVAILABLE: NoRewardAvailable,
}


__all__ = [
    "SettlementError",
    "NotFound",
    "PoolNotFound",
    "PredictionNotFound",
    "AlreadyResolved",
    "InvalidOutcome",
    "InvalidPredictionFormat",
    "InvalidStake",
    "TransactionReused",
    "InvalidSubject",
    "DeadlinePassed",
    "PoolNotResolved",
    "AlreadyClaimed",
    "NoRewardAvailable",
    "ConcurrencyConflict",
    "StoreUnavailable",
    "LedgerVerificationFailed",
    "CLAIM_ERRORS",
]
