"""Vote and stake intake for open pools."""

from __future__ import annotations

import logging
import math
import numbers
from datetime import datetime
from typing import Callable, Optional

from prognos.config import StakeSettings
from prognos.database.repository import PoolStore
from prognos.database.schema import Prediction
from prognos.database.schema.base import ensure_utc, utcnow
from prognos.ledger import LedgerVerifier, is_valid_transaction_id
from prognos.shared.logging import log_event

from .errors import (
    AlreadyResolved,
    DeadlinePassed,
    InvalidStake,
    InvalidSubject,
    LedgerVerificationFailed,
    PoolNotFound,
    TransactionReused,
)
from .locks import PoolLocks
from .scoring import normalize
from .types import StakeReceipt


logger = logging.getLogger(__name__)


class StakeDesk:
    def __init__(
        self,
        store: PoolStore,
        locks: PoolLocks,
        settings: Optional[StakeSettings] = None,
        verifier: Optional[LedgerVerifier] = None,
        *,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.locks = locks
        self.settings = settings or StakeSettings()
        self.verifier = verifier
        self._clock = clock

    async def submit_vote(self, pool_id: str, subject_id: str, prediction_value: str) -> Prediction:
        """Record an unstaked prediction, or change the value of an existing one."""
        value = _clean_value(prediction_value)
        _require_subject(subject_id)

        async with self.locks.hold(pool_id):
            now = self._clock()
            if not await self.store.upsert_vote(pool_id, subject_id, value, now):
                raise await self._closed_reason(pool_id)
            prediction = await self.store.get_prediction(pool_id, subject_id)

        if prediction is None:
            raise PoolNotFound(pool_id)
        logger.info({"vote_recorded": {"pool_id": pool_id, "subject_id": subject_id, "value": value}})
        return prediction

    async def submit_stake(
        self,
        pool_id: str,
        subject_id: str,
        prediction_value: str,
        amount: object,
        transaction_id: Optional[str] = None,
    ) -> StakeReceipt:
        """Add a verified stake to the subject's prediction and the pool total.

        The ledger is consulted before the pool lock is taken; the pool total
        and the prediction are then updated together, only while the pool is
        still open.
        """
        stake = self._validate_amount(amount)
        value = _clean_value(prediction_value)
        _require_subject(subject_id)

        if transaction_id is not None and not is_valid_transaction_id(transaction_id):
            raise InvalidStake("Invalid transaction id format")
        if self.settings.require_transaction and not transaction_id:
            raise InvalidStake("Transaction id required for stakes")

        # pre-check only; record_stake re-checks under the lock
        now = self._clock()
        pool = await self.store.get_pool(pool_id)
        if pool is None:
            raise PoolNotFound(pool_id)
        if pool.is_resolved:
            raise AlreadyResolved(pool_id)
        if ensure_utc(pool.deadline) <= ensure_utc(now):
            raise DeadlinePassed(pool_id)

        if transaction_id and await self.store.transaction_used(transaction_id):
            raise TransactionReused(transaction_id)

        verified = False
        if transaction_id and self.verifier is not None:
            verification = await self.verifier.verify_stake(
                transaction_id,
                subject_id,
                stake,
                self.settings.max_transaction_age_minutes,
            )
            if not verification.verified:
                logger.warning(
                    {
                        "stake_rejected": {
                            "pool_id": pool_id,
                            "subject_id": subject_id,
                            "tx_id": transaction_id,
                            "error": verification.error,
                        }
                    }
                )
                raise LedgerVerificationFailed(
                    f"Transaction verification failed: {verification.error}",
                    record=verification.record.model_dump() if verification.record else None,
                )
            verified = True

        async with self.locks.hold(pool_id):
            existing = await self.store.get_prediction(pool_id, subject_id)
            if existing is not None and existing.stake_amount >= self.settings.max_prediction_stake:
                raise InvalidStake(
                    f"Prediction stake already at the limit of {self.settings.max_prediction_stake:g}"
                )
            now = self._clock()
            recorded = await self.store.record_stake(
                pool_id,
                subject_id,
                value,
                stake,
                now,
                transaction_id=transaction_id,
                transaction_verified=verified,
            )
            if not recorded:
                raise await self._closed_reason(pool_id)

        running_total = stake + (existing.stake_amount if existing is not None else 0.0)
        receipt = StakeReceipt(
            pool_id=pool_id,
            subject_id=subject_id,
            prediction_value=value,
            amount=stake,
            stake_amount=running_total,
            transaction_id=transaction_id,
            transaction_verified=verified,
        )
        logger.info({"stake_recorded": receipt.to_dict()})
        log_event({"stake_recorded": {"pool_id": pool_id, "subject_id": subject_id, "amount": stake}})
        return receipt

    def _validate_amount(self, amount: object) -> float:
        if isinstance(amount, bool) or not isinstance(amount, numbers.Real):
            raise InvalidStake(f"Stake amount must be a number, got {amount!r}")
        stake = float(amount)
        if not math.isfinite(stake) or stake <= 0:
            raise InvalidStake("Stake amount must be positive")
        if stake > self.settings.max_stake_amount:
            raise InvalidStake(f"Stake amount cannot exceed {self.settings.max_stake_amount:g}")
        return stake

    async def _closed_reason(self, pool_id: str) -> Exception:
        pool = await self.store.get_pool(pool_id)
        if pool is None:
            return PoolNotFound(pool_id)
        if pool.is_resolved:
            return AlreadyResolved(pool_id)
        return DeadlinePassed(pool_id)


def _clean_value(prediction_value: str) -> str:
    normalize(prediction_value)
    return str(prediction_value).strip()


def _require_subject(subject_id: str) -> None:
    if not subject_id or not str(subject_id).strip():
        raise InvalidSubject("subject_id is required")


__all__ = ["StakeDesk"]
