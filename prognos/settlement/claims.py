"""Reward claims. Each prediction pays out at most once."""

from __future__ import annotations

import logging
from typing import Optional

from prognos.database.repository import PoolStore
from prognos.database.schema import Prediction
from prognos.shared.enums import ClaimReason
from prognos.shared.logging import log_event

from .errors import (
    CLAIM_ERRORS,
    AlreadyClaimed,
    PoolNotResolved,
    PredictionNotFound,
    SettlementError,
)
from .locks import PoolLocks
from .types import ClaimCheck, ClaimReceipt


logger = logging.getLogger(__name__)


class ClaimGate:
    def __init__(self, store: PoolStore, locks: PoolLocks):
        self.store = store
        self.locks = locks

    async def check_claim(self, pool_id: str, subject_id: str) -> ClaimCheck:
        """Report whether ``subject_id`` can claim now, and if not, why."""
        check, _ = await self._evaluate(pool_id, subject_id)
        return check

    async def _evaluate(self, pool_id: str, subject_id: str) -> tuple[ClaimCheck, Optional[Prediction]]:
        prediction = await self.store.get_prediction(pool_id, subject_id)
        if prediction is None:
            return ClaimCheck(can_claim=False, reason=ClaimReason.NO_PREDICTION), None

        pool = await self.store.get_pool(pool_id)
        if pool is None or not pool.is_resolved:
            return ClaimCheck(can_claim=False, reason=ClaimReason.POOL_NOT_RESOLVED), prediction

        if prediction.claimed:
            return ClaimCheck(can_claim=False, reason=ClaimReason.ALREADY_CLAIMED), prediction

        reward = prediction.claimable_reward
        if reward is None or reward <= 0:
            return ClaimCheck(can_claim=False, reason=ClaimReason.NO_REWARD_AVAILABLE), prediction

        return ClaimCheck(can_claim=True, amount=float(reward)), prediction

    async def claim(self, pool_id: str, subject_id: str) -> ClaimReceipt:
        """Mark the subject's reward as claimed and return the amount.

        Raises the error matching the rejection reason; a claim that loses a
        race to a concurrent one raises AlreadyClaimed.
        """
        async with self.locks.hold(pool_id):
            check, prediction = await self._evaluate(pool_id, subject_id)
            if not check.can_claim or prediction is None:
                raise _rejection(check.reason, pool_id, subject_id)
            if not await self.store.mark_claimed(prediction.prediction_id):
                raise AlreadyClaimed(pool_id, subject_id)

        receipt = ClaimReceipt(
            pool_id=pool_id,
            subject_id=subject_id,
            prediction_id=prediction.prediction_id,
            amount=float(check.amount or 0.0),
        )
        logger.info({"reward_claimed": receipt.to_dict()})
        log_event({"reward_claimed": {"pool_id": pool_id, "subject_id": subject_id, "amount": receipt.amount}})
        return receipt


def _rejection(reason: Optional[ClaimReason], pool_id: str, subject_id: str) -> SettlementError:
    if reason is None or reason is ClaimReason.NO_PREDICTION:
        return PredictionNotFound(pool_id, subject_id)
    if reason is ClaimReason.POOL_NOT_RESOLVED:
        return PoolNotResolved(pool_id)
    return CLAIM_ERRORS[reason](pool_id, subject_id)


__all__ = ["ClaimGate"]
