"""Pool resolution and reward reporting."""

from __future__ import annotations

import logging
import math
import numbers
from typing import Union

from prognos.database.repository import PoolStore
from prognos.shared.enums import ScoringMode
from prognos.shared.logging import log_event

from .errors import AlreadyResolved, InvalidOutcome, PoolNotFound, PoolNotResolved
from .locks import PoolLocks
from .rewards import allocate_rewards
from .scoring import MAX_VALUE, MIN_VALUE, resolve_mode
from .types import ResolutionResult, RewardBreakdown, RewardSummary


logger = logging.getLogger(__name__)

NOT_RESOLVED_MESSAGE = "Pool not yet resolved"


def validate_outcome(value: object) -> float:
    """Coerce an outcome to float or raise InvalidOutcome."""
    if isinstance(value, bool):
        raise InvalidOutcome(f"outcome must be numeric, got {value!r}")
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError as exc:
            raise InvalidOutcome(f"outcome must be numeric, got {value!r}") from exc
    if not isinstance(value, numbers.Real):
        raise InvalidOutcome(f"outcome must be numeric, got {value!r}")
    outcome = float(value)
    if not math.isfinite(outcome):
        raise InvalidOutcome("outcome must be finite")
    if outcome < MIN_VALUE or outcome > MAX_VALUE:
        raise InvalidOutcome(f"outcome {outcome} outside [0, 100]")
    return outcome


class SettlementCoordinator:
    def __init__(
        self,
        store: PoolStore,
        locks: PoolLocks,
        *,
        default_mode: Union[ScoringMode, str] = ScoringMode.LINEAR,
    ):
        self.store = store
        self.locks = locks
        self.default_mode = resolve_mode(default_mode)

    async def resolve_pool(
        self,
        pool_id: str,
        outcome_value: object,
        mode: Union[ScoringMode, str, None] = None,
    ) -> ResolutionResult:
        """Fix the pool's outcome and write every prediction's reward.

        Raises InvalidOutcome, PoolNotFound or AlreadyResolved, checked in that
        order. Either every reward and the resolved flag are committed, or
        nothing is.
        """
        outcome = validate_outcome(outcome_value)
        mode = resolve_mode(mode or self.default_mode)

        async with self.locks.hold(pool_id):
            loaded = await self.store.load_pool(pool_id)
            if loaded is None:
                raise PoolNotFound(pool_id)
            pool, predictions = loaded
            if pool.is_resolved:
                raise AlreadyResolved(pool_id)

            allocation = allocate_rewards(predictions, outcome, pool.total_stake, mode)
            rewards = allocation.rewards()
            settled = await self.store.settle(
                pool_id,
                outcome,
                rewards,
                expected_total_stake=pool.total_stake,
            )
            if not settled:
                raise AlreadyResolved(pool_id)

        result = ResolutionResult(
            pool_id=pool_id,
            outcome_value=outcome,
            mode=mode,
            total_stake=float(pool.total_stake),
            total_weighted_score=allocation.total_weighted_score,
            prediction_count=len(predictions),
            staked_count=sum(1 for e in allocation.entries if e.stake_amount > 0),
            rewards=rewards,
        )
        logger.info(
            {
                "pool_resolved": {
                    "pool_id": pool_id,
                    "outcome": outcome,
                    "mode": mode.value,
                    "predictions": result.prediction_count,
                    "staked": result.staked_count,
                    "total_stake": result.total_stake,
                    "total_weighted_score": round(result.total_weighted_score, 6),
                }
            }
        )
        log_event({"pool_resolved": {"pool_id": pool_id, "outcome": outcome}})
        return result

    async def get_reward_summary(
        self,
        pool_id: str,
        mode: Union[ScoringMode, str, None] = None,
    ) -> RewardSummary:
        mode = resolve_mode(mode or self.default_mode)
        loaded = await self.store.load_pool(pool_id)
        if loaded is None:
            raise PoolNotFound(pool_id)
        pool, predictions = loaded

        if not pool.is_resolved or pool.outcome_value is None:
            return RewardSummary(
                pool_id=pool.pool_id,
                title=pool.title,
                is_resolved=False,
                outcome_value=None,
                total_stake=float(pool.total_stake),
                mode=mode,
                message=NOT_RESOLVED_MESSAGE,
            )

        allocation = allocate_rewards(predictions, pool.outcome_value, pool.total_stake, mode)
        stored = {p.prediction_id: p for p in predictions}
        breakdown = [
            RewardBreakdown(
                subject_id=entry.subject_id,
                prediction_value=entry.prediction_value,
                normalized_value=entry.normalized_value,
                stake_amount=entry.stake_amount,
                distance=entry.distance,
                score=entry.score,
                weighted_score=entry.weighted_score,
                claimable_reward=stored[entry.prediction_id].claimable_reward,
                claimed=stored[entry.prediction_id].claimed,
            )
            for entry in allocation.entries
        ]
        return RewardSummary(
            pool_id=pool.pool_id,
            title=pool.title,
            is_resolved=True,
            outcome_value=float(pool.outcome_value),
            total_stake=float(pool.total_stake),
            mode=mode,
            total_weighted_score=allocation.total_weighted_score,
            predictions=breakdown,
        )

    async def repair_rewards(
        self,
        pool_id: str,
        mode: Union[ScoringMode, str, None] = None,
    ) -> int:
        """Recompute a resolved pool's allocation and fill rewards still missing.

        Stored rewards are never overwritten. Returns how many were written.
        """
        mode = resolve_mode(mode or self.default_mode)
        async with self.locks.hold(pool_id):
            loaded = await self.store.load_pool(pool_id)
            if loaded is None:
                raise PoolNotFound(pool_id)
            pool, predictions = loaded
            if not pool.is_resolved or pool.outcome_value is None:
                raise PoolNotResolved(pool_id)

            missing = {p.prediction_id for p in predictions if p.claimable_reward is None}
            if not missing:
                return 0

            allocation = allocate_rewards(predictions, pool.outcome_value, pool.total_stake, mode)
            rewards = {pid: r for pid, r in allocation.rewards().items() if pid in missing}
            written = await self.store.backfill_rewards(pool_id, rewards)

        logger.warning(
            {
                "rewards_repaired": {
                    "pool_id": pool_id,
                    "missing": len(missing),
                    "written": written,
                    "mode": mode.value,
                }
            }
        )
        return written


__all__ = ["SettlementCoordinator", "validate_outcome", "NOT_RESOLVED_MESSAGE"]
