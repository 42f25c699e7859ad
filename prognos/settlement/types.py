"""Result types returned by the settlement engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Optional

from prognos.shared.enums import ClaimReason, ScoringMode


# ─────────────────────────────────────────────────────────────────────────────
# Allocation
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PredictionScore:
    """Derived scoring data for one prediction. Never persisted."""

    prediction_id: str
    subject_id: str
    prediction_value: str
    normalized_value: float
    stake_amount: float
    distance: float
    score: float
    weighted_score: float  # score * stake; 0 for unstaked predictions
    reward: float


@dataclass(frozen=True)
class Allocation:
    """Rewards for every prediction of a pool against one outcome."""

    outcome_value: float
    mode: ScoringMode
    total_stake: float
    total_weighted_score: float
    entries: list[PredictionScore] = field(default_factory=list)

    def rewards(self) -> dict[str, float]:
        return {e.prediction_id: e.reward for e in self.entries}

    @property
    def total_reward(self) -> float:
        return sum(e.reward for e in self.entries)


# ─────────────────────────────────────────────────────────────────────────────
# Coordinator results
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ResolutionResult:
    pool_id: str
    outcome_value: float
    mode: ScoringMode
    total_stake: float
    total_weighted_score: float
    prediction_count: int
    staked_count: int
    rewards: dict[str, float]

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["mode"] = self.mode.value
        return data


@dataclass(frozen=True)
class RewardBreakdown:
    subject_id: str
    prediction_value: str
    normalized_value: float
    stake_amount: float
    distance: float
    score: float
    weighted_score: float
    claimable_reward: Optional[float]
    claimed: bool


@dataclass(frozen=True)
class RewardSummary:
    pool_id: str
    title: str
    is_resolved: bool
    outcome_value: Optional[float]
    total_stake: float
    mode: ScoringMode
    message: Optional[str] = None
    total_weighted_score: Optional[float] = None
    predictions: list[RewardBreakdown] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["mode"] = self.mode.value
        return data


# ─────────────────────────────────────────────────────────────────────────────
# Claims
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ClaimCheck:
    can_claim: bool
    reason: Optional[ClaimReason] = None
    amount: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "can_claim": self.can_claim,
            "reason": self.reason.value if self.reason else None,
            "amount": self.amount,
        }


@dataclass(frozen=True)
class ClaimReceipt:
    pool_id: str
    subject_id: str
    prediction_id: str
    amount: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ─────────────────────────────────────────────────────────────────────────────
# Stakes
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class StakeReceipt:
    pool_id: str
    subject_id: str
    prediction_value: str
    amount: float
    stake_amount: float  # running total for this prediction
    transaction_id: Optional[str] = None
    transaction_verified: bool = False

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ─────────────────────────────────────────────────────────────────────────────
# Scheduler
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SchedulerStatus:
    is_running: bool
    interval_seconds: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SweepReport:
    examined: int = 0
    resolved: int = 0
    failed: int = 0
    errors: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


__all__ = [
    "PredictionScore",
    "Allocation",
    "ResolutionResult",
    "RewardBreakdown",
    "RewardSummary",
    "ClaimCheck",
    "ClaimReceipt",
    "StakeReceipt",
    "SchedulerStatus",
    "SweepReport",
]
