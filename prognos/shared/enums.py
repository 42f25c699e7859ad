from __future__ import annotations

from enum import Enum


class ScoringMode(str, Enum):
    LINEAR = "linear"
    QUADRATIC = "quadratic"


class ClaimReason(str, Enum):
    NO_PREDICTION = "no_prediction"
    POOL_NOT_RESOLVED = "pool_not_resolved"
    ALREADY_CLAIMED = "already_claimed"
    NO_REWARD_AVAILABLE = "no_reward_available"


__all__ = ["ScoringMode", "ClaimReason"]
