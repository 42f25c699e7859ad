"""Fallback outcomes for pools that reach their deadline without an authority.

Pools with predictions fall back to the stake-weighted consensus of those
predictions. Empty pools ask an ``OutcomeOracle``; the shipped one flips
between the extremes and stands in for a real data source.
"""

from __future__ import annotations

import math
import random
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from .rewards import ScorablePrediction
from .scoring import MAX_VALUE, MIN_VALUE, normalize


def consensus_outcome(predictions: Sequence[ScorablePrediction]) -> float:
    """Weighted mean of the normalized predictions, rounded half up, clamped.

    Each prediction weighs ``max(stake, 1)`` so plain votes still count.
    """
    if not predictions:
        raise ValueError("consensus_outcome needs at least one prediction")
    weighted_sum = 0.0
    total_weight = 0.0
    for prediction in predictions:
        weight = max(float(prediction.stake_amount or 0.0), 1.0)
        weighted_sum += normalize(prediction.prediction_value) * weight
        total_weight += weight
    rounded = math.floor(weighted_sum / total_weight + 0.5)
    return float(min(max(rounded, MIN_VALUE), MAX_VALUE))


class OutcomeOracle(ABC):
    """Source of an outcome for a pool nobody predicted on."""

    @abstractmethod
    async def outcome_for(self, pool_id: str) -> float:
        ...


class RandomExtremeOracle(OutcomeOracle):
    """Uniform pick between 0 and 100. A placeholder, not a real oracle."""

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    async def outcome_for(self, pool_id: str) -> float:
        return self._rng.choice((MIN_VALUE, MAX_VALUE))


class FixedOutcomeOracle(OutcomeOracle):
    def __init__(self, value: float):
        if not MIN_VALUE <= value <= MAX_VALUE:
            raise ValueError("fixed outcome must be within [0, 100]")
        self.value = float(value)

    async def outcome_for(self, pool_id: str) -> float:
        return self.value


__all__ = [
    "consensus_outcome",
    "OutcomeOracle",
    "RandomExtremeOracle",
    "FixedOutcomeOracle",
]
