"""Pro-rata reward allocation.

Staked predictions share the whole pool stake in proportion to
``score * stake``. Unstaked predictions are scored for reporting but receive
nothing, so the rewards of a pool always add up to its total stake.
"""

from __future__ import annotations

from typing import Protocol, Sequence, Union

import numpy as np

from prognos.shared.enums import ScoringMode

from .scoring import normalize, resolve_mode, score_batch
from .types import Allocation, PredictionScore


class ScorablePrediction(Protocol):
    prediction_id: str
    subject_id: str
    prediction_value: str
    stake_amount: float


def allocate_rewards(
    predictions: Sequence[ScorablePrediction],
    outcome_value: float,
    total_stake: float,
    mode: Union[ScoringMode, str] = ScoringMode.LINEAR,
) -> Allocation:
    """Score every prediction against ``outcome_value`` and split ``total_stake``.

    Raises InvalidPredictionFormat if any stored value cannot be normalized.
    """
    mode = resolve_mode(mode)
    outcome = float(outcome_value)
    if not predictions:
        return Allocation(
            outcome_value=outcome,
            mode=mode,
            total_stake=float(total_stake),
            total_weighted_score=0.0,
        )

    values = np.array([normalize(p.prediction_value) for p in predictions], dtype=np.float64)
    stakes = np.array([max(float(p.stake_amount or 0.0), 0.0) for p in predictions], dtype=np.float64)
    scores = score_batch(values, outcome, mode)
    staked = stakes > 0
    weighted = np.where(staked, scores * stakes, 0.0)
    total_weighted = float(weighted.sum())

    if total_weighted > 0:
        rewards = weighted / total_weighted * float(total_stake)
    else:
        rewards = np.zeros_like(weighted)

    distances = np.abs(values - outcome)
    entries = [
        PredictionScore(
            prediction_id=p.prediction_id,
            subject_id=p.subject_id,
            prediction_value=p.prediction_value,
            normalized_value=float(values[i]),
            stake_amount=float(stakes[i]),
            distance=float(distances[i]),
            score=float(scores[i]),
            weighted_score=float(weighted[i]),
            reward=float(rewards[i]),
        )
        for i, p in enumerate(predictions)
    ]
    return Allocation(
        outcome_value=outcome,
        mode=mode,
        total_stake=float(total_stake),
        total_weighted_score=total_weighted,
        entries=entries,
    )


__all__ = ["ScorablePrediction", "allocate_rewards"]
