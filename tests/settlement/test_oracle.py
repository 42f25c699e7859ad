from __future__ import annotations

import random
from types import SimpleNamespace

import pytest

from prognos.settlement.oracle import FixedOutcomeOracle, RandomExtremeOracle, consensus_outcome


def _pred(value: str, stake: float):
    return SimpleNamespace(prediction_id=value, subject_id=value, prediction_value=value, stake_amount=stake)


def test_unstaked_votes_weigh_one():
    # (100*1 + 0*1) / 2
    assert consensus_outcome([_pred("yes", 0), _pred("no", 0)]) == 50.0


def test_stake_weights_dominate():
    # (80*9 + 20*1) / 10 = 74
    assert consensus_outcome([_pred("80", 9), _pred("20", 0.5)]) == 74.0


def test_rounds_half_up():
    # (10*1 + 11*1) / 2 = 10.5 -> 11
    assert consensus_outcome([_pred("10", 0), _pred("11", 0)]) == 11.0
    # (10*3 + 11*1) / 4 = 10.25 -> 10
    assert consensus_outcome([_pred("10", 3), _pred("11", 0)]) == 10.0


def test_requires_predictions():
    with pytest.raises(ValueError):
        consensus_outcome([])


@pytest.mark.asyncio
async def test_random_extreme_picks_only_extremes():
    oracle = RandomExtremeOracle(random.Random(7))
    seen = {await oracle.outcome_for("p") for _ in range(50)}
    assert seen == {0.0, 100.0}


@pytest.mark.asyncio
async def test_fixed_oracle():
    assert await FixedOutcomeOracle(42).outcome_for("p") == 42.0
    with pytest.raises(ValueError):
        FixedOutcomeOracle(101)
