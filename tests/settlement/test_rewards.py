"""Tests for settlement/rewards.py - pro-rata allocation."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from prognos.settlement.errors import InvalidPredictionFormat
from prognos.settlement.rewards import allocate_rewards
from prognos.shared.enums import ScoringMode


def _pred(pid: str, value: str, stake: float, subject: str | None = None):
    return SimpleNamespace(
        prediction_id=pid,
        subject_id=subject or pid,
        prediction_value=value,
        stake_amount=stake,
    )


def test_scenario_a_linear():
    predictions = [
        _pred("alice", "60", 10),
        _pred("bob", "40", 20),
        _pred("charlie", "55", 5),
    ]
    allocation = allocate_rewards(predictions, 50, 35, ScoringMode.LINEAR)
    rewards = allocation.rewards()

    assert allocation.total_weighted_score == pytest.approx(10 / 11 + 20 / 11 + 5 / 6)
    assert rewards["alice"] == pytest.approx(35 * 60 / 235)
    assert rewards["bob"] == pytest.approx(35 * 120 / 235)
    assert rewards["charlie"] == pytest.approx(35 * 55 / 235)
    assert sum(rewards.values()) == pytest.approx(35.0)

    by_subject = {e.subject_id: e for e in allocation.entries}
    assert by_subject["alice"].distance == 10
    assert by_subject["charlie"].score == pytest.approx(1 / 6)
    assert by_subject["bob"].weighted_score == pytest.approx(20 / 11)


@pytest.mark.parametrize("mode", list(ScoringMode))
@pytest.mark.parametrize("outcome", [0, 37.5, 100])
def test_rewards_sum_to_total_stake(mode, outcome):
    predictions = [
        _pred("a", "yes", 3.5),
        _pred("b", "no", 1),
        _pred("c", "12", 250),
        _pred("d", "88.8", 0.25),
        _pred("e", "50", 0),
    ]
    total = 3.5 + 1 + 250 + 0.25
    allocation = allocate_rewards(predictions, outcome, total, mode)
    assert allocation.total_reward == pytest.approx(total)
    assert all(e.reward >= 0 for e in allocation.entries)


def test_unstaked_predictions_receive_nothing():
    predictions = [_pred("staked", "50", 10), _pred("voter", "50", 0)]
    rewards = allocate_rewards(predictions, 50, 10).rewards()
    assert rewards == {"staked": pytest.approx(10.0), "voter": 0.0}


def test_equal_distances_split_by_stake():
    predictions = [_pred("low", "40", 10), _pred("high", "60", 10)]
    rewards = allocate_rewards(predictions, 50, 20).rewards()
    assert rewards["low"] == pytest.approx(rewards["high"])
    assert rewards["low"] == pytest.approx(10.0)


def test_exact_match_is_not_winner_take_all():
    predictions = [_pred("exact", "50", 10), _pred("near", "51", 10)]
    rewards = allocate_rewards(predictions, 50, 20).rewards()
    assert 0 < rewards["near"] < rewards["exact"] < 20


def test_zero_stake_pool_with_votes_pays_nothing():
    predictions = [_pred("a", "yes", 0), _pred("b", "no", 0)]
    allocation = allocate_rewards(predictions, 100, 0)
    assert allocation.total_weighted_score == 0
    assert allocation.rewards() == {"a": 0.0, "b": 0.0}
    assert allocation.entries[0].score == 1.0


def test_no_predictions():
    allocation = allocate_rewards([], 75, 0)
    assert allocation.entries == []
    assert allocation.rewards() == {}


def test_invalid_stored_value_raises():
    with pytest.raises(InvalidPredictionFormat):
        allocate_rewards([_pred("a", "banana", 5)], 50, 5)
