"""Tests for settlement/scoring.py - normalization and accuracy scores."""

from __future__ import annotations

import math

import numpy as np
import pytest

from prognos.settlement.errors import InvalidPredictionFormat
from prognos.settlement.scoring import normalize, resolve_mode, score, score_batch
from prognos.shared.enums import ScoringMode


class TestNormalize:
    @pytest.mark.parametrize("raw", ["yes", "YES", " Yes ", "yEs"])
    def test_yes_is_100(self, raw):
        assert normalize(raw) == 100.0

    @pytest.mark.parametrize("raw", ["no", "NO", "  no\n"])
    def test_no_is_0(self, raw):
        assert normalize(raw) == 0.0

    def test_numeric_strings_and_numbers(self):
        assert normalize("42.5") == 42.5
        assert normalize(" 0 ") == 0.0
        assert normalize("100") == 100.0
        assert normalize(73) == 73.0

    @pytest.mark.parametrize("raw", ["maybe", "", "   ", "101", "-0.5", "nan", "inf", "-inf", None, True])
    def test_rejects_invalid(self, raw):
        with pytest.raises(InvalidPredictionFormat):
            normalize(raw)


class TestScore:
    def test_exact_match_scores_one(self):
        assert score(50, 50, ScoringMode.LINEAR) == 1.0
        assert score(50, 50, ScoringMode.QUADRATIC) == 1.0

    def test_linear_and_quadratic_formulas(self):
        assert score(60, 50, "linear") == pytest.approx(1 / 11)
        assert score(60, 50, "quadratic") == pytest.approx(1 / 101)

    def test_symmetric_in_direction(self):
        assert score(40, 50) == score(60, 50)

    @pytest.mark.parametrize("mode", list(ScoringMode))
    def test_strictly_decreasing_and_positive(self, mode):
        values = [score(50 + d, 50, mode) for d in range(0, 51)]
        assert all(0 < v <= 1 for v in values)
        assert all(a > b for a, b in zip(values, values[1:]))

    def test_default_mode_is_linear(self):
        assert score(55, 50) == pytest.approx(1 / 6)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            resolve_mode("cubic")


class TestScoreBatch:
    @pytest.mark.parametrize("mode", list(ScoringMode))
    def test_matches_scalar(self, mode):
        values = [0.0, 12.5, 50.0, 99.0, 100.0]
        batch = score_batch(values, 50.0, mode)
        assert isinstance(batch, np.ndarray)
        for value, got in zip(values, batch):
            assert math.isclose(got, score(value, 50.0, mode))

    def test_empty(self):
        assert score_batch([], 10.0).shape == (0,)
