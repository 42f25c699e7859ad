"""Prediction scoring.

A prediction is a value in [0, 100] (``yes`` is 100, ``no`` is 0). Its score
against the outcome depends only on the distance ``d = |p - o|``:

- linear:    1 / (d + 1)
- quadratic: 1 / (d^2 + 1)

Both equal 1 for an exact match and fall strictly as ``d`` grows, so the score
lies in (0, 1] for every finite distance.
"""

from __future__ import annotations

import math
from typing import Union

import numpy as np
from numpy.typing import ArrayLike, NDArray

from prognos.shared.enums import ScoringMode

from .errors import InvalidPredictionFormat


MIN_VALUE = 0.0
MAX_VALUE = 100.0

_BINARY = {"yes": MAX_VALUE, "no": MIN_VALUE}


def normalize(raw: Union[str, float, int]) -> float:
    """Map a raw prediction to a float in [0, 100].

    Raises InvalidPredictionFormat for anything unparseable, non-finite or
    out of range.
    """
    if isinstance(raw, bool) or raw is None:
        raise InvalidPredictionFormat(raw)
    if isinstance(raw, str):
        text = raw.strip().lower()
        if text in _BINARY:
            return _BINARY[text]
        if not text:
            raise InvalidPredictionFormat(raw, "empty value")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise InvalidPredictionFormat(raw, "expected yes, no or a number") from exc
    if not math.isfinite(value):
        raise InvalidPredictionFormat(raw, "value must be finite")
    if value < MIN_VALUE or value > MAX_VALUE:
        raise InvalidPredictionFormat(raw, "value must be between 0 and 100")
    return value


def resolve_mode(mode: Union[ScoringMode, str]) -> ScoringMode:
    if isinstance(mode, ScoringMode):
        return mode
    try:
        return ScoringMode(str(mode).strip().lower())
    except ValueError as exc:
        raise ValueError(f"unknown scoring mode {mode!r}") from exc


def score(
    normalized: float,
    outcome: float,
    mode: Union[ScoringMode, str] = ScoringMode.LINEAR,
) -> float:
    d = abs(float(normalized) - float(outcome))
    if resolve_mode(mode) is ScoringMode.QUADRATIC:
        return 1.0 / (d * d + 1.0)
    return 1.0 / (d + 1.0)


def score_batch(
    values: ArrayLike,
    outcome: float,
    mode: Union[ScoringMode, str] = ScoringMode.LINEAR,
) -> NDArray[np.float64]:
    """Vectorized ``score`` over an array of normalized values."""
    d = np.abs(np.asarray(values, dtype=np.float64) - float(outcome))
    if resolve_mode(mode) is ScoringMode.QUADRATIC:
        return 1.0 / (np.square(d) + 1.0)
    return 1.0 / (d + 1.0)


__all__ = ["MIN_VALUE", "MAX_VALUE", "normalize", "resolve_mode", "score", "score_batch"]
