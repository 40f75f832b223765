"""Python implementation of the FSRS-5 memory equations.

Every function here is pure: it reads the parameters it is given and returns
a number.  Lifecycle handling lives in :mod:`fsrs_core.fsrs_scheduler`.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Optional

from fsrs_core.card_state import MAX_DIFFICULTY, MIN_DIFFICULTY, ReviewRating
from fsrs_core.parameters import DEFAULT_PARAMETERS, FSRSParameters

SECONDS_IN_DAY = 86400
MINUTES_IN_DAY = 1440
MIN_STABILITY = 0.1
# Upper bound keeps the power terms of the stability update finite.
MAX_STABILITY = 1e10
# Curve constant of the power forgetting curve: R(9 * S) == 0.5.
CURVE_FACTOR = 9.0


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves rounded up."""

    return int(math.floor(value + 0.5))


def elapsed_days(last_review: Optional[datetime], now: datetime) -> int:
    """Whole days between *last_review* and *now*, never negative."""

    if last_review is None:
        return 0
    delta = now - last_review
    return max(int(math.floor(delta.total_seconds() / SECONDS_IN_DAY)), 0)


# ---------------------------------------------------------------------------
# Forgetting curve
# ---------------------------------------------------------------------------

def forgetting_curve(elapsed: Any, stability: Any) -> Any:
    """Unchecked power forgetting curve.

    Only arithmetic operators are used, so scalars and pandas or numpy
    arrays are accepted alike.
    """

    return 1.0 / (1.0 + elapsed / (CURVE_FACTOR * stability))


def retrievability(elapsed: float, stability: float) -> float:
    """Probability of recall after *elapsed* days at the given *stability*."""

    if stability <= 0:
        raise ValueError("stability must be positive")
    if elapsed < 0:
        raise ValueError("elapsed days must not be negative")
    return forgetting_curve(elapsed, stability)


# ---------------------------------------------------------------------------
# Difficulty and stability
# ---------------------------------------------------------------------------

def constrain_difficulty(value: float) -> float:
    return _clamp(value, MIN_DIFFICULTY, MAX_DIFFICULTY)


def constrain_stability(value: float) -> float:
    return _clamp(value, MIN_STABILITY, MAX_STABILITY)


def init_difficulty(grade: ReviewRating, params: FSRSParameters = DEFAULT_PARAMETERS) -> float:
    return constrain_difficulty(params.w0 + params.w1 * (int(grade) - 3))


def init_stability(grade: ReviewRating, params: FSRSParameters = DEFAULT_PARAMETERS) -> float:
    return constrain_stability(params.w2 + params.w3 * (int(grade) - 3))


def next_difficulty(
    difficulty: float, grade: ReviewRating, params: FSRSParameters = DEFAULT_PARAMETERS
) -> float:
    return constrain_difficulty(difficulty + params.w13 * (int(grade) - 3))


def _hard_penalty(grade: ReviewRating, params: FSRSParameters) -> float:
    return params.w5 if grade == ReviewRating.HARD else 1.0


def next_forget_stability(
    difficulty: float,
    stability: float,
    retrievability: float,
    grade: ReviewRating,
    params: FSRSParameters = DEFAULT_PARAMETERS,
) -> float:
    """Stability after a lapse."""

    value = (
        params.w6
        * math.pow(difficulty, params.w7)
        * math.pow(stability, params.w8)
        * math.exp(params.w9 * (1 - retrievability))
        * _hard_penalty(grade, params)
    )
    return constrain_stability(value)


def next_recall_stability(
    difficulty: float,
    stability: float,
    retrievability: float,
    grade: ReviewRating,
    params: FSRSParameters = DEFAULT_PARAMETERS,
) -> float:
    """Stability after a successful recall (Hard, Good or Easy)."""

    easy_bonus = params.easy_bonus if grade == ReviewRating.EASY else 1.0
    value = stability * (
        1
        + math.exp(params.w10)
        * (11 - difficulty)
        * math.pow(stability, params.w11)
        * (math.exp(params.w12 * (1 - retrievability)) - 1)
        * _hard_penalty(grade, params)
        * easy_bonus
    )
    return constrain_stability(value)


def next_stability(
    difficulty: float,
    stability: float,
    retrievability: float,
    grade: ReviewRating,
    params: FSRSParameters = DEFAULT_PARAMETERS,
) -> float:
    if grade == ReviewRating.AGAIN:
        return next_forget_stability(difficulty, stability, retrievability, grade, params)
    return next_recall_stability(difficulty, stability, retrievability, grade, params)


# ---------------------------------------------------------------------------
# Intervals
# ---------------------------------------------------------------------------

def next_interval(stability: float, params: FSRSParameters = DEFAULT_PARAMETERS) -> int:
    """Interval in whole days for a card of the given *stability*."""

    raw = stability * math.log(params.request_retention) / math.log(0.9)
    return int(_clamp(round_half_up(raw), 1, params.maximum_interval))


def step_days(minutes: float) -> int:
    """Whole-day equivalent recorded for a learning step."""

    return round_half_up(minutes / MINUTES_IN_DAY)


__all__ = [
    "MAX_DIFFICULTY",
    "MAX_STABILITY",
    "MIN_DIFFICULTY",
    "MIN_STABILITY",
    "constrain_difficulty",
    "constrain_stability",
    "elapsed_days",
    "forgetting_curve",
    "init_difficulty",
    "init_stability",
    "next_difficulty",
    "next_forget_stability",
    "next_interval",
    "next_recall_stability",
    "next_stability",
    "retrievability",
    "round_half_up",
    "step_days",
]
