"""
Demand Builder: the single point that turns a SKU's per-period rates into a
smoothed usage rate.

Public API
----------
estimate_demand(rates, trailing_periods, alpha, volatility_threshold)
    → DemandEstimate

Internally dispatches on the shape of the trailing rate sequence:
    intermittent  : more than half the periods are zero → Croston
    volatile      : coefficient of variation above the threshold → EWMA
    stable        : everything else → EWMA

The estimator type travels with the rate because the decision engine
weights risk differently for intermittent demand.
"""

from __future__ import annotations

import logging
from typing import Sequence, Tuple

import numpy as np

from .intermittent_forecast import DEFAULT_ALPHA, croston_rate, zero_fraction
from .models import DemandEstimate, EstimatorType

logger = logging.getLogger(__name__)

DEFAULT_TRAILING_PERIODS = 12
DEFAULT_VOLATILITY_THRESHOLD = 1.5
INTERMITTENT_ZERO_SHARE = 0.5


def ewma(values: Sequence[float], alpha: float = DEFAULT_ALPHA) -> float:
    """
    Exponentially weighted moving average, seeded with the first value.

    Returns 0.0 for an empty sequence.
    """
    if not 0 < alpha <= 1:
        raise ValueError(f"alpha must be in (0, 1], got {alpha}")
    if len(values) == 0:
        return 0.0

    level = float(values[0])
    for value in values[1:]:
        level = alpha * float(value) + (1 - alpha) * level
    return level


def coefficient_of_variation(values: Sequence[float]) -> float:
    """Population stddev / mean; 0.0 when empty or the mean is 0."""
    arr = np.asarray(values, dtype=float)
    if arr.size == 0:
        return 0.0
    mean = float(np.mean(arr))
    if mean == 0:
        return 0.0
    return float(np.std(arr) / mean)


def classify_signal(
    rates: Sequence[float],
    volatility_threshold: float = DEFAULT_VOLATILITY_THRESHOLD,
) -> Tuple[EstimatorType, float, float]:
    """
    Decide which estimator fits the rate sequence.

    Returns:
        (estimator, zero_fraction, cv)
    """
    zeros = zero_fraction(rates)
    if zeros is None:
        return EstimatorType.STABLE, 0.0, 0.0

    cv = coefficient_of_variation(rates)
    if zeros > INTERMITTENT_ZERO_SHARE:
        return EstimatorType.INTERMITTENT, zeros, cv
    if cv > volatility_threshold:
        return EstimatorType.VOLATILE, zeros, cv
    return EstimatorType.STABLE, zeros, cv


def estimate_demand(
    rates: Sequence[float],
    trailing_periods: int = DEFAULT_TRAILING_PERIODS,
    alpha: float = DEFAULT_ALPHA,
    volatility_threshold: float = DEFAULT_VOLATILITY_THRESHOLD,
) -> DemandEstimate:
    """
    Smooth the trailing per-period rates of one SKU.

    Parameters
    ----------
    rates : sequence of float
        Per-period rate_per_working_day values, oldest first.
    trailing_periods : int
        Only the last N periods are considered.
    alpha : float
        Smoothing constant for both EWMA and Croston.
    volatility_threshold : float
        CV above which a non-intermittent series is flagged volatile.

    Returns
    -------
    DemandEstimate
    """
    if trailing_periods <= 0:
        raise ValueError(f"trailing_periods must be positive, got {trailing_periods}")

    recent = [float(r) for r in rates][-trailing_periods:]
    estimator, zeros, cv = classify_signal(recent, volatility_threshold)

    if not recent:
        rate = 0.0
    elif estimator == EstimatorType.INTERMITTENT:
        rate = croston_rate(recent, alpha)
    else:
        rate = ewma(recent, alpha)

    logger.debug(
        "estimate_demand: %d periods, zeros=%.2f cv=%.2f -> %s %.4f",
        len(recent), zeros, cv, estimator.value, rate,
    )

    return DemandEstimate(
        rate=max(rate, 0.0),
        estimator=estimator,
        zero_fraction=zeros,
        cv=cv,
        n_periods=len(recent),
    )
