"""
Intermittent demand forecasting: Croston's method.

Purpose:
- Handle SKUs whose per-period usage is mostly zero
- Provide a transparent, testable implementation

Key concepts:
- z: exponentially smoothed size of non-zero demands
- p: exponentially smoothed interval (in periods) between non-zero demands
- q: periods elapsed since the last non-zero demand
- Croston: separate smoothing for sizes and intervals, forecast = z / p
"""

from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

DEFAULT_ALPHA = 0.4


@dataclass(frozen=True)
class IntermittentModel:
    """
    Fitted Croston parameters.

    Attributes:
        alpha: smoothing parameter (0 < alpha <= 1), shared by z and p
        p_t: final smoothed interval between non-zero demands (0 = never fitted)
        z_t: final smoothed size of non-zero demands
        q_t: periods since the last non-zero demand at the end of the series
        n_nonzero: number of non-zero observations
        n_total: total observations (including zeros)
    """
    alpha: float
    p_t: float
    z_t: float
    q_t: int = 1
    n_nonzero: int = 0
    n_total: int = 0


def fit_croston(series: Sequence[float], alpha: float = DEFAULT_ALPHA) -> IntermittentModel:
    """
    Fit Croston's method.

    The first non-zero demand initialises z (its size) and p (the number of
    periods up to and including it). Every later non-zero demand x updates

        z ← z + α (x − z)
        p ← p + α (q − p)

    and resets q to 1; every zero increments q.

    Args:
        series: per-period demand (zeros allowed)
        alpha: smoothing constant (0 < alpha <= 1)

    Returns:
        IntermittentModel; an all-zero series leaves p_t = 0

    Raises:
        ValueError: if alpha is outside (0, 1]
    """
    if not 0 < alpha <= 1:
        raise ValueError(f"alpha must be in (0, 1], got {alpha}")

    values = np.asarray(series, dtype=float)

    z_t = 0.0
    p_t = 0.0
    q = 1
    n_nonzero = 0
    for demand in values:
        if demand > 0:
            if n_nonzero == 0:
                z_t = float(demand)
                p_t = float(q)
            else:
                z_t = z_t + alpha * (float(demand) - z_t)
                p_t = p_t + alpha * (q - p_t)
            q = 1
            n_nonzero += 1
        else:
            q += 1

    return IntermittentModel(
        alpha=alpha,
        p_t=p_t,
        z_t=z_t,
        q_t=q,
        n_nonzero=n_nonzero,
        n_total=int(values.size),
    )


def predict_rate(model: IntermittentModel) -> float:
    """
    Expected demand per period: z / p, or 0 when p was never fitted.
    """
    if model.p_t <= 0:
        return 0.0
    return model.z_t / model.p_t


def croston_rate(series: Sequence[float], alpha: float = DEFAULT_ALPHA) -> float:
    """Shorthand for predict_rate(fit_croston(series, alpha))."""
    return predict_rate(fit_croston(series, alpha))


def zero_fraction(series: Sequence[float]) -> Optional[float]:
    """Share of periods with zero demand (None for an empty series)."""
    values = np.asarray(series, dtype=float)
    if values.size == 0:
        return None
    return float(np.count_nonzero(values <= 0) / values.size)
