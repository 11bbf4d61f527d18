"""
Per-period demand forecast for the analyst view.

Model: flat moving average of the last few consumption periods.

Approach:
- Forecast: mean quantity of the last ``window`` periods, repeated for
  ``horizon`` periods (never negative)
- Forecast error: naive one-step MAPE, each period predicted by the one
  before it; only periods with actual usage are scored
- Recent usage: quantity moved over the last four periods (about 30 days
  of weekly counts)

Only Active SKUs get a forecast; Dead and Low-Movement SKUs have too few
moving periods for an average to mean anything.
"""

from typing import Any, Dict, List, Optional, Sequence

from cyclecount.domain.models import Classification, ConsumptionEvent, SkuSeries

DEFAULT_HORIZON = 4
DEFAULT_WINDOW = 3
RECENT_PERIODS = 4
MIN_PERIODS_FOR_ERROR = 3


def moving_average_forecast(
    history: Sequence[ConsumptionEvent],
    horizon: int = DEFAULT_HORIZON,
    window: int = DEFAULT_WINDOW,
) -> List[float]:
    """
    Flat moving-average forecast.

    Args:
        history: Consumption events in chronological order
        horizon: Number of future periods to forecast
        window: Number of trailing periods averaged

    Returns:
        ``horizon`` equal values, or [] for an empty history

    Example:
        >>> from datetime import date
        >>> events = [ConsumptionEvent(date(2025, 1, d), q, 5, q / 5) for d, q in ((13, 4), (20, 6), (27, 8))]
        >>> moving_average_forecast(events, horizon=2)
        [6.0, 6.0]
    """
    if horizon < 0:
        raise ValueError(f"Horizon must be non-negative, got {horizon}")
    if window <= 0:
        raise ValueError(f"Window must be positive, got {window}")
    if not history:
        return []

    recent = history[-window:]
    average = sum(event.quantity_moved for event in recent) / len(recent)
    return [max(average, 0.0)] * horizon


def forecast_error_percent(history: Sequence[ConsumptionEvent]) -> Optional[float]:
    """
    Naive one-step MAPE in percent.

    Returns:
        Mean of |actual - previous| / actual over periods with actual > 0,
        or None with fewer than 3 periods or no period with usage
    """
    if len(history) < MIN_PERIODS_FOR_ERROR:
        return None

    total = 0.0
    scored = 0
    for previous, current in zip(history, history[1:]):
        actual = current.quantity_moved
        if actual > 0:
            total += abs(actual - previous.quantity_moved) / actual
            scored += 1
    if scored == 0:
        return None
    return total / scored * 100


def recent_usage(history: Sequence[ConsumptionEvent], periods: int = RECENT_PERIODS) -> float:
    """Quantity moved over the last ``periods`` consumption periods."""
    if periods <= 0:
        return 0.0
    return sum(event.quantity_moved for event in history[-periods:])


def series_forecast(series: SkuSeries, horizon: int = DEFAULT_HORIZON) -> Dict[str, Any]:
    """
    Forecast summary of one SKU.

    Returns:
        Dict with keys:
            - "forecast": List[float] (empty unless the SKU is Active)
            - "forecast_error_pct": Optional[float]
            - "recent_usage": float
    """
    forecast: List[float] = []
    if series.classification == Classification.ACTIVE:
        forecast = moving_average_forecast(series.history, horizon=horizon)
    return {
        "forecast": forecast,
        "forecast_error_pct": forecast_error_percent(series.history),
        "recent_usage": recent_usage(series.history),
    }
