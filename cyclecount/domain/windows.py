"""
Windowed usage aggregation over trailing 30/60/90-day windows.

Windows are anchored at the last event date of the series, never at the
current date, so a given export always yields the same numbers no matter
when it is analysed.
"""
from datetime import date, timedelta
from typing import Optional, Sequence, Tuple

from .models import Classification, ConsumptionEvent, SkuSeries, WindowStat

WINDOW_DAYS = (30, 60, 90)

# Relative change of the 30-day vs 90-day rate that counts as a trend
TREND_THRESHOLD = 0.25


def compute_window(
    history: Sequence[ConsumptionEvent],
    days: int,
    anchor: Optional[date] = None,
) -> WindowStat:
    """
    Sum usage over ``[anchor - (days - 1), anchor]``.

    Args:
        history: Consumption events in chronological order
        days: Window length in calendar days
        anchor: Window end (defaults to the last event date)

    Returns:
        WindowStat; adjusted_rate is 0 when the window has no working days
    """
    if days <= 0:
        raise ValueError(f"Window length must be positive, got {days}")
    if not history:
        return WindowStat()

    anchor = anchor if anchor is not None else history[-1].date
    start = anchor - timedelta(days=days - 1)

    raw_total = 0.0
    working_days = 0
    for event in history:
        if start <= event.date <= anchor:
            raw_total += event.quantity_moved
            working_days += event.working_days

    return WindowStat.from_totals(raw_total, working_days)


def compute_windows(history: Sequence[ConsumptionEvent]) -> Tuple[WindowStat, WindowStat, WindowStat]:
    """Return (window30, window60, window90)."""
    w30, w60, w90 = (compute_window(history, days) for days in WINDOW_DAYS)
    return w30, w60, w90


def planning_usage(series: SkuSeries, window_days: int) -> float:
    """
    Usage rate (units per working day) for the selected planning window.

    30/60/90 use the precomputed windows; any other length falls back to the
    whole-history average per working day.
    """
    stat = series.window(window_days)
    if stat is not None:
        return stat.adjusted_rate
    return series.avg_per_working_day


def usage_pattern(series: SkuSeries) -> str:
    """Short trend label comparing the 30-day rate with the 90-day rate."""
    if series.classification == Classification.DEAD:
        return "No recent usage"
    if series.classification == Classification.LOW_MOVEMENT:
        return "Infrequent usage"

    base = series.window90.adjusted_rate
    recent = series.window30.adjusted_rate
    if base == 0 and recent == 0:
        return "Stable at low usage"

    ratio = (recent - base) / base if base > 0 else 0.0
    if ratio > TREND_THRESHOLD:
        return "Demand increasing (last 30d > 90d)"
    if ratio < -TREND_THRESHOLD:
        return "Demand slowing (last 30d < 90d)"
    return "Stable demand"
