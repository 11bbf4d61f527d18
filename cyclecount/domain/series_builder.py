"""
Series Builder: turns dated stock-level readings into a consumption history.

Public API
----------
build_series(observations, config) → SeriesBuildResult
select_current_stock(observations, asof_date) → DateObservation | None

Consumption between two consecutive readings is the decrease in stock,
clipped at zero. A stock increase is a replenishment, never negative
consumption. Missing (or invalid) readings count as 0 for the delta and for
the replenishment count; this can overstate or mask consumption and is a
known approximation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, List, Optional, Tuple

from .calendar import CalendarConfig, DEFAULT_CONFIG, count_working_days
from .models import ConsumptionEvent, DateObservation

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SeriesBuildResult:
    """Consumption history for one SKU plus its summary counters."""
    history: Tuple[ConsumptionEvent, ...]
    total_qty: float
    periods: int
    positive_periods: int
    replenishment_events: int


def distinct_chronological(observations: Iterable[DateObservation]) -> List[DateObservation]:
    """
    Sort readings by date value and keep the first reading for each date.

    Input order is not trusted: column order in an export can be anything.
    """
    ordered = sorted(observations, key=lambda obs: obs.date)
    distinct: List[DateObservation] = []
    for obs in ordered:
        if distinct and distinct[-1].date == obs.date:
            logger.debug("Duplicate reading for %s ignored", obs.date)
            continue
        distinct.append(obs)
    return distinct


def build_series(
    observations: Iterable[DateObservation],
    config: CalendarConfig = DEFAULT_CONFIG,
) -> SeriesBuildResult:
    """
    Derive the consumption history of one SKU.

    Args:
        observations: Stock readings in any order
        config: Calendar used for working-day counts

    Returns:
        SeriesBuildResult; ``len(history) == distinct dates - 1``
    """
    ordered = distinct_chronological(observations)

    history: List[ConsumptionEvent] = []
    replenishments = 0
    for prev, curr in zip(ordered, ordered[1:]):
        prev_qty = prev.stock_level if prev.stock_level is not None else 0.0
        curr_qty = curr.stock_level if curr.stock_level is not None else 0.0
        if curr_qty > prev_qty:
            replenishments += 1
        moved = max(prev_qty - curr_qty, 0.0)
        working_days = count_working_days(prev.date, curr.date, config)

        history.append(ConsumptionEvent(
            date=curr.date,
            quantity_moved=moved,
            working_days=working_days,
            rate_per_working_day=moved / working_days if working_days > 0 else 0.0,
        ))

    total_qty = sum(event.quantity_moved for event in history)
    positive_periods = sum(1 for event in history if event.quantity_moved > 0)

    return SeriesBuildResult(
        history=tuple(history),
        total_qty=total_qty,
        periods=len(history),
        positive_periods=positive_periods,
        replenishment_events=replenishments,
    )


def select_current_stock(
    observations: Iterable[DateObservation],
    asof_date: date,
    max_age_days: Optional[int] = None,
) -> Optional[DateObservation]:
    """
    Pick the reading that represents stock on hand at ``asof_date``.

    Only valid readings dated on or before ``asof_date`` qualify; a reading
    from the future is never "current". With ``max_age_days`` set, readings
    older than that are treated as no visibility at all.

    Returns:
        The most recent qualifying reading, or None
    """
    candidates = [
        obs for obs in observations
        if obs.stock_level is not None and obs.date <= asof_date
    ]
    if not candidates:
        return None

    latest = max(candidates, key=lambda obs: obs.date)
    if max_age_days is not None and latest.date < asof_date - timedelta(days=max_age_days):
        logger.debug("Latest reading %s older than %d days", latest.date, max_age_days)
        return None
    return latest
