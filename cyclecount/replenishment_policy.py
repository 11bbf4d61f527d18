"""
Lead-time-aware Stocking Decision Policy

This module combines a SKU's smoothed usage rate, its vendor lead time and
its current on-hand stock into a discrete stocking decision, a continuous
stockout-risk score and a projected runout range.

Policy (evaluated in priority order):
    1. no consumption history or zero usage      → Do Not Stock
    2. on-hand missing or dated after as-of date → Insufficient Inventory Visibility
    3. on_hand < lead-time demand                → Order Now
    4. coverage_weeks < lead_weeks × 1.2         → Order Soon
    5. otherwise                                 → Watch

Where:
    - weekly_usage = daily_usage × 5               (daily usage is per working day)
    - lead_days = round(lead_weeks × 7)            (calendar days, reported)
    - lead-time demand = daily_usage × round(lead_weeks × 5)
                                                   (working days inside the lead time)
    - coverage_weeks = on_hand / weekly_usage

Lead-time demand counts working days, not the calendar lead_days. With
daily × lead_days some stock levels would move up a level: at 1/day and a
2-week lead the threshold is 10, not 14, so on hand 10-11 is Order Soon and
12-13 is Watch where a calendar-day reading would say Order Now. Order Now
still fires exactly when coverage_weeks < lead_weeks.

Risk score (0-100):
    base = clamp(40 + (lead − coverage) × 12 + volatility × 20 − acceleration × 15, 0, 95)
    risk = 0.6 × base + 0.4 × penalty,  penalty = 20 (intermittent) or 10

Runout range (weeks):
    min = total_qty / (weekly × (1 + volatility))
    max = total_qty / (weekly × max(0.5, 1 + acceleration))
"""

import logging
import math
from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence, Tuple

from cyclecount.domain.demand_builder import coefficient_of_variation
from cyclecount.domain.models import Decision, DecisionRecord, EstimatorType

logger = logging.getLogger(__name__)

WORKING_DAYS_PER_WEEK = 5
CALENDAR_DAYS_PER_WEEK = 7
ORDER_SOON_FACTOR = 1.2

RISK_BASE = 40.0
RISK_LEAD_GAP_WEIGHT = 12.0
RISK_VOLATILITY_WEIGHT = 20.0
RISK_ACCELERATION_WEIGHT = 15.0
RISK_BASE_CAP = 95.0
RISK_PENALTY_INTERMITTENT = 20.0
RISK_PENALTY_DEFAULT = 10.0
RISK_BASE_BLEND = 0.6
RISK_PENALTY_BLEND = 0.4

MIN_RUNOUT_TREND_FACTOR = 0.5


@dataclass(frozen=True)
class DecisionInputs:
    """
    Everything the policy needs for one SKU.

    Attributes:
        sku: SKU identifier
        daily_usage: Smoothed usage, units per working day
        lead_weeks: Vendor lead time (observed median, override or default)
        asof_date: Evaluation date; readings after it are not "current"
        on_hand: Current stock reading (None = no valid reading)
        on_hand_date: Date of that reading
        total_qty: Total quantity moved over the whole history
        periods: Number of consumption periods in the history
        recent_rate: Short-window adjusted rate (30 days)
        baseline_rate: Long-window adjusted rate (90 days)
        rates: Recent per-period rates, for volatility
        estimator: Estimator that produced daily_usage
    """
    sku: str
    daily_usage: float
    lead_weeks: float
    asof_date: date
    on_hand: Optional[float] = None
    on_hand_date: Optional[date] = None
    total_qty: float = 0.0
    periods: int = 0
    recent_rate: float = 0.0
    baseline_rate: float = 0.0
    rates: Tuple[float, ...] = ()
    estimator: EstimatorType = EstimatorType.STABLE

    def __post_init__(self):
        if not math.isfinite(self.lead_weeks) or self.lead_weeks <= 0:
            raise ValueError(f"lead_weeks must be > 0, got {self.lead_weeks}")
        if self.daily_usage < 0:
            raise ValueError(f"daily_usage must be >= 0, got {self.daily_usage}")
        object.__setattr__(self, 'rates', tuple(self.rates))


def _clamp(val: float, lo: float, hi: float) -> float:
    """Clamp val to [lo, hi]."""
    return max(lo, min(hi, val))


def _round_half_up(value: float) -> int:
    """
    Round to the nearest integer, halves away from zero.

    Examples:
        >>> _round_half_up(10.5)
        11
        >>> _round_half_up(17.5)
        18
    """
    return int(math.floor(value + 0.5))


def lead_days_for(lead_weeks: float) -> int:
    """Lead time in calendar days."""
    return _round_half_up(lead_weeks * CALENDAR_DAYS_PER_WEEK)


def lead_working_days_for(lead_weeks: float) -> int:
    """Working days inside the lead time."""
    return _round_half_up(lead_weeks * WORKING_DAYS_PER_WEEK)


def compute_volatility(rates: Sequence[float]) -> float:
    """stddev / mean of the recent rates (0 when the mean is 0)."""
    return coefficient_of_variation(rates)


def compute_acceleration(recent_rate: float, baseline_rate: float) -> float:
    """
    Relative change of the recent rate over the baseline rate.

    Baseline 0 gives 0 when recent usage is also 0, and a full positive
    signal (1.0) when recent usage is positive.

    Examples:
        >>> compute_acceleration(1.5, 1.0)
        0.5
        >>> compute_acceleration(2.0, 0.0)
        1.0
    """
    if baseline_rate > 0:
        return (recent_rate - baseline_rate) / baseline_rate
    return 1.0 if recent_rate > 0 else 0.0


def compute_risk_score(
    lead_weeks: float,
    coverage_weeks: float,
    volatility: float,
    acceleration: float,
    estimator: EstimatorType,
) -> float:
    """
    Continuous stockout-risk signal in [0, 100].

    Lets a UI rank SKUs inside the same decision bucket.
    """
    base = _clamp(
        RISK_BASE
        + (lead_weeks - coverage_weeks) * RISK_LEAD_GAP_WEIGHT
        + volatility * RISK_VOLATILITY_WEIGHT
        - acceleration * RISK_ACCELERATION_WEIGHT,
        0.0,
        RISK_BASE_CAP,
    )
    penalty = RISK_PENALTY_INTERMITTENT if estimator == EstimatorType.INTERMITTENT else RISK_PENALTY_DEFAULT
    return RISK_BASE_BLEND * base + RISK_PENALTY_BLEND * penalty


def runout_range(
    total_qty: float,
    weekly_usage: float,
    volatility: float,
    acceleration: float,
) -> Tuple[float, float]:
    """
    Projected (min, max) weeks until stock runs out.

    Returns:
        (inf, inf) when weekly usage is 0; never negative
    """
    if weekly_usage <= 0:
        return math.inf, math.inf
    qty = max(total_qty, 0.0)
    runout_min = qty / (weekly_usage * (1 + max(volatility, 0.0)))
    runout_max = qty / (weekly_usage * max(MIN_RUNOUT_TREND_FACTOR, 1 + acceleration))
    return runout_min, runout_max


def order_up_to_level(lead_time_demand: float, weekly_usage: float, lead_weeks: float) -> int:
    """
    Stock level that clears both order triggers.

    At this level on-hand covers the lead-time demand and at least
    ``lead_weeks × 1.2`` weeks of usage.
    """
    level = max(lead_time_demand, weekly_usage * lead_weeks * ORDER_SOON_FACTOR)
    return max(int(math.ceil(level)), 1)


def compute_decision(inputs: DecisionInputs) -> DecisionRecord:
    """
    Evaluate the stocking policy for one SKU.

    Never raises for well-formed inputs: missing stock visibility degrades
    to the Insufficient Inventory Visibility decision instead.

    Args:
        inputs: DecisionInputs for the SKU

    Returns:
        DecisionRecord
    """
    daily = inputs.daily_usage
    weekly = daily * WORKING_DAYS_PER_WEEK
    lead_weeks = inputs.lead_weeks
    lead_days = lead_days_for(lead_weeks)
    volatility = compute_volatility(inputs.rates)
    acceleration = compute_acceleration(inputs.recent_rate, inputs.baseline_rate)

    common = dict(
        sku=inputs.sku,
        daily_usage=daily,
        weekly_usage=weekly,
        lead_weeks=lead_weeks,
        lead_days=lead_days,
        estimator=inputs.estimator,
        volatility=volatility,
        acceleration=acceleration,
    )

    # 1. Nothing to plan for
    if inputs.periods == 0 or inputs.total_qty <= 0 or daily <= 0:
        return DecisionRecord(
            decision=Decision.DO_NOT_STOCK,
            on_hand=inputs.on_hand,
            on_hand_date=inputs.on_hand_date,
            risk_score=0.0,
            guidance="Hold at zero and order only when a real requirement appears.",
            **common,
        )

    # 2. No trustworthy on-hand reading
    if (
        inputs.on_hand is None
        or inputs.on_hand_date is None
        or inputs.on_hand_date > inputs.asof_date
    ):
        logger.debug("%s: no on-hand reading at %s", inputs.sku, inputs.asof_date)
        return DecisionRecord(
            decision=Decision.INSUFFICIENT_VISIBILITY,
            guidance=(
                f"No current stock reading. Usage is about {weekly:.1f} units per week; "
                f"count this SKU before ordering."
            ),
            **common,
        )

    on_hand = inputs.on_hand
    lead_time_demand = daily * lead_working_days_for(lead_weeks)
    coverage = on_hand / weekly
    target = order_up_to_level(lead_time_demand, weekly, lead_weeks)

    if on_hand < lead_time_demand:
        decision = Decision.ORDER_NOW
        guidance = (
            f"Order now: {on_hand:g} on hand is below the {lead_time_demand:.1f} units "
            f"needed over the {lead_weeks:g}-week lead time."
        )
    elif coverage < lead_weeks * ORDER_SOON_FACTOR:
        decision = Decision.ORDER_SOON
        guidance = (
            f"Order soon: {coverage:.1f} weeks of cover against a "
            f"{lead_weeks:g}-week lead time."
        )
    else:
        decision = Decision.WATCH
        guidance = (
            f"No order needed: plan for about {_round_half_up(weekly)} units per week, "
            f"{coverage:.1f} weeks of cover on hand."
        )

    suggested = 0
    if decision in (Decision.ORDER_NOW, Decision.ORDER_SOON):
        suggested = max(0, int(math.ceil(target - on_hand)))
        guidance += f" Bring stock up to {target} units (order {suggested})."

    risk = compute_risk_score(lead_weeks, coverage, volatility, acceleration, inputs.estimator)
    runout_min, runout_max = runout_range(inputs.total_qty, weekly, volatility, acceleration)

    return DecisionRecord(
        decision=decision,
        on_hand=on_hand,
        on_hand_date=inputs.on_hand_date,
        lead_time_demand=lead_time_demand,
        coverage_weeks=coverage,
        risk_score=risk,
        runout_min_weeks=runout_min,
        runout_max_weeks=runout_max,
        target_stock=target,
        suggested_order_qty=suggested,
        guidance=guidance,
        **common,
    )
