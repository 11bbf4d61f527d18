"""
Domain models for the cycle-count planner.

Pure data classes + value objects. No I/O, no side effects.
Deterministic and fully testable.
"""
import math
import statistics
from dataclasses import dataclass, field
from datetime import date as Date
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


DEFAULT_LEAD_TIME_WEEKS = 2.0


class Classification(Enum):
    """Movement classification of a SKU over its whole history."""
    ACTIVE = "Active"
    LOW_MOVEMENT = "Low-Movement"
    DEAD = "Dead"


class AbcTier(Enum):
    """Volume tier (A = highest impact)."""
    A = "A"
    B = "B"
    C = "C"


class EstimatorType(Enum):
    """Shape of the recent rate signal, selects the smoothing method."""
    STABLE = "stable"
    VOLATILE = "volatile"
    INTERMITTENT = "intermittent"


class Decision(Enum):
    """Stocking decision, listed in evaluation priority order."""
    DO_NOT_STOCK = "Do Not Stock"
    INSUFFICIENT_VISIBILITY = "Insufficient Inventory Visibility"
    ORDER_NOW = "Order Now"
    ORDER_SOON = "Order Soon"
    WATCH = "Watch"


@dataclass(frozen=True)
class DateObservation:
    """One stock-level reading for a SKU (None = missing cell)."""
    date: Date
    stock_level: Optional[float] = None

    def __post_init__(self):
        if self.stock_level is not None and self.stock_level < 0:
            raise ValueError(f"Stock level cannot be negative, got {self.stock_level}")


@dataclass(frozen=True)
class ConsumptionEvent:
    """
    Consumption between two consecutive observations.

    Attributes:
        date: Later observation date of the pair
        quantity_moved: max(previous - current, 0)
        working_days: Working days in (previous date, date]
        rate_per_working_day: quantity_moved / working_days (0 when no working days)
    """
    date: Date
    quantity_moved: float
    working_days: int
    rate_per_working_day: float

    def __post_init__(self):
        if self.quantity_moved < 0:
            raise ValueError(f"quantity_moved must be >= 0, got {self.quantity_moved}")
        if self.working_days < 0:
            raise ValueError(f"working_days must be >= 0, got {self.working_days}")


@dataclass(frozen=True)
class WindowStat:
    """Usage totals over a trailing window of calendar days."""
    raw_total: float = 0.0
    working_days_total: int = 0
    adjusted_rate: float = 0.0

    @classmethod
    def from_totals(cls, raw_total: float, working_days_total: int) -> "WindowStat":
        rate = raw_total / working_days_total if working_days_total > 0 else 0.0
        return cls(raw_total=raw_total, working_days_total=working_days_total, adjusted_rate=rate)


@dataclass(frozen=True)
class DemandEstimate:
    """
    Smoothed usage rate plus the estimator that produced it.

    Attributes:
        rate: Smoothed units per working day
        estimator: stable / volatile / intermittent
        zero_fraction: Share of zero-rate periods in the trailing sequence
        cv: Coefficient of variation of the trailing sequence
        n_periods: Number of periods used
    """
    rate: float
    estimator: EstimatorType
    zero_fraction: float = 0.0
    cv: float = 0.0
    n_periods: int = 0


@dataclass(frozen=True)
class DecisionRecord:
    """Stocking decision for one SKU, consumable by any presentation layer."""
    sku: str
    decision: Decision
    daily_usage: float
    weekly_usage: float
    lead_weeks: float
    lead_days: int
    estimator: EstimatorType
    volatility: float = 0.0
    acceleration: float = 0.0
    on_hand: Optional[float] = None
    on_hand_date: Optional[Date] = None
    lead_time_demand: Optional[float] = None
    coverage_weeks: Optional[float] = None
    risk_score: Optional[float] = None
    runout_min_weeks: float = math.inf
    runout_max_weeks: float = math.inf
    target_stock: int = 0
    suggested_order_qty: int = 0
    guidance: str = ""

    @property
    def needs_order(self) -> bool:
        return self.decision in (Decision.ORDER_NOW, Decision.ORDER_SOON)

    def to_dict(self) -> Dict[str, Any]:
        """Flat row for tables and CSV/JSON export."""
        return {
            "sku": self.sku,
            "decision": self.decision.value,
            "daily_usage": self.daily_usage,
            "weekly_usage": self.weekly_usage,
            "lead_weeks": self.lead_weeks,
            "lead_days": self.lead_days,
            "estimator": self.estimator.value,
            "volatility": self.volatility,
            "acceleration": self.acceleration,
            "on_hand": self.on_hand,
            "on_hand_date": self.on_hand_date.isoformat() if self.on_hand_date else None,
            "lead_time_demand": self.lead_time_demand,
            "coverage_weeks": self.coverage_weeks,
            "risk_score": self.risk_score,
            "runout_min_weeks": self.runout_min_weeks,
            "runout_max_weeks": self.runout_max_weeks,
            "target_stock": self.target_stock,
            "suggested_order_qty": self.suggested_order_qty,
            "guidance": self.guidance,
        }


@dataclass
class SkuSeries:
    """
    Aggregate unit of work for one SKU.

    ``history`` and ``observations`` are tuples and never change after the
    series is built. ``vendor`` and ``lead_time_override_weeks`` are the
    user-editable fields; editing them only re-derives the planning outputs
    (``abc_tier``, ``estimate``, ``decision``).
    """
    sku: str
    description: str = ""
    vendor: str = ""
    observations: Tuple[DateObservation, ...] = ()
    history: Tuple[ConsumptionEvent, ...] = ()
    total_qty: float = 0.0
    periods: int = 0
    positive_periods: int = 0
    classification: Classification = Classification.DEAD
    window30: WindowStat = field(default_factory=WindowStat)
    window60: WindowStat = field(default_factory=WindowStat)
    window90: WindowStat = field(default_factory=WindowStat)
    current_stock: Optional[float] = None
    current_stock_date: Optional[Date] = None
    lead_time_override_weeks: Optional[float] = None
    abc_tier: AbcTier = AbcTier.C
    estimate: Optional[DemandEstimate] = None
    decision: Optional[DecisionRecord] = None

    def __post_init__(self):
        self.sku = (self.sku or "").strip()
        if not self.sku:
            raise ValueError("SKU cannot be empty")
        self.observations = tuple(self.observations)
        self.history = tuple(self.history)

    @property
    def avg_demand(self) -> float:
        """Average quantity moved per period."""
        return self.total_qty / self.periods if self.periods > 0 else 0.0

    @property
    def avg_per_working_day(self) -> float:
        """Total quantity over total working days of the whole history."""
        working = sum(event.working_days for event in self.history)
        return self.total_qty / working if working > 0 else 0.0

    @property
    def rates(self) -> List[float]:
        return [event.rate_per_working_day for event in self.history]

    @property
    def last_date(self) -> Optional[Date]:
        return self.history[-1].date if self.history else None

    def window(self, days: int) -> Optional[WindowStat]:
        """Return the precomputed 30/60/90-day window, or None for other sizes."""
        return {30: self.window30, 60: self.window60, 90: self.window90}.get(days)


@dataclass
class VendorLeadProfile:
    """
    Observed lead times for one vendor, in weeks.

    Samples are append-only during ingestion. The summary is the median of
    the samples, unless the user set an override; with neither, the default
    applies.
    """
    vendor: str
    samples_weeks: List[float] = field(default_factory=list)
    override_weeks: Optional[float] = None
    default_weeks: float = DEFAULT_LEAD_TIME_WEEKS

    def add_sample(self, weeks: float) -> bool:
        """Record a sample; non-positive or non-finite values are discarded."""
        try:
            weeks = float(weeks)
        except (TypeError, ValueError):
            return False
        if not math.isfinite(weeks) or weeks <= 0:
            return False
        self.samples_weeks.append(weeks)
        return True

    @property
    def median_weeks(self) -> Optional[float]:
        if not self.samples_weeks:
            return None
        return float(statistics.median(self.samples_weeks))

    @property
    def lead_weeks(self) -> float:
        if self.override_weeks is not None:
            return self.override_weeks
        median = self.median_weeks
        return median if median is not None else self.default_weeks

    @property
    def source(self) -> str:
        """Where lead_weeks comes from: 'override', 'observed' or 'default'."""
        if self.override_weeks is not None:
            return "override"
        return "observed" if self.samples_weeks else "default"
