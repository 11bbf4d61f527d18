"""
Planning Engine: the single owner of ingested series and vendor lead times.

Pipeline (single flow, synchronous):
    ingest(dataset)
        → build_series()            consumption history per SKU (immutable)
        → compute_windows()         30/60/90-day usage
        → classify_movement()       Active / Low-Movement / Dead
        → estimate_demand()         smoothed rate + estimator type
        → assign_abc_tiers()        cross-SKU volume tiers
        → compute_decision()        decision, risk, runout

Every mutation builds a complete new _EngineState and swaps it in with one
assignment, so a reader sees either the previous results or the new ones,
never a mix. User edits (vendor, lead times, planning window, as-of date)
only re-derive the planning outputs; consumption history is never rebuilt
outside ingest().
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from cyclecount.analytics.classification import (
    AbcResult,
    assign_abc_tiers,
    classify_movement,
    usage_label,
)
from cyclecount.domain.calendar import CalendarConfig
from cyclecount.domain.demand_builder import (
    DEFAULT_TRAILING_PERIODS,
    DEFAULT_VOLATILITY_THRESHOLD,
    estimate_demand,
)
from cyclecount.domain.intermittent_forecast import DEFAULT_ALPHA
from cyclecount.domain.models import (
    DEFAULT_LEAD_TIME_WEEKS,
    DateObservation,
    Decision,
    DecisionRecord,
    SkuSeries,
    VendorLeadProfile,
)
from cyclecount.domain.series_builder import build_series, select_current_stock
from cyclecount.domain.validation import (
    NO_DEMAND_COLUMNS_MESSAGE,
    ValidationCollector,
    ValidationReport,
    validate_lead_weeks,
    validate_planning_window,
    validate_sku_code,
)
from cyclecount.domain.windows import compute_windows, planning_usage, usage_pattern
from cyclecount.forecast import series_forecast
from cyclecount.replenishment_policy import DecisionInputs, compute_decision
from cyclecount.workflows.purchase_orders import PurchaseOrder, PurchaseOrderImport, collect_lead_samples
from cyclecount.workflows.stock_import import StockDataset

logger = logging.getLogger(__name__)

# Display order of decisions when ranking
DECISION_PRIORITY = {
    Decision.ORDER_NOW: 0,
    Decision.ORDER_SOON: 1,
    Decision.INSUFFICIENT_VISIBILITY: 2,
    Decision.WATCH: 3,
    Decision.DO_NOT_STOCK: 4,
}


@dataclass(frozen=True)
class PlanningConfig:
    """
    Process-wide configuration injected at engine construction.

    Attributes:
        calendar: Working-day calendar (weekdays + holiday table)
        default_lead_weeks: Lead time when a vendor has no samples
        planning_window_days: Window used for ABC usage (30/60/90, other = whole history)
        smoothing_alpha: Smoothing constant for EWMA and Croston
        trailing_periods: Periods fed to the demand estimator
        volatility_threshold: CV above which a series is volatile
        max_stock_age_days: Readings older than this give no visibility (None = no limit)
    """
    calendar: CalendarConfig = field(default_factory=CalendarConfig)
    default_lead_weeks: float = DEFAULT_LEAD_TIME_WEEKS
    planning_window_days: int = 90
    smoothing_alpha: float = DEFAULT_ALPHA
    trailing_periods: int = DEFAULT_TRAILING_PERIODS
    volatility_threshold: float = DEFAULT_VOLATILITY_THRESHOLD
    max_stock_age_days: Optional[int] = None

    def __post_init__(self):
        ok, message = validate_lead_weeks(self.default_lead_weeks)
        if not ok:
            raise ValueError(f"default_lead_weeks: {message}")
        ok, message = validate_planning_window(self.planning_window_days)
        if not ok:
            raise ValueError(message)
        if not 0 < self.smoothing_alpha <= 1:
            raise ValueError(f"smoothing_alpha must be in (0, 1], got {self.smoothing_alpha}")
        if self.trailing_periods < 1:
            raise ValueError(f"trailing_periods must be >= 1, got {self.trailing_periods}")
        if self.volatility_threshold <= 0:
            raise ValueError(f"volatility_threshold must be > 0, got {self.volatility_threshold}")
        if self.max_stock_age_days is not None and self.max_stock_age_days < 0:
            raise ValueError(f"max_stock_age_days must be >= 0, got {self.max_stock_age_days}")


@dataclass(frozen=True)
class IngestResult:
    """Outcome of one ingest: series in input order plus the quality report."""
    series: Tuple[SkuSeries, ...]
    report: ValidationReport

    @property
    def is_empty(self) -> bool:
        """True when no series were produced; callers must handle this explicitly."""
        return len(self.series) == 0


@dataclass(frozen=True)
class _EngineState:
    series: Dict[str, SkuSeries]
    vendors: Dict[str, VendorLeadProfile]
    stock_samples: Dict[str, Tuple[float, ...]]
    report: ValidationReport
    abc: AbcResult


def _empty_state() -> _EngineState:
    return _EngineState(
        series={},
        vendors={},
        stock_samples={},
        report=ValidationReport(),
        abc=AbcResult(tiers={}, policy="none", cv=0.0),
    )


class PlanningEngine:
    """Owns one parsed dataset at a time and answers decision queries."""

    def __init__(self, config: Optional[PlanningConfig] = None, asof_date: Optional[date] = None):
        """
        Initialize engine.

        Args:
            config: PlanningConfig (defaults apply when None)
            asof_date: Evaluation date for current stock (default: today)
        """
        self.config = config if config is not None else PlanningConfig()
        self._asof_date = asof_date if asof_date is not None else date.today()
        self._planning_window = self.config.planning_window_days
        self._po_samples: Dict[str, List[float]] = defaultdict(list)
        self._overrides: Dict[str, float] = {}
        self._vendor_override_weeks: Dict[str, float] = {}
        self._state = _empty_state()

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def asof_date(self) -> date:
        return self._asof_date

    @property
    def planning_window(self) -> int:
        return self._planning_window

    @property
    def series(self) -> List[SkuSeries]:
        return list(self._state.series.values())

    @property
    def validation_report(self) -> ValidationReport:
        return self._state.report

    @property
    def abc_result(self) -> AbcResult:
        return self._state.abc

    @property
    def vendor_profiles(self) -> Dict[str, VendorLeadProfile]:
        return dict(self._state.vendors)

    def get_series(self, sku: str) -> SkuSeries:
        try:
            return self._state.series[sku.strip()]
        except KeyError:
            raise KeyError(f"Unknown SKU: {sku!r}") from None

    def decision_for(self, sku: str) -> DecisionRecord:
        """
        Decision record of one SKU.

        Raises:
            KeyError: if the SKU is not in the current dataset
            ValueError: if the SKU has no derived decision
        """
        series = self.get_series(sku)
        if series.decision is None:
            raise ValueError(f"No decision derived for SKU {series.sku!r}")
        return series.decision

    def decisions(self) -> List[DecisionRecord]:
        """Decision records in input order."""
        return [s.decision for s in self._state.series.values() if s.decision is not None]

    def ranked_decisions(self) -> List[DecisionRecord]:
        """Decisions grouped by urgency, highest risk first inside each group."""
        return sorted(
            self.decisions(),
            key=lambda d: (DECISION_PRIORITY[d.decision], -(d.risk_score or 0.0), d.sku),
        )

    def lead_weeks_for(self, series: SkuSeries, vendors: Optional[Dict[str, VendorLeadProfile]] = None) -> float:
        """Per-SKU override, else the vendor's summary, else the default."""
        if series.lead_time_override_weeks is not None:
            return series.lead_time_override_weeks
        vendors = vendors if vendors is not None else self._state.vendors
        profile = vendors.get(series.vendor) if series.vendor else None
        if profile is not None:
            return profile.lead_weeks
        return self.config.default_lead_weeks

    def summary_rows(self) -> List[Dict[str, Any]]:
        """Flat rows for tables and exports: series facts plus the decision."""
        rows = []
        for s in self._state.series.values():
            row: Dict[str, Any] = {
                "sku": s.sku,
                "description": s.description,
                "vendor": s.vendor,
                "classification": s.classification.value,
                "usage_label": usage_label(s.classification),
                "pattern": usage_pattern(s),
                "abc_tier": s.abc_tier.value,
                "periods": s.periods,
                "total_qty": s.total_qty,
                "avg_demand": s.avg_demand,
                "planning_usage": planning_usage(s, self._planning_window),
                "smoothed_usage": s.estimate.rate if s.estimate else 0.0,
                "current_stock": s.current_stock,
                "current_stock_date": s.current_stock_date.isoformat() if s.current_stock_date else None,
            }
            row.update(series_forecast(s))
            if s.decision is not None:
                decision_row = s.decision.to_dict()
                decision_row.pop("sku")
                row.update(decision_row)
            rows.append(row)
        return rows

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest(self, dataset: StockDataset) -> IngestResult:
        """
        Parse a cycle-count dataset and replace all derived state.

        Duplicate identifiers: the first row wins; later rows are counted in
        the report and discarded.

        Returns:
            IngestResult (check ``is_empty``)
        """
        collector = ValidationCollector()
        roles = dataset.roles

        if not dataset.has_demand_columns:
            collector.add_message(NO_DEMAND_COLUMNS_MESSAGE)
            report = collector.build()
            self._state = replace(_empty_state(), report=report)
            logger.warning(
                "No demand columns in %s (%d date columns)",
                dataset.source or "<dataset>", len(roles.date_columns),
            )
            return IngestResult(series=(), report=report)

        if not roles.is_chronological:
            collector.mark_non_chronological()

        calendar = self.config.calendar
        built: Dict[str, SkuSeries] = {}
        stock_samples: Dict[str, List[float]] = defaultdict(list)

        for row in dataset.rows:
            ok, _ = validate_sku_code(row.identifier)
            if not ok:
                collector.record_skipped_row()
                logger.debug("Row %d skipped: no identifier", row.row_number)
                continue

            sku = row.identifier.strip()
            is_first = collector.record_identifier(sku)
            observations = [
                DateObservation(date=col.date, stock_level=collector.record_cell(row.cells.get(col.field)))
                for col in roles.date_columns
            ]
            if not is_first:
                logger.warning("Duplicate SKU %s on row %d discarded (first row wins)", sku, row.row_number)
                continue

            result = build_series(observations, calendar)
            collector.record_replenishments(result.replenishment_events)

            vendor = row.vendor.strip()
            if vendor:
                samples = stock_samples[vendor]
                if row.lead_time_raw:
                    ok, message = validate_lead_weeks(row.lead_time_raw)
                    if ok:
                        samples.append(float(row.lead_time_raw))
                    else:
                        logger.debug("Row %d: lead time ignored: %s", row.row_number, message)

            window30, window60, window90 = compute_windows(result.history)
            built[sku] = SkuSeries(
                sku=sku,
                description=row.description,
                vendor=vendor,
                observations=tuple(observations),
                history=result.history,
                total_qty=result.total_qty,
                periods=result.periods,
                positive_periods=result.positive_periods,
                classification=classify_movement(result.total_qty, result.positive_periods),
                window30=window30,
                window60=window60,
                window90=window90,
                lead_time_override_weeks=self._overrides.get(sku),
                estimate=estimate_demand(
                    [event.rate_per_working_day for event in result.history],
                    trailing_periods=self.config.trailing_periods,
                    alpha=self.config.smoothing_alpha,
                    volatility_threshold=self.config.volatility_threshold,
                ),
            )

        frozen_samples = {vendor: tuple(values) for vendor, values in stock_samples.items()}
        report = collector.build()
        state = self._derive(built, frozen_samples, report)
        self._state = state

        logger.info(
            "Ingested %d SKUs from %s (%d duplicates, %d missing cells, %d invalid cells)",
            len(state.series), dataset.source or "<dataset>",
            len(report.duplicate_identifiers), report.missing_cells, report.invalid_cells,
        )
        return IngestResult(series=tuple(state.series.values()), report=report)

    def ingest_purchase_orders(
        self,
        orders: Union[PurchaseOrderImport, Iterable[PurchaseOrder]],
    ) -> Dict[str, VendorLeadProfile]:
        """
        Append observed lead-time samples from purchase orders.

        Samples accumulate across calls (append-only) and survive later
        stock re-ingests.

        Returns:
            Vendor profiles after the update
        """
        if isinstance(orders, PurchaseOrderImport):
            orders = orders.orders
        added = 0
        for vendor, samples in collect_lead_samples(orders).items():
            self._po_samples[vendor].extend(samples)
            added += len(samples)
        logger.info("Added %d lead-time samples from purchase orders", added)
        self._republish()
        return self.vendor_profiles

    # ------------------------------------------------------------------
    # User edits (re-derive planning outputs only)
    # ------------------------------------------------------------------

    def set_vendor_lead_time(self, vendor: str, weeks: float) -> None:
        """Override a vendor's lead time (weeks)."""
        ok, message = validate_lead_weeks(weeks)
        if not ok:
            raise ValueError(message)
        vendor = vendor.strip()
        if not vendor:
            raise ValueError("Vendor cannot be empty")
        self._vendor_override_weeks[vendor] = float(weeks)
        self._republish()

    def clear_vendor_lead_time(self, vendor: str) -> None:
        """Drop a vendor override; observed samples or the default apply again."""
        self._vendor_override_weeks.pop(vendor.strip(), None)
        self._republish()

    def set_sku_lead_time(self, sku: str, weeks: Optional[float]) -> None:
        """Override (or clear with None) the lead time of a single SKU."""
        series = self.get_series(sku)
        if weeks is not None:
            ok, message = validate_lead_weeks(weeks)
            if not ok:
                raise ValueError(message)
            self._overrides[series.sku] = float(weeks)
        else:
            self._overrides.pop(series.sku, None)
        updated = dict(self._state.series)
        updated[series.sku] = replace(series, lead_time_override_weeks=self._overrides.get(series.sku))
        self._state = self._derive(updated, self._state.stock_samples, self._state.report)

    def set_vendor(self, sku: str, vendor: str) -> None:
        """Reassign a SKU to another vendor."""
        series = self.get_series(sku)
        updated = dict(self._state.series)
        updated[series.sku] = replace(series, vendor=(vendor or "").strip())
        self._state = self._derive(updated, self._state.stock_samples, self._state.report)

    def set_planning_window(self, days: int) -> None:
        """Select the planning window (30/60/90; other lengths use the whole history)."""
        ok, message = validate_planning_window(days)
        if not ok:
            raise ValueError(message)
        self._planning_window = days
        self._republish()

    def set_asof_date(self, asof_date: date) -> None:
        """Move the evaluation date; current stock is re-selected from the readings."""
        self._asof_date = asof_date
        self._republish()

    # ------------------------------------------------------------------
    # Derivation
    # ------------------------------------------------------------------

    def _build_vendor_table(self, stock_samples: Dict[str, Tuple[float, ...]]) -> Dict[str, VendorLeadProfile]:
        vendors: Dict[str, VendorLeadProfile] = {}
        overrides = self._vendor_override_weeks
        names = set(stock_samples) | set(self._po_samples) | set(overrides)
        for name in sorted(names):
            profile = VendorLeadProfile(vendor=name, default_weeks=self.config.default_lead_weeks)
            for weeks in list(self._po_samples.get(name, [])) + list(stock_samples.get(name, ())):
                profile.add_sample(weeks)
            profile.override_weeks = overrides.get(name)
            vendors[name] = profile
        return vendors

    def _republish(self) -> None:
        state = self._state
        self._state = self._derive(dict(state.series), state.stock_samples, state.report)

    def _derive(
        self,
        series: Dict[str, SkuSeries],
        stock_samples: Dict[str, Tuple[float, ...]],
        report: ValidationReport,
    ) -> _EngineState:
        """Compute ABC tiers and decisions into fresh SkuSeries copies."""
        vendors = self._build_vendor_table(stock_samples)
        window = self._planning_window

        abc = assign_abc_tiers(list(series.values()), lambda s: planning_usage(s, window))

        derived: Dict[str, SkuSeries] = {}
        for sku, s in series.items():
            current = select_current_stock(s.observations, self._asof_date, self.config.max_stock_age_days)
            estimate = s.estimate if s.estimate is not None else estimate_demand(
                s.rates,
                trailing_periods=self.config.trailing_periods,
                alpha=self.config.smoothing_alpha,
                volatility_threshold=self.config.volatility_threshold,
            )
            inputs = DecisionInputs(
                sku=sku,
                daily_usage=estimate.rate,
                lead_weeks=self.lead_weeks_for(s, vendors),
                asof_date=self._asof_date,
                on_hand=current.stock_level if current else None,
                on_hand_date=current.date if current else None,
                total_qty=s.total_qty,
                periods=s.periods,
                recent_rate=s.window30.adjusted_rate,
                baseline_rate=s.window90.adjusted_rate,
                rates=tuple(s.rates[-self.config.trailing_periods:]),
                estimator=estimate.estimator,
            )
            derived[sku] = replace(
                s,
                current_stock=current.stock_level if current else None,
                current_stock_date=current.date if current else None,
                abc_tier=abc.tiers[sku],
                estimate=estimate,
                decision=compute_decision(inputs),
            )

        return _EngineState(
            series=derived,
            vendors=vendors,
            stock_samples=stock_samples,
            report=report,
            abc=abc,
        )
