"""
Integration tests for PlanningEngine: ingest, edits and queries.
"""
from dataclasses import replace
from datetime import date

import pytest

from cyclecount.domain.models import AbcTier, Classification, Decision, EstimatorType
from cyclecount.engine import PlanningConfig, PlanningEngine
from cyclecount.workflows.purchase_orders import PurchaseOrder
from cyclecount.workflows.stock_import import parse_stock_text

ASOF = date(2025, 2, 3)

COUNTS_CSV = (
    "SKU,Description,Vendor,2025-01-06,2025-01-13,2025-01-20,2025-01-27\n"
    "A-100,Bolts,Acme,100,90,80,70\n"
    "A-200,Nuts,Acme,50,50,50,50\n"
    "A-100,Duplicate,Other,1,1,1,1\n"
    "A-300,Washers,Bolt Co,20,,x,5\n"
    ",No identifier,Acme,9,8,7,6\n"
)


@pytest.fixture
def dataset():
    return parse_stock_text(COUNTS_CSV, reference_year=2025)


@pytest.fixture
def engine(dataset):
    engine = PlanningEngine(PlanningConfig(), asof_date=ASOF)
    engine.ingest(dataset)
    return engine


class TestIngest:
    def test_series_in_input_order(self, dataset):
        result = PlanningEngine(asof_date=ASOF).ingest(dataset)
        assert not result.is_empty
        assert [s.sku for s in result.series] == ["A-100", "A-200", "A-300"]

    def test_first_row_wins(self, engine):
        series = engine.get_series("A-100")
        assert series.description == "Bolts"
        assert series.vendor == "Acme"
        assert series.total_qty == 30

    def test_report(self, engine):
        report = engine.validation_report
        assert report.duplicate_identifiers == ("A-100",)
        assert report.missing_cells == 1
        assert report.invalid_cells == 1
        assert report.skipped_rows == 1
        assert report.status_label == "Needs Attention"

    def test_classification(self, engine):
        assert engine.get_series("A-100").classification == Classification.ACTIVE
        assert engine.get_series("A-200").classification == Classification.DEAD
        assert engine.get_series("A-300").classification == Classification.LOW_MOVEMENT

    def test_missing_and_invalid_cells_count_as_zero(self, engine):
        series = engine.get_series("A-300")
        assert [e.quantity_moved for e in series.history] == [20, 0, 0]
        assert series.current_stock == 5
        assert series.current_stock_date == date(2025, 1, 27)

    def test_abc_tiers(self, engine):
        assert engine.get_series("A-100").abc_tier == AbcTier.A
        assert engine.get_series("A-200").abc_tier == AbcTier.C


class TestIngestReport:
    """Column order and restocks as seen through ingest()."""

    # chronological: R-1 100, 70, 80, 60 (restock on the 20th); R-2 50, 40, 30, 20
    SHUFFLED_CSV = (
        "SKU,2025-01-20,2025-01-06,2025-01-27,2025-01-13\n"
        "R-1,80,100,60,70\n"
        "R-2,30,50,20,40\n"
    )

    def test_shuffled_columns_flagged(self):
        result = PlanningEngine(asof_date=ASOF).ingest(parse_stock_text(self.SHUFFLED_CSV, reference_year=2025))
        assert result.report.non_chronological_columns is True
        assert result.report.replenishment_events == 1

    def test_shuffled_columns_read_in_date_order(self):
        engine = PlanningEngine(asof_date=ASOF)
        engine.ingest(parse_stock_text(self.SHUFFLED_CSV, reference_year=2025))
        assert [e.quantity_moved for e in engine.get_series("R-1").history] == [30, 0, 20]
        assert [e.date for e in engine.get_series("R-1").history] == [
            date(2025, 1, 13), date(2025, 1, 20), date(2025, 1, 27),
        ]
        assert engine.get_series("R-1").current_stock == 60

    def test_ordered_columns_not_flagged(self, engine):
        report = engine.validation_report
        assert report.non_chronological_columns is False
        # A-300: 20, missing, invalid, 5 reads as 20, 0, 0, 5
        assert report.replenishment_events == 1

    def test_decimal_comma_cells_are_invalid(self):
        text = (
            "SKU;2025-01-06;2025-01-13;2025-01-20\n"
            "A;1,5;0,5;2\n"
            "B;10;8;6\n"
        )
        engine = PlanningEngine(asof_date=ASOF)
        result = engine.ingest(parse_stock_text(text, reference_year=2025))
        assert result.report.invalid_cells == 2
        assert [o.stock_level for o in engine.get_series("A").observations] == [None, None, 2.0]
        assert engine.get_series("A").current_stock == 2.0
        assert engine.get_series("B").total_qty == 4


class TestDecisions:
    def test_watch_with_ample_stock(self, engine):
        record = engine.decision_for("A-100")
        assert record.daily_usage == pytest.approx(2.0)
        assert record.lead_time_demand == pytest.approx(20.0)
        assert record.decision == Decision.WATCH

    def test_dead_sku_not_stocked(self, engine):
        assert engine.decision_for("A-200").decision == Decision.DO_NOT_STOCK

    def test_intermittent_order_now(self, engine):
        record = engine.decision_for("A-300")
        assert record.estimator == EstimatorType.INTERMITTENT
        assert record.daily_usage == pytest.approx(4.0)
        assert record.decision == Decision.ORDER_NOW

    def test_unknown_sku(self, engine):
        with pytest.raises(KeyError):
            engine.decision_for("NOPE")

    def test_series_without_decision(self, engine, monkeypatch):
        undecided = replace(engine.get_series("A-100"), decision=None)
        monkeypatch.setitem(engine._state.series, "A-100", undecided)
        with pytest.raises(ValueError):
            engine.decision_for("A-100")
        assert "A-100" not in [d.sku for d in engine.decisions()]

    def test_ranked(self, engine):
        ranked = engine.ranked_decisions()
        assert ranked[0].sku == "A-300"
        assert ranked[-1].sku == "A-200"

    def test_summary_rows(self, engine):
        rows = engine.summary_rows()
        assert [r["sku"] for r in rows] == ["A-100", "A-200", "A-300"]
        assert rows[0]["decision"] == "Watch"
        assert rows[0]["usage_label"] == "Regular mover"

    def test_summary_rows_carry_forecast(self, engine):
        rows = {r["sku"]: r for r in engine.summary_rows()}
        assert rows["A-100"]["forecast"] == [10.0] * 4
        assert rows["A-100"]["recent_usage"] == pytest.approx(30.0)
        assert rows["A-100"]["forecast_error_pct"] == pytest.approx(0.0)
        assert rows["A-300"]["forecast"] == []
        assert rows["A-200"]["forecast_error_pct"] is None


class TestDeterminism:
    def test_same_input_same_output(self, dataset):
        first = PlanningEngine(asof_date=ASOF)
        second = PlanningEngine(asof_date=ASOF)
        first.ingest(dataset)
        second.ingest(parse_stock_text(COUNTS_CSV, reference_year=2025))
        assert first.decisions() == second.decisions()
        assert [s.history for s in first.series] == [s.history for s in second.series]

    def test_reingest_is_idempotent(self, engine, dataset):
        before = engine.decisions()
        engine.ingest(dataset)
        assert engine.decisions() == before


class TestCurrentStock:
    def test_future_reading_not_used(self, dataset):
        engine = PlanningEngine(asof_date=date(2025, 1, 22))
        engine.ingest(dataset)
        record = engine.decision_for("A-100")
        assert record.on_hand == 80
        assert record.on_hand_date == date(2025, 1, 20)

    def test_no_reading_before_asof(self, dataset):
        engine = PlanningEngine(asof_date=date(2025, 1, 1))
        engine.ingest(dataset)
        assert engine.decision_for("A-100").decision == Decision.INSUFFICIENT_VISIBILITY

    def test_stale_reading(self, dataset):
        engine = PlanningEngine(PlanningConfig(max_stock_age_days=3), asof_date=ASOF)
        engine.ingest(dataset)
        assert engine.decision_for("A-100").decision == Decision.INSUFFICIENT_VISIBILITY

    def test_set_asof_date(self, engine):
        engine.set_asof_date(date(2025, 1, 1))
        assert engine.decision_for("A-100").decision == Decision.INSUFFICIENT_VISIBILITY


class TestEmptyDataset:
    def test_no_demand_columns(self):
        engine = PlanningEngine(asof_date=ASOF)
        result = engine.ingest(parse_stock_text("SKU,Description,2025-01-06\nA,x,5\n", reference_year=2025))
        assert result.is_empty
        assert result.report.no_data
        assert engine.decisions() == []
        with pytest.raises(KeyError):
            engine.decision_for("A")

    def test_empty_ingest_replaces_previous_state(self, engine):
        engine.ingest(parse_stock_text("SKU,2025-01-06\nA,5\n", reference_year=2025))
        assert engine.series == []


class TestLeadTimes:
    def test_vendor_override(self, engine):
        history = engine.get_series("A-100").history
        engine.set_vendor_lead_time("Acme", 8)
        record = engine.decision_for("A-100")
        assert record.lead_weeks == 8
        assert record.decision == Decision.ORDER_NOW
        assert engine.get_series("A-100").history is history

    def test_clear_override(self, engine):
        engine.set_vendor_lead_time("Acme", 8)
        engine.clear_vendor_lead_time("Acme")
        assert engine.decision_for("A-100").decision == Decision.WATCH
        assert engine.vendor_profiles["Acme"].source == "default"

    @pytest.mark.parametrize("weeks", [0, -1, float("nan")])
    def test_invalid_override(self, engine, weeks):
        with pytest.raises(ValueError):
            engine.set_vendor_lead_time("Acme", weeks)

    def test_edit_does_not_touch_published_objects(self, engine):
        before = engine.get_series("A-100")
        engine.set_vendor_lead_time("Acme", 8)
        assert before.decision.decision == Decision.WATCH

    def test_sku_override(self, engine):
        engine.set_sku_lead_time("A-100", 10)
        assert engine.decision_for("A-100").lead_weeks == 10
        engine.set_sku_lead_time("A-100", None)
        assert engine.decision_for("A-100").lead_weeks == 2

    def test_set_vendor(self, engine):
        engine.set_vendor_lead_time("Acme", 8)
        engine.set_vendor("A-100", "Bolt Co")
        assert engine.get_series("A-100").vendor == "Bolt Co"
        assert engine.decision_for("A-100").lead_weeks == 2

    def test_lead_column_samples_use_median(self):
        text = (
            "SKU,Vendor,Lead Time (weeks),2025-01-06,2025-01-13\n"
            "A,Acme,3,10,5\n"
            "B,Acme,5,10,5\n"
            "C,Acme,-1,10,5\n"
            "D,Acme,soon,10,5\n"
        )
        engine = PlanningEngine(asof_date=ASOF)
        engine.ingest(parse_stock_text(text, reference_year=2025))
        profile = engine.vendor_profiles["Acme"]
        assert profile.samples_weeks == [3.0, 5.0]
        assert profile.lead_weeks == pytest.approx(4.0)
        assert engine.decision_for("A").lead_weeks == pytest.approx(4.0)

    def test_purchase_orders(self, engine, dataset):
        engine.ingest_purchase_orders([
            PurchaseOrder(2, "A-100", "Acme", date(2025, 1, 6), date(2025, 1, 27)),
            PurchaseOrder(3, "A-100", "Acme", date(2025, 1, 20)),
        ])
        assert engine.decision_for("A-100").lead_weeks == pytest.approx(3.0)
        # Samples survive a stock re-ingest
        engine.ingest(dataset)
        assert engine.vendor_profiles["Acme"].samples_weeks == [pytest.approx(3.0)]


class TestPlanningWindow:
    def test_set_window(self, engine):
        engine.set_planning_window(30)
        assert engine.planning_window == 30

    @pytest.mark.parametrize("days", [0, -30, 30.5])
    def test_invalid_window(self, engine, days):
        with pytest.raises(ValueError):
            engine.set_planning_window(days)


class TestPlanningConfig:
    @pytest.mark.parametrize("overrides", [
        dict(default_lead_weeks=0),
        dict(planning_window_days=0),
        dict(smoothing_alpha=0),
        dict(trailing_periods=0),
        dict(volatility_threshold=0),
        dict(max_stock_age_days=-1),
    ])
    def test_invalid(self, overrides):
        with pytest.raises(ValueError):
            PlanningConfig(**overrides)
