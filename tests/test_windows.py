"""
Tests for trailing-window usage aggregation.
"""
from datetime import date

import pytest

from cyclecount.domain.models import Classification, ConsumptionEvent, SkuSeries
from cyclecount.domain.windows import (
    compute_window,
    compute_windows,
    planning_usage,
    usage_pattern,
)


def event(iso, moved, working_days):
    rate = moved / working_days if working_days else 0.0
    return ConsumptionEvent(
        date=date.fromisoformat(iso),
        quantity_moved=moved,
        working_days=working_days,
        rate_per_working_day=rate,
    )


@pytest.fixture
def history():
    return (
        event("2025-01-01", 10, 5),
        event("2025-02-15", 20, 10),
        event("2025-03-20", 30, 5),
    )


def series_from(history, classification=Classification.ACTIVE):
    w30, w60, w90 = compute_windows(history)
    return SkuSeries(
        sku="SKU-1",
        history=history,
        total_qty=sum(e.quantity_moved for e in history),
        periods=len(history),
        positive_periods=sum(1 for e in history if e.quantity_moved > 0),
        classification=classification,
        window30=w30,
        window60=w60,
        window90=w90,
    )


class TestComputeWindow:
    def test_thirty_days(self, history):
        stat = compute_window(history, 30)
        assert stat.raw_total == 30
        assert stat.working_days_total == 5
        assert stat.adjusted_rate == pytest.approx(6.0)

    def test_sixty_days(self, history):
        stat = compute_window(history, 60)
        assert stat.raw_total == 50
        assert stat.working_days_total == 15
        assert stat.adjusted_rate == pytest.approx(50 / 15)

    def test_ninety_days_covers_all(self, history):
        stat = compute_window(history, 90)
        assert stat.raw_total == 60
        assert stat.adjusted_rate == pytest.approx(3.0)

    def test_start_boundary_inclusive(self):
        """Anchor 2025-03-20: a 30-day window starts on 2025-02-19."""
        inside = (event("2025-02-19", 4, 2), event("2025-03-20", 6, 3))
        outside = (event("2025-02-18", 4, 2), event("2025-03-20", 6, 3))
        assert compute_window(inside, 30).raw_total == 10
        assert compute_window(outside, 30).raw_total == 6

    def test_anchor_is_last_event_not_today(self, history):
        assert compute_window(history, 30) == compute_window(history, 30, anchor=date(2025, 3, 20))

    def test_zero_working_days_gives_zero_rate(self):
        stat = compute_window((event("2025-01-12", 5, 0),), 30)
        assert stat.raw_total == 5
        assert stat.working_days_total == 0
        assert stat.adjusted_rate == 0.0

    def test_empty_history(self):
        stat = compute_window((), 90)
        assert stat.raw_total == 0
        assert stat.adjusted_rate == 0.0

    def test_non_positive_length_rejected(self, history):
        with pytest.raises(ValueError):
            compute_window(history, 0)


class TestPlanningUsage:
    def test_uses_precomputed_window(self, history):
        series = series_from(history)
        assert planning_usage(series, 30) == pytest.approx(6.0)
        assert planning_usage(series, 90) == pytest.approx(3.0)

    def test_other_length_uses_whole_history(self, history):
        series = series_from(history)
        assert planning_usage(series, 45) == pytest.approx(60 / 20)


class TestUsagePattern:
    def test_increasing(self, history):
        assert usage_pattern(series_from(history)).startswith("Demand increasing")

    def test_slowing(self):
        slowing = (event("2025-01-10", 60, 5), event("2025-02-10", 60, 5), event("2025-03-20", 5, 5))
        assert usage_pattern(series_from(slowing)).startswith("Demand slowing")

    def test_dead(self):
        assert usage_pattern(series_from((), Classification.DEAD)) == "No recent usage"
