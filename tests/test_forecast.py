"""
Tests for the moving-average forecast, forecast error and recent usage.
"""
from datetime import date, timedelta

import pytest

from cyclecount.domain.models import Classification, ConsumptionEvent, SkuSeries
from cyclecount.forecast import (
    forecast_error_percent,
    moving_average_forecast,
    recent_usage,
    series_forecast,
)


def make_history(*quantities):
    """One event per Monday, five working days each."""
    start = date(2025, 1, 13)
    return tuple(
        ConsumptionEvent(start + timedelta(weeks=i), float(q), 5, q / 5)
        for i, q in enumerate(quantities)
    )


class TestMovingAverage:
    def test_last_three_periods(self):
        assert moving_average_forecast(make_history(100, 4, 6, 8)) == [6.0] * 4

    def test_short_history_uses_what_exists(self):
        assert moving_average_forecast(make_history(3, 5), horizon=2) == [4.0, 4.0]

    def test_empty_history(self):
        assert moving_average_forecast(()) == []

    def test_zero_usage_is_flat_zero(self):
        assert moving_average_forecast(make_history(0, 0, 0)) == [0.0] * 4

    @pytest.mark.parametrize("horizon,window", [(-1, 3), (4, 0)])
    def test_invalid_parameters(self, horizon, window):
        with pytest.raises(ValueError):
            moving_average_forecast(make_history(1, 2, 3), horizon=horizon, window=window)


class TestForecastError:
    def test_naive_one_step(self):
        # 4->6: 2/6, 6->8: 2/8, 8->0 skipped, 0->2: 2/2
        error = forecast_error_percent(make_history(4, 6, 8, 0, 2))
        assert error == pytest.approx((2 / 6 + 2 / 8 + 1.0) / 3 * 100)

    def test_perfect_flat_history(self):
        assert forecast_error_percent(make_history(5, 5, 5)) == pytest.approx(0.0)

    def test_needs_three_periods(self):
        assert forecast_error_percent(make_history(4, 6)) is None

    def test_nothing_scored(self):
        assert forecast_error_percent(make_history(5, 0, 0)) is None


class TestRecentUsage:
    def test_last_four_periods(self):
        assert recent_usage(make_history(50, 1, 2, 3, 4)) == pytest.approx(10.0)

    def test_short_history(self):
        assert recent_usage(make_history(7)) == pytest.approx(7.0)
        assert recent_usage(()) == 0


class TestSeriesForecast:
    def test_active_sku_gets_forecast(self):
        series = SkuSeries(sku="A", history=make_history(4, 6, 8), classification=Classification.ACTIVE)
        result = series_forecast(series)
        assert result["forecast"] == [6.0] * 4
        assert result["recent_usage"] == pytest.approx(18.0)
        assert result["forecast_error_pct"] is not None

    def test_low_movement_sku_has_no_forecast(self):
        series = SkuSeries(sku="B", history=make_history(0, 9, 0), classification=Classification.LOW_MOVEMENT)
        result = series_forecast(series)
        assert result["forecast"] == []
        assert result["recent_usage"] == pytest.approx(9.0)
