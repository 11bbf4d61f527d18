"""
Tests for the demand estimator dispatcher.
"""
import pytest

from cyclecount.domain.demand_builder import (
    classify_signal,
    coefficient_of_variation,
    estimate_demand,
    ewma,
)
from cyclecount.domain.models import EstimatorType


class TestHelpers:
    def test_ewma_seeded_with_first_value(self):
        assert ewma([5]) == pytest.approx(5.0)
        assert ewma([2, 4], alpha=0.4) == pytest.approx(2.8)

    def test_ewma_empty(self):
        assert ewma([]) == 0.0

    def test_ewma_rejects_bad_alpha(self):
        with pytest.raises(ValueError):
            ewma([1, 2], alpha=0)

    def test_cv(self):
        assert coefficient_of_variation([1, 3]) == pytest.approx(0.5)
        assert coefficient_of_variation([4, 4, 4]) == 0.0

    def test_cv_zero_mean(self):
        assert coefficient_of_variation([0, 0]) == 0.0
        assert coefficient_of_variation([]) == 0.0

    def test_custom_threshold(self):
        estimator, _, cv = classify_signal([1, 3], volatility_threshold=0.4)
        assert estimator == EstimatorType.VOLATILE
        assert cv == pytest.approx(0.5)


class TestEstimateDemand:
    def test_stable(self):
        estimate = estimate_demand([2.0] * 6)
        assert estimate.estimator == EstimatorType.STABLE
        assert estimate.rate == pytest.approx(2.0)
        assert estimate.n_periods == 6

    def test_intermittent_uses_croston(self):
        estimate = estimate_demand([0, 0, 3, 0, 0, 0, 6])
        assert estimate.estimator == EstimatorType.INTERMITTENT
        assert estimate.zero_fraction == pytest.approx(5 / 7)
        assert estimate.rate == pytest.approx(4.2 / 3.4)

    def test_half_zero_is_not_intermittent(self):
        estimate = estimate_demand([0, 2, 0, 2])
        assert estimate.estimator == EstimatorType.STABLE
        assert estimate.rate == pytest.approx(1.088)

    def test_volatile(self):
        estimate = estimate_demand([0.1, 0.1, 0.1, 10.0])
        assert estimate.estimator == EstimatorType.VOLATILE
        assert estimate.cv > 1.5
        assert estimate.rate == pytest.approx(4.06)

    def test_only_trailing_periods_used(self):
        estimate = estimate_demand([100.0] * 5 + [1.0] * 12, trailing_periods=12)
        assert estimate.n_periods == 12
        assert estimate.rate == pytest.approx(1.0)

    def test_all_zero(self):
        estimate = estimate_demand([0, 0, 0])
        assert estimate.estimator == EstimatorType.INTERMITTENT
        assert estimate.rate == 0.0

    def test_empty(self):
        estimate = estimate_demand([])
        assert estimate.estimator == EstimatorType.STABLE
        assert estimate.rate == 0.0
        assert estimate.n_periods == 0

    def test_invalid_trailing_periods(self):
        with pytest.raises(ValueError):
            estimate_demand([1.0], trailing_periods=0)
