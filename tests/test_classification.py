"""
Tests for movement classification and ABC tiering.
"""
import pytest

from cyclecount.analytics.classification import (
    assign_abc_tiers,
    classify_movement,
    usage_label,
)
from cyclecount.domain.models import AbcTier, Classification, SkuSeries, WindowStat


def make_series(sku, rate90):
    return SkuSeries(sku=sku, window90=WindowStat.from_totals(rate90 * 10, 10))


def by_window90(series):
    return series.window90.adjusted_rate


class TestClassifyMovement:
    def test_dead(self):
        assert classify_movement(0, 0) == Classification.DEAD

    def test_low_movement(self):
        assert classify_movement(10, 2) == Classification.LOW_MOVEMENT
        assert classify_movement(10, 1) == Classification.LOW_MOVEMENT

    def test_active(self):
        assert classify_movement(10, 5) == Classification.ACTIVE
        assert classify_movement(10, 3) == Classification.ACTIVE

    def test_labels(self):
        assert usage_label(Classification.ACTIVE) == "Regular mover"
        assert usage_label(Classification.DEAD) == "No recent usage"


class TestParetoTiers:
    """Skewed population (CV >= 1) uses cumulative-share cuts."""

    @pytest.fixture
    def population(self):
        usages = [100, 20, 10, 5, 3, 2, 1, 1, 1, 1]
        return [make_series(f"SKU-{i:02d}", u) for i, u in enumerate(usages)]

    def test_policy_selected(self, population):
        result = assign_abc_tiers(population, by_window90)
        assert result.policy == "pareto"
        assert result.cv >= 1.0

    def test_tiers_follow_cumulative_share(self, population):
        result = assign_abc_tiers(population, by_window90)
        for sku, share in result.cumulative_shares.items():
            expected = AbcTier.A if share <= 0.8 else AbcTier.B if share <= 0.95 else AbcTier.C
            assert result.tiers[sku] == expected
        assert result.tiers["SKU-00"] == AbcTier.A
        assert [result.tiers[f"SKU-0{i}"] for i in (1, 2, 3)] == [AbcTier.B] * 3
        assert result.tiers["SKU-04"] == AbcTier.C

    def test_dominant_sku_is_always_a(self):
        # 100 / 109 = 0.917 of total usage, past the A cut on its own
        population = [make_series("BIG", 100)] + [make_series(f"S{i}", 1) for i in range(9)]
        result = assign_abc_tiers(population, by_window90)
        assert result.policy == "pareto"
        assert result.cumulative_shares["BIG"] == pytest.approx(100 / 109)
        assert result.tiers["BIG"] == AbcTier.A
        assert sum(1 for tier in result.tiers.values() if tier == AbcTier.A) == 1
        assert result.tiers["S0"] == AbcTier.B
        assert result.tiers["S8"] == AbcTier.C

    def test_shares_sum_to_one(self, population):
        result = assign_abc_tiers(population, by_window90)
        shares = list(result.cumulative_shares.values())
        assert max(shares) == pytest.approx(1.0)
        assert all(share <= 1.0 + 1e-9 for share in shares)


class TestRankTiers:
    """Flat population (CV < 1) uses a 20/30/50 rank cut."""

    def test_rank_cut(self):
        population = [make_series(f"SKU-{u}", u) for u in range(10, 20)]
        result = assign_abc_tiers(population, by_window90)
        assert result.policy == "rank"
        assert [result.tiers[f"SKU-{u}"] for u in (19, 18)] == [AbcTier.A] * 2
        assert [result.tiers[f"SKU-{u}"] for u in (17, 16, 15)] == [AbcTier.B] * 3
        assert all(result.tiers[f"SKU-{u}"] == AbcTier.C for u in range(10, 15))

    def test_tie_break_by_window90_then_sku(self):
        population = [make_series(f"A{i}", 9.0 if i == 3 else 1.0) for i in range(1, 6)]
        result = assign_abc_tiers(population, lambda s: 5.0)
        assert result.tiers == {
            "A3": AbcTier.A,
            "A1": AbcTier.B,
            "A2": AbcTier.B,
            "A4": AbcTier.C,
            "A5": AbcTier.C,
        }


class TestZeroUsage:
    def test_zero_usage_is_c(self):
        population = [make_series("MOVER", 5.0), make_series("IDLE", 0.0)]
        result = assign_abc_tiers(population, by_window90)
        assert result.tiers["IDLE"] == AbcTier.C
        assert "IDLE" not in result.cumulative_shares

    def test_no_usage_at_all(self):
        result = assign_abc_tiers([make_series("IDLE", 0.0)], by_window90)
        assert result.policy == "none"
        assert result.tiers == {"IDLE": AbcTier.C}

    def test_empty_population(self):
        assert assign_abc_tiers([], by_window90).tiers == {}
