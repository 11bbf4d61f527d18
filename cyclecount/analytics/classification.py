"""
SKU Classification: movement class and ABC volume tier.

Movement class (per SKU, pure):
  Dead          total quantity moved is 0
  Low-Movement  moved something, but in at most 2 periods
  Active        otherwise

ABC tier (cross-SKU, takes the full population):
  Only SKUs with positive usage are ranked; the others are C.
  The cut policy depends on how skewed the population is, measured by the
  coefficient of variation (CV) of per-SKU usage:
    CV >= 1.0  Pareto cut on cumulative usage share (A <= 80 %, B <= 95 %)
               the top-ranked SKU is always A
    CV <  1.0  rank cut (top 20 % A, next 30 % B, remaining 50 % C)
  Ordering: usage desc, then 90-day adjusted rate desc, then SKU asc.

Design constraints:
  - Pure functions: no I/O, no datetime.now(), deterministic given inputs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Sequence

import numpy as np

from cyclecount.domain.models import AbcTier, Classification, SkuSeries

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

LOW_MOVEMENT_MAX_PERIODS = 2

PARETO_CV_CUTOFF = 1.0      # CV at or above this → Pareto cut
ABC_A_THRESHOLD = 0.80      # cumulative share up to 80 % = A
ABC_B_THRESHOLD = 0.95      # 80-95 % = B, rest = C
RANK_A_PERCENT = 20         # rank cut: top 20 % = A
RANK_B_PERCENT = 30         # next 30 % = B

_SHARE_TOLERANCE = 1e-9


# ---------------------------------------------------------------------------
# Movement classification
# ---------------------------------------------------------------------------

def classify_movement(total_qty: float, positive_periods: int) -> Classification:
    """Movement class from total quantity and the count of periods with usage."""
    if total_qty == 0:
        return Classification.DEAD
    if positive_periods <= LOW_MOVEMENT_MAX_PERIODS:
        return Classification.LOW_MOVEMENT
    return Classification.ACTIVE


def usage_label(classification: Classification) -> str:
    """Plain-language label for management summaries."""
    if classification == Classification.ACTIVE:
        return "Regular mover"
    if classification == Classification.LOW_MOVEMENT:
        return "Slow mover"
    return "No recent usage"


# ---------------------------------------------------------------------------
# ABC tiering
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AbcResult:
    """
    Outcome of one ABC pass.

    Attributes:
        tiers: sku → tier, for every SKU passed in
        policy: "pareto", "rank" or "none" (no SKU with positive usage)
        cv: coefficient of variation of the positive-usage population
        cumulative_shares: sku → cumulative usage share at that SKU's rank
    """
    tiers: Dict[str, AbcTier]
    policy: str
    cv: float
    cumulative_shares: Dict[str, float] = field(default_factory=dict)


def _rank_tier(position: int, population: int) -> AbcTier:
    # position / population < share, in integer arithmetic
    if position * 100 < RANK_A_PERCENT * population:
        return AbcTier.A
    if position * 100 < (RANK_A_PERCENT + RANK_B_PERCENT) * population:
        return AbcTier.B
    return AbcTier.C


def _pareto_tier(cumulative_share: float) -> AbcTier:
    if cumulative_share <= ABC_A_THRESHOLD + _SHARE_TOLERANCE:
        return AbcTier.A
    if cumulative_share <= ABC_B_THRESHOLD + _SHARE_TOLERANCE:
        return AbcTier.B
    return AbcTier.C


def assign_abc_tiers(
    series: Sequence[SkuSeries],
    usage_of: Callable[[SkuSeries], float],
) -> AbcResult:
    """
    Assign ABC tiers across a SKU population.

    Args:
        series: All SKUs of the dataset
        usage_of: Average daily usage of a SKU (e.g. the planning-window rate)

    Returns:
        AbcResult covering every SKU in ``series``
    """
    tiers: Dict[str, AbcTier] = {s.sku: AbcTier.C for s in series}

    ranked: List[tuple] = []
    for s in series:
        usage = float(usage_of(s))
        if usage > 0:
            ranked.append((usage, s))
    if not ranked:
        return AbcResult(tiers=tiers, policy="none", cv=0.0)

    ranked.sort(key=lambda item: (-item[0], -item[1].window90.adjusted_rate, item[1].sku))

    usages = np.array([usage for usage, _ in ranked], dtype=float)
    total = float(usages.sum())
    mean = float(usages.mean())
    cv = float(usages.std() / mean) if mean > 0 else 0.0
    policy = "pareto" if cv >= PARETO_CV_CUTOFF else "rank"

    cumulative_shares: Dict[str, float] = {}
    cumulative = 0.0
    for position, (usage, s) in enumerate(ranked):
        cumulative += usage / total
        cumulative_shares[s.sku] = cumulative
        if policy == "pareto":
            # the top mover is always A, even when its own share passes the A cut
            tiers[s.sku] = AbcTier.A if position == 0 else _pareto_tier(cumulative)
        else:
            tiers[s.sku] = _rank_tier(position, len(ranked))

    return AbcResult(tiers=tiers, policy=policy, cv=cv, cumulative_shares=cumulative_shares)
