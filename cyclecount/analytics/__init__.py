"""Analytics package: cross-SKU classification."""

from .classification import (
    AbcResult,
    assign_abc_tiers,
    classify_movement,
    usage_label,
    ABC_A_THRESHOLD,
    ABC_B_THRESHOLD,
    PARETO_CV_CUTOFF,
)

__all__ = [
    "AbcResult",
    "assign_abc_tiers",
    "classify_movement",
    "usage_label",
    "ABC_A_THRESHOLD",
    "ABC_B_THRESHOLD",
    "PARETO_CV_CUTOFF",
]
