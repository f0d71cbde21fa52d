"""Survival tiers: map a financial snapshot to a capability level.

Tiers are totally ordered ``dead < critical < low_compute < normal`` and
the mapping is monotonic in the snapshot's USD total.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from loguru import logger

from automaton.survival.funding import FinancialSnapshot

if TYPE_CHECKING:
    from automaton.providers.base import LLMProvider
    from automaton.state.database import StateStore

# USD thresholds (lower bound of each tier, exclusive of the tier below)
DEAD_FLOOR_USD = 0.01
CRITICAL_BELOW_USD = 1.0
LOW_COMPUTE_BELOW_USD = 5.0


class SurvivalTier(str, Enum):
    DEAD = "dead"
    CRITICAL = "critical"
    LOW_COMPUTE = "low_compute"
    NORMAL = "normal"

    @property
    def rank(self) -> int:
        return _RANK[self]

    # str already orders lexically, so all four comparisons are overridden.
    def __lt__(self, other: object) -> bool:
        if not isinstance(other, SurvivalTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, SurvivalTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, SurvivalTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, SurvivalTier):
            return NotImplemented
        return self.rank >= other.rank


_RANK = {
    SurvivalTier.DEAD: 0,
    SurvivalTier.CRITICAL: 1,
    SurvivalTier.LOW_COMPUTE: 2,
    SurvivalTier.NORMAL: 3,
}


def tier_for_usd(total_usd: float) -> SurvivalTier:
    """Total function over all floats; negatives and NaN count as dead."""
    if not total_usd >= DEAD_FLOOR_USD:
        return SurvivalTier.DEAD
    if total_usd < CRITICAL_BELOW_USD:
        return SurvivalTier.CRITICAL
    if total_usd < LOW_COMPUTE_BELOW_USD:
        return SurvivalTier.LOW_COMPUTE
    return SurvivalTier.NORMAL


def determine_tier(snapshot: FinancialSnapshot) -> SurvivalTier:
    return tier_for_usd(snapshot.total_usd)


def get_model_for_tier(tier: SurvivalTier, primary_model: str, fallback_model: str) -> str:
    """Normal runs the primary model; every degraded tier gets the fallback."""
    return primary_model if tier == SurvivalTier.NORMAL else fallback_model


def can_run_inference(tier: SurvivalTier) -> bool:
    return tier != SurvivalTier.DEAD


def apply_tier_restrictions(
    tier: SurvivalTier,
    provider: "LLMProvider",
    store: "StateStore",
) -> str:
    """Switch the provider to the tier's model and record the tier.

    Returns the model the cycle should use.
    """
    model = get_model_for_tier(tier, provider.default_model, provider.low_compute_model)
    low = tier != SurvivalTier.NORMAL
    provider.set_low_compute_mode(low)
    store.set_kv("current_tier", tier.value)
    if low:
        logger.warning(f"Survival tier {tier.value}: using low-compute model {model}")
    return model
