"""Survival: funding snapshots and capability tiers."""

from automaton.survival.funding import (
    CreditsFundingSource,
    FinancialSnapshot,
    FundingSource,
    StaticFundingSource,
    create_funding_source,
)
from automaton.survival.tiers import (
    SurvivalTier,
    apply_tier_restrictions,
    can_run_inference,
    determine_tier,
    get_model_for_tier,
    tier_for_usd,
)

__all__ = [
    "CreditsFundingSource",
    "FinancialSnapshot",
    "FundingSource",
    "StaticFundingSource",
    "create_funding_source",
    "SurvivalTier",
    "apply_tier_restrictions",
    "can_run_inference",
    "determine_tier",
    "get_model_for_tier",
    "tier_for_usd",
]
