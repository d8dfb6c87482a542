"""
SDK for falcon-cost.

Provides programmatic access to cost estimation and the history ledger.
"""

from ..storage.repository import add_generation, get_last_generation, load_history
from .fal_pricing import FalPricingClient, FixturePricingSource, PricingSourceError
from .tracker import (
    CostTracker,
    estimate_background_removal_cost,
    estimate_generation_cost,
    estimate_upscale_cost,
)

__all__ = [
    "CostTracker",
    "FalPricingClient",
    "FixturePricingSource",
    "PricingSourceError",
    "add_generation",
    "estimate_background_removal_cost",
    "estimate_generation_cost",
    "estimate_upscale_cost",
    "get_last_generation",
    "load_history",
]
