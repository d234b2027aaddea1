"""
Product pricers for withdrawal guarantees.

Provides:
- GMWBPricer: Impulse-control PDE pricing with a refinement study
- GMWBContract / MarketParams: Contract and market inputs
"""

from gmwb_pricing.products.base import BasePricer, PricingResult
from gmwb_pricing.products.gmwb import (
    GMWBContract,
    GMWBPricer,
    GMWBPricingResult,
    LevelResult,
    MarketParams,
    convergence_table,
    default_grid,
    report_grid,
)

__all__ = [
    "BasePricer",
    "PricingResult",
    "GMWBContract",
    "GMWBPricer",
    "GMWBPricingResult",
    "LevelResult",
    "MarketParams",
    "convergence_table",
    "default_grid",
    "report_grid",
]
