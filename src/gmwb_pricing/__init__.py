"""
gmwb-pricing: Impulse-control PDE pricing of Guaranteed Minimum Withdrawal Benefits.

Quick Start
-----------
>>> from gmwb_pricing import GMWBPricer, GMWBContract, MarketParams
>>> pricer = GMWBPricer(market=MarketParams(risk_free_rate=0.05, volatility=0.20))
>>> result = pricer.price(GMWBContract(contract_rate=10.0, penalty_rate=0.1))
>>> len(result.convergence) == len(result.levels)
True

Version: 0.1.0
"""

__version__ = "0.1.0"

# =============================================================================
# Products - Primary API
# =============================================================================
from gmwb_pricing.products.gmwb import (
    GMWBContract,
    GMWBPricer,
    GMWBPricingResult,
    MarketParams,
)

# =============================================================================
# Grid and Operators
# =============================================================================
from gmwb_pricing.grid import Axis, RectilinearGrid2
from gmwb_pricing.operators import BlackScholes, ControlField, Withdrawal

# =============================================================================
# Solvers
# =============================================================================
from gmwb_pricing.solvers import (
    ConvergenceError,
    MinPolicyIteration,
    PenaltyMethod,
    ReverseBDF2,
    ReverseConstantStepper,
    ToleranceIteration,
)

# =============================================================================
# Configuration
# =============================================================================
from gmwb_pricing.config.settings import SETTINGS

__all__ = [
    # Version
    "__version__",
    # Products
    "GMWBPricer",
    "GMWBContract",
    "GMWBPricingResult",
    "MarketParams",
    # Grid and Operators
    "Axis",
    "RectilinearGrid2",
    "Withdrawal",
    "BlackScholes",
    "ControlField",
    # Solvers
    "MinPolicyIteration",
    "PenaltyMethod",
    "ReverseBDF2",
    "ReverseConstantStepper",
    "ToleranceIteration",
    "ConvergenceError",
    # Config
    "SETTINGS",
]
