"""
Centralized pytest fixtures for the gmwb-pricing test suite.

Fixture Categories:
1. Tolerance tiers - shared precision thresholds
2. Grids - small non-uniform (S, W) grids that keep solves fast
3. Operators - withdrawal impulse and diffusion on the small grid
4. Contracts - default and coarse pricing setups
"""

from dataclasses import dataclass

import numpy as np
import pytest

from gmwb_pricing.config.settings import NumericsConfig
from gmwb_pricing.config.tolerances import (
    ANTI_PATTERN_TOLERANCE,
    COARSE_GRID_TOLERANCE,
    TRANSITION_WEIGHT_TOLERANCE,
)
from gmwb_pricing.grid import Axis, RectilinearGrid2
from gmwb_pricing.operators.withdrawal import Withdrawal
from gmwb_pricing.products.gmwb import GMWBContract, MarketParams

# =============================================================================
# TOLERANCE TIERS
# =============================================================================

@dataclass(frozen=True)
class ToleranceTiers:
    """
    Tiered tolerance framework for different test types.

    Derived from precision requirements, not ad hoc.
    See: src/gmwb_pricing/config/tolerances.py
    """

    # Anti-pattern tests: Very tight (fundamental violations)
    anti_pattern: float = ANTI_PATTERN_TOLERANCE

    # Assembly of weights and cash flows
    assembly: float = TRANSITION_WEIGHT_TOLERANCE

    # Iterative solves (penalty weight 1e6)
    iterative: float = 1e-4

    # Coarse-grid pricing: discretization dominated
    coarse_grid: float = COARSE_GRID_TOLERANCE


TOLERANCES = ToleranceTiers()


@pytest.fixture(scope="session")
def tolerances() -> ToleranceTiers:
    """Provide tiered tolerance settings for all tests."""
    return TOLERANCES


# =============================================================================
# GRIDS
# =============================================================================

#: Non-uniform S axis; contains 0, 75 and 100 so textbook states land on nodes
SMALL_S_TICKS = (0.0, 25.0, 50.0, 75.0, 100.0, 125.0, 150.0, 200.0, 300.0, 500.0)


@pytest.fixture
def small_grid() -> RectilinearGrid2:
    """10 x 11 grid: S non-uniform up to 500, W uniform 0:10:100."""
    return RectilinearGrid2(Axis(SMALL_S_TICKS), Axis.range(0.0, 10.0, 100.0))


@pytest.fixture
def coarse_grid() -> RectilinearGrid2:
    """10 x 5 pricing grid, W uniform 0:25:100."""
    return RectilinearGrid2(Axis(SMALL_S_TICKS), Axis.range(0.0, 25.0, 100.0))


# =============================================================================
# OPERATORS
# =============================================================================

@pytest.fixture
def impulse(small_grid: RectilinearGrid2) -> Withdrawal:
    """Withdrawal with Gdt = 5 and kappa = 0.1 on the small grid."""
    return Withdrawal(small_grid, contract_rate=5.0, penalty_rate=0.1)


# =============================================================================
# CONTRACTS
# =============================================================================

@pytest.fixture
def default_contract() -> GMWBContract:
    """T = 10, G = 10, kappa = 0.1, no fee."""
    return GMWBContract()


@pytest.fixture
def market() -> MarketParams:
    """r = 5%, sigma = 20%."""
    return MarketParams()


@pytest.fixture
def coarse_numerics() -> NumericsConfig:
    """One level, 10 steps, 5 controls, sparse LU."""
    return NumericsConfig(
        control_partition=4,
        timesteps=10,
        refinement_levels=1,
        linear_solver="lu",
    )


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded generator for reproducible random controls."""
    return np.random.default_rng(42)
