"""
Frozen configuration settings for GMWB pricing.

All configuration is immutable (frozen dataclasses) to ensure reproducibility.
See: config/tolerances.py for tolerance derivations.
"""

import os
from dataclasses import dataclass

from gmwb_pricing.config.tolerances import (
    ITERATION_TOLERANCE,
    PENALTY_TOLERANCE,
    WITHDRAWAL_EPSILON,
)

# =============================================================================
# Contract Configuration
# =============================================================================

@dataclass(frozen=True)
class ContractDefaults:
    """
    Default GMWB contract and market terms. [T3: Assumptions]

    Attributes
    ----------
    expiry : float
        Contract maturity in years
    contract_rate : float
        Guaranteed withdrawal amount per year (G)
    penalty_rate : float
        Surrender charge on withdrawals above the allowance (kappa)
    hedging_fee : float
        Annual fee deducted from the investment account (alpha)
    risk_free_rate : float
        Continuously compounded risk-free rate
    volatility : float
        Lognormal volatility of the investment account
    """

    expiry: float = 10.0
    contract_rate: float = 10.0
    penalty_rate: float = 0.1
    hedging_fee: float = 0.0
    risk_free_rate: float = 0.05
    volatility: float = 0.20


# =============================================================================
# Grid Configuration
# =============================================================================

@dataclass(frozen=True)
class GridConfig:
    """
    Immutable solution and report grid layout.

    The investment axis is clustered around the initial premium (100) where
    the payoff kink sits; the withdrawal axis is uniform.

    Attributes
    ----------
    investment_ticks : tuple[float, ...]
        Non-uniform S axis
    withdrawal_range : tuple[float, float, float]
        (start, step, stop) of the W axis, inclusive
    report_range : tuple[float, float, float]
        (start, step, stop) of both axes of the report grid
    """

    investment_ticks: tuple[float, ...] = (
        0., 5., 10., 15., 20., 25.,
        30., 35., 40., 45.,
        50., 55., 60., 65., 70., 72.5, 75., 77.5, 80., 82., 84.,
        86., 88., 90., 91., 92., 93., 94., 95.,
        96., 97., 98., 99., 100.,
        101., 102., 103., 104., 105., 106.,
        107., 108., 109., 110., 112., 114.,
        116., 118., 120., 123., 126.,
        130., 135., 140., 145., 150., 160., 175., 200., 225.,
        250., 300., 500., 750., 1000.,
    )
    withdrawal_range: tuple[float, float, float] = (0.0, 2.0, 200.0)
    report_range: tuple[float, float, float] = (0.0, 25.0, 200.0)


# =============================================================================
# Numerics Configuration
# =============================================================================

def _resolve_linear_solver() -> str:
    """
    Resolve the default linear solver with environment variable override.

    Priority:
    1. GMWB_LINEAR_SOLVER environment variable (if set)
    2. Default: sparse LU ("lu")
    """
    return os.environ.get("GMWB_LINEAR_SOLVER", "lu").strip().lower()


@dataclass(frozen=True)
class NumericsConfig:
    """
    Immutable discretization configuration. [T1: Refinement study layout]

    Attributes
    ----------
    control_partition : int
        Number of control intervals n at level 0 (controls 0 : 1/n : 1)
    timesteps : int
        Number of timesteps N at level 0
    refinement_levels : int
        Number of refinement levels; each level doubles nodes, steps and controls
    linear_solver : str
        "lu" or "bicgstab". Override with GMWB_LINEAR_SOLVER environment variable.
    """

    control_partition: int = 10
    timesteps: int = 100
    refinement_levels: int = 2
    linear_solver: str = None  # type: ignore[assignment]  # Set in __post_init__

    def __post_init__(self) -> None:
        """Resolve linear_solver and validate counts."""
        # Frozen dataclass workaround: use object.__setattr__
        if self.linear_solver is None:
            object.__setattr__(self, "linear_solver", _resolve_linear_solver())
        if self.control_partition < 1:
            raise ValueError(
                f"CRITICAL: control_partition must be >= 1, got {self.control_partition}"
            )
        if self.timesteps < 1:
            raise ValueError(f"CRITICAL: timesteps must be >= 1, got {self.timesteps}")
        if self.refinement_levels < 1:
            raise ValueError(
                f"CRITICAL: refinement_levels must be >= 1, got {self.refinement_levels}"
            )
        if self.linear_solver not in ("lu", "bicgstab"):
            raise ValueError(
                f"CRITICAL: linear_solver must be 'lu' or 'bicgstab', got {self.linear_solver!r}"
            )


# =============================================================================
# Solver Configuration
# =============================================================================

@dataclass(frozen=True)
class SolverConfig:
    """
    Immutable iteration configuration.

    Attributes
    ----------
    withdrawal_epsilon : float
        Cash flow regularization and exhausted-guarantee threshold
    tolerance : float
        Fixed-point relative change tolerance
    scale : float
        Floor of the relative change denominator
    max_iterations : int
        Fixed-point iteration cap per timestep
    penalty_tolerance : float
        Inverse of the penalty weight
    require_stable_policy : bool
        Also require an unchanged policy before declaring convergence
    halt_on_nonconvergence : bool
        Raise ConvergenceError when the cap is hit (else log a warning)
    """

    withdrawal_epsilon: float = WITHDRAWAL_EPSILON
    tolerance: float = ITERATION_TOLERANCE
    scale: float = 1.0
    max_iterations: int = 100
    penalty_tolerance: float = PENALTY_TOLERANCE
    require_stable_policy: bool = False
    halt_on_nonconvergence: bool = True  # [T1]


# =============================================================================
# Validation Configuration
# =============================================================================

@dataclass(frozen=True)
class ValidationConfig:
    """
    Immutable validation configuration.

    Attributes
    ----------
    halt_on_failure : bool
        Whether a HALT gate raises from the pricer
    max_mean_iterations : float
        Mean inner iterations above which the budget gate warns
    """

    halt_on_failure: bool = True  # [T1]
    max_mean_iterations: float = 20.0  # [T2]
    negative_value_tolerance: float = 1e-8


# =============================================================================
# Master Configuration
# =============================================================================

@dataclass(frozen=True)
class Settings:
    """
    Master frozen configuration combining all sub-configs.

    Usage
    -----
    >>> from gmwb_pricing.config.settings import SETTINGS
    >>> SETTINGS.solver.withdrawal_epsilon
    1e-12
    """

    contract: ContractDefaults = ContractDefaults()
    grid: GridConfig = GridConfig()
    numerics: NumericsConfig = NumericsConfig()
    solver: SolverConfig = SolverConfig()
    validation: ValidationConfig = ValidationConfig()


# Singleton instance - import this
SETTINGS = Settings()
