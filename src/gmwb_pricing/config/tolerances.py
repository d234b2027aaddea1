"""
Centralized tolerance framework for GMWB pricing.

All tolerances are derived from precision requirements, not ad hoc tuning.

Tolerance Tiers:
    Tier 1 (Analytical): Machine-precision achievable, deterministic assembly
    Tier 2 (Iterative): Fixed-point and penalty iteration bounds
    Tier 3 (Discretization): Grid/timestep refinement error

References:
    [T1] Higham (2002) "Accuracy and Stability of Numerical Algorithms"
    [T1] Forsyth & Labahn (2007) "Numerical methods for controlled HJB PDEs in finance"
    [T1] Azimzadeh & Forsyth (2015) "The existence of optimal bang-bang controls for GMxB contracts"
"""

from typing import Final

# =============================================================================
# Tier 1: Analytical Tolerances (Deterministic)
# =============================================================================

#: Regularization of the withdrawal cash flow. Doubles as the threshold below
#: which the guarantee base W is treated as exhausted.
WITHDRAWAL_EPSILON: Final[float] = 1e-12

#: Transition weights are convex combination coefficients: each in [0, 1],
#: summing to 1 within accumulated float64 error
TRANSITION_WEIGHT_TOLERANCE: Final[float] = 1e-9

#: Cash flow continuity at the penalty-free boundary lambda* = min(Gdt/W, 1)
CASHFLOW_CONTINUITY_TOLERANCE: Final[float] = 1e-9

#: Invariants such as V(S, W=0) = S that the scheme preserves exactly
ANTI_PATTERN_TOLERANCE: Final[float] = 1e-10


# =============================================================================
# Tier 2: Iterative Tolerances
# =============================================================================

#: Relative change between successive fixed-point iterates
#: Criterion: max_i |V_new - V_old| / max(scale, |V_new|)
ITERATION_TOLERANCE: Final[float] = 1e-6

#: Penalty method: large = 1 / PENALTY_TOLERANCE
#: The constraint V >= MV + b is enforced to O(PENALTY_TOLERANCE)
PENALTY_TOLERANCE: Final[float] = 1e-6

#: Relative residual for iterative linear solvers (BiCGSTAB)
LINEAR_SOLVER_TOLERANCE: Final[float] = 1e-10


# =============================================================================
# Tier 3: Discretization Tolerances
# =============================================================================

#: Coarse-grid comparisons (few timesteps, few nodes): constraint residuals,
#: solver cross-checks
COARSE_GRID_TOLERANCE: Final[float] = 1e-2

#: Refinement study: relative growth allowed from one level change to the next
REFINEMENT_TOLERANCE: Final[float] = 0.05


# =============================================================================
# Tolerance Registry (For Dynamic Access)
# =============================================================================

TOLERANCE_REGISTRY: dict[str, float] = {
    # Tier 1: Analytical
    "withdrawal_epsilon": WITHDRAWAL_EPSILON,
    "transition_weight": TRANSITION_WEIGHT_TOLERANCE,
    "cashflow_continuity": CASHFLOW_CONTINUITY_TOLERANCE,
    "anti_pattern": ANTI_PATTERN_TOLERANCE,
    # Tier 2: Iterative
    "iteration": ITERATION_TOLERANCE,
    "penalty": PENALTY_TOLERANCE,
    "linear_solver": LINEAR_SOLVER_TOLERANCE,
    # Tier 3: Discretization
    "coarse_grid": COARSE_GRID_TOLERANCE,
    "refinement": REFINEMENT_TOLERANCE,
}


def get_tolerance(name: str) -> float:
    """
    Get tolerance by name from registry.

    Parameters
    ----------
    name : str
        Tolerance name (see TOLERANCE_REGISTRY keys)

    Returns
    -------
    float
        Tolerance value

    Raises
    ------
    KeyError
        If tolerance name not found
    """
    if name not in TOLERANCE_REGISTRY:
        available = ", ".join(sorted(TOLERANCE_REGISTRY.keys()))
        raise KeyError(f"Unknown tolerance '{name}'. Available: {available}")
    return TOLERANCE_REGISTRY[name]
