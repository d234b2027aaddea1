"""
Validation framework for GMWB pricing results.

Provides HALT/WARN/PASS gates:
- FiniteValuesGate: No NaN/inf in the solution
- NonNegativeValuesGate: Contract value >= 0
- PresentValueBoundsGate: V <= spot + guarantee
- IterationBudgetGate: Inner iterations per timestep stay small
- RefinementConvergenceGate: Refinement changes shrink
"""

from gmwb_pricing.validation.gates import (
    FiniteValuesGate,
    GateResult,
    GateStatus,
    IterationBudgetGate,
    NonNegativeValuesGate,
    PresentValueBoundsGate,
    RefinementConvergenceGate,
    ValidationEngine,
    ValidationGate,
    ValidationReport,
)

__all__ = [
    "GateStatus",
    "GateResult",
    "ValidationReport",
    "ValidationGate",
    "FiniteValuesGate",
    "NonNegativeValuesGate",
    "PresentValueBoundsGate",
    "IterationBudgetGate",
    "RefinementConvergenceGate",
    "ValidationEngine",
]
