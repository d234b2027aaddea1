"""
Solve tree for the GMWB quasi-variational inequality.

Root to leaves:
    ReverseConstantStepper -> ToleranceIteration
        -> PenaltyMethod(ReverseBDF2(BlackScholes), MinPolicyIteration(Withdrawal))
        -> LinearSolver
"""

from .iteration import ConvergenceError, ToleranceIteration, relative_change
from .linear import BiCGSTABSolver, LinearSolver, SparseLUSolver, make_linear_solver
from .penalty import PenaltyMethod
from .policy import MinPolicyIteration, control_candidates
from .stepper import ReverseBDF2, ReverseConstantStepper

__all__ = [
    "ConvergenceError",
    "ToleranceIteration",
    "relative_change",
    "LinearSolver",
    "SparseLUSolver",
    "BiCGSTABSolver",
    "make_linear_solver",
    "PenaltyMethod",
    "MinPolicyIteration",
    "control_candidates",
    "ReverseBDF2",
    "ReverseConstantStepper",
]
