"""
Penalty method for the impulse-control QVI.

Theory
------
[T1] The QVI  min(A_c V − b_c, A_p V − b_p) = 0  is approximated by

    (A_c + large · P A_p) V = b_c + large · P b_p,
    P = diag( [A_p V − b_p]_i < 0 )

where (A_c, b_c) is the continuation (time-discretized diffusion) system
and (A_p, b_p) the impulse system. Nodes with a negative impulse residual
violate V ≥ M V + b and are pushed back onto the constraint; the constraint
is met to O(1 / large).

See: Forsyth & Vetzal (2002), "Quadratic convergence for valuing American
options using a penalty method"
"""

from typing import Optional, Sequence

import numpy as np
from scipy import sparse

from gmwb_pricing.config.settings import SETTINGS
from gmwb_pricing.grid.base import InterpolatingGrid
from gmwb_pricing.operators.base import LinearSystem


class PenaltyMethod(LinearSystem):
    """
    Combine a continuation system with a penalized impulse system.

    Parameters
    ----------
    grid : InterpolatingGrid
        Solution grid
    constraint : LinearSystem
        Continuation system (A_c, b_c)
    penalizer : LinearSystem
        Impulse system (A_p, b_p), e.g. a MinPolicyIteration
    large : float, optional
        Penalty weight (default: 1 / SETTINGS.solver.penalty_tolerance)
    """

    def __init__(
        self,
        grid: InterpolatingGrid,
        constraint: LinearSystem,
        penalizer: LinearSystem,
        large: Optional[float] = None,
    ):
        self.grid = grid
        self.constraint = constraint
        self.penalizer = penalizer
        self.large = 1.0 / SETTINGS.solver.penalty_tolerance if large is None else float(large)
        if self.large <= 0:
            raise ValueError(f"CRITICAL: penalty weight must be positive, got {self.large}")

        self._active = np.zeros(grid.size, dtype=bool)
        self._active_changed = True

    @property
    def active_nodes(self) -> np.ndarray:
        """Nodes where the impulse constraint is currently enforced."""
        return self._active.copy()

    def begin_timestep(self, time: float, history: Sequence[np.ndarray]) -> None:
        self.constraint.begin_timestep(time, history)
        self.penalizer.begin_timestep(time, history)

    def begin_iteration(self, time: float, iterand: np.ndarray) -> None:
        self.constraint.begin_iteration(time, iterand)
        self.penalizer.begin_iteration(time, iterand)

        residual = (
            self.penalizer.assemble_matrix(time) @ iterand
            - self.penalizer.assemble_rhs(time)
        )
        active = residual < 0
        self._active_changed = not np.array_equal(active, self._active)
        self._active = active

    def iteration_settled(self) -> bool:
        return (
            not self._active_changed
            and self.constraint.iteration_settled()
            and self.penalizer.iteration_settled()
        )

    def assemble_matrix(self, time: float) -> sparse.csr_matrix:
        P = sparse.diags(self.large * self._active.astype(float), format="csr")
        return (
            self.constraint.assemble_matrix(time)
            + P @ self.penalizer.assemble_matrix(time)
        ).tocsr()

    def assemble_rhs(self, time: float) -> np.ndarray:
        return (
            self.constraint.assemble_rhs(time)
            + self.large * self._active * self.penalizer.assemble_rhs(time)
        )
