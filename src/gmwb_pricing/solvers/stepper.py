"""
Backward time stepping from contract expiry to the valuation date.

Theory
------
[T1] In time to expiry τ, V_τ + A V = 0 is discretized with BDF2 and an
implicit Euler start (constant step Δτ):

    step 1:   (I/Δτ + A) V¹ = V⁰ / Δτ
    step n:   (3/(2Δτ) I + A) Vⁿ = (4Vⁿ⁻¹ − Vⁿ⁻²) / (2Δτ)

Both are A-stable; BDF2 is second order once started.
"""

import logging
from typing import Callable, Sequence

import numpy as np
from scipy import sparse

from gmwb_pricing.grid.base import InterpolatingGrid
from gmwb_pricing.operators.base import LinearSystem
from gmwb_pricing.solvers.iteration import ToleranceIteration
from gmwb_pricing.solvers.linear import LinearSolver

logger = logging.getLogger(__name__)


class ReverseBDF2(LinearSystem):
    """
    BDF2 time discretization of a spatial operator, stepping backward.

    Parameters
    ----------
    grid : InterpolatingGrid
        Solution grid
    operator : LinearSystem
        Spatial system A with V_τ + A V = 0 (e.g. BlackScholes)
    dt : float
        Constant timestep Δτ
    """

    def __init__(self, grid: InterpolatingGrid, operator: LinearSystem, dt: float):
        if dt <= 0:
            raise ValueError(f"CRITICAL: dt must be positive, got {dt}")
        self.grid = grid
        self.operator = operator
        self.dt = dt
        self._history: tuple[np.ndarray, ...] = ()

    @property
    def order(self) -> int:
        """Order of the step being assembled (1 on the first step, else 2)."""
        return 1 if len(self._history) < 2 else 2

    def begin_timestep(self, time: float, history: Sequence[np.ndarray]) -> None:
        if not history:
            raise ValueError("CRITICAL: BDF2 needs at least the terminal condition in history")
        self._history = tuple(history[-2:])
        self.operator.begin_timestep(time, history)

    def begin_iteration(self, time: float, iterand: np.ndarray) -> None:
        self.operator.begin_iteration(time, iterand)

    def assemble_matrix(self, time: float) -> sparse.csr_matrix:
        leading = 1.0 / self.dt if self.order == 1 else 1.5 / self.dt
        return (leading * self.grid.identity() + self.operator.assemble_matrix(time)).tocsr()

    def assemble_rhs(self, time: float) -> np.ndarray:
        if self.order == 1:
            rhs = self._history[-1] / self.dt
        else:
            rhs = (4.0 * self._history[-1] - self._history[-2]) / (2.0 * self.dt)
        return rhs + self.operator.assemble_rhs(time)


class ReverseConstantStepper:
    """
    Constant-step backward stepper.

    Parameters
    ----------
    initial_time : float
        Valuation date
    expiry_time : float
        Contract expiry
    dt : float
        Timestep size; (expiry − initial) / dt is rounded to whole steps
    inner : ToleranceIteration
        Fixed-point iteration run at every step

    Examples
    --------
    >>> stepper = ReverseConstantStepper(0.0, 10.0, 0.1, ToleranceIteration())
    >>> stepper.n_steps
    100
    """

    def __init__(
        self,
        initial_time: float,
        expiry_time: float,
        dt: float,
        inner: ToleranceIteration,
    ):
        if expiry_time <= initial_time:
            raise ValueError(
                f"CRITICAL: expiry_time must exceed initial_time, got "
                f"[{initial_time}, {expiry_time}]"
            )
        if dt <= 0:
            raise ValueError(f"CRITICAL: dt must be positive, got {dt}")

        self.initial_time = initial_time
        self.expiry_time = expiry_time
        self.n_steps = max(int(round((expiry_time - initial_time) / dt)), 1)
        self.dt = (expiry_time - initial_time) / self.n_steps
        self.inner = inner

    def times(self) -> np.ndarray:
        """Solve times, from the step before expiry down to initial_time."""
        steps = np.arange(self.n_steps - 1, -1, -1)
        return self.initial_time + steps * self.dt

    def solve(
        self,
        grid: InterpolatingGrid,
        payoff: Callable[[np.ndarray, np.ndarray], np.ndarray],
        root: LinearSystem,
        solver: LinearSolver,
    ) -> np.ndarray:
        """
        Step the solve tree back from the payoff at expiry.

        Parameters
        ----------
        grid : InterpolatingGrid
            Solution grid
        payoff : callable
            Terminal condition f(S, W), vectorized
        root : LinearSystem
            Root of the solve tree
        solver : LinearSolver
            Sparse solver for each iteration

        Returns
        -------
        ndarray
            Solution at initial_time, one value per node
        """
        S, W = grid.nodes()
        terminal = np.broadcast_to(np.asarray(payoff(S, W), dtype=float), S.shape).copy()
        history = [terminal]

        for step, time in enumerate(self.times(), start=1):
            root.begin_timestep(time, history)
            solution = self.inner.solve(time, root, solver, history[-1])
            history = history[-1:] + [solution]
            if step % max(self.n_steps // 10, 1) == 0:
                logger.debug(f"  step {step}/{self.n_steps} (t={time:.4f})")

        return history[-1]
