"""
Fixed-point ("tolerance") iteration for a single timestep.

Each pass lets the solve tree refresh its discrete choices from the
current iterand (policy search, penalty active set), assembles the linear
system and solves it. Iteration stops when

    max_i |V_new − V_old| / max(scale, |V_new|) < tolerance

See: Forsyth & Labahn (2007), Section 5 (policy iteration convergence)
"""

import logging
from typing import Optional

import numpy as np

from gmwb_pricing.config.settings import SETTINGS

logger = logging.getLogger(__name__)


class ConvergenceError(RuntimeError):
    """Raised when an iterative procedure fails to meet its tolerance."""


def relative_change(new: np.ndarray, old: np.ndarray, scale: float = 1.0) -> float:
    """
    Largest change between iterates relative to max(scale, |new|).

    Parameters
    ----------
    new : ndarray
        Current iterate
    old : ndarray
        Previous iterate
    scale : float
        Floor of the denominator (avoids blow-up near zero)

    Returns
    -------
    float
        Relative change (0.0 for empty arrays)
    """
    if new.size == 0:
        return 0.0
    return float(np.max(np.abs(new - old) / np.maximum(scale, np.abs(new))))


class ToleranceIteration:
    """
    Iterate a timestep until the solution stops changing.

    Parameters
    ----------
    tolerance : float, optional
        Relative change threshold (default: SETTINGS.solver.tolerance)
    scale : float, optional
        Denominator floor (default: SETTINGS.solver.scale)
    max_iterations : int, optional
        Iteration cap per timestep
    require_stable_policy : bool, optional
        Also require the tree's discrete choices to be settled
    halt_on_nonconvergence : bool, optional
        Raise ConvergenceError at the cap instead of logging a warning
    """

    def __init__(
        self,
        tolerance: Optional[float] = None,
        scale: Optional[float] = None,
        max_iterations: Optional[int] = None,
        require_stable_policy: Optional[bool] = None,
        halt_on_nonconvergence: Optional[bool] = None,
    ):
        config = SETTINGS.solver
        self.tolerance = config.tolerance if tolerance is None else tolerance
        self.scale = config.scale if scale is None else scale
        self.max_iterations = config.max_iterations if max_iterations is None else max_iterations
        self.require_stable_policy = (
            config.require_stable_policy if require_stable_policy is None else require_stable_policy
        )
        self.halt_on_nonconvergence = (
            config.halt_on_nonconvergence
            if halt_on_nonconvergence is None
            else halt_on_nonconvergence
        )

        if self.tolerance <= 0:
            raise ValueError(f"CRITICAL: tolerance must be positive, got {self.tolerance}")
        if self.max_iterations < 1:
            raise ValueError(f"CRITICAL: max_iterations must be >= 1, got {self.max_iterations}")

        self._iterations: list[int] = []

    @property
    def iterations(self) -> tuple[int, ...]:
        """Iterations used by each completed timestep."""
        return tuple(self._iterations)

    def mean_iterations(self) -> float:
        """Average iterations per timestep (0.0 before any solve)."""
        if not self._iterations:
            return 0.0
        return float(np.mean(self._iterations))

    def reset(self) -> None:
        self._iterations.clear()

    def solve(self, time: float, root, solver, initial: np.ndarray) -> np.ndarray:
        """
        Solve one timestep.

        Parameters
        ----------
        time : float
            Time being solved for
        root : LinearSystem
            Root of the solve tree
        solver : LinearSolver
            Sparse linear solver
        initial : ndarray
            Starting iterate (typically the previous timestep's solution)

        Returns
        -------
        ndarray
            Converged iterate

        Raises
        ------
        ConvergenceError
            If the cap is reached and halt_on_nonconvergence is set
        """
        iterand = np.array(initial, dtype=float)
        change = np.inf

        for k in range(1, self.max_iterations + 1):
            root.begin_iteration(time, iterand)
            A = root.assemble_matrix(time)
            b = root.assemble_rhs(time)
            new = solver.solve(A, b, guess=iterand)

            change = relative_change(new, iterand, self.scale)
            settled = root.iteration_settled()
            iterand = new

            if change < self.tolerance and (settled or not self.require_stable_policy):
                self._iterations.append(k)
                logger.debug(f"t={time:.6f}: converged in {k} iteration(s), change={change:.3e}")
                return iterand

        self._iterations.append(self.max_iterations)
        message = (
            f"Fixed-point iteration at t={time:.6f} did not converge in "
            f"{self.max_iterations} iterations (last change {change:.3e}, "
            f"tolerance {self.tolerance:.1e})"
        )
        if self.halt_on_nonconvergence:
            raise ConvergenceError(message)
        logger.warning(message)
        return iterand
