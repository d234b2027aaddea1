"""
Policy search over a discretized control set.

Theory
------
[T1] For a controlled system (A(q), b(q)) and iterand V, the minimizing
policy picks at each node i

    q_i* = argmin_q [A(q) V − b(q)]_i

For the withdrawal operator A(q) = I − M(q), so this is the withdrawal
fraction maximizing the post-withdrawal value plus cash flow, i.e. the
policyholder behaviour that is most expensive for the guarantee writer.

Candidates are scanned exhaustively; ties resolve to the lowest-index
candidate, which makes the search deterministic.
"""

import logging
from typing import Sequence

import numpy as np
from scipy import sparse

from gmwb_pricing.grid.base import InterpolatingGrid
from gmwb_pricing.operators.base import ControlledLinearSystem, LinearSystem

logger = logging.getLogger(__name__)


def control_candidates(partition: int, level: int = 0) -> np.ndarray:
    """
    Uniform control set 0 : 1/(n·2^L) : 1 (inclusive).

    Parameters
    ----------
    partition : int
        Number of intervals n at level 0
    level : int
        Refinement level L

    Returns
    -------
    ndarray
        n·2^L + 1 candidates in [0, 1]
    """
    if partition < 1:
        raise ValueError(f"CRITICAL: partition must be >= 1, got {partition}")
    n_intervals = partition * 2**level
    return np.arange(n_intervals + 1) / n_intervals


class MinPolicyIteration(LinearSystem):
    """
    Node-wise minimizing policy for a system with one registered control.

    Parameters
    ----------
    grid : InterpolatingGrid
        Solution grid
    candidates : array-like
        Discretized control set, scanned in order
    system : ControlledLinearSystem
        Controlled system (e.g. Withdrawal) with exactly one control
    """

    def __init__(
        self,
        grid: InterpolatingGrid,
        candidates: Sequence[float],
        system: ControlledLinearSystem,
    ):
        if len(system.controls) != 1:
            raise ValueError(
                f"CRITICAL: MinPolicyIteration drives exactly one control, "
                f"system registers {len(system.controls)}"
            )

        self.grid = grid
        self.candidates = np.asarray(candidates, dtype=float).ravel()
        self.system = system
        self.control = system.controls[0]
        self._policy_changed = True

    @property
    def policy_changed(self) -> bool:
        """Whether the last search changed the assigned policy."""
        return self._policy_changed

    def residuals(self, time: float, iterand: np.ndarray) -> np.ndarray:
        """
        Residual [A(q) V − b(q)] of every candidate at every node.

        Returns
        -------
        ndarray
            Shape (n_candidates, grid.size)
        """
        residuals = np.empty((self.candidates.size, self.grid.size))
        for k, q in enumerate(self.candidates):
            snapshot = self.grid.vector(q)
            A = self.system.assemble_matrix(time, controls=snapshot)
            b = self.system.assemble_rhs(time, controls=snapshot)
            residuals[k] = A @ iterand - b
        return residuals

    def search(self, time: float, iterand: np.ndarray) -> np.ndarray:
        """
        Select and assign the minimizing control at every node.

        Parameters
        ----------
        time : float
            Current time
        iterand : ndarray
            Current value iterate

        Returns
        -------
        ndarray
            Chosen control per node
        """
        if self.candidates.size == 0:
            policy = self.grid.vector(self.system.null_control)
        else:
            best = np.argmin(self.residuals(time, iterand), axis=0)
            policy = self.candidates[best]

        policy[self.system.inactive_nodes(time)] = self.system.null_control

        previous = self.control.values
        self._policy_changed = not np.array_equal(policy, previous)
        if self._policy_changed:
            logger.debug(
                f"t={time:.6f}: policy changed at {int(np.sum(policy != previous))} node(s)"
            )
        self.control.assign(policy)
        return policy

    def begin_iteration(self, time: float, iterand: np.ndarray) -> None:
        self.search(time, iterand)

    def iteration_settled(self) -> bool:
        return not self._policy_changed

    def assemble_matrix(self, time: float) -> sparse.csr_matrix:
        return self.system.assemble_matrix(time)

    def assemble_rhs(self, time: float) -> np.ndarray:
        return self.system.assemble_rhs(time)
