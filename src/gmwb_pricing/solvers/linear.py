"""
Sparse linear solvers for A V = b.

- SparseLUSolver: direct factorization (SciPy SuperLU), robust for the
  badly scaled rows the penalty method produces
- BiCGSTABSolver: Krylov iteration with an incomplete-LU preconditioner
"""

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np
from scipy import sparse
from scipy.sparse import linalg as splinalg

from gmwb_pricing.config.tolerances import LINEAR_SOLVER_TOLERANCE
from gmwb_pricing.solvers.iteration import ConvergenceError


class LinearSolver(ABC):
    """Solve a sparse system, optionally warm-started."""

    @abstractmethod
    def solve(
        self, A: sparse.spmatrix, b: np.ndarray, guess: Optional[np.ndarray] = None
    ) -> np.ndarray:
        pass


class SparseLUSolver(LinearSolver):
    """Direct sparse LU solve; ``guess`` is ignored."""

    def solve(
        self, A: sparse.spmatrix, b: np.ndarray, guess: Optional[np.ndarray] = None
    ) -> np.ndarray:
        solution = splinalg.spsolve(sparse.csc_matrix(A), np.asarray(b, dtype=float))
        solution = np.atleast_1d(solution)
        if not np.all(np.isfinite(solution)):
            raise ConvergenceError("CRITICAL: Sparse LU produced non-finite values (singular system?)")
        return solution


class BiCGSTABSolver(LinearSolver):
    """
    Preconditioned BiCGSTAB.

    Parameters
    ----------
    rtol : float
        Relative residual tolerance
    max_iterations : int, optional
        Krylov iteration cap (SciPy default when None)
    drop_tol : float
        Drop tolerance of the incomplete-LU preconditioner
    """

    def __init__(
        self,
        rtol: float = LINEAR_SOLVER_TOLERANCE,
        max_iterations: Optional[int] = None,
        drop_tol: float = 1e-6,
    ):
        self.rtol = rtol
        self.max_iterations = max_iterations
        self.drop_tol = drop_tol

    def solve(
        self, A: sparse.spmatrix, b: np.ndarray, guess: Optional[np.ndarray] = None
    ) -> np.ndarray:
        A = sparse.csc_matrix(A)
        ilu = splinalg.spilu(A, drop_tol=self.drop_tol)
        preconditioner = splinalg.LinearOperator(A.shape, matvec=ilu.solve)

        solution, info = splinalg.bicgstab(
            A,
            np.asarray(b, dtype=float),
            x0=guess,
            rtol=self.rtol,
            atol=0.0,
            maxiter=self.max_iterations,
            M=preconditioner,
        )
        if info > 0:
            raise ConvergenceError(f"BiCGSTAB did not converge in {info} iterations")
        if info < 0:
            raise ConvergenceError(f"BiCGSTAB breakdown (info={info})")
        return solution


def make_linear_solver(name: str) -> LinearSolver:
    """
    Build a solver from its configuration name.

    Parameters
    ----------
    name : str
        "lu" or "bicgstab"

    Returns
    -------
    LinearSolver
        Solver instance
    """
    solvers = {
        "lu": SparseLUSolver,
        "bicgstab": BiCGSTABSolver,
    }
    if name not in solvers:
        available = ", ".join(sorted(solvers))
        raise KeyError(f"Unknown linear solver '{name}'. Available: {available}")
    return solvers[name]()
