"""
Withdrawal impulse operator for the GMWB.

At any decision time the policyholder may withdraw a fraction λ of the
guarantee base W. The withdrawal moves the state and pays a cash flow.

Theory
------
[T1] Post-withdrawal state:
    S' = max(S − λW, 0)      (investment account floored at zero)
    W' = (1 − λ) W           (guarantee base reduced proportionally)

[T1] Cash flow, with per-period allowance Gdt and surrender charge κ:
    λ < min(Gdt / W, 1):  b = λW − ε
    otherwise:            b = λW − κ (λW − Gdt) − ε
    W ≤ ε:                b = −ε

[T1] The impulse system is V − M V ≥ b, where row i of M reconstructs
V(S', W') bilinearly from the four grid nodes bracketing (S', W').

ε is a small regularization: it keeps λ = 0 strictly non-binding
(residual ε > 0) and doubles as the "guarantee exhausted" threshold.

See: Azimzadeh & Forsyth (2015), "The existence of optimal bang-bang
controls for GMxB contracts", SIAM J. Financial Math.
"""

from typing import Optional

import numpy as np
from scipy import sparse

from gmwb_pricing.config.settings import SETTINGS
from gmwb_pricing.grid.base import InterpolatingGrid
from gmwb_pricing.operators.base import (
    ControlField,
    ControlledLinearSystem,
    ScheduleLike,
    as_schedule,
)


def _check_fractions(lam) -> None:
    """Reject withdrawal fractions outside [0, 1] (NaN included)."""
    lam = np.asarray(lam, dtype=float)
    invalid = ~((lam >= 0.0) & (lam <= 1.0))
    if np.any(invalid):
        raise ValueError(
            f"CRITICAL: Withdrawal fraction must lie in [0, 1]; "
            f"{int(invalid.sum())} value(s) out of range "
            f"(e.g. {lam[invalid].ravel()[0]!r}). Controls are never clamped."
        )


def _check_guarantee_base(W) -> None:
    W = np.asarray(W, dtype=float)
    invalid = ~(W >= 0.0)
    if np.any(invalid):
        raise ValueError(
            f"CRITICAL: Guarantee base must be >= 0; "
            f"{int(invalid.sum())} value(s) out of range (e.g. {W[invalid].ravel()[0]!r})"
        )


def post_withdrawal_state(S, W, lam):
    """
    State reached by withdrawing λW.

    Parameters
    ----------
    S : float or ndarray
        Investment account balance
    W : float or ndarray
        Guarantee base
    lam : float or ndarray
        Withdrawal fraction in [0, 1]

    Returns
    -------
    tuple
        (S', W') = (max(S − λW, 0), (1 − λ)W)

    Raises
    ------
    ValueError
        If λ lies outside [0, 1] or W is negative
    """
    _check_fractions(lam)
    _check_guarantee_base(W)
    return np.maximum(S - lam * W, 0.0), (1.0 - lam) * W


def withdrawal_cashflow(lam, W, gdt, kappa, epsilon: float = SETTINGS.solver.withdrawal_epsilon):
    """
    Net cash flow paid for withdrawing λW.

    Parameters
    ----------
    lam : float or ndarray
        Withdrawal fraction in [0, 1]
    W : float or ndarray
        Guarantee base
    gdt : float or ndarray
        Penalty-free allowance for the period
    kappa : float or ndarray
        Surrender charge on the amount above the allowance
    epsilon : float
        Regularization / exhausted-guarantee threshold

    Returns
    -------
    float or ndarray
        Cash flow net of penalty and regularization

    Raises
    ------
    ValueError
        If λ lies outside [0, 1] or W is negative

    Examples
    --------
    >>> withdrawal_cashflow(0.05, 50.0, 5.0, 0.1, epsilon=0.0)
    2.5
    >>> withdrawal_cashflow(0.5, 50.0, 5.0, 0.1, epsilon=0.0)
    23.0
    """
    lam, W, gdt, kappa = np.broadcast_arrays(
        *(np.asarray(x, dtype=float) for x in (lam, W, gdt, kappa))
    )
    _check_fractions(lam)
    _check_guarantee_base(W)
    lam_w = lam * W

    exhausted = W <= epsilon
    # Exhausted nodes are overwritten below; only silence 0/0 there
    with np.errstate(divide="ignore", invalid="ignore"):
        threshold = np.minimum(gdt / W, 1.0)
    penalty_free = lam < threshold

    cashflow = np.where(
        penalty_free,
        lam_w - epsilon,
        lam_w - kappa * (lam_w - gdt) - epsilon,
    )
    cashflow = np.where(exhausted, 0.0 - epsilon, cashflow)

    if cashflow.ndim == 0:
        return float(cashflow)
    return cashflow


class Withdrawal(ControlledLinearSystem):
    """
    Impulse operator (I − M, b) for the withdrawal decision.

    Parameters
    ----------
    grid : InterpolatingGrid
        Solution grid over (S, W); all nodes must be non-negative
    contract_rate : float or callable
        Per-period penalty-free allowance Gdt, constant or f(t, S, W)
    penalty_rate : float or callable
        Surrender charge κ, constant or f(t, S, W)
    epsilon : float, optional
        Regularization (default: SETTINGS.solver.withdrawal_epsilon)

    Examples
    --------
    >>> from gmwb_pricing.grid import Axis, RectilinearGrid2
    >>> grid = RectilinearGrid2(Axis.range(0, 10, 200), Axis.range(0, 10, 100))
    >>> impulse = Withdrawal(grid, contract_rate=1.0, penalty_rate=0.1)
    >>> M = impulse.jump_matrix(0.0, controls=grid.vector(0.5))
    >>> M.nnz == 4 * grid.size
    True
    """

    def __init__(
        self,
        grid: InterpolatingGrid,
        contract_rate: ScheduleLike,
        penalty_rate: ScheduleLike,
        epsilon: Optional[float] = None,
    ):
        super().__init__()

        self.epsilon = SETTINGS.solver.withdrawal_epsilon if epsilon is None else float(epsilon)
        if self.epsilon <= 0:
            raise ValueError(f"CRITICAL: epsilon must be positive, got {self.epsilon}")

        self.grid = grid
        self._S, self._W = grid.nodes()
        if np.any(self._S < 0) or np.any(self._W < 0):
            raise ValueError(
                "CRITICAL: Withdrawal grid must have non-negative investment and "
                "guarantee base nodes"
            )

        self.contract_rate = as_schedule(contract_rate)
        self.penalty_rate = as_schedule(penalty_rate)

        self.control = ControlField(grid, initial=self.null_control)
        self.register_control(self.control)

    def _resolve_controls(self, controls: Optional[np.ndarray]) -> np.ndarray:
        """Validate an explicit snapshot, or read the registered field."""
        if controls is None:
            lam = self.control.values
        else:
            lam = np.array(controls, dtype=float)
            if lam.ndim == 0:
                lam = np.full(self.grid.size, float(lam))

        if lam.shape != (self.grid.size,):
            raise ValueError(
                f"CRITICAL: Controls must have shape ({self.grid.size},), got {lam.shape}"
            )
        _check_fractions(lam)
        return lam

    def inactive_nodes(self, time: float) -> np.ndarray:
        """Nodes whose guarantee base is exhausted (W ≤ ε)."""
        return self._W <= self.epsilon

    def transition_data(
        self, controls: Optional[np.ndarray] = None
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """
        Bracketing cell and bilinear weights of every post-withdrawal state.

        Parameters
        ----------
        controls : ndarray, optional
            Control snapshot (default: registered field)

        Returns
        -------
        tuple[ndarray, ndarray, ndarray]
            (j, w0, w1): base linear index of the bracketing cell, and
            lower-node weights along S and W
        """
        lam = self._resolve_controls(controls)
        S_post, W_post = post_withdrawal_state(self._S, self._W, lam)

        (i0, w0), (i1, w1) = self.grid.interpolation_data(S_post, W_post)
        j = self.grid.index(np.asarray(i0), np.asarray(i1))
        return j, np.asarray(w0, dtype=float), np.asarray(w1, dtype=float)

    def jump_matrix(self, time: float, controls: Optional[np.ndarray] = None) -> sparse.csr_matrix:
        """
        Matrix M mapping nodal values to their post-withdrawal reconstruction.

        Each row stores exactly four entries (explicit zeros kept), one per
        node of the bracketing cell.
        """
        j, w0, w1 = self.transition_data(controls)
        n = self.grid.size
        n0 = self.grid.strides[1]

        rows = np.repeat(np.arange(n), 4)
        cols = np.column_stack((j, j + n0, j + 1, j + 1 + n0)).ravel()
        data = np.column_stack((
            w0 * w1,
            w0 * (1 - w1),
            (1 - w0) * w1,
            (1 - w0) * (1 - w1),
        )).ravel()

        return sparse.csr_matrix((data, (rows, cols)), shape=(n, n))

    def assemble_transition(
        self, time: float, controls: Optional[np.ndarray] = None
    ) -> sparse.csr_matrix:
        """
        Impulse matrix I − M.

        Parameters
        ----------
        time : float
            Current time
        controls : ndarray, optional
            Control snapshot (default: registered field)

        Returns
        -------
        csr_matrix
            Value before the jump minus value after the jump
        """
        return (self.grid.identity() - self.jump_matrix(time, controls)).tocsr()

    def assemble_cashflow(self, time: float, controls: Optional[np.ndarray] = None) -> np.ndarray:
        """
        Cash flow vector b for a control snapshot.

        Parameters
        ----------
        time : float
            Current time (schedules may depend on it)
        controls : ndarray, optional
            Control snapshot (default: registered field)

        Returns
        -------
        ndarray
            One cash flow per node
        """
        lam = self._resolve_controls(controls)
        gdt = self.contract_rate(time, self._S, self._W)
        kappa = self.penalty_rate(time, self._S, self._W)
        return withdrawal_cashflow(lam, self._W, gdt, kappa, self.epsilon)

    def assemble_matrix(
        self, time: float, controls: Optional[np.ndarray] = None
    ) -> sparse.csr_matrix:
        return self.assemble_transition(time, controls)

    def assemble_rhs(self, time: float, controls: Optional[np.ndarray] = None) -> np.ndarray:
        return self.assemble_cashflow(time, controls)
