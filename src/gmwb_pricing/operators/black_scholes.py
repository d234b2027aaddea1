"""
Black-Scholes diffusion operator along the investment axis.

Theory
------
[T1] Between withdrawal dates the contract value solves, in time to expiry τ,
    V_τ = L V,   L V = ½σ²S² V_SS + (r − α) S V_S − r V
where α is the hedging fee charged to the investment account. W does not
diffuse, so L acts on each W level independently.

[T1] Positive coefficient discretization (Forsyth & Labahn 2007): central
differences wherever both neighbour coefficients are non-negative, one-sided
(upwind) drift differences otherwise. This keeps −L an M-matrix and the
implicit scheme monotone.

Boundaries:
    S = 0:      L V = −r V          (the S-terms vanish)
    S = S_max:  L V = −α V          (V ~ c·S asymptotically)
"""

from typing import Optional

import numpy as np
from scipy import sparse

from gmwb_pricing.grid.base import InterpolatingGrid
from gmwb_pricing.operators.base import LinearSystem


def black_scholes_generator_1d(
    S: np.ndarray,
    risk_free_rate: float,
    volatility: float,
    hedging_fee: float = 0.0,
) -> sparse.csr_matrix:
    """
    Discrete generator L on a single, possibly non-uniform, S axis.

    Parameters
    ----------
    S : ndarray
        Strictly increasing axis, S[0] >= 0
    risk_free_rate : float
        Risk-free rate r
    volatility : float
        Volatility σ
    hedging_fee : float
        Fee α deducted from the drift

    Returns
    -------
    csr_matrix
        Tridiagonal generator with non-negative off-diagonals
    """
    S = np.asarray(S, dtype=float)
    n = S.size
    lower = np.zeros(n)  # coefficient of V_{i-1} in row i
    upper = np.zeros(n)  # coefficient of V_{i+1} in row i
    diag = np.full(n, -risk_free_rate)

    x = S[1:-1]
    h_minus = x - S[:-2]
    h_plus = S[2:] - x
    h_sum = h_minus + h_plus

    diffusion_minus = volatility**2 * x**2 / (h_minus * h_sum)
    diffusion_plus = volatility**2 * x**2 / (h_plus * h_sum)
    drift = (risk_free_rate - hedging_fee) * x

    alpha = diffusion_minus - drift / h_sum
    beta = diffusion_plus + drift / h_sum

    # Upwind wherever central differencing would produce a negative coefficient
    central = (alpha >= 0) & (beta >= 0)
    forward = ~central & (drift > 0)
    backward = ~central & ~forward
    alpha = np.where(forward, diffusion_minus, alpha)
    beta = np.where(forward, diffusion_plus + drift / h_plus, beta)
    alpha = np.where(backward, diffusion_minus - drift / h_minus, alpha)
    beta = np.where(backward, diffusion_plus, beta)

    lower[1:-1] = alpha
    upper[1:-1] = beta
    diag[1:-1] -= alpha + beta

    # Linear asymptotics at S_max: (r - α)S V_S - r V with V_S = V / S
    diag[-1] = -hedging_fee

    return sparse.diags(
        [lower[1:], diag, upper[:-1]],
        offsets=[-1, 0, 1],
        shape=(n, n),
        format="csr",
    )


class BlackScholes(LinearSystem):
    """
    Diffusion operator A = −L on a 2-D (S, W) grid.

    The system A V = 0 pairs with a time discretization of V_τ + A V = 0.

    Parameters
    ----------
    grid : InterpolatingGrid
        Solution grid; axis 0 must be the investment axis
    risk_free_rate : float
        Risk-free rate r
    volatility : float
        Volatility σ (> 0)
    hedging_fee : float
        Fee α
    """

    def __init__(
        self,
        grid: InterpolatingGrid,
        risk_free_rate: float,
        volatility: float,
        hedging_fee: float = 0.0,
    ):
        if volatility <= 0:
            raise ValueError(f"CRITICAL: volatility must be > 0, got {volatility}")
        if hedging_fee < 0:
            raise ValueError(f"CRITICAL: hedging_fee must be >= 0, got {hedging_fee}")

        self.grid = grid
        self.risk_free_rate = risk_free_rate
        self.volatility = volatility
        self.hedging_fee = hedging_fee
        self._matrix: Optional[sparse.csr_matrix] = None

    def generator(self) -> sparse.csr_matrix:
        """Discrete generator L over the full grid (block diagonal in W)."""
        n0, n1 = self.grid.shape
        S = self.grid.nodes()[0][:n0]
        block = black_scholes_generator_1d(
            S, self.risk_free_rate, self.volatility, self.hedging_fee
        )
        return sparse.kron(sparse.identity(n1), block, format="csr")

    def assemble_matrix(self, time: float) -> sparse.csr_matrix:
        # Coefficients are time independent
        if self._matrix is None:
            self._matrix = (-self.generator()).tocsr()
        return self._matrix

    def assemble_rhs(self, time: float) -> np.ndarray:
        return self.grid.vector(0.0)
