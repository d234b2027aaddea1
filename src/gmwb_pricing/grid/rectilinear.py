"""
Two-dimensional rectilinear grid over (investment S, withdrawal base W).

Nodes are the tensor product of two non-uniform axes. The linear index of
node (i0, i1) is ``i0 + i1 * n0``: the first (S) axis varies fastest, so
the S-neighbour of index j is j + 1 and the W-neighbour is j + n0.
"""

from typing import Callable, Iterator

import numpy as np
import pandas as pd
from scipy import sparse

from gmwb_pricing.grid.axis import Axis


class RectilinearGrid2:
    """
    Immutable 2-D tensor-product grid.

    Parameters
    ----------
    axis0 : Axis
        Investment (S) axis
    axis1 : Axis
        Withdrawal base (W) axis

    Examples
    --------
    >>> grid = RectilinearGrid2(Axis.range(0, 50, 200), Axis.range(0, 50, 100))
    >>> grid.shape
    (5, 3)
    >>> grid.index(1, 2)
    11
    """

    def __init__(self, axis0: Axis, axis1: Axis):
        self._axes = (axis0, axis1)

    @property
    def axes(self) -> tuple[Axis, Axis]:
        return self._axes

    def __getitem__(self, dimension: int) -> Axis:
        return self._axes[dimension]

    @property
    def shape(self) -> tuple[int, int]:
        """Axis sizes (n0, n1)."""
        return len(self._axes[0]), len(self._axes[1])

    @property
    def strides(self) -> tuple[int, int]:
        """Linear index offset of a unit step along each axis."""
        return 1, len(self._axes[0])

    @property
    def size(self) -> int:
        n0, n1 = self.shape
        return n0 * n1

    def __len__(self) -> int:
        return self.size

    def index(self, i0, i1):
        """Linear index of axis indices (i0, i1); broadcasts over arrays."""
        return i0 + i1 * len(self._axes[0])

    def nodes(self) -> tuple[np.ndarray, np.ndarray]:
        """
        Coordinates of every node in linear-index order.

        Returns
        -------
        tuple[ndarray, ndarray]
            (S, W), each of length ``size``
        """
        n0, n1 = self.shape
        S = np.tile(self._axes[0].ticks, n1)
        W = np.repeat(self._axes[1].ticks, n0)
        return S, W

    def __iter__(self) -> Iterator[tuple[float, float]]:
        for W in self._axes[1]:
            for S in self._axes[0]:
                yield S, W

    def vector(self, fill: float = 0.0) -> np.ndarray:
        """Dense array with one entry per node."""
        return np.full(self.size, fill, dtype=float)

    def identity(self) -> sparse.csr_matrix:
        return sparse.identity(self.size, format="csr")

    def image(self, func: Callable[[np.ndarray, np.ndarray], np.ndarray]) -> np.ndarray:
        """
        Evaluate a vectorized function of (S, W) on every node.

        Parameters
        ----------
        func : callable
            f(S, W) accepting and returning arrays

        Returns
        -------
        ndarray
            f evaluated in linear-index order
        """
        S, W = self.nodes()
        values = np.asarray(func(S, W), dtype=float)
        return np.broadcast_to(values, S.shape).copy()

    def interpolation_data(self, S, W):
        """
        Per-axis (index, weight) pairs of the cell bracketing (S, W).

        Out-of-range coordinates are clamped to the nearest node.

        Returns
        -------
        tuple
            ((i0, w0), (i1, w1)) with the lower-node weights w0, w1
        """
        return (
            self._axes[0].interpolation_data(S),
            self._axes[1].interpolation_data(W),
        )

    def interpolate(self, values: np.ndarray, S, W):
        """
        Bilinear reconstruction of nodal values at arbitrary (S, W).

        Parameters
        ----------
        values : ndarray
            Nodal values in linear-index order
        S, W : float or ndarray
            Query coordinates

        Returns
        -------
        float or ndarray
            Interpolated values (clamped at the domain edges)
        """
        values = np.asarray(values, dtype=float)
        if values.shape != (self.size,):
            raise ValueError(
                f"CRITICAL: Expected {self.size} nodal values, got shape {values.shape}"
            )

        (i0, w0), (i1, w1) = self.interpolation_data(S, W)
        i0, w0, i1, w1 = (np.asarray(a) for a in (i0, w0, i1, w1))
        j = self.index(i0, i1)
        n0 = self.strides[1]

        result = (
            w0 * w1 * values[j]
            + w0 * (1 - w1) * values[j + n0]
            + (1 - w0) * w1 * values[j + 1]
            + (1 - w0) * (1 - w1) * values[j + 1 + n0]
        )
        if result.ndim == 0:
            return float(result)
        return result

    def refined(self) -> "RectilinearGrid2":
        """New grid with a tick inserted between each pair on both axes."""
        return RectilinearGrid2(self._axes[0].refined(), self._axes[1].refined())

    def to_frame(self, values: np.ndarray) -> pd.DataFrame:
        """
        Nodal values as a DataFrame (rows = S ticks, columns = W ticks).

        Parameters
        ----------
        values : ndarray
            Nodal values in linear-index order

        Returns
        -------
        pd.DataFrame
            Table indexed by S with one column per W
        """
        n0, n1 = self.shape
        table = np.asarray(values, dtype=float).reshape(n1, n0).T
        frame = pd.DataFrame(
            table,
            index=pd.Index(self._axes[0].ticks, name="S"),
            columns=pd.Index(self._axes[1].ticks, name="W"),
        )
        return frame

    def __repr__(self) -> str:
        n0, n1 = self.shape
        return f"RectilinearGrid2(shape=({n0}, {n1}))"
