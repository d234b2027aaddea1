"""
Grid capability consumed by the operators.

Operators depend on what a grid can do (enumerate nodes, map axis indices
to linear indices, report bracketing interpolation data), not on a
concrete geometry, so uniform, non-uniform and refined grids are
interchangeable.
"""

from typing import Protocol, runtime_checkable

import numpy as np
from scipy import sparse


@runtime_checkable
class InterpolatingGrid(Protocol):
    """Two-dimensional grid with bilinear interpolation support."""

    @property
    def size(self) -> int: ...

    @property
    def shape(self) -> tuple[int, int]: ...

    @property
    def strides(self) -> tuple[int, int]: ...

    def index(self, i0, i1): ...

    def nodes(self) -> tuple[np.ndarray, np.ndarray]: ...

    def vector(self, fill: float = 0.0) -> np.ndarray: ...

    def identity(self) -> sparse.csr_matrix: ...

    def interpolation_data(self, S, W): ...

    def interpolate(self, values: np.ndarray, S, W): ...

    def refined(self) -> "InterpolatingGrid": ...
