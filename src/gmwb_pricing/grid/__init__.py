"""
Solution grids for the (investment, withdrawal base) state space.

- Axis: ordered, non-uniform 1-D axis with clamped linear interpolation
- RectilinearGrid2: tensor-product grid, linear indexing, refinement
- InterpolatingGrid: the capability the operators consume
"""

from .axis import Axis
from .base import InterpolatingGrid
from .rectilinear import RectilinearGrid2

__all__ = [
    "Axis",
    "InterpolatingGrid",
    "RectilinearGrid2",
]
