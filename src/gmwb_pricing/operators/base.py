"""
Linear system contracts shared by operators and solvers.

Every node of the solve tree describes, for a time t, a sparse matrix A(t)
and a right-hand side b(t). Composite systems (penalty method, policy
iteration, time discretization) forward the lifecycle hooks to their
children:

- begin_timestep(time, history): a new timestep starts, ``history`` holds
  the solutions of the previous (later) timesteps, most recent last
- begin_iteration(time, iterand): a fixed-point iteration starts from the
  current iterand
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional, Sequence, Union

import numpy as np
from scipy import sparse

from gmwb_pricing.grid.base import InterpolatingGrid

#: f(t, S, W) evaluated over node arrays
ScheduleFunction = Callable[[float, np.ndarray, np.ndarray], np.ndarray]
ScheduleLike = Union[float, ScheduleFunction]


def as_schedule(value: ScheduleLike) -> ScheduleFunction:
    """
    Promote a constant or callable to a vectorized schedule f(t, S, W).

    Parameters
    ----------
    value : float or callable
        Constant rate, or a function of (t, S, W) that accepts node arrays

    Returns
    -------
    callable
        Schedule returning an array broadcast to the shape of S
    """
    if callable(value):
        func = value

        def schedule(t: float, S: np.ndarray, W: np.ndarray) -> np.ndarray:
            return np.broadcast_to(np.asarray(func(t, S, W), dtype=float), np.shape(S))

        return schedule

    constant = float(value)

    def constant_schedule(t: float, S: np.ndarray, W: np.ndarray) -> np.ndarray:
        return np.full(np.shape(S), constant)

    return constant_schedule


class ControlField:
    """
    Controllable field: one free real per grid node.

    The policy search assigns a fresh snapshot each iteration; operators
    read it through ``values`` or query it pointwise.

    Parameters
    ----------
    grid : InterpolatingGrid
        Grid the field lives on
    initial : float
        Initial value at every node
    """

    def __init__(self, grid: InterpolatingGrid, initial: float = 0.0):
        self.grid = grid
        self._values = grid.vector(initial)

    @property
    def values(self) -> np.ndarray:
        """Copy of the current snapshot."""
        return self._values.copy()

    def assign(self, values: np.ndarray) -> None:
        """Replace the snapshot with ``values`` (one entry per node)."""
        array = np.array(values, dtype=float)
        if array.shape != (self.grid.size,):
            raise ValueError(
                f"CRITICAL: Control snapshot must have shape ({self.grid.size},), "
                f"got {array.shape}"
            )
        self._values = array

    def __call__(self, t: float, S, W):
        """Control at (S, W); exact on nodes, bilinear in between."""
        return self.grid.interpolate(self._values, S, W)


class LinearSystem(ABC):
    """
    A(t) V = b(t) contribution of one node of the solve tree.
    """

    @abstractmethod
    def assemble_matrix(self, time: float) -> sparse.csr_matrix:
        """Sparse system matrix at ``time``."""

    @abstractmethod
    def assemble_rhs(self, time: float) -> np.ndarray:
        """Dense right-hand side at ``time``."""

    def begin_timestep(self, time: float, history: Sequence[np.ndarray]) -> None:
        """Hook: a timestep solving for ``time`` starts."""

    def begin_iteration(self, time: float, iterand: np.ndarray) -> None:
        """Hook: a fixed-point iteration starts from ``iterand``."""

    def iteration_settled(self) -> bool:
        """Whether discrete choices (policy, active set) stopped changing."""
        return True


class ControlledLinearSystem(LinearSystem):
    """
    Linear system whose matrix and right-hand side depend on controls.

    Subclasses register their ControlField(s) at construction; the policy
    search drives them. Assembly accepts an explicit control snapshot so
    each call is a pure function of its inputs.
    """

    #: Control value meaning "no action"
    null_control: float = 0.0

    def __init__(self) -> None:
        self._controls: list[ControlField] = []

    def register_control(self, control: ControlField) -> None:
        """Expose ``control`` to the control-optimization driver."""
        self._controls.append(control)

    @property
    def controls(self) -> tuple[ControlField, ...]:
        return tuple(self._controls)

    @abstractmethod
    def assemble_matrix(
        self, time: float, controls: Optional[np.ndarray] = None
    ) -> sparse.csr_matrix:
        """Sparse system matrix for a control snapshot (default: registered field)."""

    @abstractmethod
    def assemble_rhs(self, time: float, controls: Optional[np.ndarray] = None) -> np.ndarray:
        """Right-hand side for a control snapshot (default: registered field)."""

    def inactive_nodes(self, time: float) -> np.ndarray:
        """Mask of nodes where only the null control is admissible."""
        return np.zeros(self._controls[0].grid.size, dtype=bool)
