"""
One-dimensional, possibly non-uniform, ordered grid axis.

Theory
------
[T1] Linear interpolation on a bracketing pair (x_k, x_{k+1}):
    f(x) ≈ w · f(x_k) + (1 − w) · f(x_{k+1}),   w = (x_{k+1} − x) / (x_{k+1} − x_k)

Points outside [x_0, x_{n-1}] are clamped to the nearest node (w is
clipped to [0, 1]); the axis never extrapolates.
"""

from typing import Iterator, Union, overload

import numpy as np

ArrayLike = Union[float, np.ndarray]


class Axis:
    """
    Strictly increasing sequence of ticks.

    Examples
    --------
    >>> axis = Axis.range(0.0, 2.0, 10.0)
    >>> len(axis)
    6
    >>> axis.interpolation_data(3.0)
    (1, 0.5)
    """

    def __init__(self, ticks: "np.ndarray | list[float] | tuple[float, ...]"):
        values = np.array(ticks, dtype=float)
        if values.ndim != 1:
            raise ValueError(f"CRITICAL: Axis ticks must be 1-D, got shape {values.shape}")
        if values.size < 2:
            raise ValueError(f"CRITICAL: Axis needs at least 2 ticks, got {values.size}")
        if not np.all(np.isfinite(values)):
            raise ValueError("CRITICAL: Axis ticks must be finite")
        if np.any(np.diff(values) <= 0):
            raise ValueError("CRITICAL: Axis ticks must be strictly increasing")

        values.setflags(write=False)
        self._ticks = values

    @classmethod
    def range(cls, start: float, step: float, stop: float) -> "Axis":
        """
        Uniform axis start : step : stop (inclusive of stop).

        Parameters
        ----------
        start : float
            First tick
        step : float
            Spacing between ticks
        stop : float
            Last tick

        Returns
        -------
        Axis
            Uniform axis
        """
        if step <= 0:
            raise ValueError(f"CRITICAL: Axis step must be positive, got {step}")
        if stop <= start:
            raise ValueError(f"CRITICAL: Axis stop must exceed start, got [{start}, {stop}]")

        n_intervals = int(round((stop - start) / step))
        return cls(start + step * np.arange(n_intervals + 1))

    @property
    def ticks(self) -> np.ndarray:
        """Read-only view of the ticks."""
        return self._ticks

    @property
    def lower(self) -> float:
        return float(self._ticks[0])

    @property
    def upper(self) -> float:
        return float(self._ticks[-1])

    def __len__(self) -> int:
        return int(self._ticks.size)

    def __getitem__(self, index: int) -> float:
        return float(self._ticks[index])

    def __iter__(self) -> Iterator[float]:
        return (float(x) for x in self._ticks)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Axis):
            return NotImplemented
        return np.array_equal(self._ticks, other._ticks)

    def __repr__(self) -> str:
        return f"Axis(n={len(self)}, lower={self.lower}, upper={self.upper})"

    def refined(self) -> "Axis":
        """
        New axis with a tick inserted midway between each adjacent pair.

        A refined axis of n ticks has 2n - 1 ticks and contains every
        original tick.
        """
        ticks = self._ticks
        refined = np.empty(2 * ticks.size - 1)
        refined[0::2] = ticks
        refined[1::2] = 0.5 * (ticks[:-1] + ticks[1:])
        return Axis(refined)

    @overload
    def interpolation_data(self, x: float) -> tuple[int, float]: ...

    @overload
    def interpolation_data(self, x: np.ndarray) -> tuple[np.ndarray, np.ndarray]: ...

    def interpolation_data(self, x):
        """
        Bracketing index and lower-node weight for each query point.

        Parameters
        ----------
        x : float or ndarray
            Query point(s)

        Returns
        -------
        tuple
            (index, weight): ``index`` is the lower bracketing tick, always
            in [0, n - 2]; ``weight`` in [0, 1] multiplies the value at
            ``index`` and ``1 - weight`` the value at ``index + 1``.
        """
        ticks = self._ticks
        points = np.asarray(x, dtype=float)

        index = np.searchsorted(ticks, points, side="right") - 1
        index = np.clip(index, 0, ticks.size - 2)

        lower = ticks[index]
        upper = ticks[index + 1]
        weight = np.clip((upper - points) / (upper - lower), 0.0, 1.0)

        if points.ndim == 0:
            return int(index), float(weight)
        return index, weight
