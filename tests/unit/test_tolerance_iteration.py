"""
Tests for the fixed-point iteration - solvers/iteration.py.

[T1] Stop when max_i |V_new − V_old| / max(scale, |V_new|) < tolerance.
"""

import logging

import numpy as np
import pytest
from scipy import sparse

from gmwb_pricing.operators.base import LinearSystem
from gmwb_pricing.solvers.iteration import ConvergenceError, ToleranceIteration, relative_change
from gmwb_pricing.solvers.linear import SparseLUSolver


class FixedSystem(LinearSystem):
    """I V = target; reports unsettled for the first ``unsettled`` iterations."""

    def __init__(self, target, unsettled=0):
        self.target = np.asarray(target, dtype=float)
        self.unsettled = unsettled
        self.checks = 0

    def iteration_settled(self):
        self.checks += 1
        return self.checks > self.unsettled

    def assemble_matrix(self, time):
        return sparse.identity(self.target.size, format="csr")

    def assemble_rhs(self, time):
        return self.target.copy()


class OscillatingSystem(FixedSystem):
    """Right-hand side flips between 0 and ``target`` on every assembly."""

    def __init__(self, target):
        super().__init__(target)
        self.flip = False

    def assemble_rhs(self, time):
        self.flip = not self.flip
        return self.target.copy() if self.flip else np.zeros_like(self.target)


class TestRelativeChange:
    """[T1] Scaled max-norm change."""

    def test_relative_to_new_iterate(self) -> None:
        assert relative_change(np.array([2.0, 0.5]), np.array([1.0, 0.5])) == 0.5

    def test_scale_floors_denominator(self) -> None:
        assert relative_change(np.array([0.1]), np.array([0.0]), scale=1.0) == pytest.approx(0.1)

    def test_empty(self) -> None:
        assert relative_change(np.array([]), np.array([])) == 0.0


class TestToleranceIteration:
    """Convergence, caps and policy stability."""

    def test_converges_after_one_correction(self) -> None:
        iteration = ToleranceIteration(tolerance=1e-6)
        result = iteration.solve(0.0, FixedSystem([5.0, 7.0]), SparseLUSolver(), np.zeros(2))

        np.testing.assert_allclose(result, [5.0, 7.0])
        assert iteration.iterations == (2,)

    def test_exact_start_converges_immediately(self) -> None:
        iteration = ToleranceIteration(tolerance=1e-6)
        iteration.solve(0.0, FixedSystem([5.0]), SparseLUSolver(), np.array([5.0]))
        assert iteration.iterations == (1,)

    def test_nonconvergence_raises(self) -> None:
        iteration = ToleranceIteration(max_iterations=5, halt_on_nonconvergence=True)
        with pytest.raises(ConvergenceError, match="did not converge in 5"):
            iteration.solve(0.0, OscillatingSystem([10.0]), SparseLUSolver(), np.zeros(1))

    def test_nonconvergence_warns_when_not_halting(self, caplog) -> None:
        iteration = ToleranceIteration(max_iterations=5, halt_on_nonconvergence=False)
        with caplog.at_level(logging.WARNING, logger="gmwb_pricing.solvers.iteration"):
            result = iteration.solve(
                0.0, OscillatingSystem([10.0]), SparseLUSolver(), np.zeros(1)
            )

        assert result.shape == (1,)
        assert iteration.iterations == (5,)
        assert "did not converge" in caplog.text

    def test_stable_policy_optional(self) -> None:
        relaxed = ToleranceIteration(require_stable_policy=False)
        relaxed.solve(0.0, FixedSystem([1.0], unsettled=3), SparseLUSolver(), np.zeros(1))
        assert relaxed.iterations == (2,)

        strict = ToleranceIteration(require_stable_policy=True)
        strict.solve(0.0, FixedSystem([1.0], unsettled=3), SparseLUSolver(), np.zeros(1))
        assert strict.iterations == (4,)

    def test_mean_and_reset(self) -> None:
        iteration = ToleranceIteration()
        assert iteration.mean_iterations() == 0.0

        solver = SparseLUSolver()
        iteration.solve(0.0, FixedSystem([1.0]), solver, np.zeros(1))
        iteration.solve(0.0, FixedSystem([1.0]), solver, np.ones(1))
        assert iteration.mean_iterations() == pytest.approx(1.5)

        iteration.reset()
        assert iteration.iterations == ()

    def test_defaults_from_settings(self) -> None:
        iteration = ToleranceIteration()
        assert iteration.tolerance == 1e-6
        assert iteration.scale == 1.0
        assert iteration.max_iterations == 100
        assert iteration.halt_on_nonconvergence is True

    @pytest.mark.parametrize("kwargs", [{"tolerance": 0.0}, {"max_iterations": 0}])
    def test_invalid_arguments(self, kwargs) -> None:
        with pytest.raises(ValueError, match="CRITICAL"):
            ToleranceIteration(**kwargs)
