"""
Tests for the penalty method - solvers/penalty.py.

[T1] (A_c + large · P A_p) V = b_c + large · P b_p with
P = diag([A_p V − b_p] < 0); the constraint is met to O(1 / large).
"""

import numpy as np
import pytest

from gmwb_pricing.operators.base import LinearSystem
from gmwb_pricing.solvers.linear import SparseLUSolver
from gmwb_pricing.solvers.penalty import PenaltyMethod


class DiagonalSystem(LinearSystem):
    """I V = rhs, recording hook calls."""

    def __init__(self, grid, rhs, settled=True):
        self.grid = grid
        self.rhs = np.asarray(rhs, dtype=float)
        self.settled = settled
        self.calls: list[str] = []

    def begin_timestep(self, time, history):
        self.calls.append("timestep")

    def begin_iteration(self, time, iterand):
        self.calls.append("iteration")

    def iteration_settled(self):
        return self.settled

    def assemble_matrix(self, time):
        return self.grid.identity()

    def assemble_rhs(self, time):
        return self.rhs.copy()


@pytest.fixture
def obstacle(small_grid):
    """Continuation value 1 everywhere, obstacle 3 on the first half of the nodes."""
    n = small_grid.size
    barrier = np.where(np.arange(n) < n // 2, 3.0, 0.0)
    constraint = DiagonalSystem(small_grid, np.ones(n))
    penalizer = DiagonalSystem(small_grid, barrier)
    return constraint, penalizer, barrier


class TestActiveSet:
    """Nodes with negative impulse residual are penalized."""

    def test_active_where_constraint_violated(self, small_grid, obstacle) -> None:
        constraint, penalizer, barrier = obstacle
        penalty = PenaltyMethod(small_grid, constraint, penalizer, large=1e6)

        penalty.begin_iteration(0.0, small_grid.vector(1.0))
        np.testing.assert_array_equal(penalty.active_nodes, barrier > 1.0)

    def test_assembly(self, small_grid, obstacle) -> None:
        constraint, penalizer, barrier = obstacle
        penalty = PenaltyMethod(small_grid, constraint, penalizer, large=1e6)
        penalty.begin_iteration(0.0, small_grid.vector(1.0))

        active = (barrier > 1.0).astype(float)
        np.testing.assert_allclose(
            penalty.assemble_matrix(0.0).diagonal(), 1.0 + 1e6 * active
        )
        np.testing.assert_allclose(penalty.assemble_rhs(0.0), 1.0 + 1e6 * active * barrier)

    def test_solution_meets_constraint_to_penalty_order(self, small_grid, obstacle) -> None:
        """V = max(continuation, obstacle) up to O(1 / large)."""
        constraint, penalizer, barrier = obstacle
        penalty = PenaltyMethod(small_grid, constraint, penalizer, large=1e6)
        penalty.begin_iteration(0.0, small_grid.vector(1.0))

        V = SparseLUSolver().solve(penalty.assemble_matrix(0.0), penalty.assemble_rhs(0.0))
        np.testing.assert_allclose(V, np.maximum(1.0, barrier), atol=1e-5)

    def test_default_weight_from_settings(self, small_grid, obstacle) -> None:
        constraint, penalizer, _ = obstacle
        penalty = PenaltyMethod(small_grid, constraint, penalizer)
        assert penalty.large == pytest.approx(1e6)

    def test_non_positive_weight_rejected(self, small_grid, obstacle) -> None:
        constraint, penalizer, _ = obstacle
        with pytest.raises(ValueError, match="penalty weight"):
            PenaltyMethod(small_grid, constraint, penalizer, large=0.0)


class TestLifecycle:
    """Hooks reach both children; settled reflects all discrete choices."""

    def test_hooks_forwarded(self, small_grid, obstacle) -> None:
        constraint, penalizer, _ = obstacle
        penalty = PenaltyMethod(small_grid, constraint, penalizer)

        penalty.begin_timestep(0.0, [small_grid.vector()])
        penalty.begin_iteration(0.0, small_grid.vector())

        assert constraint.calls == ["timestep", "iteration"]
        assert penalizer.calls == ["timestep", "iteration"]

    def test_settled_after_repeat(self, small_grid, obstacle) -> None:
        constraint, penalizer, _ = obstacle
        penalty = PenaltyMethod(small_grid, constraint, penalizer)
        iterand = small_grid.vector(1.0)

        penalty.begin_iteration(0.0, iterand)
        assert not penalty.iteration_settled()

        penalty.begin_iteration(0.0, iterand)
        assert penalty.iteration_settled()

    def test_unsettled_child_blocks(self, small_grid, obstacle) -> None:
        constraint, _, barrier = obstacle
        penalizer = DiagonalSystem(small_grid, barrier, settled=False)
        penalty = PenaltyMethod(small_grid, constraint, penalizer)

        penalty.begin_iteration(0.0, small_grid.vector(1.0))
        penalty.begin_iteration(0.0, small_grid.vector(1.0))
        assert not penalty.iteration_settled()
