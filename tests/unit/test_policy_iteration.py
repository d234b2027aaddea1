"""
Tests for the node-wise policy search - solvers/policy.py.

[T1] q_i* = argmin_q [A(q) V − b(q)]_i over the candidate set, lowest
index on ties, null control where the guarantee is exhausted.
"""

import numpy as np
import pytest

from gmwb_pricing.operators.base import ControlField
from gmwb_pricing.operators.withdrawal import Withdrawal
from gmwb_pricing.solvers.policy import MinPolicyIteration, control_candidates


class TestControlCandidates:
    """Uniform control set 0 : 1/(n·2^L) : 1."""

    def test_level_zero(self) -> None:
        candidates = control_candidates(10)
        assert candidates.size == 11
        assert candidates[0] == 0.0
        assert candidates[-1] == 1.0
        np.testing.assert_allclose(np.diff(candidates), 0.1)

    def test_each_level_doubles_intervals(self) -> None:
        assert control_candidates(10, level=1).size == 21
        assert control_candidates(10, level=2).size == 41

    def test_invalid_partition(self) -> None:
        with pytest.raises(ValueError, match="partition"):
            control_candidates(0)


class TestPolicySearch:
    """Exhaustive search behaviour."""

    def test_zero_iterand_withdraws_everything(self, impulse: Withdrawal) -> None:
        """With V = 0 the residual is −b, maximized by λ = 1 (b increasing)."""
        grid = impulse.grid
        policy = MinPolicyIteration(grid, control_candidates(10), impulse)
        chosen = policy.search(0.0, grid.vector(0.0))

        active = ~impulse.inactive_nodes(0.0)
        np.testing.assert_array_equal(chosen[active], 1.0)
        np.testing.assert_array_equal(chosen[~active], 0.0)

    def test_chosen_residual_is_minimal(
        self, impulse: Withdrawal, rng: np.random.Generator
    ) -> None:
        grid = impulse.grid
        S, W = grid.nodes()
        iterand = np.maximum(S, 0.9 * W) + rng.uniform(0.0, 5.0, grid.size)
        policy = MinPolicyIteration(grid, control_candidates(10), impulse)

        residuals = policy.residuals(0.0, iterand)
        chosen = policy.search(0.0, iterand)
        active = ~impulse.inactive_nodes(0.0)

        assert residuals.shape == (11, grid.size)
        chosen_index = np.rint(chosen * 10).astype(int)
        picked = residuals[chosen_index, np.arange(grid.size)]
        np.testing.assert_array_equal(picked[active], residuals.min(axis=0)[active])

    def test_ties_resolve_to_lowest_index(self, small_grid) -> None:
        """κ = 1 and Gdt = 0 make every candidate pay exactly −ε."""
        impulse = Withdrawal(small_grid, contract_rate=0.0, penalty_rate=1.0)
        policy = MinPolicyIteration(small_grid, [0.2, 0.5, 0.8], impulse)
        iterand = small_grid.vector(0.0)

        residuals = policy.residuals(0.0, iterand)
        assert np.all(residuals == residuals[0])

        chosen = policy.search(0.0, iterand)
        active = ~impulse.inactive_nodes(0.0)
        np.testing.assert_array_equal(chosen[active], 0.2)

    def test_exhausted_nodes_forced_to_null(self, impulse: Withdrawal) -> None:
        """W ≤ ε collapses to λ = 0 even when 0 is not a candidate."""
        grid = impulse.grid
        policy = MinPolicyIteration(grid, [0.3, 0.6, 0.9], impulse)
        chosen = policy.search(0.0, grid.vector(0.0))
        np.testing.assert_array_equal(chosen[impulse.inactive_nodes(0.0)], 0.0)

    def test_empty_candidate_set_means_no_withdrawal(self, impulse: Withdrawal) -> None:
        policy = MinPolicyIteration(impulse.grid, [], impulse)
        chosen = policy.search(0.0, impulse.grid.vector(1.0))
        np.testing.assert_array_equal(chosen, 0.0)

    def test_search_is_deterministic(
        self, impulse: Withdrawal, rng: np.random.Generator
    ) -> None:
        grid = impulse.grid
        iterand = rng.uniform(0.0, 200.0, grid.size)
        policy = MinPolicyIteration(grid, control_candidates(10), impulse)

        first = policy.search(0.0, iterand)
        second = policy.search(0.0, iterand)
        np.testing.assert_array_equal(first, second)


class TestPolicyLifecycle:
    """Iteration hooks and delegation."""

    def test_begin_iteration_assigns_control(self, impulse: Withdrawal) -> None:
        grid = impulse.grid
        policy = MinPolicyIteration(grid, control_candidates(4), impulse)
        policy.begin_iteration(0.0, grid.vector(0.0))

        active = ~impulse.inactive_nodes(0.0)
        np.testing.assert_array_equal(impulse.control.values[active], 1.0)

    def test_settles_when_policy_repeats(self, impulse: Withdrawal) -> None:
        grid = impulse.grid
        policy = MinPolicyIteration(grid, control_candidates(4), impulse)

        policy.begin_iteration(0.0, grid.vector(0.0))
        assert policy.policy_changed
        assert not policy.iteration_settled()

        policy.begin_iteration(0.0, grid.vector(0.0))
        assert not policy.policy_changed
        assert policy.iteration_settled()

    def test_assembly_uses_chosen_policy(self, impulse: Withdrawal) -> None:
        grid = impulse.grid
        policy = MinPolicyIteration(grid, control_candidates(4), impulse)
        chosen = policy.search(0.0, grid.vector(0.0))

        np.testing.assert_array_equal(
            policy.assemble_matrix(0.0).toarray(),
            impulse.assemble_matrix(0.0, chosen).toarray(),
        )
        np.testing.assert_array_equal(
            policy.assemble_rhs(0.0), impulse.assemble_rhs(0.0, chosen)
        )

    def test_requires_exactly_one_control(self, impulse: Withdrawal) -> None:
        impulse.register_control(ControlField(impulse.grid))
        with pytest.raises(ValueError, match="exactly one control"):
            MinPolicyIteration(impulse.grid, control_candidates(4), impulse)
