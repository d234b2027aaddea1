"""
Tests for validation gates - validation/gates.py.

HALT rejects a result, WARN flags it, PASS lets it through.
"""

import logging

import numpy as np
import pytest

from gmwb_pricing.config.tolerances import REFINEMENT_TOLERANCE
from gmwb_pricing.products.gmwb import GMWBPricingResult, LevelResult
from gmwb_pricing.validation.gates import (
    FiniteValuesGate,
    GateStatus,
    IterationBudgetGate,
    NonNegativeValuesGate,
    PresentValueBoundsGate,
    RefinementConvergenceGate,
    ValidationEngine,
)


def _level(level: int, value: float, iterations: float = 2.0) -> LevelResult:
    return LevelResult(
        level=level,
        nodes=100 * 4**level,
        timesteps=10 * 2**level,
        controls=10 * 2**level + 1,
        value=value,
        mean_inner_iterations=iterations,
    )


def _result(values=None, present_value=105.0, levels=None) -> GMWBPricingResult:
    return GMWBPricingResult(
        present_value=present_value,
        spot=100.0,
        guarantee=100.0,
        levels=tuple(levels) if levels is not None else (_level(0, present_value),),
        values=np.array([1.0, 2.0, 3.0]) if values is None else np.asarray(values),
    )


class TestValueGates:
    """[T1] Finite, non-negative nodal values."""

    def test_finite_pass(self) -> None:
        assert FiniteValuesGate().check(_result()).status == GateStatus.PASS

    def test_nan_halts(self) -> None:
        gate = FiniteValuesGate().check(_result(values=[1.0, np.nan, np.inf]))
        assert gate.status == GateStatus.HALT
        assert gate.value == 2

    def test_negative_halts(self) -> None:
        gate = NonNegativeValuesGate().check(_result(values=[1.0, -0.5]))
        assert gate.status == GateStatus.HALT
        assert gate.value == -0.5

    def test_round_off_negative_passes(self) -> None:
        gate = NonNegativeValuesGate().check(_result(values=[1.0, -1e-12]))
        assert gate.status == GateStatus.PASS


class TestDiagnosticGates:
    """Bounds, iteration budget and refinement behaviour warn."""

    def test_present_value_above_bound_warns(self) -> None:
        gate = PresentValueBoundsGate().check(_result(present_value=250.0))
        assert gate.status == GateStatus.WARN
        assert gate.threshold == 200.0

    def test_present_value_within_bound(self) -> None:
        assert PresentValueBoundsGate().check(_result()).status == GateStatus.PASS

    def test_iteration_budget(self) -> None:
        heavy = _result(levels=[_level(0, 105.0, iterations=50.0)])
        assert IterationBudgetGate().check(heavy).status == GateStatus.WARN
        assert IterationBudgetGate().check(_result()).status == GateStatus.PASS

    def test_refinement_needs_three_levels(self) -> None:
        levels = [_level(0, 100.0), _level(1, 104.0)]
        assert RefinementConvergenceGate().check(_result(levels=levels)).status == GateStatus.PASS

    def test_refinement_decreasing_changes_pass(self) -> None:
        levels = [_level(0, 100.0), _level(1, 104.0), _level(2, 105.0)]
        assert RefinementConvergenceGate().check(_result(levels=levels)).status == GateStatus.PASS

    def test_refinement_growing_changes_warn(self) -> None:
        levels = [_level(0, 100.0), _level(1, 101.0), _level(2, 105.0)]
        gate = RefinementConvergenceGate().check(_result(levels=levels))
        assert gate.status == GateStatus.WARN
        assert gate.value == [1.0, 4.0]

    def test_refinement_growth_within_slack_passes(self) -> None:
        levels = [_level(0, 100.0), _level(1, 104.0), _level(2, 108.1)]
        gate = RefinementConvergenceGate().check(_result(levels=levels))
        assert gate.status == GateStatus.PASS
        assert gate.threshold == REFINEMENT_TOLERANCE

    def test_refinement_zero_slack_is_strict(self) -> None:
        levels = [_level(0, 100.0), _level(1, 104.0), _level(2, 108.1)]
        gate = RefinementConvergenceGate(slack=0.0).check(_result(levels=levels))
        assert gate.status == GateStatus.WARN


class TestValidationEngine:
    """Aggregation and raising."""

    def test_clean_result_passes(self) -> None:
        report = ValidationEngine().validate(_result())
        assert report.passed
        assert report.overall_status == GateStatus.PASS
        assert report.to_dict()["n_halted"] == 0

    def test_halt_raises(self) -> None:
        with pytest.raises(ValueError, match="CRITICAL: Validation failed"):
            ValidationEngine().validate_and_raise(_result(values=[np.nan]))

    def test_warnings_logged(self, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="gmwb_pricing.validation.gates"):
            report = ValidationEngine().validate(_result(present_value=250.0))

        assert report.overall_status == GateStatus.WARN
        assert report.passed
        assert "present_value_bounds" in caplog.text

    def test_custom_gates(self) -> None:
        engine = ValidationEngine(gates=[FiniteValuesGate()])
        assert len(engine.validate(_result()).results) == 1

    def test_validate_and_raise_returns_result(self) -> None:
        result = _result()
        assert ValidationEngine().validate_and_raise(result) is result
