"""
Validation gates for GMWB pricing results.

Each gate inspects a finished GMWBPricingResult and reports PASS, WARN or
HALT. A HALT means the numbers must not be used; a WARN flags a result
that is usable but suspicious (slow iteration, non-asymptotic refinement).
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

import numpy as np

from gmwb_pricing.config.settings import SETTINGS
from gmwb_pricing.config.tolerances import REFINEMENT_TOLERANCE

if TYPE_CHECKING:
    from gmwb_pricing.products.gmwb import GMWBPricingResult

logger = logging.getLogger(__name__)


class GateStatus(Enum):
    """Outcome of a gate, ordered by severity."""
    PASS = "pass"
    WARN = "warn"
    HALT = "halt"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {GateStatus.PASS: 0, GateStatus.WARN: 1, GateStatus.HALT: 2}


@dataclass(frozen=True)
class GateResult:
    """
    One gate's verdict.

    Attributes
    ----------
    gate_name : str
        Gate that produced the verdict
    status : GateStatus
        PASS, WARN or HALT
    message : str
        Human-readable finding
    value : Any, optional
        Measured quantity
    threshold : Any, optional
        Limit the quantity was compared against
    """

    gate_name: str
    status: GateStatus
    message: str
    value: Any = None
    threshold: Any = None

    @property
    def passed(self) -> bool:
        """A WARN still lets the result through."""
        return self.status is not GateStatus.HALT


@dataclass(frozen=True)
class ValidationReport:
    """Verdicts of every gate run on one result."""

    results: tuple[GateResult, ...]

    def with_status(self, status: GateStatus) -> list[GateResult]:
        return [r for r in self.results if r.status is status]

    @property
    def overall_status(self) -> GateStatus:
        if not self.results:
            return GateStatus.PASS
        return max((r.status for r in self.results), key=lambda s: s.severity)

    @property
    def passed(self) -> bool:
        return self.overall_status is not GateStatus.HALT

    @property
    def halted_gates(self) -> list[GateResult]:
        return self.with_status(GateStatus.HALT)

    @property
    def warned_gates(self) -> list[GateResult]:
        return self.with_status(GateStatus.WARN)

    def to_dict(self) -> dict:
        """Flat summary for logs and reports."""
        return {
            "overall_status": self.overall_status.value,
            "passed": self.passed,
            "n_halted": len(self.halted_gates),
            "n_warned": len(self.warned_gates),
            "results": [
                {"gate": r.gate_name, "status": r.status.value, "message": r.message}
                for r in self.results
            ],
        }


# =============================================================================
# Gates
# =============================================================================

class ValidationGate(ABC):
    """
    A single check on a pricing result.

    ``on_failure`` is the status reported when the check does not hold.
    """

    name: str = "gate"
    on_failure: GateStatus = GateStatus.WARN

    @abstractmethod
    def check(self, result: "GMWBPricingResult", **context: Any) -> GateResult:
        """Inspect ``result`` and return a verdict."""

    def _verdict(
        self,
        holds: bool,
        message: str,
        value: Any = None,
        threshold: Any = None,
    ) -> GateResult:
        status = GateStatus.PASS if holds else self.on_failure
        return GateResult(self.name, status, message, value, threshold)


class FiniteValuesGate(ValidationGate):
    """[T1] NaN or inf anywhere in the solution means the solve diverged."""

    name = "finite_values"
    on_failure = GateStatus.HALT

    def check(self, result: "GMWBPricingResult", **context: Any) -> GateResult:
        if result.values is None:
            return self._verdict(True, "No nodal values attached")
        n_bad = int(np.count_nonzero(~np.isfinite(result.values)))
        return self._verdict(n_bad == 0, f"{n_bad} non-finite nodal value(s)", n_bad, 0)


class NonNegativeValuesGate(ValidationGate):
    """[T1] Payoff and withdrawals are non-negative, so is the value."""

    name = "non_negative_values"
    on_failure = GateStatus.HALT

    def __init__(self, tolerance: Optional[float] = None):
        self.tolerance = (
            SETTINGS.validation.negative_value_tolerance if tolerance is None else tolerance
        )

    def check(self, result: "GMWBPricingResult", **context: Any) -> GateResult:
        if result.values is None or result.values.size == 0:
            return self._verdict(True, "No nodal values attached")
        lowest = float(np.nanmin(result.values))
        return self._verdict(
            lowest >= -self.tolerance,
            f"Minimum nodal value {lowest:.6g}",
            lowest,
            -self.tolerance,
        )


class PresentValueBoundsGate(ValidationGate):
    """
    [T1] The holder can never extract more than account plus guarantee:
        V(S, W) <= S + W
    """

    name = "present_value_bounds"

    def __init__(self, max_multiple: float = 1.0):
        self.max_multiple = max_multiple

    def check(self, result: "GMWBPricingResult", **context: Any) -> GateResult:
        bound = self.max_multiple * (result.spot + result.guarantee)
        return self._verdict(
            result.present_value <= bound,
            f"PV {result.present_value:.4f} against spot + guarantee {bound:.4f}",
            result.present_value,
            bound,
        )


class IterationBudgetGate(ValidationGate):
    """
    Many fixed-point iterations per step point at a badly scaled penalty
    or a policy flipping between candidates.
    """

    name = "iteration_budget"

    def __init__(self, max_mean_iterations: Optional[float] = None):
        self.max_mean_iterations = (
            SETTINGS.validation.max_mean_iterations
            if max_mean_iterations is None
            else max_mean_iterations
        )

    def check(self, result: "GMWBPricingResult", **context: Any) -> GateResult:
        mean = result.mean_inner_iterations
        return self._verdict(
            mean <= self.max_mean_iterations,
            f"Mean inner iterations {mean:.2f} (budget {self.max_mean_iterations})",
            mean,
            self.max_mean_iterations,
        )


class RefinementConvergenceGate(ValidationGate):
    """
    [T1] In the asymptotic regime each refinement changes the value less
    than the previous one. Needs three levels to compare two changes;
    ``slack`` is the relative growth tolerated before warning.
    """

    name = "refinement_convergence"

    def __init__(self, slack: float = REFINEMENT_TOLERANCE):
        self.slack = slack

    def check(self, result: "GMWBPricingResult", **context: Any) -> GateResult:
        values = [level.value for level in result.levels]
        if len(values) < 3:
            return self._verdict(True, f"{len(values)} level(s), nothing to compare")

        changes = np.abs(np.diff(values)).tolist()
        shrinking = all(
            later <= (1.0 + self.slack) * earlier
            for earlier, later in zip(changes, changes[1:])
        )
        return self._verdict(shrinking, f"Refinement changes {changes}", changes, self.slack)


# =============================================================================
# Engine
# =============================================================================

class ValidationEngine:
    """
    Run a set of gates over a pricing result.

    Parameters
    ----------
    gates : list[ValidationGate], optional
        Gates to run (default: every gate in this module)

    Examples
    --------
    Given a result from ``GMWBPricer(validate=False).price(contract)``::

        report = ValidationEngine().validate(result)
        if report.overall_status is GateStatus.WARN:
            print(report.to_dict())
    """

    def __init__(self, gates: Optional[list[ValidationGate]] = None):
        self.gates = gates if gates is not None else [
            FiniteValuesGate(),
            NonNegativeValuesGate(),
            PresentValueBoundsGate(),
            IterationBudgetGate(),
            RefinementConvergenceGate(),
        ]

    def validate(self, result: "GMWBPricingResult", **context: Any) -> ValidationReport:
        """Run every gate; WARN verdicts are logged."""
        report = ValidationReport(tuple(gate.check(result, **context) for gate in self.gates))
        for verdict in report.warned_gates:
            logger.warning(f"Validation WARN [{verdict.gate_name}]: {verdict.message}")
        return report

    def validate_and_raise(
        self, result: "GMWBPricingResult", **context: Any
    ) -> "GMWBPricingResult":
        """
        Validate, raising on any HALT.

        Raises
        ------
        ValueError
            Listing every halted gate
        """
        report = self.validate(result, **context)
        if not report.passed:
            lines = "\n".join(f"  - [{g.gate_name}] {g.message}" for g in report.halted_gates)
            raise ValueError(f"CRITICAL: Validation failed. HALTs:\n{lines}")
        return result
