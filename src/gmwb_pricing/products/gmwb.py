"""
GMWB (Guaranteed Minimum Withdrawal Benefit) pricer.

The policyholder pays a premium into an investment account and may withdraw
up to the contract rate each period penalty free, even after the account is
depleted. Larger withdrawals pay a surrender charge. At expiry the holder
receives the larger of the account and the remaining guarantee net of the
surrender charge.

Theory
------
[T1] Value V(S, W, t) solves the impulse-control QVI
    min( V_τ − L V ,  V − sup_λ [V(S', W') + b(λ)] ) = 0
[T1] Terminal condition V(S, W, T) = max(S, (1 − κ) W)

The solve is repeated on successively refined grids (nodes, timesteps and
controls all doubled) to expose the discretization error.

See: Azimzadeh & Forsyth (2015); Dai, Kwok & Zong (2008) "Guaranteed minimum
withdrawal benefit in variable annuities"
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional

import numpy as np
import pandas as pd

from gmwb_pricing.config.settings import SETTINGS, NumericsConfig, SolverConfig
from gmwb_pricing.grid import Axis, RectilinearGrid2
from gmwb_pricing.operators.black_scholes import BlackScholes
from gmwb_pricing.operators.withdrawal import Withdrawal
from gmwb_pricing.products.base import BasePricer, PricingResult
from gmwb_pricing.solvers.iteration import ToleranceIteration
from gmwb_pricing.solvers.linear import make_linear_solver
from gmwb_pricing.solvers.penalty import PenaltyMethod
from gmwb_pricing.solvers.policy import MinPolicyIteration, control_candidates
from gmwb_pricing.solvers.stepper import ReverseBDF2, ReverseConstantStepper
from gmwb_pricing.validation.gates import ValidationEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GMWBContract:
    """
    GMWB contract terms.

    Attributes
    ----------
    expiry : float
        Maturity in years
    contract_rate : float
        Penalty-free withdrawal amount per year (G)
    penalty_rate : float
        Surrender charge κ on withdrawals above the allowance
    hedging_fee : float
        Annual fee α charged to the investment account
    """

    expiry: float = SETTINGS.contract.expiry
    contract_rate: float = SETTINGS.contract.contract_rate
    penalty_rate: float = SETTINGS.contract.penalty_rate
    hedging_fee: float = SETTINGS.contract.hedging_fee

    def __post_init__(self) -> None:
        if self.expiry <= 0:
            raise ValueError(f"CRITICAL: expiry must be > 0, got {self.expiry}")
        if self.contract_rate < 0:
            raise ValueError(f"CRITICAL: contract_rate must be >= 0, got {self.contract_rate}")
        if not 0 <= self.penalty_rate <= 1:
            raise ValueError(f"CRITICAL: penalty_rate must be in [0, 1], got {self.penalty_rate}")
        if self.hedging_fee < 0:
            raise ValueError(f"CRITICAL: hedging_fee must be >= 0, got {self.hedging_fee}")

    def allowance(self, dt: float) -> float:
        """Penalty-free withdrawal amount Gdt for a period of length dt."""
        return self.contract_rate * dt

    def payoff(self, S: np.ndarray, W: np.ndarray) -> np.ndarray:
        """
        Terminal value: account, or remaining guarantee net of surrender charge.

        [T1] V(S, W, T) = max(S, (1 − κ) W)
        """
        return np.maximum(S, (1 - self.penalty_rate) * W)


@dataclass(frozen=True)
class MarketParams:
    """
    Market parameters for the investment account.

    Attributes
    ----------
    risk_free_rate : float
        Continuously compounded risk-free rate
    volatility : float
        Lognormal volatility (annualized)
    """

    risk_free_rate: float = SETTINGS.contract.risk_free_rate
    volatility: float = SETTINGS.contract.volatility

    def __post_init__(self) -> None:
        if self.volatility <= 0:
            raise ValueError(f"CRITICAL: volatility must be > 0, got {self.volatility}")


@dataclass(frozen=True)
class LevelResult:
    """
    Outcome of one refinement level.

    Attributes
    ----------
    level : int
        Refinement level L
    nodes : int
        Number of grid nodes
    timesteps : int
        Number of timesteps
    controls : int
        Size of the control set
    value : float
        Contract value at (spot, guarantee)
    mean_inner_iterations : float
        Average fixed-point iterations per timestep
    """

    level: int
    nodes: int
    timesteps: int
    controls: int
    value: float
    mean_inner_iterations: float


@dataclass(frozen=True)
class GMWBPricingResult(PricingResult):
    """
    Extended pricing result for GMWB contracts.

    Attributes
    ----------
    spot : float
        Investment account at valuation
    guarantee : float
        Guarantee base at valuation
    levels : tuple[LevelResult, ...]
        One entry per refinement level, coarsest first
    convergence : pd.DataFrame
        Refinement table (value, change, ratio, iterations per level)
    report : pd.DataFrame
        Finest solution sampled on the report grid (rows S, columns W)
    values : ndarray
        Finest solution at every node of the finest grid
    """

    spot: float = 100.0
    guarantee: float = 100.0
    levels: tuple[LevelResult, ...] = ()
    convergence: Optional[pd.DataFrame] = field(default=None, repr=False, compare=False)
    report: Optional[pd.DataFrame] = field(default=None, repr=False, compare=False)
    values: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    @property
    def mean_inner_iterations(self) -> float:
        """Average fixed-point iterations per timestep over all levels."""
        if not self.levels:
            return 0.0
        return float(np.mean([level.mean_inner_iterations for level in self.levels]))


def default_grid() -> RectilinearGrid2:
    """Level-0 solution grid from SETTINGS.grid."""
    config = SETTINGS.grid
    return RectilinearGrid2(
        Axis(config.investment_ticks),
        Axis.range(*config.withdrawal_range),
    )


def report_grid() -> RectilinearGrid2:
    """Uniform grid the final solution is sampled on."""
    config = SETTINGS.grid
    return RectilinearGrid2(Axis.range(*config.report_range), Axis.range(*config.report_range))


def convergence_table(levels: tuple[LevelResult, ...]) -> pd.DataFrame:
    """
    Refinement table with successive changes and their ratios.

    [T1] For a scheme of order p, change ratios approach 2^p.

    Parameters
    ----------
    levels : tuple[LevelResult, ...]
        Results ordered coarse to fine

    Returns
    -------
    pd.DataFrame
        One row per level
    """
    frame = pd.DataFrame(
        [
            {
                "level": r.level,
                "nodes": r.nodes,
                "timesteps": r.timesteps,
                "controls": r.controls,
                "value": r.value,
                "mean_inner_iterations": r.mean_inner_iterations,
            }
            for r in levels
        ]
    )
    if frame.empty:
        return frame
    frame["change"] = frame["value"].diff()
    frame["ratio"] = frame["change"].shift(1) / frame["change"]
    return frame


class GMWBPricer(BasePricer):
    """
    Impulse-control PDE pricer for GMWB contracts.

    [T1] Solve tree per level:
        ReverseConstantStepper -> ToleranceIteration
            -> PenaltyMethod(ReverseBDF2(BlackScholes), MinPolicyIteration(Withdrawal))

    Parameters
    ----------
    market : MarketParams, optional
        Market parameters (default: SETTINGS.contract)
    numerics : NumericsConfig, optional
        Discretization (default: SETTINGS.numerics)
    solver_config : SolverConfig, optional
        Iteration controls (default: SETTINGS.solver)
    validate : bool
        Run validation gates on the result

    Examples
    --------
    >>> from gmwb_pricing.config.settings import NumericsConfig
    >>> pricer = GMWBPricer(numerics=NumericsConfig(timesteps=20, refinement_levels=1))
    >>> result = pricer.price(GMWBContract())
    >>> 100.0 < result.present_value < 200.0
    True
    """

    def __init__(
        self,
        market: Optional[MarketParams] = None,
        numerics: Optional[NumericsConfig] = None,
        solver_config: Optional[SolverConfig] = None,
        validate: bool = True,
    ):
        self.market = market or MarketParams()
        self.numerics = numerics or SETTINGS.numerics
        self.solver_config = solver_config or SETTINGS.solver
        self.validate = validate

    def solve_level(
        self,
        contract: GMWBContract,
        grid: RectilinearGrid2,
        level: int,
    ) -> tuple[np.ndarray, ToleranceIteration]:
        """
        Solve on one grid at one refinement level.

        Parameters
        ----------
        contract : GMWBContract
            Contract terms
        grid : RectilinearGrid2
            Solution grid for this level
        level : int
            Refinement level L (timesteps and controls scale with 2^L)

        Returns
        -------
        tuple[ndarray, ToleranceIteration]
            Solution at t = 0 and the iteration (for diagnostics)
        """
        config = self.solver_config
        tolerance = ToleranceIteration(
            tolerance=config.tolerance,
            scale=config.scale,
            max_iterations=config.max_iterations,
            require_stable_policy=config.require_stable_policy,
            halt_on_nonconvergence=config.halt_on_nonconvergence,
        )
        stepper = ReverseConstantStepper(
            0.0,
            contract.expiry,
            contract.expiry / (self.numerics.timesteps * 2**level),
            tolerance,
        )

        diffusion = BlackScholes(
            grid,
            self.market.risk_free_rate,
            self.market.volatility,
            contract.hedging_fee,
        )
        bdf = ReverseBDF2(grid, diffusion, stepper.dt)

        impulse = Withdrawal(
            grid,
            contract_rate=contract.allowance(stepper.dt),
            penalty_rate=contract.penalty_rate,
            epsilon=config.withdrawal_epsilon,
        )
        policy = MinPolicyIteration(
            grid,
            control_candidates(self.numerics.control_partition, level),
            impulse,
        )
        penalty = PenaltyMethod(grid, bdf, policy, large=1.0 / config.penalty_tolerance)

        solver = make_linear_solver(self.numerics.linear_solver)
        values = stepper.solve(grid, contract.payoff, penalty, solver)
        return values, tolerance

    def price(  # type: ignore[override]  # Subclass has specific params
        self,
        product: Optional[GMWBContract] = None,
        as_of_date: Optional[date] = None,
        spot: float = 100.0,
        guarantee: float = 100.0,
        grid: Optional[RectilinearGrid2] = None,
    ) -> GMWBPricingResult:
        """
        Price a GMWB with a refinement study.

        Parameters
        ----------
        product : GMWBContract, optional
            Contract terms (default: GMWBContract())
        as_of_date : date, optional
            Valuation date (default: today)
        spot : float
            Investment account at valuation
        guarantee : float
            Guarantee base at valuation
        grid : RectilinearGrid2, optional
            Level-0 grid (default: SETTINGS.grid layout)

        Returns
        -------
        GMWBPricingResult
            Finest-level value plus convergence diagnostics

        Raises
        ------
        ValueError
            If a validation gate halts
        ConvergenceError
            If a timestep fails to converge
        """
        contract = product or GMWBContract()
        self.validate_product(contract, ["expiry", "contract_rate", "penalty_rate"])
        if spot < 0 or guarantee < 0:
            raise ValueError(
                f"CRITICAL: spot and guarantee must be >= 0, got ({spot}, {guarantee})"
            )

        grid = grid or default_grid()
        levels: list[LevelResult] = []
        values = grid.vector()
        solved_grid = grid

        for level in range(self.numerics.refinement_levels):
            values, tolerance = self.solve_level(contract, grid, level)
            solved_grid = grid

            result = LevelResult(
                level=level,
                nodes=grid.size,
                timesteps=self.numerics.timesteps * 2**level,
                controls=self.numerics.control_partition * 2**level + 1,
                value=float(grid.interpolate(values, spot, guarantee)),
                mean_inner_iterations=tolerance.mean_iterations(),
            )
            levels.append(result)
            logger.info(
                f"Level {level}: nodes={result.nodes}, steps={result.timesteps}, "
                f"value={result.value:.6f}, "
                f"mean inner iterations={result.mean_inner_iterations:.2f}"
            )

            grid = grid.refined()

        sample = report_grid()
        report = sample.to_frame(solved_grid.interpolate(values, *sample.nodes()))

        pricing = GMWBPricingResult(
            present_value=levels[-1].value,
            details={
                "risk_free_rate": self.market.risk_free_rate,
                "volatility": self.market.volatility,
                "expiry": contract.expiry,
                "contract_rate": contract.contract_rate,
                "penalty_rate": contract.penalty_rate,
                "hedging_fee": contract.hedging_fee,
            },
            as_of_date=as_of_date or date.today(),
            spot=spot,
            guarantee=guarantee,
            levels=tuple(levels),
            convergence=convergence_table(tuple(levels)),
            report=report,
            values=values,
        )

        if self.validate:
            engine = ValidationEngine()
            if SETTINGS.validation.halt_on_failure:
                engine.validate_and_raise(pricing)
            else:
                validation_report = engine.validate(pricing)
                logger.info(f"Validation: {validation_report.overall_status.value}")

        return pricing
