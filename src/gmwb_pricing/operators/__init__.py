"""
Operators of the GMWB pricing PDE.

- Withdrawal: impulse operator (I - M, b) of the withdrawal decision
- BlackScholes: diffusion of the investment account
- LinearSystem / ControlledLinearSystem / ControlField: shared contracts
"""

from .base import (
    ControlField,
    ControlledLinearSystem,
    LinearSystem,
    as_schedule,
)
from .black_scholes import BlackScholes, black_scholes_generator_1d
from .withdrawal import Withdrawal, post_withdrawal_state, withdrawal_cashflow

__all__ = [
    "LinearSystem",
    "ControlledLinearSystem",
    "ControlField",
    "as_schedule",
    "BlackScholes",
    "black_scholes_generator_1d",
    "Withdrawal",
    "post_withdrawal_state",
    "withdrawal_cashflow",
]
