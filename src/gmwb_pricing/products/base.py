"""
Pricer contract shared by guarantee products.

A pricer turns immutable product terms into a PricingResult; the result
refuses values that cannot be a liability (negative or non-finite).
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from typing import Any, Optional


@dataclass(frozen=True)
class PricingResult:
    """
    Value of a guarantee at the valuation date.

    Attributes
    ----------
    present_value : float
        Value of the guarantee to the policyholder
    details : dict, optional
        Inputs and diagnostics worth keeping next to the number
    as_of_date : date, optional
        Valuation date
    """

    present_value: float
    details: Optional[dict[str, Any]] = None
    as_of_date: Optional[date] = None

    def __post_init__(self) -> None:
        if not math.isfinite(self.present_value):
            raise ValueError(
                f"CRITICAL: present_value is not finite ({self.present_value}); "
                f"the solve diverged."
            )
        if self.present_value < 0:
            raise ValueError(
                f"CRITICAL: present_value must be >= 0, got {self.present_value}. "
                f"A guarantee cannot be worth less than nothing."
            )


class BasePricer(ABC):
    """
    Product pricer interface.

    Subclasses: GMWBPricer
    """

    @abstractmethod
    def price(
        self,
        product: Any,
        as_of_date: Optional[date] = None,
        **kwargs: Any,
    ) -> PricingResult:
        """
        Value ``product`` as of ``as_of_date`` (today when omitted).

        Raises
        ------
        ValueError
            If the product terms are incomplete or inconsistent
        """

    def validate_product(self, product: Any, required_fields: list[str]) -> None:
        """
        Reject products with missing or non-finite numeric terms.

        Parameters
        ----------
        product : Any
            Product terms (a dataclass)
        required_fields : list[str]
            Attribute names that must be set

        Raises
        ------
        ValueError
            Naming the first offending field
        """
        for name in required_fields:
            value = getattr(product, name, None)
            if value is None:
                raise ValueError(f"CRITICAL: {type(product).__name__} has no '{name}'")
            if isinstance(value, float) and not math.isfinite(value):
                raise ValueError(f"CRITICAL: {type(product).__name__}.{name} is {value}")
