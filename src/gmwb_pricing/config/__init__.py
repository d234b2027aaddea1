"""
Frozen configuration and centralized tolerances.

See: config/settings.py and config/tolerances.py
"""

from gmwb_pricing.config.settings import (
    SETTINGS,
    ContractDefaults,
    GridConfig,
    NumericsConfig,
    Settings,
    SolverConfig,
    ValidationConfig,
)
from gmwb_pricing.config.tolerances import TOLERANCE_REGISTRY, get_tolerance

__all__ = [
    "SETTINGS",
    "Settings",
    "ContractDefaults",
    "GridConfig",
    "NumericsConfig",
    "SolverConfig",
    "ValidationConfig",
    "TOLERANCE_REGISTRY",
    "get_tolerance",
]
