"""Stable Engine - overcollateralized stable-unit accounting.

This package tracks collateral and debt per user, values collateral through
freshness-checked price feeds, enforces a minimum health factor on every
mutation, and lets third parties liquidate undercollateralized positions.
"""

__version__ = "0.1.0"

from stable_engine.core.engine import StableEngine
from stable_engine.core.errors import (
    BalanceError,
    ConfigError,
    CustodyError,
    EngineError,
    InvariantError,
    OracleError,
    ReentrantCall,
    ValidationError,
)

__all__ = [
    "StableEngine",
    # Errors
    "BalanceError",
    "ConfigError",
    "CustodyError",
    "EngineError",
    "InvariantError",
    "OracleError",
    "ReentrantCall",
    "ValidationError",
    "__version__",
]
