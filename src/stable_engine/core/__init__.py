"""Core modules for the stable engine."""

from stable_engine.core.errors import (
    AssetListLengthMismatch,
    AssetNotSupported,
    CompensationFailed,
    BalanceError,
    ConfigError,
    CustodyError,
    DuplicateAsset,
    EngineError,
    HealthFactorBroken,
    HealthFactorNotImproved,
    HealthFactorOk,
    InsufficientCollateral,
    InsufficientDebt,
    InvalidAmount,
    InvalidPrice,
    InvalidSetting,
    InvariantError,
    MintFailed,
    OracleError,
    ReentrantCall,
    StalePrice,
    TransferFailed,
    UnsupportedFeedDecimals,
    ValidationError,
)
from stable_engine.core.guard import ReentrancyGuard
from stable_engine.core.logging import AuditLogger, LogEntry, verify_log_integrity
from stable_engine.core.config import EngineSettings, load_settings
from stable_engine.core.liquidation import LiquidationEngine
from stable_engine.core.engine import StableEngine

__all__ = [
    # Errors
    "AssetListLengthMismatch",
    "AssetNotSupported",
    "CompensationFailed",
    "BalanceError",
    "ConfigError",
    "CustodyError",
    "DuplicateAsset",
    "EngineError",
    "HealthFactorBroken",
    "HealthFactorNotImproved",
    "HealthFactorOk",
    "InsufficientCollateral",
    "InsufficientDebt",
    "InvalidAmount",
    "InvalidPrice",
    "InvalidSetting",
    "InvariantError",
    "MintFailed",
    "OracleError",
    "ReentrantCall",
    "StalePrice",
    "TransferFailed",
    "UnsupportedFeedDecimals",
    "ValidationError",
    # Guard
    "ReentrancyGuard",
    # Logging
    "AuditLogger",
    "LogEntry",
    "verify_log_integrity",
    # Config
    "EngineSettings",
    "load_settings",
    # Engine
    "LiquidationEngine",
    "StableEngine",
]
