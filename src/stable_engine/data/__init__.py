"""Data handling modules for the stable engine."""

from stable_engine.data.models import (
    AccountInformation,
    FuzzReport,
    LiquidationQuote,
    LiquidationResult,
    PositionStatus,
    PriceQuote,
    Scenario,
    ScenarioActor,
    ScenarioAsset,
    ScenarioReport,
    ScenarioStep,
    StepOutcome,
)
from stable_engine.data.interfaces import CollateralToken, PriceFeed, StableUnitGateway
from stable_engine.data.registry import AssetRegistry, SupportedAsset
from stable_engine.data.oracle import PriceOracleAdapter, stale_checked_quote
from stable_engine.data.ledgers import CollateralLedger, DebtLedger
from stable_engine.data.health_factor import (
    HealthFactorBreakdown,
    HealthFactorCalculator,
    calculate_health_factor,
)
from stable_engine.data.chainlink import ChainlinkPriceFeed

__all__ = [
    # Models
    "AccountInformation",
    "FuzzReport",
    "LiquidationQuote",
    "LiquidationResult",
    "PositionStatus",
    "PriceQuote",
    "Scenario",
    "ScenarioActor",
    "ScenarioAsset",
    "ScenarioReport",
    "ScenarioStep",
    "StepOutcome",
    # Interfaces
    "CollateralToken",
    "PriceFeed",
    "StableUnitGateway",
    # Registry and oracle
    "AssetRegistry",
    "SupportedAsset",
    "PriceOracleAdapter",
    "stale_checked_quote",
    # Ledgers
    "CollateralLedger",
    "DebtLedger",
    # Health factor
    "HealthFactorBreakdown",
    "HealthFactorCalculator",
    "calculate_health_factor",
    # Chainlink
    "ChainlinkPriceFeed",
]
