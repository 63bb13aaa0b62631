"""Local simulation tooling for the stable engine."""

from stable_engine.simulation.collaborators import (
    MAX_ALLOWANCE,
    InMemoryToken,
    LocalDeployment,
    ManualClock,
    MockPriceFeed,
    StableUnitCustody,
    StableUnitToken,
    TokenCustody,
    TokenError,
    deploy_local_engine,
)
from stable_engine.simulation.scenario import (
    ScenarioRunner,
    load_scenario,
    to_feed_units,
    to_wad,
)
from stable_engine.simulation.fuzz import FuzzConfig, InvariantHandler, RunState

__all__ = [
    # Collaborators
    "MAX_ALLOWANCE",
    "InMemoryToken",
    "LocalDeployment",
    "ManualClock",
    "MockPriceFeed",
    "StableUnitCustody",
    "StableUnitToken",
    "TokenCustody",
    "TokenError",
    "deploy_local_engine",
    # Scenario replay
    "ScenarioRunner",
    "load_scenario",
    "to_feed_units",
    "to_wad",
    # Fuzzing
    "FuzzConfig",
    "InvariantHandler",
    "RunState",
]
