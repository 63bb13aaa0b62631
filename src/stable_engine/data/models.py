"""Data models for the stable engine.

Pydantic models for representing:
- Price quotes returned by price feeds
- Account snapshots and position status
- Liquidation quotes and results
- Replay scenarios and simulation reports

All quantities are integers with 18 implied decimals unless a field says
otherwise. Scenario files use human-readable decimals instead.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from stable_engine.data.constants import MAX_HEALTH_FACTOR, MIN_HEALTH_FACTOR


class PositionStatus(str, Enum):
    """Status of a user position."""

    HEALTHY = "healthy"
    AT_RISK = "at_risk"  # Health factor < 1.5
    LIQUIDATABLE = "liquidatable"  # Health factor < 1.0


class PriceQuote(BaseModel):
    """Latest round data reported by a price feed.

    Mirrors the AggregatorV3 `latestRoundData()` tuple.
    """

    round_id: int = Field(default=0, ge=0)
    answer: int = Field(description="Price with the feed's native decimals")
    started_at: int = Field(default=0, ge=0)
    updated_at: int = Field(ge=0, description="Unix timestamp of the last update")
    answered_in_round: int = Field(default=0, ge=0)


class AccountInformation(BaseModel):
    """Debt and collateral snapshot for one user."""

    user: str
    total_debt: int = Field(ge=0)
    collateral_value: int = Field(ge=0, description="Collateral in common value units")
    health_factor: int = Field(ge=0)

    @property
    def has_debt(self) -> bool:
        """Whether the user owes anything."""
        return self.total_debt > 0

    @property
    def is_liquidatable(self) -> bool:
        """Check if position can be liquidated."""
        return self.health_factor < MIN_HEALTH_FACTOR

    @property
    def health_factor_decimal(self) -> Decimal | None:
        """Health factor as decimal, None when there is no debt."""
        if self.health_factor == MAX_HEALTH_FACTOR:
            return None
        return Decimal(self.health_factor) / Decimal(MIN_HEALTH_FACTOR)


class LiquidationQuote(BaseModel):
    """Collateral a liquidation would seize for a given debt."""

    asset: str
    debt_to_cover: int = Field(gt=0)
    seized_base: int = Field(ge=0, description="Collateral worth exactly debt_to_cover")
    bonus: int = Field(ge=0, description="Liquidator incentive on top of seized_base")

    @property
    def total_seized(self) -> int:
        """Total collateral leaving the liquidated position."""
        return self.seized_base + self.bonus


class LiquidationResult(BaseModel):
    """Outcome of a successful liquidation."""

    liquidator: str
    user: str
    asset: str
    debt_covered: int = Field(gt=0)
    collateral_seized: int = Field(ge=0)
    bonus: int = Field(ge=0)
    starting_health_factor: int = Field(ge=0)
    ending_health_factor: int = Field(ge=0)

    @property
    def health_factor_delta(self) -> int:
        """How much the liquidated user's health factor rose."""
        return self.ending_health_factor - self.starting_health_factor


# =============================================================================
# Scenario replay
# =============================================================================


ScenarioAction = Literal[
    "deposit",
    "deposit_and_mint",
    "redeem",
    "redeem_for_burn",
    "mint",
    "burn",
    "liquidate",
    "set_price",
    "advance_time",
]

STEP_REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    "deposit": ("actor", "asset", "amount"),
    "deposit_and_mint": ("actor", "asset", "amount", "mint_amount"),
    "redeem": ("actor", "asset", "amount"),
    "redeem_for_burn": ("actor", "asset", "amount", "burn_amount"),
    "mint": ("actor", "amount"),
    "burn": ("actor", "amount"),
    "liquidate": ("actor", "asset", "target", "amount"),
    "set_price": ("asset", "price"),
    "advance_time": ("seconds",),
}


class ScenarioAsset(BaseModel):
    """A collateral asset in a replay scenario."""

    symbol: str
    price: Decimal = Field(gt=0, description="Price in common value units")

    @field_validator("symbol", mode="before")
    @classmethod
    def normalize_symbol(cls, v: str) -> str:
        """Normalize symbol to upper case."""
        return v.strip().upper()


class ScenarioActor(BaseModel):
    """An account funded with collateral before replay starts."""

    name: str
    balances: dict[str, Decimal] = Field(
        default_factory=dict, description="Symbol -> wallet balance (human units)"
    )

    @field_validator("balances", mode="before")
    @classmethod
    def normalize_balance_symbols(cls, v: dict[str, Decimal]) -> dict[str, Decimal]:
        """Normalize balance keys to upper case."""
        return {symbol.strip().upper(): amount for symbol, amount in v.items()}


class ScenarioStep(BaseModel):
    """One operation in a replay scenario."""

    action: ScenarioAction
    actor: str | None = None
    asset: str | None = None
    amount: Decimal | None = Field(default=None, ge=0)
    mint_amount: Decimal | None = Field(default=None, ge=0)
    burn_amount: Decimal | None = Field(default=None, ge=0)
    target: str | None = None
    price: Decimal | None = Field(default=None, gt=0)
    seconds: int | None = Field(default=None, ge=0)
    expect_error: str | None = Field(
        default=None, description="Error class name the step is expected to raise"
    )

    @field_validator("asset", mode="before")
    @classmethod
    def normalize_asset(cls, v: str | None) -> str | None:
        """Normalize asset symbol to upper case."""
        return v.strip().upper() if v is not None else None

    @model_validator(mode="after")
    def check_required_fields(self) -> ScenarioStep:
        """Ensure the fields the action needs are present."""
        missing = [
            name
            for name in STEP_REQUIRED_FIELDS[self.action]
            if getattr(self, name) is None
        ]
        if missing:
            raise ValueError(
                f"Step action {self.action!r} requires: {', '.join(missing)}"
            )
        return self


class Scenario(BaseModel):
    """A replayable sequence of engine operations."""

    name: str = "scenario"
    start_time: int = Field(default=1_700_000_000, ge=0)
    assets: list[ScenarioAsset] = Field(min_length=1)
    actors: list[ScenarioActor] = Field(default_factory=list)
    steps: list[ScenarioStep] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_declared_assets(self) -> Scenario:
        """Reject duplicate assets and wallet balances in undeclared assets.

        Steps may still name undeclared assets; the engine rejects those
        with AssetNotSupported, which a scenario can expect.
        """
        symbols = [asset.symbol for asset in self.assets]
        duplicates = sorted({s for s in symbols if symbols.count(s) > 1})
        if duplicates:
            raise ValueError(f"Assets declared more than once: {', '.join(duplicates)}")

        for actor in self.actors:
            unknown = sorted(set(actor.balances) - set(symbols))
            if unknown:
                raise ValueError(
                    f"Actor {actor.name!r} is funded in undeclared assets: {', '.join(unknown)}"
                )
        return self


class StepOutcome(BaseModel):
    """Result of replaying one scenario step."""

    index: int = Field(ge=0)
    action: ScenarioAction
    actor: str | None = None
    success: bool
    error: str | None = None
    expected_error: str | None = None
    message: str = ""
    health_factor: int | None = Field(
        default=None, description="Actor's health factor after the step"
    )

    @property
    def matched_expectation(self) -> bool:
        """Whether the step failed exactly when the scenario said it would."""
        return self.error == self.expected_error


class ScenarioReport(BaseModel):
    """Outcome of a full scenario replay."""

    name: str
    outcomes: list[StepOutcome] = Field(default_factory=list)
    total_debt: int = Field(ge=0)
    stable_supply: int = Field(ge=0)

    @property
    def all_expectations_met(self) -> bool:
        """Check every step succeeded or failed as declared."""
        return all(o.matched_expectation for o in self.outcomes)


# =============================================================================
# Invariant fuzzing
# =============================================================================


class FuzzReport(BaseModel):
    """Aggregated result of a seeded invariant fuzzing campaign."""

    num_runs: int = Field(ge=1)
    depth: int = Field(ge=1)
    base_seed: int

    total_calls: int = Field(ge=0)
    successful_calls: int = Field(ge=0)
    reverted_calls: int = Field(ge=0)
    calls_by_action: dict[str, int] = Field(default_factory=dict)
    reverts_by_error: dict[str, int] = Field(default_factory=dict)

    liquidations: int = Field(ge=0)
    mean_final_collateral_ratio: Decimal | None = Field(
        default=None, description="Mean of collateral value / stable supply at run end"
    )

    violations: list[str] = Field(default_factory=list)

    @property
    def revert_rate(self) -> Decimal:
        """Share of calls that were rejected by the engine."""
        if self.total_calls == 0:
            return Decimal(0)
        return Decimal(self.reverted_calls) / Decimal(self.total_calls)

    @property
    def passed(self) -> bool:
        """Check that no invariant was violated."""
        return not self.violations
