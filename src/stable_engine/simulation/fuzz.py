"""Seeded invariant fuzzing for the stable engine.

Drives a local engine with random but bounded operations from several
actors and checks protocol invariants after every call:
1. Custody balance of each asset equals the ledger total for that asset
2. Stable-unit supply equals total recorded debt
3. The engine holds no stable units between operations
4. The acting user is solvent after a successful call
5. Without price moves, total collateral value covers the stable supply

Supports deterministic replay via random seeds: run i uses base_seed + i.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal

import numpy as np

from stable_engine.core.config import EngineSettings
from stable_engine.core.errors import EngineError
from stable_engine.core.logging import AuditLogger
from stable_engine.data.constants import MIN_HEALTH_FACTOR, PRECISION
from stable_engine.data.models import FuzzReport
from stable_engine.simulation.collaborators import (
    LocalDeployment,
    ManualClock,
    deploy_local_engine,
)

ACTIONS = ("deposit", "mint", "redeem", "burn", "liquidate", "price_move")

# Relative frequency of each action above
ACTION_WEIGHTS = (0.25, 0.2, 0.15, 0.15, 0.1, 0.15)

KEEPER = "keeper"


@dataclass
class FuzzConfig:
    """Configuration for an invariant fuzzing campaign."""

    num_runs: int = 16
    depth: int = 50
    base_seed: int = 42
    num_actors: int = 3

    # Initial prices with 8 decimals
    prices: dict[str, int] = field(
        default_factory=lambda: {"WETH": 2_000 * 10**8, "WBTC": 30_000 * 10**8}
    )

    # Wallet collateral per actor, in whole units
    wallet_units: int = 1_000

    # Largest single deposit, in thousandths of a unit
    max_deposit_milli: int = 50_000

    # Price moves are drawn from [min, max] basis points
    price_moves: bool = True
    min_price_move_bps: int = -2_500
    max_price_move_bps: int = 1_000

    # Seconds the clock advances per call
    seconds_per_call: int = 12

    # Keeper collateral and debt, in whole units, so liquidations can be funded
    keeper_collateral_units: int = 500
    keeper_mint_units: int = 100_000


@dataclass
class RunState:
    """Counters accumulated over one fuzz run."""

    calls_by_action: dict[str, int] = field(default_factory=dict)
    reverts_by_error: dict[str, int] = field(default_factory=dict)
    successful_calls: int = 0
    reverted_calls: int = 0
    liquidations: int = 0
    violations: list[str] = field(default_factory=list)


class InvariantHandler:
    """Random-action fuzzer with invariant checks.

    Usage:
        handler = InvariantHandler(FuzzConfig(num_runs=4, depth=100))
        report = handler.run()
        assert report.passed, report.violations
    """

    def __init__(
        self,
        config: FuzzConfig | None = None,
        settings: EngineSettings | None = None,
        logger: AuditLogger | None = None,
    ) -> None:
        """Initialize handler.

        Args:
            config: Fuzzing configuration.
            settings: Engine settings for each deployment.
            logger: Optional audit logger for campaign summaries.
        """
        self.config = config or FuzzConfig()
        self.settings = settings or EngineSettings()
        self.logger = logger
        self._rng = np.random.default_rng(self.config.base_seed)

    @property
    def actors(self) -> list[str]:
        return [f"actor_{i}" for i in range(self.config.num_actors)]

    def run(self) -> FuzzReport:
        """Run every seeded campaign and aggregate the results."""
        start_time = time.time()
        states: list[RunState] = []
        ratios: list[float] = []

        if self.logger:
            self.logger.log_event(
                "fuzz_started",
                {
                    "num_runs": self.config.num_runs,
                    "depth": self.config.depth,
                    "base_seed": self.config.base_seed,
                    "price_moves": self.config.price_moves,
                },
            )

        for run_index in range(self.config.num_runs):
            state, ratio = self.run_once(run_index, self.config.base_seed + run_index)
            states.append(state)
            if ratio is not None:
                ratios.append(ratio)

        report = self._aggregate(states, ratios)

        if self.logger:
            self.logger.log_event(
                "fuzz_completed",
                {
                    "total_calls": report.total_calls,
                    "reverted_calls": report.reverted_calls,
                    "liquidations": report.liquidations,
                    "violations": len(report.violations),
                    "duration_ms": int((time.time() - start_time) * 1000),
                },
            )

        return report

    def deploy(self) -> LocalDeployment:
        """Fresh deployment with funded actors and a keeper holding stable units."""
        deployment = deploy_local_engine(
            self.config.prices, clock=ManualClock(), settings=self.settings
        )
        for actor in self.actors:
            for asset in self.config.prices:
                deployment.fund(actor, asset, self.config.wallet_units * PRECISION)

        first_asset = next(iter(self.config.prices))
        deployment.fund(KEEPER, first_asset, self.config.keeper_collateral_units * PRECISION)
        deployment.engine.deposit_collateral_and_mint(
            KEEPER,
            first_asset,
            self.config.keeper_collateral_units * PRECISION,
            self.config.keeper_mint_units * PRECISION,
        )
        return deployment

    def run_once(self, run_index: int, seed: int) -> tuple[RunState, float | None]:
        """Run one seeded campaign.

        Returns:
            The run's counters and its final collateral value / supply ratio
            (None when nothing is minted).
        """
        self._rng = np.random.default_rng(seed)
        deployment = self.deploy()
        state = RunState()

        actions = [a for a in ACTIONS if self.config.price_moves or a != "price_move"]
        weights = np.array(
            [w for a, w in zip(ACTIONS, ACTION_WEIGHTS) if a in actions], dtype=float
        )
        weights /= weights.sum()

        for call_index in range(self.config.depth):
            deployment.clock.advance(self.config.seconds_per_call)
            action = str(self._rng.choice(actions, p=weights))
            state.calls_by_action[action] = state.calls_by_action.get(action, 0) + 1

            actor: str | None = None
            try:
                actor = self._dispatch(deployment, action)
            except EngineError as e:
                state.reverted_calls += 1
                name = type(e).__name__
                state.reverts_by_error[name] = state.reverts_by_error.get(name, 0) + 1
            else:
                state.successful_calls += 1
                if action == "liquidate":
                    state.liquidations += 1

            for violation in self.check_invariants(deployment, actor):
                state.violations.append(
                    f"run {run_index} (seed {seed}) call {call_index} {action}: {violation}"
                )

        return state, self._collateral_ratio(deployment)

    # -------------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------------

    def _pick(self, options: list[str]) -> str:
        return options[int(self._rng.integers(0, len(options)))]

    def _fraction(self, amount: int) -> int:
        """Random 1-100% of amount, never below 1."""
        pct = int(self._rng.integers(1, 101))
        return max(amount * pct // 100, 1)

    def _dispatch(self, deployment: LocalDeployment, action: str) -> str | None:
        """Execute one action; return the acting user, None for price moves."""
        engine = deployment.engine
        actor = self._pick(self.actors)
        asset = self._pick(engine.get_collateral_tokens())

        if action == "deposit":
            milli = int(self._rng.integers(1, self.config.max_deposit_milli + 1))
            engine.deposit_collateral(actor, asset, milli * PRECISION // 1_000)
            return actor

        if action == "mint":
            total_debt, collateral_value = engine.get_account_information(actor)
            headroom = collateral_value // 2 - total_debt
            engine.mint(actor, self._fraction(max(headroom, 0)))
            return actor

        if action == "redeem":
            balance = engine.get_collateral_balance(actor, asset)
            engine.redeem_collateral(actor, asset, self._fraction(balance))
            return actor

        if action == "burn":
            engine.burn(actor, self._fraction(engine.get_debt(actor)))
            return actor

        if action == "liquidate":
            underwater = [
                user
                for user in self.actors
                if engine.get_health_factor(user) < MIN_HEALTH_FACTOR
            ]
            target = self._pick(underwater) if underwater else self._pick(self.actors)
            engine.liquidate(KEEPER, asset, target, self._fraction(engine.get_debt(target)))
            return KEEPER

        if action == "price_move":
            feed = deployment.feeds[asset]
            bps = int(
                self._rng.integers(
                    self.config.min_price_move_bps, self.config.max_price_move_bps + 1
                )
            )
            deployment.set_price(asset, max(feed.answer * (10_000 + bps) // 10_000, 1))
            return None

        raise ValueError(f"Unknown fuzz action {action!r}")

    # -------------------------------------------------------------------------
    # Invariants
    # -------------------------------------------------------------------------

    def check_invariants(
        self, deployment: LocalDeployment, actor: str | None
    ) -> list[str]:
        """Return a description of every invariant currently violated."""
        engine = deployment.engine
        violations: list[str] = []

        for asset, token in deployment.tokens.items():
            custody = token.balance_of(engine.address)
            recorded = engine.get_total_collateral(asset)
            if custody != recorded:
                violations.append(
                    f"custody mismatch for {asset}: held {custody}, recorded {recorded}"
                )

        supply = deployment.stable_unit.total_supply
        if supply != engine.get_total_debt():
            violations.append(
                f"stable supply {supply} != total debt {engine.get_total_debt()}"
            )

        if deployment.stable_unit.balance_of(engine.address) != 0:
            violations.append("engine retained stable units after an operation")

        if actor is not None:
            health_factor = engine.get_health_factor(actor)
            if engine.get_debt(actor) > 0 and health_factor < MIN_HEALTH_FACTOR:
                violations.append(f"{actor} left with health factor {health_factor}")

        if not self.config.price_moves:
            total_value = self._total_collateral_value(deployment)
            if total_value < supply:
                violations.append(
                    f"collateral value {total_value} below stable supply {supply}"
                )

        return violations

    def _total_collateral_value(self, deployment: LocalDeployment) -> int:
        engine = deployment.engine
        return sum(
            engine.get_usd_value(asset, engine.get_total_collateral(asset))
            for asset in engine.get_collateral_tokens()
        )

    def _collateral_ratio(self, deployment: LocalDeployment) -> float | None:
        supply = deployment.stable_unit.total_supply
        if supply == 0:
            return None
        return self._total_collateral_value(deployment) / supply

    def _aggregate(self, states: list[RunState], ratios: list[float]) -> FuzzReport:
        calls_by_action: dict[str, int] = {}
        reverts_by_error: dict[str, int] = {}
        for state in states:
            for action, count in state.calls_by_action.items():
                calls_by_action[action] = calls_by_action.get(action, 0) + count
            for error, count in state.reverts_by_error.items():
                reverts_by_error[error] = reverts_by_error.get(error, 0) + count

        successful = sum(s.successful_calls for s in states)
        reverted = sum(s.reverted_calls for s in states)

        return FuzzReport(
            num_runs=self.config.num_runs,
            depth=self.config.depth,
            base_seed=self.config.base_seed,
            total_calls=successful + reverted,
            successful_calls=successful,
            reverted_calls=reverted,
            calls_by_action=calls_by_action,
            reverts_by_error=reverts_by_error,
            liquidations=sum(s.liquidations for s in states),
            mean_final_collateral_ratio=(
                Decimal(str(np.mean(np.array(ratios)))) if ratios else None
            ),
            violations=[v for s in states for v in s.violations],
        )
