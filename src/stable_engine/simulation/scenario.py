"""Scenario replay against a local engine.

A scenario is a JSON document describing collateral assets with starting
prices, funded actors, and an ordered list of steps. Each step is replayed
against a fresh in-memory deployment; engine failures are recorded as step
outcomes rather than aborting the replay, so a scenario can assert that an
operation is rejected via `expect_error`.
"""

from __future__ import annotations

from decimal import Decimal
from pathlib import Path

from stable_engine.core.config import EngineSettings
from stable_engine.core.errors import EngineError
from stable_engine.core.logging import AuditLogger
from stable_engine.data.constants import FEED_PRECISION, PRECISION
from stable_engine.data.models import Scenario, ScenarioReport, ScenarioStep, StepOutcome
from stable_engine.simulation.collaborators import (
    LocalDeployment,
    ManualClock,
    TokenError,
    deploy_local_engine,
)


def to_wad(amount: Decimal | None) -> int:
    """Convert a human-readable amount to 18-decimal units."""
    if amount is None:
        raise ValueError("Amount is required")
    return int(amount * PRECISION)


def to_feed_units(price: Decimal | None) -> int:
    """Convert a human-readable price to 8-decimal feed units."""
    if price is None:
        raise ValueError("Price is required")
    return int(price * FEED_PRECISION)


def load_scenario(path: Path) -> Scenario:
    """Load and validate a scenario file.

    Args:
        path: Path to a JSON scenario.

    Returns:
        Validated Scenario.
    """
    return Scenario.model_validate_json(Path(path).read_text())


class ScenarioRunner:
    """Replay a scenario step by step.

    Usage:
        runner = ScenarioRunner(load_scenario(Path("crash.json")))
        report = runner.run()
        print(report.all_expectations_met)
    """

    def __init__(
        self,
        scenario: Scenario,
        settings: EngineSettings | None = None,
        logger: AuditLogger | None = None,
    ) -> None:
        """Initialize runner.

        Args:
            scenario: Scenario to replay.
            settings: Engine settings (default: EngineSettings()).
            logger: Optional audit logger, shared with the engine.
        """
        self.scenario = scenario
        self.settings = settings or EngineSettings()
        self.logger = logger
        self.deployment: LocalDeployment | None = None

    def deploy(self) -> LocalDeployment:
        """Deploy a fresh engine and fund the scenario's actors."""
        deployment = deploy_local_engine(
            {asset.symbol: to_feed_units(asset.price) for asset in self.scenario.assets},
            clock=ManualClock(self.scenario.start_time),
            settings=self.settings,
            logger=self.logger,
        )
        for actor in self.scenario.actors:
            for symbol, amount in actor.balances.items():
                deployment.fund(actor.name, symbol, to_wad(amount))
        self.deployment = deployment
        return deployment

    def run(self) -> ScenarioReport:
        """Replay every step on a fresh deployment.

        Returns:
            ScenarioReport with one outcome per step.
        """
        deployment = self.deploy()

        if self.logger:
            self.logger.log_event(
                "scenario_started",
                {
                    "scenario": self.scenario.name,
                    "num_steps": len(self.scenario.steps),
                    "assets": [a.symbol for a in self.scenario.assets],
                },
            )

        outcomes = [
            self._run_step(deployment, index, step)
            for index, step in enumerate(self.scenario.steps)
        ]

        report = ScenarioReport(
            name=self.scenario.name,
            outcomes=outcomes,
            total_debt=deployment.engine.get_total_debt(),
            stable_supply=deployment.stable_unit.total_supply,
        )

        if self.logger:
            self.logger.log_event(
                "scenario_completed",
                {
                    "scenario": self.scenario.name,
                    "succeeded": sum(1 for o in outcomes if o.success),
                    "failed": sum(1 for o in outcomes if not o.success),
                    "all_expectations_met": report.all_expectations_met,
                },
            )

        return report

    def _run_step(
        self, deployment: LocalDeployment, index: int, step: ScenarioStep
    ) -> StepOutcome:
        error: str | None = None
        message = ""
        try:
            message = self._execute(deployment, step)
        except (EngineError, TokenError) as e:
            error = type(e).__name__
            message = str(e)

        health_factor = (
            deployment.engine.get_health_factor(step.actor)
            if step.actor is not None and error is None
            else None
        )
        return StepOutcome(
            index=index,
            action=step.action,
            actor=step.actor,
            success=error is None,
            error=error,
            expected_error=step.expect_error,
            message=message,
            health_factor=health_factor,
        )

    def _execute(self, deployment: LocalDeployment, step: ScenarioStep) -> str:
        """Apply one step; return a short description of what happened."""
        engine = deployment.engine
        actor = step.actor or ""
        asset = step.asset or ""

        if step.action == "deposit":
            engine.deposit_collateral(actor, asset, to_wad(step.amount))
        elif step.action == "deposit_and_mint":
            engine.deposit_collateral_and_mint(
                actor, asset, to_wad(step.amount), to_wad(step.mint_amount)
            )
        elif step.action == "redeem":
            engine.redeem_collateral(actor, asset, to_wad(step.amount))
        elif step.action == "redeem_for_burn":
            engine.redeem_collateral_for_burn(
                actor, asset, to_wad(step.amount), to_wad(step.burn_amount)
            )
        elif step.action == "mint":
            engine.mint(actor, to_wad(step.amount))
        elif step.action == "burn":
            engine.burn(actor, to_wad(step.amount))
        elif step.action == "liquidate":
            result = engine.liquidate(actor, asset, step.target or "", to_wad(step.amount))
            return (
                f"seized {result.collateral_seized} {asset} "
                f"(bonus {result.bonus}) from {result.user}"
            )
        elif step.action == "set_price":
            deployment.set_price(asset, to_feed_units(step.price))
            return f"{asset} price set to {step.price}"
        elif step.action == "advance_time":
            deployment.clock.advance(step.seconds or 0)
            return f"clock advanced {step.seconds}s"

        return "ok"
