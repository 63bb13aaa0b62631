"""Liquidation of undercollateralized positions.

Anyone may repay part of an unhealthy user's debt and receive that user's
collateral in return, valued at the oracle price plus a 10% bonus:

    seized_base  = quantity_from_value(asset, debt_to_cover)
    bonus        = seized_base * LIQUIDATION_BONUS // LIQUIDATION_PRECISION
    total_seized = seized_base + bonus

Seizure comes from a single collateral asset chosen by the liquidator. The
liquidated user's health factor must strictly improve.
"""

from __future__ import annotations

from stable_engine.core.errors import (
    HealthFactorNotImproved,
    HealthFactorOk,
    require_positive,
)
from stable_engine.core.logging import AuditLogger
from stable_engine.data.constants import (
    LIQUIDATION_BONUS,
    LIQUIDATION_PRECISION,
    MIN_HEALTH_FACTOR,
)
from stable_engine.data.health_factor import HealthFactorCalculator
from stable_engine.data.ledgers import CollateralLedger, DebtLedger
from stable_engine.data.models import LiquidationQuote, LiquidationResult
from stable_engine.data.oracle import PriceOracleAdapter


class LiquidationEngine:
    """Seize collateral plus bonus from unhealthy positions.

    Does not take the engine guard or snapshot the ledgers itself; it is
    always invoked inside a StableEngine transaction.

    Usage:
        liquidations = LiquidationEngine(collateral, debt, oracle, health)
        quote = liquidations.preview("WETH", 1_000 * 10**18)
        result = liquidations.liquidate("bob", "WETH", "alice", 1_000 * 10**18)
    """

    def __init__(
        self,
        collateral: CollateralLedger,
        debt: DebtLedger,
        oracle: PriceOracleAdapter,
        health: HealthFactorCalculator,
        logger: AuditLogger | None = None,
    ) -> None:
        self.collateral = collateral
        self.debt = debt
        self.oracle = oracle
        self.health = health
        self.logger = logger

    def preview(self, asset: str, debt_to_cover: int) -> LiquidationQuote:
        """Collateral a liquidation of debt_to_cover would seize.

        Args:
            asset: Collateral asset to seize.
            debt_to_cover: Stable units the liquidator would repay.

        Returns:
            LiquidationQuote with base and bonus quantities.

        Raises:
            InvalidAmount: If debt_to_cover is not positive.
            AssetNotSupported: If asset is not registered.
        """
        require_positive(debt_to_cover)
        seized_base = self.oracle.quantity_from_value(asset, debt_to_cover)
        bonus = (seized_base * LIQUIDATION_BONUS) // LIQUIDATION_PRECISION
        return LiquidationQuote(
            asset=asset,
            debt_to_cover=debt_to_cover,
            seized_base=seized_base,
            bonus=bonus,
        )

    def _require_improved(self, user: str, starting: int) -> int:
        ending = self.health.health_factor(user)
        if ending <= starting:
            raise HealthFactorNotImproved(starting, ending)
        return ending

    def liquidate(
        self,
        caller: str,
        asset: str,
        target_user: str,
        debt_to_cover: int,
    ) -> LiquidationResult:
        """Repay debt of target_user and seize asset with a bonus.

        The target's collateral and debt are reduced, then the improvement
        check and the caller's health check run before any token moves. Both
        run again after the custody calls.

        Args:
            caller: Liquidator, who pays the stable units and receives collateral.
            asset: Collateral asset to seize.
            target_user: Position being liquidated.
            debt_to_cover: Stable units to repay on target_user's behalf.

        Returns:
            LiquidationResult describing what moved.

        Raises:
            InvalidAmount: If debt_to_cover is not positive.
            HealthFactorOk: If target_user is not liquidatable.
            InsufficientCollateral: If target_user holds too little of asset.
            InsufficientDebt: If debt_to_cover exceeds target_user's debt.
            HealthFactorNotImproved: If the liquidation leaves the target no healthier.
            TransferFailed: If the stable-unit pull or collateral push fails.
            HealthFactorBroken: If the caller ends up unhealthy.
        """
        require_positive(debt_to_cover)

        starting = self.health.health_factor(target_user)
        if starting >= MIN_HEALTH_FACTOR:
            raise HealthFactorOk(target_user, starting)

        quote = self.preview(asset, debt_to_cover)

        self.collateral.decrease(target_user, asset, quote.total_seized)
        self.debt.decrease(target_user, debt_to_cover)
        self._require_improved(target_user, starting)
        self.health.enforce_healthy(caller)

        # Pay in before paying out
        self.debt.settle(caller, debt_to_cover)
        self.collateral.release(caller, asset, quote.total_seized)

        ending = self._require_improved(target_user, starting)
        self.health.enforce_healthy(caller)

        result = LiquidationResult(
            liquidator=caller,
            user=target_user,
            asset=asset,
            debt_covered=debt_to_cover,
            collateral_seized=quote.total_seized,
            bonus=quote.bonus,
            starting_health_factor=starting,
            ending_health_factor=ending,
        )

        if self.logger:
            self.logger.log_event(
                "liquidation_executed",
                {
                    "liquidator": caller,
                    "user": target_user,
                    "asset": asset,
                    "debt_covered": str(debt_to_cover),
                    "collateral_seized": str(quote.total_seized),
                    "bonus": str(quote.bonus),
                    "starting_health_factor": str(starting),
                    "ending_health_factor": str(ending),
                },
            )

        return result
