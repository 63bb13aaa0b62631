"""Stable engine facade.

Composes the registry, ledgers, oracle, health factor calculator and
liquidation engine into the externally callable operations. Every mutating
call runs as one transaction:
1. Acquire the engine-wide ReentrancyGuard
2. Snapshot both ledgers
3. Validate, mutate, check invariants, then call collaborators
4. Re-validate the acting user's health factor
5. On any failure undo the token movements already made, newest first,
   restore the snapshots and re-raise

Read-only queries take no lock.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Sequence

from stable_engine.core.config import EngineSettings, load_settings
from stable_engine.core.errors import CompensationFailed, require_positive
from stable_engine.core.guard import ReentrancyGuard
from stable_engine.core.liquidation import LiquidationEngine
from stable_engine.core.logging import AuditLogger
from stable_engine.data.constants import (
    LIQUIDATION_BONUS,
    LIQUIDATION_THRESHOLD,
    MIN_HEALTH_FACTOR,
    PRECISION,
)
from stable_engine.data.health_factor import HealthFactorBreakdown, HealthFactorCalculator
from stable_engine.data.interfaces import CollateralToken, PriceFeed, StableUnitGateway
from stable_engine.data.ledgers import CollateralLedger, CompensationLog, DebtLedger
from stable_engine.data.models import (
    AccountInformation,
    LiquidationQuote,
    LiquidationResult,
    PositionStatus,
)
from stable_engine.data.oracle import PriceOracleAdapter
from stable_engine.data.registry import AssetRegistry


class StableEngine:
    """Overcollateralized stable-unit engine.

    Callers identify themselves explicitly: every mutating operation takes the
    acting user (or liquidator) as its first argument.

    Usage:
        engine = StableEngine([weth, wbtc], [eth_usd, btc_usd], stable_unit)
        engine.deposit_collateral_and_mint("alice", "WETH", 10 * 10**18, 5_000 * 10**18)
        print(engine.get_health_factor("alice"))
    """

    def __init__(
        self,
        tokens: Sequence[CollateralToken],
        price_feeds: Sequence[PriceFeed],
        stable_unit: StableUnitGateway,
        address: str = "engine",
        settings: EngineSettings | None = None,
        logger: AuditLogger | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Build an engine over a fixed set of collateral assets.

        Args:
            tokens: Custody handles, one per collateral asset.
            price_feeds: Price feeds, index-aligned with tokens.
            stable_unit: Gateway to the stable-unit token this engine owns.
            address: Custody account of the engine.
            settings: Runtime settings (default: loaded from the environment).
            logger: Optional audit logger.
            clock: Source of the current unix time for price freshness.

        Raises:
            AssetListLengthMismatch: If tokens and price_feeds differ in length.
            DuplicateAsset: If a token is listed twice.
        """
        self.settings = settings or load_settings()
        self.address = address
        self.stable_unit = stable_unit
        self.logger = logger

        self.registry = AssetRegistry(tokens, price_feeds)
        self.oracle = PriceOracleAdapter(
            self.registry,
            timeout_seconds=self.settings.price_timeout_seconds,
            clock=clock,
        )
        self.compensations = CompensationLog()
        self.collateral = CollateralLedger(
            self.registry, address, logger=logger, compensations=self.compensations
        )
        self.debt = DebtLedger(
            stable_unit, address, logger=logger, compensations=self.compensations
        )
        self.health = HealthFactorCalculator(self.collateral, self.debt, self.oracle)
        self.liquidations = LiquidationEngine(
            self.collateral, self.debt, self.oracle, self.health, logger=logger
        )
        self._guard = ReentrancyGuard(name=address)

        if self.logger:
            self.logger.info(
                f"Engine {address!r} ready with {len(self.registry)} collateral assets",
                {
                    "assets": list(self.registry.addresses),
                    "price_timeout_seconds": self.settings.price_timeout_seconds,
                },
            )

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @contextmanager
    def _transaction(self, operation: str, **context: Any) -> Iterator[None]:
        """Run the enclosed block atomically under the engine guard.

        Raises:
            CompensationFailed: If the block failed and some token movement
                could not be undone. The block's own error is the __cause__.
        """
        with self._guard:
            collateral_snapshot = self.collateral.snapshot()
            debt_snapshot = self.debt.snapshot()
            self.compensations.clear()
            try:
                yield
            except Exception as e:
                compensated = len(self.compensations)
                failures = self.compensations.unwind()
                self.collateral.restore(collateral_snapshot)
                self.debt.restore(debt_snapshot)
                if self.logger:
                    self.logger.log_event(
                        "operation_reverted",
                        {
                            "operation": operation,
                            "error": type(e).__name__,
                            "reason": str(e),
                            "movements_undone": compensated - len(failures),
                            **{key: str(value) for key, value in context.items()},
                        },
                    )
                if failures:
                    if self.logger:
                        self.logger.error(
                            f"Could not fully undo {operation}",
                            {"operation": operation, "failures": failures},
                        )
                    raise CompensationFailed(operation, failures) from e
                raise
            finally:
                self.compensations.clear()

    def _enforce(self, user: str) -> Callable[[], None]:
        return lambda: self.health.enforce_healthy(user)

    # -------------------------------------------------------------------------
    # Mutating operations
    # -------------------------------------------------------------------------

    def deposit_collateral(self, user: str, asset: str, amount: int) -> None:
        """Deposit collateral into the engine.

        Raises:
            InvalidAmount: If amount is not positive.
            AssetNotSupported: If asset is not registered.
            TransferFailed: If the token refuses the pull.
            HealthFactorBroken: If user is still below the minimum afterwards.
        """
        with self._transaction("deposit_collateral", user=user, asset=asset, amount=amount):
            self.collateral.deposit(user, asset, amount, checkpoint=self._enforce(user))
            self.health.enforce_healthy(user)

    def deposit_collateral_and_mint(
        self,
        user: str,
        asset: str,
        collateral_amount: int,
        mint_amount: int,
    ) -> None:
        """Deposit collateral and mint stable units in one operation.

        Both ledger updates and the health check happen before any token
        moves; collateral is pulled in before stable units are minted out.

        Args:
            user: Depositor and borrower.
            asset: Registered collateral asset.
            collateral_amount: Quantity of asset to deposit.
            mint_amount: Stable units to mint.
        """
        with self._transaction(
            "deposit_collateral_and_mint",
            user=user,
            asset=asset,
            collateral_amount=collateral_amount,
            mint_amount=mint_amount,
        ):
            self.collateral.increase(user, asset, collateral_amount)
            self.health.enforce_healthy(user)
            self.debt.increase(user, mint_amount)
            self.health.enforce_healthy(user)

            self.collateral.collect(user, asset, collateral_amount)
            self.debt.issue(user, mint_amount)
            self.health.enforce_healthy(user)

            if self.logger:
                self.logger.log_event(
                    "collateral_deposited_and_minted",
                    {
                        "user": user,
                        "asset": asset,
                        "collateral_amount": str(collateral_amount),
                        "mint_amount": str(mint_amount),
                    },
                )

    def redeem_collateral(self, user: str, asset: str, amount: int) -> None:
        """Withdraw collateral back to user.

        Raises:
            InvalidAmount: If amount is not positive.
            InsufficientCollateral: If user holds less than amount.
            HealthFactorBroken: If the withdrawal would leave user unhealthy.
            TransferFailed: If the token refuses the push.
        """
        with self._transaction("redeem_collateral", user=user, asset=asset, amount=amount):
            self.collateral.redeem(user, user, asset, amount, checkpoint=self._enforce(user))
            self.health.enforce_healthy(user)

    def redeem_collateral_for_burn(
        self,
        user: str,
        asset: str,
        collateral_amount: int,
        burn_amount: int,
    ) -> None:
        """Burn stable units, then redeem collateral, in one operation.

        Stable units are pulled in and burned before collateral is pushed out.

        Args:
            user: Borrower repaying and withdrawing.
            asset: Registered collateral asset.
            collateral_amount: Quantity of asset to redeem.
            burn_amount: Stable units to burn from user's balance.
        """
        with self._transaction(
            "redeem_collateral_for_burn",
            user=user,
            asset=asset,
            collateral_amount=collateral_amount,
            burn_amount=burn_amount,
        ):
            require_positive(collateral_amount)
            self.debt.decrease(user, burn_amount)
            self.collateral.decrease(user, asset, collateral_amount)
            self.health.enforce_healthy(user)

            self.debt.settle(user, burn_amount)
            self.collateral.release(user, asset, collateral_amount)
            self.health.enforce_healthy(user)

            if self.logger:
                self.logger.log_event(
                    "collateral_redeemed_for_burn",
                    {
                        "user": user,
                        "asset": asset,
                        "collateral_amount": str(collateral_amount),
                        "burn_amount": str(burn_amount),
                    },
                )

    def mint(self, user: str, amount: int) -> None:
        """Mint stable units against user's collateral.

        Raises:
            InvalidAmount: If amount is not positive.
            HealthFactorBroken: If the new debt would leave user unhealthy.
            MintFailed: If the gateway refuses to mint.
        """
        with self._transaction("mint", user=user, amount=amount):
            self.debt.mint(user, amount, checkpoint=self._enforce(user))
            self.health.enforce_healthy(user)

    def burn(self, user: str, amount: int) -> None:
        """Repay user's own debt with stable units from user's balance.

        A partial repayment that still leaves user below the minimum health
        factor is rejected.

        Raises:
            InvalidAmount: If amount is not positive.
            InsufficientDebt: If user owes less than amount.
            HealthFactorBroken: If user is still unhealthy after the repayment.
            TransferFailed: If the stable-unit pull fails.
        """
        with self._transaction("burn", user=user, amount=amount):
            self.debt.burn(amount, on_behalf_of=user, payer=user, checkpoint=self._enforce(user))
            self.health.enforce_healthy(user)

    def liquidate(
        self,
        caller: str,
        asset: str,
        target_user: str,
        debt_to_cover: int,
    ) -> LiquidationResult:
        """Liquidate part of an unhealthy position.

        Args:
            caller: Liquidator paying stable units and receiving collateral.
            asset: Collateral asset to seize.
            target_user: Position being liquidated.
            debt_to_cover: Stable units to repay on target_user's behalf.

        Returns:
            LiquidationResult for the executed liquidation.
        """
        with self._transaction(
            "liquidate",
            caller=caller,
            asset=asset,
            target_user=target_user,
            debt_to_cover=debt_to_cover,
        ):
            return self.liquidations.liquidate(caller, asset, target_user, debt_to_cover)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def get_health_factor(self, user: str) -> int:
        """Current health factor of user (18 decimals)."""
        return self.health.health_factor(user)

    def get_account_information(self, user: str) -> tuple[int, int]:
        """Return (total_debt, collateral_value) for user."""
        return self.health.account_information(user)

    def get_account_snapshot(self, user: str) -> AccountInformation:
        """Debt, collateral value and health factor of user as one model."""
        return self.health.account_snapshot(user)

    def get_account_collateral_value(self, user: str) -> int:
        return self.health.collateral_value(user)

    def get_collateral_balance(self, user: str, asset: str) -> int:
        return self.collateral.balance_of(user, asset)

    def get_debt(self, user: str) -> int:
        return self.debt.debt_of(user)

    def get_total_debt(self) -> int:
        return self.debt.total_debt()

    def get_total_collateral(self, asset: str) -> int:
        """Quantity of asset held in custody across all users."""
        self.registry.get(asset)
        return self.collateral.total_of(asset)

    def get_usd_value(self, asset: str, amount: int) -> int:
        """Value of amount units of asset in common value units."""
        return self.oracle.value_of(asset, amount)

    def get_token_amount_from_usd(self, asset: str, usd_amount: int) -> int:
        """Quantity of asset worth usd_amount common value units."""
        return self.oracle.quantity_from_value(asset, usd_amount)

    def get_collateral_tokens(self) -> list[str]:
        """Registered collateral assets in registration order."""
        return list(self.registry.addresses)

    def get_price_feed(self, asset: str) -> PriceFeed:
        return self.registry.price_feed(asset)

    def get_stable_unit(self) -> StableUnitGateway:
        return self.stable_unit

    def calculate_health_factor(self, total_debt: int, collateral_value: int) -> int:
        """Health factor for arbitrary debt and collateral value."""
        return self.health.calculate_health_factor(total_debt, collateral_value)

    def get_health_factor_breakdown(self, user: str) -> HealthFactorBreakdown:
        return self.health.calculate_with_breakdown(user)

    def get_position_status(self, user: str) -> PositionStatus:
        return self.health.status(user)

    def preview_liquidation(self, asset: str, debt_to_cover: int) -> LiquidationQuote:
        """Collateral a liquidation of debt_to_cover in asset would seize."""
        return self.liquidations.preview(asset, debt_to_cover)

    # Protocol constants

    def get_precision(self) -> int:
        return PRECISION

    def get_liquidation_threshold(self) -> int:
        return LIQUIDATION_THRESHOLD

    def get_liquidation_bonus(self) -> int:
        return LIQUIDATION_BONUS

    def get_min_health_factor(self) -> int:
        return MIN_HEALTH_FACTOR
