"""Health factor calculation.

Computes the solvency ratio of a position from the ledgers and the oracle:

    collateral_value = Sum(value_of(asset, balance)) over registered assets
    adjusted         = collateral_value * LIQUIDATION_THRESHOLD // LIQUIDATION_PRECISION
    health_factor    = adjusted * PRECISION // total_debt

A position with no debt has MAX_HEALTH_FACTOR. Anything below
MIN_HEALTH_FACTOR (1.0 with 18 decimals) is liquidatable.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from stable_engine.core.errors import HealthFactorBroken
from stable_engine.data.constants import (
    AT_RISK_HEALTH_FACTOR,
    LIQUIDATION_PRECISION,
    LIQUIDATION_THRESHOLD,
    MAX_HEALTH_FACTOR,
    MIN_HEALTH_FACTOR,
    PRECISION,
)
from stable_engine.data.ledgers import CollateralLedger, DebtLedger
from stable_engine.data.models import AccountInformation, PositionStatus
from stable_engine.data.oracle import PriceOracleAdapter


def calculate_health_factor(total_debt: int, collateral_value: int) -> int:
    """Health factor for a debt and a collateral value.

    Args:
        total_debt: Outstanding stable units.
        collateral_value: Collateral in common value units.

    Returns:
        Health factor with 18 decimals, MAX_HEALTH_FACTOR when there is no debt.
    """
    if total_debt == 0:
        return MAX_HEALTH_FACTOR
    adjusted = (collateral_value * LIQUIDATION_THRESHOLD) // LIQUIDATION_PRECISION
    return (adjusted * PRECISION) // total_debt


@dataclass
class HealthFactorBreakdown:
    """Detailed breakdown of a health factor calculation."""

    user: str
    total_collateral_value: int
    total_collateral_adjusted: int  # After the liquidation threshold
    total_debt: int
    health_factor: int

    # Per-asset contributions
    collateral_contributions: list[dict[str, Any]]

    @property
    def health_factor_decimal(self) -> Decimal | None:
        """Health factor as decimal, None when there is no debt."""
        if self.health_factor == MAX_HEALTH_FACTOR:
            return None
        return Decimal(self.health_factor) / Decimal(PRECISION)

    @property
    def collateralization_pct(self) -> Decimal | None:
        """Collateral value as a percentage of debt."""
        if self.total_debt == 0:
            return None
        return Decimal(self.total_collateral_value) / Decimal(self.total_debt) * 100


class HealthFactorCalculator:
    """Calculate health factors for positions held in the ledgers.

    Holds references to the ledgers and the oracle; it never mutates them.

    Usage:
        calculator = HealthFactorCalculator(collateral, debt, oracle)
        calculator.enforce_healthy("alice")
        breakdown = calculator.calculate_with_breakdown("alice")
    """

    def __init__(
        self,
        collateral: CollateralLedger,
        debt: DebtLedger,
        oracle: PriceOracleAdapter,
    ) -> None:
        self.collateral = collateral
        self.debt = debt
        self.oracle = oracle

    def collateral_value(self, user: str) -> int:
        """Total collateral value of user across registered assets."""
        total = 0
        for asset, amount in self.collateral.balances_of(user).items():
            total += self.oracle.value_of(asset, amount)
        return total

    def account_information(self, user: str) -> tuple[int, int]:
        """Return (total_debt, collateral_value) for user."""
        return self.debt.debt_of(user), self.collateral_value(user)

    def account_snapshot(self, user: str) -> AccountInformation:
        """Debt, collateral value and health factor as one model."""
        total_debt, collateral_value = self.account_information(user)
        return AccountInformation(
            user=user,
            total_debt=total_debt,
            collateral_value=collateral_value,
            health_factor=calculate_health_factor(total_debt, collateral_value),
        )

    def health_factor(self, user: str) -> int:
        """Current health factor of user."""
        total_debt = self.debt.debt_of(user)
        if total_debt == 0:
            return MAX_HEALTH_FACTOR
        return calculate_health_factor(total_debt, self.collateral_value(user))

    def calculate_health_factor(self, total_debt: int, collateral_value: int) -> int:
        """Pure health factor for arbitrary inputs."""
        return calculate_health_factor(total_debt, collateral_value)

    def enforce_healthy(self, user: str) -> None:
        """Raise HealthFactorBroken if user is below the minimum health factor."""
        health_factor = self.health_factor(user)
        if health_factor < MIN_HEALTH_FACTOR:
            raise HealthFactorBroken(health_factor)

    def status(self, user: str) -> PositionStatus:
        """Classify user's position."""
        health_factor = self.health_factor(user)
        if health_factor < MIN_HEALTH_FACTOR:
            return PositionStatus.LIQUIDATABLE
        if health_factor < AT_RISK_HEALTH_FACTOR:
            return PositionStatus.AT_RISK
        return PositionStatus.HEALTHY

    def calculate_with_breakdown(self, user: str) -> HealthFactorBreakdown:
        """Calculate health factor with per-asset contributions.

        Args:
            user: Position owner.

        Returns:
            HealthFactorBreakdown with full calculation details.
        """
        contributions: list[dict[str, Any]] = []
        total_value = 0
        for asset, amount in self.collateral.balances_of(user).items():
            value = self.oracle.value_of(asset, amount)
            total_value += value
            contributions.append(
                {
                    "asset": asset,
                    "amount": amount,
                    "price": self.oracle.price_of(asset),
                    "value": value,
                }
            )

        # Second pass once the total is known
        for contribution in contributions:
            contribution["contribution_pct"] = (
                Decimal(contribution["value"]) / Decimal(total_value) * 100
                if total_value > 0
                else Decimal(0)
            )

        total_debt = self.debt.debt_of(user)
        return HealthFactorBreakdown(
            user=user,
            total_collateral_value=total_value,
            total_collateral_adjusted=(total_value * LIQUIDATION_THRESHOLD)
            // LIQUIDATION_PRECISION,
            total_debt=total_debt,
            health_factor=calculate_health_factor(total_debt, total_value),
            collateral_contributions=contributions,
        )
