"""Tests for health factor calculation."""

from __future__ import annotations

from decimal import Decimal

import pytest

from conftest import ether
from stable_engine.core.engine import StableEngine
from stable_engine.core.errors import HealthFactorBroken
from stable_engine.data.constants import MAX_HEALTH_FACTOR, MIN_HEALTH_FACTOR
from stable_engine.data.health_factor import HealthFactorCalculator, calculate_health_factor
from stable_engine.data.models import PositionStatus
from stable_engine.simulation.collaborators import LocalDeployment


@pytest.fixture
def calculator(funded: LocalDeployment) -> HealthFactorCalculator:
    return funded.engine.health


class TestCalculateHealthFactor:
    """Tests for the pure formula."""

    def test_no_debt(self) -> None:
        assert calculate_health_factor(0, ether(1_000)) == MAX_HEALTH_FACTOR

    def test_two_hundred_percent_is_one(self) -> None:
        # 20000 collateral, 10000 debt -> (20000 * 0.5) / 10000 = 1.0
        assert calculate_health_factor(ether(10_000), ether(20_000)) == MIN_HEALTH_FACTOR

    def test_example_ratio(self) -> None:
        # (20000 * 0.5) / 5000 = 2.0
        assert calculate_health_factor(ether(5_000), ether(20_000)) == 2 * 10**18

    def test_zero_collateral(self) -> None:
        assert calculate_health_factor(ether(1), 0) == 0


class TestHealthFactorCalculator:
    """Tests for HealthFactorCalculator against live ledgers."""

    def test_user_without_position(self, calculator: HealthFactorCalculator) -> None:
        assert calculator.health_factor("nobody") == MAX_HEALTH_FACTOR
        assert calculator.account_information("nobody") == (0, 0)
        assert calculator.status("nobody") == PositionStatus.HEALTHY

    def test_multi_asset_collateral(
        self, funded: LocalDeployment, calculator: HealthFactorCalculator
    ) -> None:
        engine = funded.engine
        engine.deposit_collateral("alice", "WETH", ether(10))  # 20000
        engine.deposit_collateral("alice", "WBTC", ether(1))  # 30000
        engine.mint("alice", ether(10_000))

        assert calculator.collateral_value("alice") == ether(50_000)
        # (50000 * 0.5) / 10000 = 2.5
        assert calculator.health_factor("alice") == 25 * 10**17

    def test_status_bands(
        self, funded: LocalDeployment, calculator: HealthFactorCalculator
    ) -> None:
        engine = funded.engine
        engine.deposit_collateral_and_mint("alice", "WETH", ether(10), ether(5_000))
        assert calculator.status("alice") == PositionStatus.HEALTHY  # 2.0

        funded.set_price("WETH", 1_400 * 10**8)  # 1.4
        assert calculator.status("alice") == PositionStatus.AT_RISK

        funded.set_price("WETH", 900 * 10**8)  # 0.9
        assert calculator.status("alice") == PositionStatus.LIQUIDATABLE

    def test_enforce_healthy(
        self, funded: LocalDeployment, calculator: HealthFactorCalculator
    ) -> None:
        funded.engine.deposit_collateral_and_mint("alice", "WETH", ether(10), ether(5_000))
        calculator.enforce_healthy("alice")

        funded.set_price("WETH", 900 * 10**8)
        with pytest.raises(HealthFactorBroken) as exc_info:
            calculator.enforce_healthy("alice")
        assert exc_info.value.health_factor == 9 * 10**17

    def test_account_snapshot(
        self, funded: LocalDeployment, calculator: HealthFactorCalculator
    ) -> None:
        funded.engine.deposit_collateral_and_mint("alice", "WETH", ether(10), ether(5_000))
        snapshot = calculator.account_snapshot("alice")
        assert snapshot.total_debt == ether(5_000)
        assert snapshot.collateral_value == ether(20_000)
        assert snapshot.health_factor_decimal == Decimal(2)


class TestHealthFactorBreakdown:
    """Tests for calculate_with_breakdown."""

    def test_breakdown(self, funded: LocalDeployment) -> None:
        engine: StableEngine = funded.engine
        engine.deposit_collateral("alice", "WETH", ether(15))  # 30000
        engine.deposit_collateral("alice", "WBTC", ether(1))  # 30000
        engine.mint("alice", ether(20_000))

        breakdown = engine.get_health_factor_breakdown("alice")

        assert breakdown.total_collateral_value == ether(60_000)
        assert breakdown.total_collateral_adjusted == ether(30_000)
        assert breakdown.total_debt == ether(20_000)
        assert breakdown.health_factor_decimal == Decimal("1.5")
        assert breakdown.collateralization_pct == Decimal(300)

        by_asset = {c["asset"]: c for c in breakdown.collateral_contributions}
        assert by_asset["WETH"]["value"] == ether(30_000)
        assert by_asset["WBTC"]["contribution_pct"] == Decimal(50)

    def test_breakdown_without_debt(self, funded: LocalDeployment) -> None:
        breakdown = funded.engine.get_health_factor_breakdown("bob")
        assert breakdown.health_factor == MAX_HEALTH_FACTOR
        assert breakdown.health_factor_decimal is None
        assert breakdown.collateralization_pct is None
        assert all(c["contribution_pct"] == 0 for c in breakdown.collateral_contributions)
