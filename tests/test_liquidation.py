"""Tests for liquidations."""

from __future__ import annotations

import pytest

from conftest import ether
from stable_engine.core.errors import (
    AssetNotSupported,
    HealthFactorBroken,
    HealthFactorNotImproved,
    HealthFactorOk,
    InsufficientCollateral,
    InvalidAmount,
    TransferFailed,
)
from stable_engine.simulation.collaborators import LocalDeployment

CRASH_PRICE = 900 * 10**8


@pytest.fixture
def crashed(funded: LocalDeployment) -> LocalDeployment:
    """alice: 10 WETH against 5000 debt, WETH crashed to 900 (health 0.9).

    bob holds 2000 stable units backed by 10 WBTC.
    """
    engine = funded.engine
    engine.deposit_collateral_and_mint("alice", "WETH", ether(10), ether(5_000))
    engine.deposit_collateral_and_mint("bob", "WBTC", ether(10), ether(2_000))
    funded.set_price("WETH", CRASH_PRICE)
    return funded


class TestPreview:
    """Tests for preview_liquidation."""

    def test_seizure_arithmetic(self, crashed: LocalDeployment) -> None:
        quote = crashed.engine.preview_liquidation("WETH", ether(1_000))
        assert quote.seized_base == 1_111_111_111_111_111_111
        assert quote.bonus == 111_111_111_111_111_111
        assert quote.total_seized == 1_222_222_222_222_222_222

    def test_preview_validates(self, crashed: LocalDeployment) -> None:
        with pytest.raises(InvalidAmount):
            crashed.engine.preview_liquidation("WETH", 0)
        with pytest.raises(AssetNotSupported):
            crashed.engine.preview_liquidation("DOGE", ether(1))


class TestLiquidate:
    """Tests for liquidate."""

    def test_crash_scenario(self, crashed: LocalDeployment) -> None:
        engine = crashed.engine
        weth = crashed.tokens["WETH"]
        assert engine.get_health_factor("alice") == 9 * 10**17

        result = engine.liquidate("bob", "WETH", "alice", ether(1_000))

        assert result.starting_health_factor == 9 * 10**17
        assert result.ending_health_factor == 987_500_000_000_000_000
        assert result.health_factor_delta > 0
        assert result.collateral_seized == 1_222_222_222_222_222_222
        assert result.bonus == 111_111_111_111_111_111

        assert engine.get_debt("alice") == ether(4_000)
        assert engine.get_collateral_balance("alice", "WETH") == (
            ether(10) - 1_222_222_222_222_222_222
        )
        assert weth.balance_of("bob") == ether(100) + 1_222_222_222_222_222_222
        assert crashed.stable_unit.balance_of("bob") == ether(1_000)
        assert crashed.stable_unit.total_supply == engine.get_total_debt()
        assert weth.balance_of(engine.address) == engine.get_total_collateral("WETH")

    def test_healthy_target(self, funded: LocalDeployment) -> None:
        engine = funded.engine
        engine.deposit_collateral_and_mint("alice", "WETH", ether(10), ether(5_000))
        engine.deposit_collateral_and_mint("bob", "WBTC", ether(10), ether(2_000))

        with pytest.raises(HealthFactorOk) as exc_info:
            engine.liquidate("bob", "WETH", "alice", ether(1_000))
        assert exc_info.value.health_factor == 2 * 10**18

    def test_target_without_debt(self, crashed: LocalDeployment) -> None:
        with pytest.raises(HealthFactorOk):
            crashed.engine.liquidate("bob", "WETH", "carol", ether(1))

    def test_zero_debt_to_cover(self, crashed: LocalDeployment) -> None:
        with pytest.raises(InvalidAmount):
            crashed.engine.liquidate("bob", "WETH", "alice", 0)

    def test_seizure_from_single_asset(self, crashed: LocalDeployment) -> None:
        """alice has no WBTC, so seizing WBTC fails rather than splitting."""
        with pytest.raises(InsufficientCollateral):
            crashed.engine.liquidate("bob", "WBTC", "alice", ether(1_000))
        assert crashed.engine.get_debt("alice") == ether(5_000)

    def test_not_improved(self, funded: LocalDeployment) -> None:
        """At or below 100% collateralization the bonus makes things worse."""
        engine = funded.engine
        engine.deposit_collateral_and_mint("alice", "WETH", ether(10), ether(10_000))
        engine.deposit_collateral_and_mint("bob", "WBTC", ether(10), ether(2_000))
        funded.set_price("WETH", 1_000 * 10**8)  # health 0.5, collateral == debt

        with pytest.raises(HealthFactorNotImproved) as exc_info:
            engine.liquidate("bob", "WETH", "alice", ether(1_000))

        assert exc_info.value.starting == 5 * 10**17
        assert exc_info.value.ending < exc_info.value.starting
        assert engine.get_debt("alice") == ether(10_000)
        assert engine.get_collateral_balance("alice", "WETH") == ether(10)
        assert funded.stable_unit.balance_of("bob") == ether(2_000)

    def test_liquidator_without_stable_units(self, crashed: LocalDeployment) -> None:
        engine = crashed.engine
        weth = crashed.tokens["WETH"]

        with pytest.raises(TransferFailed):
            engine.liquidate("carol", "WETH", "alice", ether(1_000))

        assert engine.get_debt("alice") == ether(5_000)
        assert weth.balance_of("carol") == 0
        assert weth.balance_of(engine.address) == engine.get_total_collateral("WETH")

    def test_unhealthy_liquidator(self, crashed: LocalDeployment) -> None:
        """A liquidator who is underwater themselves is rejected."""
        engine = crashed.engine
        crashed.fund("dave", "WETH", ether(10))
        engine.deposit_collateral_and_mint("dave", "WETH", ether(2), ether(800))
        crashed.set_price("WETH", 700 * 10**8)  # dave: 1400 * 0.5 / 800 = 0.875

        with pytest.raises(HealthFactorBroken):
            engine.liquidate("dave", "WETH", "alice", ether(100))

        assert engine.get_debt("alice") == ether(5_000)
        assert crashed.stable_unit.balance_of("dave") == ether(800)

    def test_full_liquidation_clears_debt(self, crashed: LocalDeployment) -> None:
        engine = crashed.engine
        crashed.fund("bob", "WBTC", ether(10))
        engine.deposit_collateral_and_mint("bob", "WBTC", ether(10), ether(3_000))

        result = engine.liquidate("bob", "WETH", "alice", ether(5_000))

        assert engine.get_debt("alice") == 0
        assert result.ending_health_factor == engine.get_health_factor("alice")
        # 5000 / 900 * 1.1 = 6.111 WETH seized, 3.888 left for alice
        assert engine.get_collateral_balance("alice", "WETH") == (
            ether(10) - 6_111_111_111_111_111_110
        )
