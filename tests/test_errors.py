"""Tests for the error taxonomy and the reentrancy guard."""

from __future__ import annotations

import threading
import time

import pytest

from stable_engine.core.errors import (
    AssetListLengthMismatch,
    AssetNotSupported,
    BalanceError,
    CompensationFailed,
    ConfigError,
    CustodyError,
    DuplicateAsset,
    EngineError,
    HealthFactorBroken,
    HealthFactorNotImproved,
    HealthFactorOk,
    InsufficientCollateral,
    InsufficientDebt,
    InvalidAmount,
    InvalidPrice,
    InvalidSetting,
    InvariantError,
    MintFailed,
    OracleError,
    ReentrantCall,
    StalePrice,
    TransferFailed,
    UnsupportedFeedDecimals,
    ValidationError,
    require_positive,
)
from stable_engine.core.guard import ReentrancyGuard


class TestErrorCategories:
    """Every concrete error belongs to exactly one category."""

    @pytest.mark.parametrize(
        ("error", "category"),
        [
            (InvalidAmount(0), ValidationError),
            (AssetNotSupported("DOGE"), ConfigError),
            (AssetListLengthMismatch(2, 1), ConfigError),
            (DuplicateAsset("WETH"), ConfigError),
            (UnsupportedFeedDecimals("WETH", 18, 8), ConfigError),
            (InvalidSetting("bad"), ConfigError),
            (TransferFailed("WETH", "alice", "engine", 1), CustodyError),
            (MintFailed("alice", 1), CustodyError),
            (CompensationFailed("liquidate", ["take back"]), CustodyError),
            (HealthFactorBroken(5), InvariantError),
            (HealthFactorOk("alice", 10**18), InvariantError),
            (HealthFactorNotImproved(9, 8), InvariantError),
            (InsufficientCollateral("alice", "WETH", 1, 2), BalanceError),
            (InsufficientDebt("alice", 1, 2), BalanceError),
            (StalePrice("WETH", 1, 20_000, 10_800), OracleError),
            (InvalidPrice("WETH", 0), OracleError),
        ],
    )
    def test_category(self, error: EngineError, category: type[EngineError]) -> None:
        assert isinstance(error, category)
        assert isinstance(error, EngineError)

    def test_reentrant_call_is_engine_error(self) -> None:
        assert issubclass(ReentrantCall, EngineError)

    def test_health_factor_broken_carries_value(self) -> None:
        """The offending ratio is available to callers."""
        error = HealthFactorBroken(999_999_999_999_999_999)
        assert error.health_factor == 999_999_999_999_999_999
        assert "999999999999999999" in str(error)

    def test_length_mismatch_message(self) -> None:
        error = AssetListLengthMismatch(2, 1)
        assert error.num_assets == 2
        assert error.num_feeds == 1
        assert "2 collateral assets but 1 price feeds" in str(error)

    def test_stale_price_reports_age(self) -> None:
        error = StalePrice("WETH", updated_at=100, now=10_901, timeout=10_800)
        assert "10801s ago" in str(error)


class TestRequirePositive:
    """Tests for amount validation."""

    def test_accepts_positive_int(self) -> None:
        assert require_positive(1) == 1
        assert require_positive(10**30) == 10**30

    @pytest.mark.parametrize("amount", [0, -1, 1.5, "10", None, True])
    def test_rejects_everything_else(self, amount: object) -> None:
        with pytest.raises(InvalidAmount) as exc_info:
            require_positive(amount)
        assert exc_info.value.amount == amount


class TestReentrancyGuard:
    """Tests for the engine-wide guard."""

    def test_released_after_block(self) -> None:
        guard = ReentrancyGuard()
        with guard:
            assert guard.locked
        assert not guard.locked

    def test_released_after_exception(self) -> None:
        guard = ReentrancyGuard()
        with pytest.raises(RuntimeError):
            with guard:
                raise RuntimeError("boom")
        assert not guard.locked

    def test_same_thread_reentry_fails(self) -> None:
        guard = ReentrancyGuard("engine")
        with guard:
            with pytest.raises(ReentrantCall, match="engine"):
                with guard:
                    pass
            # Still held by the outer block
            assert guard.locked
        assert not guard.locked

    def test_other_thread_waits(self) -> None:
        """A second thread blocks until the holder releases."""
        guard = ReentrancyGuard()
        order: list[str] = []

        def contender() -> None:
            with guard:
                order.append("contender")

        with guard:
            thread = threading.Thread(target=contender)
            thread.start()
            time.sleep(0.05)
            order.append("holder")

        thread.join(timeout=5)
        assert order == ["holder", "contender"]
