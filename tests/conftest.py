"""Pytest configuration and fixtures for stable engine tests."""

from __future__ import annotations

from pathlib import Path
from typing import Generator

import pytest

from stable_engine.core.config import EngineSettings
from stable_engine.core.engine import StableEngine
from stable_engine.core.logging import AuditLogger
from stable_engine.simulation.collaborators import (
    LocalDeployment,
    ManualClock,
    deploy_local_engine,
)

ETH_PRICE = 2_000 * 10**8
BTC_PRICE = 30_000 * 10**8
START_TIME = 1_700_000_000


def ether(amount: int | float | str) -> int:
    """Whole units to 18-decimal integers (exact for str and int)."""
    if isinstance(amount, int):
        return amount * 10**18
    whole, _, frac = str(amount).partition(".")
    frac = (frac + "0" * 18)[:18]
    return int(whole) * 10**18 + int(frac)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Isolate every test from the developer's environment and .env file."""
    monkeypatch.delenv("STABLE_ENGINE_PRICE_TIMEOUT", raising=False)
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "env_logs"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def temp_log_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for log files."""
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    return log_dir


@pytest.fixture
def audit_logger(temp_log_dir: Path) -> Generator[AuditLogger, None, None]:
    """Audit journal writing into the temporary log directory."""
    journal = AuditLogger("test_journal", temp_log_dir, console=False)
    yield journal
    journal.close()


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START_TIME)


@pytest.fixture
def deployment(clock: ManualClock) -> LocalDeployment:
    """Engine over WETH (2000) and WBTC (30000), with nothing deposited."""
    return deploy_local_engine(
        {"WETH": ETH_PRICE, "WBTC": BTC_PRICE},
        clock=clock,
        settings=EngineSettings(),
    )


@pytest.fixture
def engine(deployment: LocalDeployment) -> StableEngine:
    return deployment.engine


@pytest.fixture
def funded(deployment: LocalDeployment) -> LocalDeployment:
    """Deployment where alice and bob each hold 100 WETH and 10 WBTC."""
    for user in ("alice", "bob"):
        deployment.fund(user, "WETH", ether(100))
        deployment.fund(user, "WBTC", ether(10))
    return deployment
