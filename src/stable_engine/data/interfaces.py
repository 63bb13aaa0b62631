"""Collaborator protocols consumed by the engine.

The engine never owns tokens or price sources; it talks to them through
these interfaces, injected at construction. Transfer and mint results are
reported as booleans and checked explicitly by the ledgers.
"""

from __future__ import annotations

from typing import Protocol

from stable_engine.data.models import PriceQuote


class CollateralToken(Protocol):
    """Custody interface to one collateral asset, bound to the engine's account."""

    @property
    def address(self) -> str:
        """Identity of the asset."""
        ...

    def pull(self, from_account: str, to_account: str, amount: int) -> bool:
        """Move amount from from_account to to_account using the engine's allowance."""
        ...

    def push(self, to_account: str, amount: int) -> bool:
        """Move amount out of engine custody to to_account."""
        ...


class PriceFeed(Protocol):
    """External price source quoting one asset in common value units."""

    def latest_quote(self) -> PriceQuote: ...

    def decimals(self) -> int: ...


class StableUnitGateway(Protocol):
    """Mint/burn access to the stable-unit token, owned by the engine."""

    @property
    def address(self) -> str: ...

    def pull(self, from_account: str, to_account: str, amount: int) -> bool: ...

    def push(self, to_account: str, amount: int) -> bool:
        """Move amount of stable units out of engine custody to to_account."""
        ...

    def mint(self, to_account: str, amount: int) -> bool: ...

    def burn(self, amount: int) -> None:
        """Destroy amount from engine custody; raises if custody is short."""
        ...
