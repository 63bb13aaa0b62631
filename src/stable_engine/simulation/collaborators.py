"""In-memory collaborators for local engines.

Provides ERC20-style tokens, custody adapters bound to the engine account,
an owner-gated stable-unit token, manually driven price feeds and a manual
clock. `deploy_local_engine()` wires them into a ready StableEngine, which
is what the scenario runner, the fuzz handler and the tests use.

Token balances use 18 decimals; price feeds quote with 8.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Mapping

from stable_engine.core.config import EngineSettings
from stable_engine.core.engine import StableEngine
from stable_engine.core.errors import AssetNotSupported
from stable_engine.core.logging import AuditLogger
from stable_engine.data.constants import FEED_DECIMALS
from stable_engine.data.models import PriceQuote

MAX_ALLOWANCE = 2**256 - 1

TransferHook = Callable[[str, str, int], None]


class TokenError(Exception):
    """A token operation reverted."""

    pass


class ManualClock:
    """Unix clock that only moves when told to."""

    def __init__(self, start: int = 1_700_000_000) -> None:
        self.now = start

    def __call__(self) -> float:
        return float(self.now)

    def advance(self, seconds: int) -> None:
        if seconds < 0:
            raise ValueError(f"Cannot move the clock backwards by {seconds}s")
        self.now += seconds


class InMemoryToken:
    """ERC20-style token whose transfers report failure as False.

    An optional transfer hook runs before every balance change, which is how
    tests model a token with callbacks into untrusted code.

    Usage:
        weth = InMemoryToken("WETH")
        weth.mint_to("alice", 10 * 10**18)
        weth.approve("alice", "engine", MAX_ALLOWANCE)
    """

    def __init__(self, symbol: str, decimals: int = 18) -> None:
        self.symbol = symbol
        self.decimals = decimals
        self.total_supply = 0
        self.on_transfer: TransferHook | None = None
        self._balances: dict[str, int] = {}
        self._allowances: dict[tuple[str, str], int] = {}

    @property
    def address(self) -> str:
        return self.symbol

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        self._allowances[(owner, spender)] = amount
        return True

    def mint_to(self, account: str, amount: int) -> None:
        """Credit new tokens to account (faucet)."""
        self._balances[account] = self.balance_of(account) + amount
        self.total_supply += amount

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """Move amount from sender to recipient."""
        if self.balance_of(sender) < amount:
            return False
        if self.on_transfer is not None:
            self.on_transfer(sender, recipient, amount)
        self._balances[sender] = self.balance_of(sender) - amount
        self._balances[recipient] = self.balance_of(recipient) + amount
        return True

    def transfer_from(
        self, spender: str, sender: str, recipient: str, amount: int
    ) -> bool:
        """Move amount from sender to recipient using spender's allowance."""
        allowed = self.allowance(sender, spender)
        if allowed < amount:
            return False
        if not self.transfer(sender, recipient, amount):
            return False
        if allowed != MAX_ALLOWANCE:
            self._allowances[(sender, spender)] = allowed - amount
        return True


class StableUnitToken(InMemoryToken):
    """Stable-unit token; only the owner may mint or burn.

    Burns come out of the owner's own balance and revert when it is short.
    """

    def __init__(self, owner: str, symbol: str = "DSC") -> None:
        super().__init__(symbol)
        self.owner = owner

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise TokenError(f"{caller!r} is not the owner of {self.symbol}")

    def mint(self, caller: str, to_account: str, amount: int) -> bool:
        self._only_owner(caller)
        if amount <= 0:
            raise TokenError("Mint amount must be more than zero")
        self.mint_to(to_account, amount)
        return True

    def burn(self, caller: str, amount: int) -> None:
        self._only_owner(caller)
        if amount <= 0:
            raise TokenError("Burn amount must be more than zero")
        balance = self.balance_of(caller)
        if balance < amount:
            raise TokenError(f"Burn amount {amount} exceeds balance {balance}")
        self._balances[caller] = balance - amount
        self.total_supply -= amount


class TokenCustody:
    """CollateralToken adapter acting as the engine account on one token."""

    def __init__(self, token: InMemoryToken, account: str) -> None:
        self.token = token
        self.account = account

    @property
    def address(self) -> str:
        return self.token.address

    def pull(self, from_account: str, to_account: str, amount: int) -> bool:
        return self.token.transfer_from(self.account, from_account, to_account, amount)

    def push(self, to_account: str, amount: int) -> bool:
        return self.token.transfer(self.account, to_account, amount)


class StableUnitCustody(TokenCustody):
    """StableUnitGateway adapter acting as the owner of the stable unit."""

    token: StableUnitToken

    def __init__(self, token: StableUnitToken, account: str) -> None:
        super().__init__(token, account)

    def mint(self, to_account: str, amount: int) -> bool:
        return self.token.mint(self.account, to_account, amount)

    def burn(self, amount: int) -> None:
        self.token.burn(self.account, amount)


class MockPriceFeed:
    """Price feed driven by hand, stamped with the clock's current time.

    Usage:
        feed = MockPriceFeed(2_000 * 10**8, clock)
        feed.update_answer(900 * 10**8)
    """

    def __init__(
        self,
        answer: int,
        clock: Callable[[], float],
        decimals: int = FEED_DECIMALS,
    ) -> None:
        self._clock = clock
        self._decimals = decimals
        self.round_id = 0
        self.answer = 0
        self.started_at = 0
        self.updated_at = 0
        self.answered_in_round = 0
        self.update_answer(answer)

    def update_answer(self, answer: int) -> None:
        """Publish a new answer in a new round at the current time."""
        now = int(self._clock())
        self.update_round_data(self.round_id + 1, answer, now, now)

    def update_round_data(
        self,
        round_id: int,
        answer: int,
        updated_at: int,
        started_at: int,
        answered_in_round: int | None = None,
    ) -> None:
        """Set every field of the latest round explicitly."""
        self.round_id = round_id
        self.answer = answer
        self.updated_at = updated_at
        self.started_at = started_at
        self.answered_in_round = round_id if answered_in_round is None else answered_in_round

    def latest_quote(self) -> PriceQuote:
        return PriceQuote(
            round_id=self.round_id,
            answer=self.answer,
            started_at=self.started_at,
            updated_at=self.updated_at,
            answered_in_round=self.answered_in_round,
        )

    def decimals(self) -> int:
        return self._decimals


@dataclass
class LocalDeployment:
    """A StableEngine wired to in-memory collaborators."""

    engine: StableEngine
    tokens: dict[str, InMemoryToken]
    feeds: dict[str, MockPriceFeed]
    stable_unit: StableUnitToken
    clock: ManualClock
    funded: list[str] = field(default_factory=list)

    def _token(self, asset: str) -> InMemoryToken:
        try:
            return self.tokens[asset]
        except KeyError:
            raise AssetNotSupported(asset) from None

    def fund(self, account: str, asset: str, amount: int) -> None:
        """Give account wallet collateral and approve the engine for all of it.

        Raises:
            AssetNotSupported: If asset was not deployed.
        """
        token = self._token(asset)
        token.mint_to(account, amount)
        token.approve(account, self.engine.address, MAX_ALLOWANCE)
        self.stable_unit.approve(account, self.engine.address, MAX_ALLOWANCE)
        if account not in self.funded:
            self.funded.append(account)

    def set_price(self, asset: str, answer: int) -> None:
        """Publish a new answer on asset's feed.

        Raises:
            AssetNotSupported: If asset was not deployed.
        """
        try:
            feed = self.feeds[asset]
        except KeyError:
            raise AssetNotSupported(asset) from None
        feed.update_answer(answer)


def deploy_local_engine(
    prices: Mapping[str, int],
    clock: ManualClock | None = None,
    settings: EngineSettings | None = None,
    logger: AuditLogger | None = None,
    address: str = "engine",
) -> LocalDeployment:
    """Deploy an engine over fresh in-memory tokens and feeds.

    Args:
        prices: Asset symbol -> initial price with 8 decimals, in registration order.
        clock: Clock shared by feeds and engine (default: a new ManualClock).
        settings: Engine settings (default: EngineSettings()).
        logger: Optional audit logger for the engine.
        address: Engine custody account.

    Returns:
        LocalDeployment with handles to every collaborator.
    """
    clock = clock or ManualClock()
    tokens = {symbol: InMemoryToken(symbol) for symbol in prices}
    feeds = {symbol: MockPriceFeed(price, clock) for symbol, price in prices.items()}
    stable_unit = StableUnitToken(owner=address)

    engine = StableEngine(
        tokens=[TokenCustody(token, address) for token in tokens.values()],
        price_feeds=list(feeds.values()),
        stable_unit=StableUnitCustody(stable_unit, address),
        address=address,
        settings=settings or EngineSettings(),
        logger=logger,
        clock=clock,
    )

    return LocalDeployment(
        engine=engine,
        tokens=tokens,
        feeds=feeds,
        stable_unit=stable_unit,
        clock=clock,
    )
