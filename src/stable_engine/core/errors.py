"""Exception taxonomy for the stable engine.

Every failure raised by the engine derives from EngineError and belongs to
one category:
- ValidationError: zero or malformed amounts
- ConfigError: unknown assets, bad registration lists, bad settings
- CustodyError: a token transfer or gateway mint reported failure
- InvariantError: health factor broken, already healthy, or not improved
- BalanceError: not enough collateral or debt for a decrement
- OracleError: stale or unusable price data

A failure always aborts the whole enclosing operation.
"""

from __future__ import annotations


class EngineError(Exception):
    """Base class for all engine failures."""

    pass


# =============================================================================
# Categories
# =============================================================================


class ValidationError(EngineError):
    """An input amount is zero, negative, or not an integer."""

    pass


class ConfigError(EngineError):
    """The engine or one of its inputs is misconfigured."""

    pass


class CustodyError(EngineError):
    """An external transfer, mint, or burn failed."""

    pass


class InvariantError(EngineError):
    """A health factor rule rejected the operation."""

    pass


class BalanceError(EngineError):
    """A ledger decrement would go below zero."""

    pass


class OracleError(EngineError):
    """The price source returned data the engine refuses to use."""

    pass


class ReentrantCall(EngineError):
    """A mutating operation was entered while another one is in flight."""

    pass


# =============================================================================
# Concrete errors
# =============================================================================


class InvalidAmount(ValidationError):
    """Amount must be a positive integer."""

    def __init__(self, amount: object) -> None:
        self.amount = amount
        super().__init__(f"Amount must be a positive integer, got {amount!r}")


class AssetNotSupported(ConfigError):
    """Asset is not part of the collateral registry."""

    def __init__(self, asset: str) -> None:
        self.asset = asset
        super().__init__(f"Asset {asset!r} is not a supported collateral asset")


class AssetListLengthMismatch(ConfigError):
    """Collateral and price feed lists differ in length."""

    def __init__(self, num_assets: int, num_feeds: int) -> None:
        self.num_assets = num_assets
        self.num_feeds = num_feeds
        super().__init__(
            f"Got {num_assets} collateral assets but {num_feeds} price feeds. "
            "Each collateral asset needs exactly one price feed."
        )


class DuplicateAsset(ConfigError):
    """The same asset appears twice in the registration list."""

    def __init__(self, asset: str) -> None:
        self.asset = asset
        super().__init__(f"Asset {asset!r} is registered more than once")


class UnsupportedFeedDecimals(ConfigError):
    """A price feed quotes with a precision the value conversions do not assume."""

    def __init__(self, asset: str, decimals: int, expected: int) -> None:
        self.asset = asset
        self.decimals = decimals
        self.expected = expected
        super().__init__(
            f"Price feed for {asset!r} reports {decimals} decimals, expected {expected}"
        )


class InvalidSetting(ConfigError):
    """An environment setting could not be parsed or is out of range."""

    pass


class TransferFailed(CustodyError):
    """A token reported a failed pull or push."""

    def __init__(self, asset: str, sender: str, recipient: str, amount: int) -> None:
        self.asset = asset
        self.sender = sender
        self.recipient = recipient
        self.amount = amount
        super().__init__(
            f"Transfer of {amount} {asset} from {sender!r} to {recipient!r} failed"
        )


class MintFailed(CustodyError):
    """The stable-unit gateway refused to mint."""

    def __init__(self, recipient: str, amount: int) -> None:
        self.recipient = recipient
        self.amount = amount
        super().__init__(f"Stable unit gateway refused to mint {amount} to {recipient!r}")


class CompensationFailed(CustodyError):
    """Undoing a reverted operation's token movements did not fully succeed.

    The ledgers are restored regardless; the listed movements are the ones
    custody could not take back. The original failure is the __cause__.
    """

    def __init__(self, operation: str, failures: list[str]) -> None:
        self.operation = operation
        self.failures = failures
        super().__init__(
            f"Could not undo {len(failures)} token movement(s) of {operation!r}: "
            + "; ".join(failures)
        )


class HealthFactorBroken(InvariantError):
    """The user's health factor is below the minimum."""

    def __init__(self, health_factor: int) -> None:
        self.health_factor = health_factor
        super().__init__(f"Health factor {health_factor} is below the minimum")


class HealthFactorOk(InvariantError):
    """The target is healthy and cannot be liquidated."""

    def __init__(self, user: str, health_factor: int) -> None:
        self.user = user
        self.health_factor = health_factor
        super().__init__(
            f"User {user!r} has health factor {health_factor} and cannot be liquidated"
        )


class HealthFactorNotImproved(InvariantError):
    """A liquidation did not raise the target's health factor."""

    def __init__(self, starting: int, ending: int) -> None:
        self.starting = starting
        self.ending = ending
        super().__init__(
            f"Liquidation did not improve health factor ({starting} -> {ending})"
        )


class InsufficientCollateral(BalanceError):
    """Not enough collateral of one asset to redeem."""

    def __init__(self, user: str, asset: str, balance: int, requested: int) -> None:
        self.user = user
        self.asset = asset
        self.balance = balance
        self.requested = requested
        super().__init__(
            f"User {user!r} holds {balance} {asset} but {requested} was requested"
        )


class InsufficientDebt(BalanceError):
    """Burning more debt than the user owes."""

    def __init__(self, user: str, debt: int, requested: int) -> None:
        self.user = user
        self.debt = debt
        self.requested = requested
        super().__init__(
            f"User {user!r} owes {debt} but a burn of {requested} was requested"
        )


class StalePrice(OracleError):
    """The latest quote is older than the freshness bound."""

    def __init__(self, asset: str, updated_at: int, now: int, timeout: int) -> None:
        self.asset = asset
        self.updated_at = updated_at
        self.now = now
        self.timeout = timeout
        super().__init__(
            f"Price for {asset!r} last updated at {updated_at}, "
            f"{now - updated_at}s ago (timeout {timeout}s)"
        )


class InvalidPrice(OracleError):
    """The quote carries a non-positive answer."""

    def __init__(self, asset: str, answer: int) -> None:
        self.asset = asset
        self.answer = answer
        super().__init__(f"Price feed for {asset!r} returned non-positive answer {answer}")


def require_positive(amount: object) -> int:
    """Return amount if it is a positive int, else raise InvalidAmount."""
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(amount)
    return amount
