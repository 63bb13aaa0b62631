"""Collateral and debt ledgers.

Both ledgers hold plain integer positions with 18 implied decimals and
expose two layers:
- Primitive steps: increase / decrease (ledger only) and the custody or
  gateway call that goes with them
- Composed operations (deposit, redeem, mint, burn) that run
  validate -> mutate -> checkpoint -> external call

The optional checkpoint runs after the ledger mutation and before any
external code, so callers can evaluate invariants on the mutated state
while nothing has left the engine yet. Ledgers never restore themselves;
the engine snapshots them on entry and restores them on failure.

Every custody or gateway call that succeeds records its inverse in a
CompensationLog shared by both ledgers. When an operation fails after
tokens have moved, the engine unwinds the log in reverse order so custody
matches the restored ledgers again.
"""

from __future__ import annotations

from typing import Callable

from stable_engine.core.errors import (
    InsufficientCollateral,
    InsufficientDebt,
    MintFailed,
    TransferFailed,
    require_positive,
)
from stable_engine.core.logging import AuditLogger
from stable_engine.data.interfaces import StableUnitGateway
from stable_engine.data.registry import AssetRegistry

Checkpoint = Callable[[], None]

# Returns False (or raises) when the inverse movement could not be made
Compensation = Callable[[], bool | None]

CollateralSnapshot = dict[str, dict[str, int]]
DebtSnapshot = dict[str, int]


class CompensationLog:
    """Inverse token movements for the operation in flight.

    Usage:
        log = CompensationLog()
        log.record("return 1 WETH to alice", lambda: weth.push("alice", 10**18))
        failures = log.unwind()
    """

    def __init__(self) -> None:
        self._entries: list[tuple[str, Compensation]] = []

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def descriptions(self) -> list[str]:
        """Recorded movements, oldest first."""
        return [description for description, _ in self._entries]

    def record(self, description: str, compensation: Compensation) -> None:
        self._entries.append((description, compensation))

    def discard_last(self) -> None:
        """Drop the most recent entry once its movement has been superseded."""
        self._entries.pop()

    def clear(self) -> None:
        self._entries.clear()

    def unwind(self) -> list[str]:
        """Run every compensation newest first and empty the log.

        Every entry is attempted even when an earlier one fails.

        Returns:
            One description per compensation that raised or returned False.
        """
        failures: list[str] = []
        while self._entries:
            description, compensation = self._entries.pop()
            try:
                ok = compensation()
            except Exception as e:
                failures.append(f"{description} ({type(e).__name__}: {e})")
                continue
            if ok is False:
                failures.append(f"{description} (refused)")
        return failures


class CollateralLedger:
    """Per-(user, asset) collateral quantities held in engine custody.

    Usage:
        ledger = CollateralLedger(registry, custodian="engine")
        ledger.deposit("alice", "WETH", 10 * 10**18)
        ledger.redeem("alice", "alice", "WETH", 10**18)
    """

    def __init__(
        self,
        registry: AssetRegistry,
        custodian: str,
        logger: AuditLogger | None = None,
        compensations: CompensationLog | None = None,
    ) -> None:
        """Initialize an empty ledger.

        Args:
            registry: Assets the ledger accepts.
            custodian: Account that holds deposited collateral.
            logger: Optional audit logger.
            compensations: Log receiving the inverse of every token movement.
        """
        self.registry = registry
        self.custodian = custodian
        self.logger = logger
        self.compensations = compensations if compensations is not None else CompensationLog()
        self._balances: dict[str, dict[str, int]] = {}

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def balance_of(self, user: str, asset: str) -> int:
        """Collateral of one asset deposited by user."""
        return self._balances.get(user, {}).get(asset, 0)

    def balances_of(self, user: str) -> dict[str, int]:
        """All registered assets with the user's balance, in registration order."""
        return {asset: self.balance_of(user, asset) for asset in self.registry.addresses}

    def total_of(self, asset: str) -> int:
        """Sum of every user's balance of asset."""
        return sum(positions.get(asset, 0) for positions in self._balances.values())

    def users(self) -> list[str]:
        """Users with any recorded position."""
        return list(self._balances)

    # -------------------------------------------------------------------------
    # Primitive steps
    # -------------------------------------------------------------------------

    def increase(self, user: str, asset: str, amount: int) -> None:
        """Credit collateral to user without moving tokens."""
        require_positive(amount)
        self.registry.get(asset)
        positions = self._balances.setdefault(user, {})
        positions[asset] = positions.get(asset, 0) + amount

    def decrease(self, user: str, asset: str, amount: int) -> None:
        """Debit collateral from user without moving tokens.

        Raises:
            InsufficientCollateral: If user holds less than amount of asset.
        """
        require_positive(amount)
        self.registry.get(asset)
        balance = self.balance_of(user, asset)
        if amount > balance:
            raise InsufficientCollateral(user, asset, balance, amount)
        self._balances[user][asset] = balance - amount

    def collect(self, user: str, asset: str, amount: int) -> None:
        """Pull amount of asset from user into custody."""
        token = self.registry.token(asset)
        if not token.pull(user, self.custodian, amount):
            raise TransferFailed(asset, user, self.custodian, amount)
        self.compensations.record(
            f"return {amount} {asset} to {user!r}",
            lambda: token.push(user, amount),
        )

    def release(self, to_user: str, asset: str, amount: int) -> None:
        """Push amount of asset from custody to to_user."""
        token = self.registry.token(asset)
        if not token.push(to_user, amount):
            raise TransferFailed(asset, self.custodian, to_user, amount)
        self.compensations.record(
            f"take back {amount} {asset} from {to_user!r}",
            lambda: token.pull(to_user, self.custodian, amount),
        )

    # -------------------------------------------------------------------------
    # Composed operations
    # -------------------------------------------------------------------------

    def deposit(
        self,
        user: str,
        asset: str,
        amount: int,
        checkpoint: Checkpoint | None = None,
    ) -> None:
        """Record a deposit and take custody of the tokens.

        Args:
            user: Depositor.
            asset: Registered collateral asset.
            amount: Quantity to deposit.
            checkpoint: Runs after the ledger update, before the token pull.

        Raises:
            InvalidAmount: If amount is not positive.
            AssetNotSupported: If asset is not registered.
            TransferFailed: If the token refuses the pull.
        """
        require_positive(amount)
        self.registry.get(asset)

        self.increase(user, asset, amount)
        if checkpoint is not None:
            checkpoint()
        self.collect(user, asset, amount)

        if self.logger:
            self.logger.log_event(
                "collateral_deposited",
                {"user": user, "asset": asset, "amount": str(amount)},
            )

    def redeem(
        self,
        from_user: str,
        to_user: str,
        asset: str,
        amount: int,
        checkpoint: Checkpoint | None = None,
    ) -> None:
        """Remove collateral from from_user and send the tokens to to_user.

        Args:
            from_user: Position being debited.
            to_user: Recipient of the tokens.
            asset: Registered collateral asset.
            amount: Quantity to redeem.
            checkpoint: Runs after the ledger update, before the token push.

        Raises:
            InvalidAmount: If amount is not positive.
            InsufficientCollateral: If from_user holds less than amount.
            TransferFailed: If the token refuses the push.
        """
        require_positive(amount)

        self.decrease(from_user, asset, amount)
        if checkpoint is not None:
            checkpoint()
        self.release(to_user, asset, amount)

        if self.logger:
            self.logger.log_event(
                "collateral_redeemed",
                {
                    "from_user": from_user,
                    "to_user": to_user,
                    "asset": asset,
                    "amount": str(amount),
                },
            )

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def snapshot(self) -> CollateralSnapshot:
        """Copy of every position, for restore()."""
        return {user: dict(positions) for user, positions in self._balances.items()}

    def restore(self, snapshot: CollateralSnapshot) -> None:
        """Replace all positions with a snapshot."""
        self._balances = {user: dict(positions) for user, positions in snapshot.items()}


class DebtLedger:
    """Per-user stable-unit debt, backed by the stable-unit gateway.

    Usage:
        ledger = DebtLedger(gateway, custodian="engine")
        ledger.mint("alice", 100 * 10**18, checkpoint=lambda: health.enforce_healthy("alice"))
        ledger.burn(100 * 10**18, on_behalf_of="alice", payer="alice")
    """

    def __init__(
        self,
        gateway: StableUnitGateway,
        custodian: str,
        logger: AuditLogger | None = None,
        compensations: CompensationLog | None = None,
    ) -> None:
        """Initialize an empty ledger.

        Args:
            gateway: Stable-unit mint/burn access.
            custodian: Account stable units are pulled into before burning.
            logger: Optional audit logger.
            compensations: Log receiving the inverse of every token movement.
        """
        self.gateway = gateway
        self.custodian = custodian
        self.logger = logger
        self.compensations = compensations if compensations is not None else CompensationLog()
        self._debts: dict[str, int] = {}

    def debt_of(self, user: str) -> int:
        """Stable units minted by user and not yet burned."""
        return self._debts.get(user, 0)

    def total_debt(self) -> int:
        """Sum of all users' debt."""
        return sum(self._debts.values())

    def users(self) -> list[str]:
        """Users with any recorded debt."""
        return list(self._debts)

    def increase(self, user: str, amount: int) -> None:
        """Add debt without minting."""
        require_positive(amount)
        self._debts[user] = self.debt_of(user) + amount

    def decrease(self, user: str, amount: int) -> None:
        """Remove debt without burning.

        Raises:
            InsufficientDebt: If user owes less than amount.
        """
        require_positive(amount)
        debt = self.debt_of(user)
        if amount > debt:
            raise InsufficientDebt(user, debt, amount)
        self._debts[user] = debt - amount

    def issue(self, to_user: str, amount: int) -> None:
        """Ask the gateway to mint amount to to_user."""
        if not self.gateway.mint(to_user, amount):
            raise MintFailed(to_user, amount)
        self.compensations.record(
            f"revoke {amount} minted stable units from {to_user!r}",
            lambda: self._revoke(to_user, amount),
        )

    def settle(self, payer: str, amount: int) -> None:
        """Pull amount of stable units from payer and destroy them."""
        if not self.gateway.pull(payer, self.custodian, amount):
            raise TransferFailed(self.gateway.address, payer, self.custodian, amount)
        self.compensations.record(
            f"return {amount} stable units to {payer!r}",
            lambda: self.gateway.push(payer, amount),
        )

        self.gateway.burn(amount)
        self.compensations.discard_last()
        self.compensations.record(
            f"re-mint {amount} burned stable units to {payer!r}",
            lambda: self.gateway.mint(payer, amount),
        )

    def _revoke(self, user: str, amount: int) -> bool:
        """Take minted stable units back from user and burn them."""
        if not self.gateway.pull(user, self.custodian, amount):
            return False
        self.gateway.burn(amount)
        return True

    def mint(
        self,
        user: str,
        amount: int,
        checkpoint: Checkpoint | None = None,
    ) -> None:
        """Record new debt and mint the stable units to the user.

        Args:
            user: Borrower.
            amount: Stable units to mint.
            checkpoint: Runs after the debt increase, before the gateway mint.
                The engine passes its health check here.

        Raises:
            InvalidAmount: If amount is not positive.
            MintFailed: If the gateway refuses to mint.
        """
        require_positive(amount)

        self.increase(user, amount)
        if checkpoint is not None:
            checkpoint()
        self.issue(user, amount)

        if self.logger:
            self.logger.log_event(
                "debt_minted",
                {"user": user, "amount": str(amount), "debt": str(self.debt_of(user))},
            )

    def burn(
        self,
        amount: int,
        on_behalf_of: str,
        payer: str,
        checkpoint: Checkpoint | None = None,
    ) -> None:
        """Extinguish debt of on_behalf_of with stable units paid by payer.

        Args:
            amount: Stable units to burn.
            on_behalf_of: User whose debt is reduced.
            payer: Account the stable units are pulled from.
            checkpoint: Runs after the debt decrease, before the pull.

        Raises:
            InvalidAmount: If amount is not positive.
            InsufficientDebt: If on_behalf_of owes less than amount.
            TransferFailed: If the pull from payer fails.
        """
        require_positive(amount)

        self.decrease(on_behalf_of, amount)
        if checkpoint is not None:
            checkpoint()
        self.settle(payer, amount)

        if self.logger:
            self.logger.log_event(
                "debt_burned",
                {
                    "on_behalf_of": on_behalf_of,
                    "payer": payer,
                    "amount": str(amount),
                    "debt": str(self.debt_of(on_behalf_of)),
                },
            )

    def snapshot(self) -> DebtSnapshot:
        """Copy of every debt position, for restore()."""
        return dict(self._debts)

    def restore(self, snapshot: DebtSnapshot) -> None:
        """Replace all debt positions with a snapshot."""
        self._debts = dict(snapshot)
