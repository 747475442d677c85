"""Account store: registry of every participant in the ledger.

The store exclusively owns Account records. Other components reference
accounts by identity and mutate them only through the store's methods.
Reads return snapshots, so callers never hold a live record.

Accounts are created by explicit registration or by auto-registration
(ensure_account) the first time an unknown identity posts or accepts a
request. Both paths grant the same initial balance and trust score.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from typing import Iterable, Optional

from herweave.errors import AlreadyRegistered
from herweave.models.account import Account


class AccountStore:
    """In-memory store of accounts keyed by identity.

    Thread-safety: this class is not thread-safe. The caller must
    synchronise access if used from multiple threads.
    """

    def __init__(self, initial_balance: int = 10, initial_trust: int = 50) -> None:
        self._accounts: dict[str, Account] = {}
        self.initial_balance = initial_balance
        self.initial_trust = initial_trust

    def register(
        self,
        identity: str,
        name: str,
        location: str,
        now: Optional[datetime] = None,
    ) -> Account:
        """Create a new account with the initial balance and trust score.

        Raises AlreadyRegistered if the identity already has an account.
        """
        if identity in self._accounts:
            raise AlreadyRegistered(f"Identity already registered: {identity}")
        account = self._create(identity, name, location, now)
        return dataclasses.replace(account)

    def ensure_account(
        self,
        identity: str,
        default_location: str = "",
        now: Optional[datetime] = None,
    ) -> Account:
        """Return a snapshot of the identity's account, creating it if absent.

        Idempotent and never fails.
        """
        account = self._accounts.get(identity)
        if account is None:
            account = self._create(identity, "", default_location, now)
        return dataclasses.replace(account)

    def get(self, identity: str) -> Optional[Account]:
        """Snapshot of the identity's account, or None if unregistered."""
        account = self._accounts.get(identity)
        if account is None:
            return None
        return dataclasses.replace(account)

    def exists(self, identity: str) -> bool:
        return identity in self._accounts

    def all_accounts(self) -> list[Account]:
        """Snapshots of all accounts in registration order."""
        return [dataclasses.replace(a) for a in self._accounts.values()]

    @property
    def count(self) -> int:
        return len(self._accounts)

    # ------------------------------------------------------------------
    # Mutators used by the ledger, registry and review components
    # ------------------------------------------------------------------

    def adjust_balance(self, identity: str, delta: int) -> int:
        """Apply a balance delta and return the new balance.

        Raises ValueError if the result would be negative. Callers
        validate funds first; reaching this error is a programming error.
        """
        account = self._require(identity)
        new_balance = account.balance + delta
        if new_balance < 0:
            raise ValueError(
                f"Balance of {identity} cannot go negative "
                f"({account.balance} + {delta})"
            )
        account.balance = new_balance
        return new_balance

    def increment_helped(self, identity: str) -> None:
        self._require(identity).total_helped += 1

    def increment_received(self, identity: str) -> None:
        self._require(identity).total_received += 1

    def set_trust_score(self, identity: str, score: int) -> None:
        if not (0 <= score <= 100):
            raise ValueError(f"Trust score must be in [0, 100], got {score}")
        self._require(identity).trust_score = score

    def restore(self, accounts: Iterable[Account]) -> None:
        """Replace the store's contents with previously persisted accounts."""
        self._accounts = {a.identity: dataclasses.replace(a) for a in accounts}

    def _create(
        self,
        identity: str,
        name: str,
        location: str,
        now: Optional[datetime],
    ) -> Account:
        account = Account(
            identity=identity,
            name=name,
            location=location,
            trust_score=self.initial_trust,
            balance=self.initial_balance,
            registered_utc=now or datetime.now(timezone.utc),
        )
        self._accounts[identity] = account
        return account

    def _require(self, identity: str) -> Account:
        """Internal lookup with clear error on missing identity."""
        account = self._accounts.get(identity)
        if account is None:
            raise ValueError(f"Unknown identity: {identity}")
        return account
