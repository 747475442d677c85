"""Credit ledger: atomic debit and credit against account balances.

Posting a request costs credit according to a fixed per-help-type
schedule; accepting a request pays the helper a fixed reward. Both
schedule and reward are set once when the ledger is built.

Rule: validate fully before any balance mutation. debit() checks funds
before touching the balance, and available() lets callers check funds
for an identity that has not been auto-registered yet.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from herweave.accounts.store import AccountStore
from herweave.errors import InsufficientCredit, InvalidHelpType
from herweave.models.request import HelpType
from herweave.policy.resolver import PolicyResolver


@dataclass(frozen=True)
class CostSchedule:
    """Credit cost per help type, plus the reward paid on match."""
    costs: dict[HelpType, int] = field(default_factory=lambda: {
        HelpType.AIRPORT_PICKUP: 2,
        HelpType.DAY_TOUR: 5,
        HelpType.COUCH_SURFING: 3,
    })
    match_reward: int = 1

    @classmethod
    def from_policy(cls, resolver: PolicyResolver) -> CostSchedule:
        return cls(
            costs=resolver.help_type_costs(),
            match_reward=resolver.match_reward(),
        )


def parse_help_type(code: Any) -> HelpType:
    """Resolve a help-type code. Raises InvalidHelpType outside {0, 1, 2}."""
    if isinstance(code, bool) or not isinstance(code, int):
        raise InvalidHelpType(f"Help type must be an integer code, got {code!r}")
    try:
        return HelpType(code)
    except ValueError:
        raise InvalidHelpType(f"Unknown help type: {code}") from None


class CreditLedger:
    """Debits and credits account balances under the cost schedule.

    Usage:
        ledger = CreditLedger(accounts, CostSchedule())
        cost = ledger.cost_for(HelpType.DAY_TOUR)
        ledger.debit("alice", cost)
        ledger.credit("bob", ledger.reward)
    """

    def __init__(self, accounts: AccountStore, schedule: CostSchedule) -> None:
        self._accounts = accounts
        self._schedule = schedule

    @property
    def schedule(self) -> CostSchedule:
        return self._schedule

    @property
    def reward(self) -> int:
        return self._schedule.match_reward

    def cost_for(self, help_type: Any) -> int:
        """Fixed credit cost of posting a request of this help type."""
        return self._schedule.costs[parse_help_type(help_type)]

    def available(self, identity: str) -> int:
        """Spendable balance, counting auto-registration for unknown identities."""
        account = self._accounts.get(identity)
        if account is None:
            return self._accounts.initial_balance
        return account.balance

    def debit(self, identity: str, amount: int) -> int:
        """Subtract amount from the balance. All-or-nothing.

        Raises InsufficientCredit with the balance unchanged if the
        account cannot cover the amount. Returns the new balance.
        """
        if amount < 0:
            raise ValueError(f"Debit amount must be non-negative, got {amount}")
        account = self._accounts.get(identity)
        if account is None:
            raise ValueError(f"Unknown identity: {identity}")
        if account.balance < amount:
            raise InsufficientCredit(
                f"Insufficient credit for {identity}: balance {account.balance}, "
                f"required {amount}"
            )
        return self._accounts.adjust_balance(identity, -amount)

    def credit(self, identity: str, amount: int) -> int:
        """Add amount to the balance. Returns the new balance."""
        if amount < 0:
            raise ValueError(f"Credit amount must be non-negative, got {amount}")
        return self._accounts.adjust_balance(identity, amount)
