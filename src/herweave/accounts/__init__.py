"""Account store: one account per participant identity."""

from herweave.accounts.store import AccountStore

__all__ = ["AccountStore"]
