"""Account model: one record per participant identity.

Accounts are created on explicit registration or lazily the first time an
unknown identity posts or accepts a request. They are never deleted.

Invariant enforced by the credit ledger: balance never goes negative.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass
class Account:
    """Ledger state for a single participant.

    Mutable: counters, balance and trust score change as the member
    posts, helps and gets reviewed. Only the AccountStore mutates it.
    """
    identity: str
    name: str
    location: str
    trust_score: int
    balance: int
    total_helped: int = 0
    total_received: int = 0
    exists: bool = True
    registered_utc: Optional[datetime] = None
