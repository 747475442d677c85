"""Help request models: help types, request status, and the request record.

Request lifecycle: OPEN → MATCHED → COMPLETED

CANCELLED is a terminal status kept for data-format compatibility with the
original ledger. No command transitions a request into it.

Status and help type are integer enums: their values are the codes stored
by the original ledger (uint8 status, uint256 help type).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


class HelpType(int, enum.Enum):
    """Assistance category of a request. Each has a fixed credit cost."""
    AIRPORT_PICKUP = 0
    DAY_TOUR = 1
    COUCH_SURFING = 2

    @property
    def label(self) -> str:
        return _HELP_TYPE_LABELS[self]


_HELP_TYPE_LABELS: dict[HelpType, str] = {
    HelpType.AIRPORT_PICKUP: "airport/station pickup",
    HelpType.DAY_TOUR: "day-tour guiding",
    HelpType.COUCH_SURFING: "couch-surfing lodging",
}


class RequestStatus(int, enum.Enum):
    """Lifecycle state of a help request."""
    OPEN = 0
    MATCHED = 1
    COMPLETED = 2
    CANCELLED = 3


@dataclass
class HelpRequest:
    """A help request posted by a member.

    helper is None while OPEN and is set exactly once, on the transition
    to MATCHED. request_id is assigned by the registry and never changes.
    """
    request_id: int
    requester: str
    title: str
    description: str
    location: str
    help_type: HelpType
    created_utc: datetime
    status: RequestStatus = RequestStatus.OPEN
    helper: Optional[str] = None

    def involves(self, identity: str) -> bool:
        """True if identity is the requester or the helper of record."""
        return identity == self.requester or (
            self.helper is not None and identity == self.helper
        )
