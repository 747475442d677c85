"""Request registry: posts help requests and drives their lifecycle.

The registry exclusively owns HelpRequest records. It references
accounts by identity only and changes balances and counters through the
AccountStore and CreditLedger.

Every command validates all of its preconditions before the first
mutation, so a failed command leaves balances, counters, the request
counter and the registry exactly as they were.

Ids are sequential from 1 and never reused. Requests are never deleted;
terminal requests stay queryable for history.
"""

from __future__ import annotations

import dataclasses
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from herweave.accounts.store import AccountStore
from herweave.credit.ledger import CreditLedger, parse_help_type
from herweave.errors import (
    InsufficientCredit,
    NotAuthorized,
    RequestNotFound,
    RequestNotMatched,
    RequestNotOpen,
    SelfHelpForbidden,
)
from herweave.market.request_state_machine import RequestStateMachine
from herweave.models.request import HelpRequest, RequestStatus


class RequestRegistry:
    """Creates, matches and completes help requests.

    Usage:
        registry = RequestRegistry(accounts, ledger)
        request = registry.create_request("alice", "Ride", "need pickup", "Paris", 0)
        registry.accept_request(request.request_id, "bob")
        registry.complete_request(request.request_id, "alice")
    """

    def __init__(self, accounts: AccountStore, ledger: CreditLedger) -> None:
        self._accounts = accounts
        self._ledger = ledger
        self._requests: dict[int, HelpRequest] = {}
        self._last_id = 0

    def create_request(
        self,
        requester: str,
        title: str,
        description: str,
        location: str,
        help_type: Any,
        now: Optional[datetime] = None,
    ) -> HelpRequest:
        """Post a new OPEN request, debiting the requester its cost.

        Raises InvalidHelpType or InsufficientCredit without any state
        change, including auto-registration of an unknown requester.
        """
        kind = parse_help_type(help_type)
        cost = self._ledger.cost_for(kind)
        available = self._ledger.available(requester)
        if available < cost:
            raise InsufficientCredit(
                f"Insufficient credit for {requester}: balance {available}, "
                f"required {cost} for {kind.label}"
            )

        self._accounts.ensure_account(requester, default_location=location, now=now)
        self._ledger.debit(requester, cost)

        self._last_id += 1
        request = HelpRequest(
            request_id=self._last_id,
            requester=requester,
            title=title,
            description=description,
            location=location,
            help_type=kind,
            created_utc=now or datetime.now(timezone.utc),
        )
        self._requests[request.request_id] = request
        self._accounts.increment_received(requester)
        return dataclasses.replace(request)

    def accept_request(
        self,
        request_id: int,
        helper: str,
        now: Optional[datetime] = None,
    ) -> HelpRequest:
        """Match an OPEN request to a helper and pay the helper the reward.

        Raises RequestNotFound, SelfHelpForbidden (whatever the status),
        or RequestNotOpen.
        """
        request = self._require(request_id)
        if helper == request.requester:
            raise SelfHelpForbidden(
                f"Requester cannot accept their own request {request_id}"
            )
        if request.status != RequestStatus.OPEN:
            raise RequestNotOpen(
                f"Request {request_id} is {request.status.name}, not OPEN"
            )

        self._accounts.ensure_account(helper, default_location=request.location, now=now)
        errors = RequestStateMachine.apply_transition(
            request, RequestStatus.MATCHED, helper=helper,
        )
        if errors:
            raise RequestNotOpen("; ".join(errors))
        self._accounts.increment_helped(helper)
        self._ledger.credit(helper, self._ledger.reward)
        return dataclasses.replace(request)

    def complete_request(self, request_id: int, caller: str) -> HelpRequest:
        """Mark a MATCHED request COMPLETED. No balance changes.

        Only the requester or the helper of record may complete.
        Raises RequestNotFound, NotAuthorized, or RequestNotMatched.
        """
        request = self._require(request_id)
        if not request.involves(caller):
            raise NotAuthorized(
                f"{caller} is neither requester nor helper of request {request_id}"
            )
        if request.status != RequestStatus.MATCHED:
            raise RequestNotMatched(
                f"Request {request_id} is {request.status.name}, not MATCHED"
            )
        errors = RequestStateMachine.apply_transition(request, RequestStatus.COMPLETED)
        if errors:
            raise RequestNotMatched("; ".join(errors))
        return dataclasses.replace(request)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get(self, request_id: int) -> Optional[HelpRequest]:
        """Snapshot of a request, or None if the id is unknown."""
        request = self._lookup(request_id)
        if request is None:
            return None
        return dataclasses.replace(request)

    def open_requests(self) -> list[HelpRequest]:
        """All OPEN requests in posting order."""
        return [
            dataclasses.replace(r) for r in self._requests.values()
            if r.status == RequestStatus.OPEN
        ]

    def requests_involving(self, identity: str) -> list[HelpRequest]:
        """All requests where identity is requester or helper, in posting order."""
        return [
            dataclasses.replace(r) for r in self._requests.values()
            if r.involves(identity)
        ]

    def all_requests(self) -> list[HelpRequest]:
        return [dataclasses.replace(r) for r in self._requests.values()]

    @property
    def count(self) -> int:
        """Number of requests ever posted (the last assigned id)."""
        return self._last_id

    def restore(self, requests: Iterable[HelpRequest]) -> None:
        """Replace the registry's contents with previously persisted requests."""
        ordered = sorted(requests, key=lambda r: r.request_id)
        self._requests = {r.request_id: dataclasses.replace(r) for r in ordered}
        self._last_id = ordered[-1].request_id if ordered else 0

    def _lookup(self, request_id: Any) -> Optional[HelpRequest]:
        # bool is an int subclass and True would hash onto request 1
        if isinstance(request_id, bool) or not isinstance(request_id, int):
            return None
        return self._requests.get(request_id)

    def _require(self, request_id: int) -> HelpRequest:
        request = self._lookup(request_id)
        if request is None:
            raise RequestNotFound(f"Unknown request: {request_id}")
        return request
