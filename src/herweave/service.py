"""Herweave service: unified facade for the mutual-aid ledger.

This is the primary interface for programmatic access to the ledger.
It orchestrates all subsystems:
- Accounts (registration, auto-registration on first action)
- Credit (cost schedule, debit on post, reward on match)
- Requests (OPEN → MATCHED → COMPLETED lifecycle)
- Reviews and trust (ratings of completed exchanges, trust recompute)
- Notifications (event log, observers)
- Persistence (state snapshot after each applied command)

Every command runs under one service-wide lock, so no two commands ever
interleave. A command either applies fully or fails with a specific
ErrorKind and no state change. Successful commands emit their events to
the event log and to observers in the order they were applied.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from herweave.accounts.store import AccountStore
from herweave.credit.ledger import CostSchedule, CreditLedger
from herweave.errors import ErrorKind, LedgerError
from herweave.market.registry import RequestRegistry
from herweave.market.request_state_machine import RequestStateMachine
from herweave.models.account import Account
from herweave.models.request import HelpRequest, HelpType, RequestStatus
from herweave.models.review import Review
from herweave.persistence.event_log import EventKind, EventLog, EventRecord
from herweave.persistence.state_store import StateStore
from herweave.policy.resolver import PolicyResolver
from herweave.review.book import ReviewBook
from herweave.trust.engine import TrustEngine

logger = logging.getLogger(__name__)

Observer = Callable[[EventRecord], None]


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service command."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    error_kind: Optional[ErrorKind] = None


class HerweaveService:
    """Unified ledger facade.

    Usage:
        service = HerweaveService(PolicyResolver.from_config_dir(config_dir))

        service.register("alice", "Alice", "Paris")
        result = service.create_request("alice", "Ride", "need pickup", "Paris", 0)
        service.accept_request(result.data["request_id"], "bob")
        service.complete_request(result.data["request_id"], "alice")
        service.submit_review(result.data["request_id"], "bob", "alice", 5, "great")

    Persistence (optional):
        service = HerweaveService(resolver, event_log=log, state_store=store)
        # State is persisted on each applied command and loaded on construction.
    """

    def __init__(
        self,
        resolver: Optional[PolicyResolver] = None,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._resolver = resolver or PolicyResolver.default()
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.RLock()

        self._accounts = AccountStore(
            initial_balance=self._resolver.initial_balance(),
            initial_trust=self._resolver.initial_trust_score(),
        )
        self._ledger = CreditLedger(
            self._accounts, CostSchedule.from_policy(self._resolver),
        )
        self._registry = RequestRegistry(self._accounts, self._ledger)
        self._trust_engine = TrustEngine(self._resolver)
        self._reviews = ReviewBook(self._accounts, self._registry, self._trust_engine)

        # Persistence layer (optional, in-memory if not provided)
        self._event_log = event_log
        self._state_store = state_store
        if state_store is not None:
            self._accounts.restore(state_store.load_accounts())
            self._registry.restore(state_store.load_requests())
            self._reviews.restore(state_store.load_reviews())

        self._observers: list[Observer] = []
        # Initialize counter from persisted log to avoid ID collision on restart
        self._event_counter = event_log.count if event_log is not None else 0

        # Set when an event-log or snapshot write fails after a command
        # applied. In-memory state stays correct; the files are stale.
        self._persistence_degraded: bool = False

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer for ledger events. Returns an unsubscribe callable."""
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def register(self, identity: str, name: str, location: str) -> ServiceResult:
        """Register a new member with the initial balance and trust score."""
        with self._lock:
            now = self._clock()
            try:
                account = self._accounts.register(identity, name, location, now=now)
            except LedgerError as e:
                return self._rejected("register", e)

            events = [self._event(EventKind.ACCOUNT_REGISTERED, identity, {}, now)]
            logger.info("Registered %s (%s)", identity, location or "no location")
            return self._commit(events, {
                "identity": account.identity,
                "balance": account.balance,
                "trust_score": account.trust_score,
            })

    def create_request(
        self,
        requester: str,
        title: str,
        description: str,
        location: str,
        help_type: Any,
    ) -> ServiceResult:
        """Post a help request, debiting its cost from the requester."""
        with self._lock:
            now = self._clock()
            was_registered = self._accounts.exists(requester)
            try:
                request = self._registry.create_request(
                    requester, title, description, location, help_type, now=now,
                )
            except LedgerError as e:
                return self._rejected("create_request", e)

            events = []
            if not was_registered:
                events.append(self._event(EventKind.ACCOUNT_REGISTERED, requester, {}, now))
            events.append(self._event(
                EventKind.REQUEST_CREATED, requester,
                {"request_id": request.request_id}, now,
            ))
            cost = self._ledger.cost_for(request.help_type)
            logger.info(
                "Request %d created by %s (%s, cost %d)",
                request.request_id, requester, request.help_type.label, cost,
            )
            return self._commit(events, {
                "request_id": request.request_id,
                "status": request.status.name,
                "cost": cost,
                "balance": self._accounts.get(requester).balance,
            })

    def accept_request(self, request_id: int, helper: str) -> ServiceResult:
        """Match an open request to a helper and pay the match reward."""
        with self._lock:
            now = self._clock()
            was_registered = self._accounts.exists(helper)
            try:
                request = self._registry.accept_request(request_id, helper, now=now)
            except LedgerError as e:
                return self._rejected("accept_request", e)

            events = []
            if not was_registered:
                events.append(self._event(EventKind.ACCOUNT_REGISTERED, helper, {}, now))
            events.append(self._event(
                EventKind.REQUEST_MATCHED, helper, {"request_id": request_id}, now,
            ))
            logger.info("Request %d matched with helper %s", request_id, helper)
            return self._commit(events, {
                "request_id": request_id,
                "status": request.status.name,
                "helper": helper,
                "reward": self._ledger.reward,
                "balance": self._accounts.get(helper).balance,
            })

    def complete_request(self, request_id: int, caller: str) -> ServiceResult:
        """Mark a matched request completed (requester or helper only)."""
        with self._lock:
            now = self._clock()
            try:
                request = self._registry.complete_request(request_id, caller)
            except LedgerError as e:
                return self._rejected("complete_request", e)

            events = [self._event(
                EventKind.REQUEST_COMPLETED, caller, {"request_id": request_id}, now,
            )]
            logger.info("Request %d completed by %s", request_id, caller)
            return self._commit(events, {
                "request_id": request_id,
                "status": request.status.name,
            })

    def submit_review(
        self,
        request_id: int,
        reviewer: str,
        reviewed: str,
        rating: int,
        comment: str,
    ) -> ServiceResult:
        """Rate the other party of a completed request and refresh their trust."""
        with self._lock:
            now = self._clock()
            try:
                review, score = self._reviews.submit_review(
                    request_id, reviewer, reviewed, rating, comment, now=now,
                )
            except LedgerError as e:
                return self._rejected("submit_review", e)

            events = [self._event(
                EventKind.REVIEW_SUBMITTED, reviewed,
                {"request_id": request_id, "rating": review.rating}, now,
            )]
            logger.info(
                "Review on request %d: %s rated %s %d (trust now %d)",
                request_id, reviewer, reviewed, review.rating, score,
            )
            return self._commit(events, {
                "request_id": request_id,
                "reviewed": reviewed,
                "rating": review.rating,
                "trust_score": score,
            })

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_account(self, identity: str) -> Optional[Account]:
        """Snapshot of a member's account, or None if unregistered."""
        with self._lock:
            return self._accounts.get(identity)

    def balance_of(self, identity: str) -> Optional[int]:
        with self._lock:
            account = self._accounts.get(identity)
            return account.balance if account is not None else None

    def get_request(self, request_id: int) -> Optional[HelpRequest]:
        with self._lock:
            return self._registry.get(request_id)

    def open_requests(self) -> list[HelpRequest]:
        with self._lock:
            return self._registry.open_requests()

    def requests_involving(self, identity: str) -> list[HelpRequest]:
        with self._lock:
            return self._registry.requests_involving(identity)

    def get_reviews_for_request(self, request_id: int) -> list[Review]:
        with self._lock:
            return self._reviews.reviews_for_request(request_id)

    def get_reviews_for_identity(self, identity: str) -> list[Review]:
        with self._lock:
            return self._reviews.reviews_for_identity(identity)

    def cost_for(self, help_type: Any) -> int:
        """Credit cost of a help type. Raises InvalidHelpType for unknown codes."""
        return self._ledger.cost_for(help_type)

    def cost_schedule(self) -> dict[HelpType, int]:
        return dict(self._ledger.schedule.costs)

    def match_reward(self) -> int:
        return self._ledger.reward

    def request_count(self) -> int:
        with self._lock:
            return self._registry.count

    def dashboard(self, identity: str) -> dict[str, list[HelpRequest]]:
        """A member's requests bucketed by status, as requester or helper."""
        with self._lock:
            buckets: dict[str, list[HelpRequest]] = {
                s.name.lower(): [] for s in RequestStatus
            }
            for request in self._registry.requests_involving(identity):
                buckets[request.status.name.lower()].append(request)
            return buckets

    def status(self) -> dict[str, Any]:
        """Return ledger-wide status summary."""
        with self._lock:
            requests = self._registry.all_requests()
            by_status = {s.name.lower(): 0 for s in RequestStatus}
            for request in requests:
                by_status[request.status.name.lower()] += 1
            return {
                "accounts": self._accounts.count,
                "requests": {
                    "total": self._registry.count,
                    "by_status": by_status,
                },
                "reviews": self._reviews.count,
                "events": self._event_log.count if self._event_log is not None else None,
                "credit_in_circulation": sum(
                    a.balance for a in self._accounts.all_accounts()
                ),
                "persistence_degraded": self._persistence_degraded,
            }

    def check_invariants(self) -> list[str]:
        """Check ledger-wide invariants. Returns violations (empty = OK)."""
        with self._lock:
            errors: list[str] = []
            for account in self._accounts.all_accounts():
                if account.balance < 0:
                    errors.append(f"{account.identity}: negative balance {account.balance}")
                if not (0 <= account.trust_score <= 100):
                    errors.append(
                        f"{account.identity}: trust score {account.trust_score} out of range"
                    )
                expected = self._trust_engine.compute_score(
                    r.rating for r in self._reviews.reviews_for_identity(account.identity)
                )
                if account.trust_score != expected:
                    errors.append(
                        f"{account.identity}: trust score {account.trust_score} "
                        f"does not match review history ({expected})"
                    )

            requests = self._registry.all_requests()
            ids = [r.request_id for r in requests]
            if ids != list(range(1, len(ids) + 1)):
                errors.append(f"Request ids are not sequential from 1: {ids}")
            for request in requests:
                errors.extend(RequestStateMachine.check_helper_invariant(request))
                if request.helper is not None and request.helper == request.requester:
                    errors.append(f"Request {request.request_id} helped by its requester")
                for identity in (request.requester, request.helper):
                    if identity is not None and not self._accounts.exists(identity):
                        errors.append(
                            f"Request {request.request_id} references unknown {identity}"
                        )

            for review in self._reviews.all_reviews():
                request = self._registry.get(review.request_id)
                if request is None or request.status != RequestStatus.COMPLETED:
                    errors.append(
                        f"Review by {review.reviewer} references non-completed "
                        f"request {review.request_id}"
                    )
            return errors

    @property
    def persistence_degraded(self) -> bool:
        return self._persistence_degraded

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _next_event_id(self) -> str:
        """Generate a monotonically increasing unique event ID."""
        self._event_counter += 1
        return f"EVT-{self._event_counter:08d}"

    def _event(
        self,
        kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        now: datetime,
    ) -> EventRecord:
        return EventRecord.create(
            event_id=self._next_event_id(),
            event_kind=kind,
            actor_id=actor_id,
            payload=payload,
            timestamp_utc=now,
        )

    def _rejected(self, command: str, error: LedgerError) -> ServiceResult:
        logger.info("%s rejected (%s): %s", command, error.kind.value, error.message)
        return ServiceResult(
            success=False,
            errors=[error.message],
            error_kind=error.kind,
        )

    def _commit(self, events: list[EventRecord], data: dict[str, Any]) -> ServiceResult:
        """Record, persist and publish the events of an applied command.

        The command has already applied in memory and MUST NOT be rolled
        back here. Write failures mark the service degraded and surface
        as a warning on an otherwise successful result.
        """
        warnings: list[str] = []
        if self._event_log is not None:
            try:
                for event in events:
                    self._event_log.append(event)
            except (ValueError, OSError) as e:
                warnings.append(f"Event log failure: {e}")

        if self._state_store is not None:
            try:
                self._state_store.save(
                    self._accounts.all_accounts(),
                    self._registry.all_requests(),
                    self._reviews.all_reviews(),
                )
            except OSError as e:
                warnings.append(f"Persistence failure: {e}")

        if warnings:
            self._persistence_degraded = True
            for warning in warnings:
                logger.warning(warning)
            data["warning"] = "; ".join(warnings)

        for event in events:
            self._publish(event)
        return ServiceResult(success=True, data=data)

    def _publish(self, event: EventRecord) -> None:
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception:
                logger.exception(
                    "Observer %r failed on %s", observer, event.event_kind.value,
                )
