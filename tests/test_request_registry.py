"""Tests for the request registry: proves lifecycle and credit rules hold."""

import pytest
from datetime import datetime, timezone

from herweave.accounts.store import AccountStore
from herweave.credit.ledger import CostSchedule, CreditLedger
from herweave.errors import (
    InsufficientCredit,
    InvalidHelpType,
    NotAuthorized,
    RequestNotFound,
    RequestNotMatched,
    RequestNotOpen,
    SelfHelpForbidden,
)
from herweave.market.registry import RequestRegistry
from herweave.models.request import HelpType, RequestStatus


def _now() -> datetime:
    return datetime(2026, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def accounts() -> AccountStore:
    store = AccountStore()
    store.register("alice", "Alice", "Paris")
    store.register("bob", "Bob", "Paris")
    return store


@pytest.fixture
def registry(accounts: AccountStore) -> RequestRegistry:
    return RequestRegistry(accounts, CreditLedger(accounts, CostSchedule()))


def _post(registry: RequestRegistry, requester: str = "alice", help_type: int = 0):
    return registry.create_request(
        requester, "Ride", "need pickup", "Paris", help_type, now=_now(),
    )


class TestCreateRequest:
    def test_create_debits_and_opens(
        self, registry: RequestRegistry, accounts: AccountStore,
    ) -> None:
        request = _post(registry)
        assert request.request_id == 1
        assert request.status == RequestStatus.OPEN
        assert request.helper is None
        assert request.help_type == HelpType.AIRPORT_PICKUP
        assert request.created_utc == _now()
        assert accounts.get("alice").balance == 8
        assert accounts.get("alice").total_received == 1

    def test_ids_are_sequential(self, registry: RequestRegistry) -> None:
        ids = [_post(registry, help_type=h).request_id for h in (0, 1, 2)]
        assert ids == [1, 2, 3]
        assert registry.count == 3

    def test_repeat_creates_distinct_request(self, registry: RequestRegistry) -> None:
        first = _post(registry)
        second = _post(registry)
        assert first.request_id != second.request_id

    def test_auto_registers_unknown_requester(
        self, registry: RequestRegistry, accounts: AccountStore,
    ) -> None:
        registry.create_request("carol", "Tour", "show me around", "Kyoto", 1)
        carol = accounts.get("carol")
        assert carol is not None
        assert carol.balance == 5
        assert carol.location == "Kyoto"
        assert carol.trust_score == 50

    def test_invalid_help_type_changes_nothing(
        self, registry: RequestRegistry, accounts: AccountStore,
    ) -> None:
        with pytest.raises(InvalidHelpType):
            registry.create_request("carol", "Ride", "", "Paris", 7)
        assert accounts.get("carol") is None
        assert registry.count == 0
        assert registry.all_requests() == []

    def test_insufficient_credit_changes_nothing(
        self, registry: RequestRegistry, accounts: AccountStore,
    ) -> None:
        accounts.adjust_balance("alice", -7)
        with pytest.raises(InsufficientCredit):
            registry.create_request("alice", "Tour", "", "Paris", 1)
        assert accounts.get("alice").balance == 3
        assert accounts.get("alice").total_received == 0
        assert registry.count == 0
        assert registry.open_requests() == []

    def test_insufficient_credit_does_not_auto_register(self) -> None:
        accounts = AccountStore(initial_balance=1)
        registry = RequestRegistry(accounts, CreditLedger(accounts, CostSchedule()))
        with pytest.raises(InsufficientCredit):
            registry.create_request("carol", "Ride", "", "Paris", 0)
        assert accounts.get("carol") is None


class TestAcceptRequest:
    def test_accept_matches_and_rewards(
        self, registry: RequestRegistry, accounts: AccountStore,
    ) -> None:
        _post(registry)
        request = registry.accept_request(1, "bob")
        assert request.status == RequestStatus.MATCHED
        assert request.helper == "bob"
        assert accounts.get("bob").balance == 11
        assert accounts.get("bob").total_helped == 1

    def test_unknown_request(self, registry: RequestRegistry) -> None:
        with pytest.raises(RequestNotFound):
            registry.accept_request(42, "bob")

    @pytest.mark.parametrize("request_id", [True, "1", 1.0, None])
    def test_non_integer_id_not_found(
        self, registry: RequestRegistry, accounts: AccountStore, request_id,
    ) -> None:
        _post(registry)
        with pytest.raises(RequestNotFound):
            registry.accept_request(request_id, "bob")
        assert registry.get(request_id) is None
        assert registry.get(1).status == RequestStatus.OPEN
        assert accounts.get("bob") is None

    def test_second_accept_fails(
        self, registry: RequestRegistry, accounts: AccountStore,
    ) -> None:
        _post(registry)
        registry.accept_request(1, "bob")
        accounts.register("carol", "Carol", "Paris")
        with pytest.raises(RequestNotOpen):
            registry.accept_request(1, "carol")
        assert registry.get(1).helper == "bob"
        assert accounts.get("carol").balance == 10
        assert accounts.get("carol").total_helped == 0

    @pytest.mark.parametrize("advance", [0, 1, 2])
    def test_self_help_forbidden_in_any_status(
        self, registry: RequestRegistry, advance: int,
    ) -> None:
        _post(registry)
        if advance >= 1:
            registry.accept_request(1, "bob")
        if advance >= 2:
            registry.complete_request(1, "alice")
        with pytest.raises(SelfHelpForbidden):
            registry.accept_request(1, "alice")

    def test_auto_registers_helper(
        self, registry: RequestRegistry, accounts: AccountStore,
    ) -> None:
        _post(registry)
        registry.accept_request(1, "dave")
        dave = accounts.get("dave")
        assert dave.balance == 11
        assert dave.total_helped == 1
        assert dave.location == "Paris"

    def test_failed_accept_does_not_auto_register(
        self, registry: RequestRegistry, accounts: AccountStore,
    ) -> None:
        with pytest.raises(RequestNotFound):
            registry.accept_request(1, "dave")
        assert accounts.get("dave") is None


class TestCompleteRequest:
    def test_requester_completes(self, registry: RequestRegistry) -> None:
        _post(registry)
        registry.accept_request(1, "bob")
        request = registry.complete_request(1, "alice")
        assert request.status == RequestStatus.COMPLETED

    def test_helper_completes(self, registry: RequestRegistry) -> None:
        _post(registry)
        registry.accept_request(1, "bob")
        assert registry.complete_request(1, "bob").status == RequestStatus.COMPLETED

    def test_no_balance_change_on_complete(
        self, registry: RequestRegistry, accounts: AccountStore,
    ) -> None:
        _post(registry)
        registry.accept_request(1, "bob")
        registry.complete_request(1, "alice")
        assert accounts.get("alice").balance == 8
        assert accounts.get("bob").balance == 11

    def test_stranger_not_authorized(self, registry: RequestRegistry) -> None:
        _post(registry)
        registry.accept_request(1, "bob")
        with pytest.raises(NotAuthorized):
            registry.complete_request(1, "mallory")
        assert registry.get(1).status == RequestStatus.MATCHED

    def test_open_request_not_matched(self, registry: RequestRegistry) -> None:
        _post(registry)
        with pytest.raises(RequestNotMatched):
            registry.complete_request(1, "alice")

    def test_second_complete_fails(self, registry: RequestRegistry) -> None:
        _post(registry)
        registry.accept_request(1, "bob")
        registry.complete_request(1, "alice")
        with pytest.raises(RequestNotMatched):
            registry.complete_request(1, "bob")

    def test_unknown_request(self, registry: RequestRegistry) -> None:
        with pytest.raises(RequestNotFound):
            registry.complete_request(9, "alice")


class TestQueries:
    def test_open_requests_in_posting_order(self, registry: RequestRegistry) -> None:
        for _ in range(3):
            _post(registry)
        registry.accept_request(2, "bob")
        assert [r.request_id for r in registry.open_requests()] == [1, 3]

    def test_requests_involving(self, registry: RequestRegistry) -> None:
        _post(registry, "alice")
        _post(registry, "bob")
        _post(registry, "alice")
        registry.accept_request(2, "carol")
        registry.accept_request(3, "bob")
        assert [r.request_id for r in registry.requests_involving("alice")] == [1, 3]
        assert [r.request_id for r in registry.requests_involving("bob")] == [2, 3]
        assert [r.request_id for r in registry.requests_involving("carol")] == [2]
        assert registry.requests_involving("nobody") == []

    def test_queries_include_terminal_requests(self, registry: RequestRegistry) -> None:
        _post(registry)
        registry.accept_request(1, "bob")
        registry.complete_request(1, "alice")
        assert registry.get(1).status == RequestStatus.COMPLETED
        assert len(registry.requests_involving("alice")) == 1

    def test_get_unknown_returns_none(self, registry: RequestRegistry) -> None:
        assert registry.get(1) is None

    def test_get_returns_snapshot(self, registry: RequestRegistry) -> None:
        _post(registry)
        snapshot = registry.get(1)
        snapshot.status = RequestStatus.COMPLETED
        assert registry.get(1).status == RequestStatus.OPEN

    def test_restore_resumes_id_counter(
        self, registry: RequestRegistry, accounts: AccountStore,
    ) -> None:
        _post(registry)
        _post(registry)
        fresh = RequestRegistry(accounts, CreditLedger(accounts, CostSchedule()))
        fresh.restore(registry.all_requests())
        assert fresh.count == 2
        assert _post(fresh).request_id == 3
