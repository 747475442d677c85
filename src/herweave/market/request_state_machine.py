"""Request state machine: enforces valid help-request transitions.

Request lifecycle:
    OPEN → MATCHED → COMPLETED

State semantics:
- OPEN: posted and visible to helpers; no helper recorded.
- MATCHED: a helper accepted; helper recorded and fixed from here on.
- COMPLETED: terminal; the exchange happened and may be reviewed.
- CANCELLED: terminal, kept for data-format compatibility; nothing
  transitions into it.

Fail-closed: invalid transitions return errors. There are no implicit
transitions.
"""

from __future__ import annotations

from herweave.models.request import HelpRequest, RequestStatus


# Valid transitions: {from_state: {allowed_to_states}}
_TRANSITIONS: dict[RequestStatus, set[RequestStatus]] = {
    RequestStatus.OPEN: {RequestStatus.MATCHED},
    RequestStatus.MATCHED: {RequestStatus.COMPLETED},
    # Terminal states: no outgoing transitions
    RequestStatus.COMPLETED: set(),
    RequestStatus.CANCELLED: set(),
}


class RequestStateMachine:
    """Validates and applies request status transitions.

    Pure computation: validates transitions only. Balances, counters and
    notifications are handled by the registry and the service layer.
    """

    @staticmethod
    def validate_transition(
        request: HelpRequest,
        target: RequestStatus,
    ) -> list[str]:
        """Check if a transition is valid. Returns errors (empty = OK)."""
        current = request.status
        if RequestStateMachine.is_terminal(current):
            return [
                f"Request {request.request_id} is {current.name}, a terminal status"
            ]
        allowed = _TRANSITIONS.get(current, set())

        if target not in allowed:
            allowed_str = ", ".join(s.name for s in sorted(allowed))
            return [
                f"Invalid request transition: {current.name} → {target.name}. "
                f"Allowed from {current.name}: [{allowed_str}]"
            ]
        return []

    @staticmethod
    def apply_transition(
        request: HelpRequest,
        target: RequestStatus,
        helper: str | None = None,
    ) -> list[str]:
        """Validate and apply a status transition.

        OPEN → MATCHED requires a helper, which is recorded on the
        request. Every other transition must not pass one. On success,
        mutates the request and returns an empty list.
        """
        errors = RequestStateMachine.validate_transition(request, target)
        if errors:
            return errors
        if target == RequestStatus.MATCHED:
            if helper is None:
                return ["Matching a request requires a helper"]
            request.helper = helper
        elif helper is not None:
            return [f"Helper cannot change on transition to {target.name}"]
        request.status = target
        return []

    @staticmethod
    def is_terminal(status: RequestStatus) -> bool:
        """Check if a status is terminal (no further transitions)."""
        return status in (RequestStatus.COMPLETED, RequestStatus.CANCELLED)

    @staticmethod
    def check_helper_invariant(request: HelpRequest) -> list[str]:
        """Helper is unset while OPEN and set once MATCHED or COMPLETED."""
        status = request.status
        if status == RequestStatus.OPEN:
            if request.helper is not None:
                return [f"Request {request.request_id} is OPEN but has a helper"]
        elif status in (RequestStatus.MATCHED, RequestStatus.COMPLETED):
            if request.helper is None:
                return [f"Request {request.request_id} is {status.name} without a helper"]
        elif status == RequestStatus.CANCELLED:
            pass
        else:
            return [f"Request {request.request_id} has unknown status {status!r}"]
        return []
