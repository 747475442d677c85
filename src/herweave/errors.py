"""Ledger failure kinds.

Every failure in the ledger core is a local precondition violation. None
are transient and none are retried internally: the command did not apply
and shared state is exactly as it was before the call.

Components raise the subclasses below. The service layer converts them
into failed ServiceResults carrying the matching ErrorKind.
"""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    """Classification of ledger command failures."""
    ALREADY_REGISTERED = "already_registered"
    INVALID_HELP_TYPE = "invalid_help_type"
    INSUFFICIENT_CREDIT = "insufficient_credit"
    REQUEST_NOT_FOUND = "request_not_found"
    REQUEST_NOT_OPEN = "request_not_open"
    REQUEST_NOT_MATCHED = "request_not_matched"
    REQUEST_NOT_COMPLETED = "request_not_completed"
    SELF_HELP_FORBIDDEN = "self_help_forbidden"
    NOT_AUTHORIZED = "not_authorized"
    INVALID_RATING = "invalid_rating"
    INVALID_REVIEW_PAIR = "invalid_review_pair"


class LedgerError(ValueError):
    """Base class for ledger precondition failures."""
    kind: ErrorKind

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AlreadyRegistered(LedgerError):
    kind = ErrorKind.ALREADY_REGISTERED


class InvalidHelpType(LedgerError):
    kind = ErrorKind.INVALID_HELP_TYPE


class InsufficientCredit(LedgerError):
    kind = ErrorKind.INSUFFICIENT_CREDIT


class RequestNotFound(LedgerError):
    kind = ErrorKind.REQUEST_NOT_FOUND


class RequestNotOpen(LedgerError):
    kind = ErrorKind.REQUEST_NOT_OPEN


class RequestNotMatched(LedgerError):
    kind = ErrorKind.REQUEST_NOT_MATCHED


class RequestNotCompleted(LedgerError):
    kind = ErrorKind.REQUEST_NOT_COMPLETED


class SelfHelpForbidden(LedgerError):
    kind = ErrorKind.SELF_HELP_FORBIDDEN


class NotAuthorized(LedgerError):
    kind = ErrorKind.NOT_AUTHORIZED


class InvalidRating(LedgerError):
    kind = ErrorKind.INVALID_RATING


class InvalidReviewPair(LedgerError):
    kind = ErrorKind.INVALID_REVIEW_PAIR
