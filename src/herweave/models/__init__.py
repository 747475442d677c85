"""Core data models for the Herweave ledger."""

from herweave.models.account import Account
from herweave.models.request import HelpRequest, HelpType, RequestStatus
from herweave.models.review import MAX_RATING, MIN_RATING, Review

__all__ = [
    "Account",
    "HelpRequest",
    "HelpType",
    "RequestStatus",
    "Review",
    "MIN_RATING",
    "MAX_RATING",
]
