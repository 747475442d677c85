"""Review model: a rating left by one party of a completed request."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

MIN_RATING = 1
MAX_RATING = 5


@dataclass(frozen=True)
class Review:
    """An immutable rating of one exchange partner by the other."""
    reviewer: str
    reviewed: str
    request_id: int
    rating: int
    comment: str
    created_utc: datetime
