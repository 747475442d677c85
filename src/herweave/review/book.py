"""Review book: records ratings of completed exchanges and refreshes trust.

A review may be left only on a COMPLETED request, and only by one party of
the exchange about the other: (requester → helper) or (helper →
requester). There is no uniqueness guard; a party may review the same
request more than once and each submission recomputes trust.

Reviews are stored twice: by request id and by reviewed identity. The
second index feeds trust recomputation. Reviews are immutable once
stored.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from typing import Iterable, Optional

from herweave.accounts.store import AccountStore
from herweave.errors import (
    InvalidRating,
    InvalidReviewPair,
    RequestNotCompleted,
    RequestNotFound,
)
from herweave.market.registry import RequestRegistry
from herweave.models.request import RequestStatus
from herweave.models.review import MAX_RATING, MIN_RATING, Review
from herweave.trust.engine import TrustEngine


class ReviewBook:
    """Stores reviews and keeps reviewed members' trust scores current.

    Reads request and account state; writes only the reviewed account's
    trust score.
    """

    def __init__(
        self,
        accounts: AccountStore,
        registry: RequestRegistry,
        trust_engine: TrustEngine,
    ) -> None:
        self._accounts = accounts
        self._registry = registry
        self._trust_engine = trust_engine
        self._by_request: dict[int, list[Review]] = defaultdict(list)
        self._by_reviewed: dict[str, list[Review]] = defaultdict(list)
        self._reviews: list[Review] = []

    def submit_review(
        self,
        request_id: int,
        reviewer: str,
        reviewed: str,
        rating: int,
        comment: str,
        now: Optional[datetime] = None,
    ) -> tuple[Review, int]:
        """Record a review and recompute the reviewed member's trust.

        Raises InvalidRating, RequestNotFound, RequestNotCompleted or
        InvalidReviewPair. Returns (review, new trust score).
        """
        if isinstance(rating, bool) or not isinstance(rating, int) or not (
            MIN_RATING <= rating <= MAX_RATING
        ):
            raise InvalidRating(
                f"Rating must be an integer in [{MIN_RATING}, {MAX_RATING}], got {rating!r}"
            )
        request = self._registry.get(request_id)
        if request is None:
            raise RequestNotFound(f"Unknown request: {request_id}")
        if request.status != RequestStatus.COMPLETED:
            raise RequestNotCompleted(
                f"Request {request_id} is {request.status.name}, not COMPLETED"
            )
        pair = (reviewer, reviewed)
        if pair not in (
            (request.requester, request.helper),
            (request.helper, request.requester),
        ):
            raise InvalidReviewPair(
                f"{reviewer} → {reviewed} is not the requester/helper pair "
                f"of request {request_id}"
            )

        review = Review(
            reviewer=reviewer,
            reviewed=reviewed,
            request_id=request_id,
            rating=rating,
            comment=comment,
            created_utc=now or datetime.now(timezone.utc),
        )
        self._append(review)
        score = self.recompute_trust(reviewed)
        return review, score

    def recompute_trust(self, identity: str) -> int:
        """Recompute and store identity's trust from its full rating history."""
        score = self._trust_engine.compute_score(
            r.rating for r in self._by_reviewed.get(identity, [])
        )
        self._accounts.set_trust_score(identity, score)
        return score

    def reviews_for_request(self, request_id: int) -> list[Review]:
        if isinstance(request_id, bool):
            return []
        return list(self._by_request.get(request_id, []))

    def reviews_for_identity(self, identity: str) -> list[Review]:
        """Reviews where identity is the reviewed party."""
        return list(self._by_reviewed.get(identity, []))

    def all_reviews(self) -> list[Review]:
        """All reviews in submission order."""
        return list(self._reviews)

    @property
    def count(self) -> int:
        return len(self._reviews)

    def restore(self, reviews: Iterable[Review]) -> None:
        """Replace stored reviews with previously persisted ones.

        Trust scores are not recomputed; persisted accounts already
        carry them.
        """
        self._by_request = defaultdict(list)
        self._by_reviewed = defaultdict(list)
        self._reviews = []
        for review in reviews:
            self._append(review)

    def _append(self, review: Review) -> None:
        self._by_request[review.request_id].append(review)
        self._by_reviewed[review.reviewed].append(review)
        self._reviews.append(review)
