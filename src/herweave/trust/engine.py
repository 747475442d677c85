"""Trust engine: computes a member's trust score from review ratings.

Trust model:
  T = floor(sum(ratings) * multiplier / count(ratings))

With ratings in [1, 5] and the default multiplier of 20, T lies in
[20, 100] once any review exists. Before the first review the score is
the initial trust score (50).

The score is always recomputed from the full rating history, never
updated incrementally, so repeated updates cannot accumulate rounding
drift.
"""

from __future__ import annotations

from typing import Iterable

from herweave.policy.resolver import PolicyResolver


class TrustEngine:
    """Computes trust scores from rating histories."""

    def __init__(self, resolver: PolicyResolver) -> None:
        self._multiplier = resolver.trust_rating_multiplier()
        self._initial = resolver.initial_trust_score()

    def compute_score(self, ratings: Iterable[int]) -> int:
        """Trust score for a full rating history."""
        values = list(ratings)
        if not values:
            return self._initial
        return (sum(values) * self._multiplier) // len(values)
