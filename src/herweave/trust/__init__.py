"""Trust aggregation: review ratings to a 0-100 trust score."""

from herweave.trust.engine import TrustEngine

__all__ = ["TrustEngine"]
