"""Reviews of completed exchanges."""

from herweave.review.book import ReviewBook

__all__ = ["ReviewBook"]
