"""State store: JSON snapshot of accounts, requests and reviews.

Layout:
    {
      "version": 1,
      "accounts": [...],   # keyed by identity
      "requests": [...],   # keyed by sequential id
      "reviews": [...]     # submission order; indexes rebuilt on load
    }

Writes go to a temporary file that then replaces the snapshot, so a
crash mid-write never leaves a truncated snapshot behind.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from herweave.models.account import Account
from herweave.models.request import HelpRequest, HelpType, RequestStatus
from herweave.models.review import Review

SNAPSHOT_VERSION = 1


def _dt(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_dt(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class StateStore:
    """File-backed snapshot of ledger state."""

    def __init__(self, storage_path: Path) -> None:
        self._storage_path = storage_path
        self._data: dict[str, Any] = {}
        if storage_path.exists():
            with storage_path.open("r", encoding="utf-8") as f:
                self._data = json.load(f)
            version = self._data.get("version")
            if version != SNAPSHOT_VERSION:
                raise ValueError(
                    f"Unsupported state snapshot version {version!r} in {storage_path}"
                )

    def save(
        self,
        accounts: list[Account],
        requests: list[HelpRequest],
        reviews: list[Review],
    ) -> None:
        """Write a full snapshot. Raises OSError on write failure."""
        data = {
            "version": SNAPSHOT_VERSION,
            "accounts": [self._account_to_dict(a) for a in accounts],
            "requests": [self._request_to_dict(r) for r in requests],
            "reviews": [self._review_to_dict(r) for r in reviews],
        }
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._storage_path.with_suffix(self._storage_path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, sort_keys=True, ensure_ascii=False)
        tmp_path.replace(self._storage_path)
        self._data = data

    def load_accounts(self) -> list[Account]:
        return [
            Account(
                identity=d["identity"],
                name=d["name"],
                location=d["location"],
                trust_score=d["trust_score"],
                balance=d["balance"],
                total_helped=d["total_helped"],
                total_received=d["total_received"],
                exists=d.get("exists", True),
                registered_utc=_parse_dt(d.get("registered_utc")),
            )
            for d in self._data.get("accounts", [])
        ]

    def load_requests(self) -> list[HelpRequest]:
        return [
            HelpRequest(
                request_id=d["request_id"],
                requester=d["requester"],
                title=d["title"],
                description=d["description"],
                location=d["location"],
                help_type=HelpType(d["help_type"]),
                created_utc=_parse_dt(d["created_utc"]),
                status=RequestStatus(d["status"]),
                helper=d.get("helper"),
            )
            for d in self._data.get("requests", [])
        ]

    def load_reviews(self) -> list[Review]:
        return [
            Review(
                reviewer=d["reviewer"],
                reviewed=d["reviewed"],
                request_id=d["request_id"],
                rating=d["rating"],
                comment=d["comment"],
                created_utc=_parse_dt(d["created_utc"]),
            )
            for d in self._data.get("reviews", [])
        ]

    @staticmethod
    def _account_to_dict(account: Account) -> dict[str, Any]:
        return {
            "identity": account.identity,
            "name": account.name,
            "location": account.location,
            "trust_score": account.trust_score,
            "balance": account.balance,
            "total_helped": account.total_helped,
            "total_received": account.total_received,
            "exists": account.exists,
            "registered_utc": _dt(account.registered_utc),
        }

    @staticmethod
    def _request_to_dict(request: HelpRequest) -> dict[str, Any]:
        return {
            "request_id": request.request_id,
            "requester": request.requester,
            "title": request.title,
            "description": request.description,
            "location": request.location,
            "help_type": int(request.help_type),
            "created_utc": _dt(request.created_utc),
            "status": int(request.status),
            "helper": request.helper,
        }

    @staticmethod
    def _review_to_dict(review: Review) -> dict[str, Any]:
        return {
            "reviewer": review.reviewer,
            "reviewed": review.reviewed,
            "request_id": review.request_id,
            "rating": review.rating,
            "comment": review.comment,
            "created_utc": _dt(review.created_utc),
        }
