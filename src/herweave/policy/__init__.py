"""Ledger policy: cost schedule and economy parameters."""

from herweave.policy.resolver import PolicyResolver

__all__ = ["PolicyResolver"]
