"""Herweave: mutual-aid marketplace ledger."""

__version__ = "0.1.0"
