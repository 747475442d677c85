"""Persistence: append-only event log and ledger state snapshots."""

from herweave.persistence.event_log import EventKind, EventLog, EventRecord
from herweave.persistence.state_store import StateStore

__all__ = ["EventKind", "EventLog", "EventRecord", "StateStore"]
