"""Append-only event log and pool state snapshots."""

from stakepool.persistence.event_log import EventKind, EventLog, EventRecord
from stakepool.persistence.state_store import StateStore

__all__ = ["EventKind", "EventLog", "EventRecord", "StateStore"]
