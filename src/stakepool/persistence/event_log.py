"""Pool ledger: a hash-chained, append-only record of every pool mutation.

Each record carries the operation that ran, who ran it, when (the
operation's own ``now``), and the pool totals right after it. Chaining
every record to the hash of the one before makes the ledger verifiable
end to end:
1. A rewritten payload breaks that record's own hash.
2. A dropped, reordered or spliced record breaks the chain.

Because totals ride along with each record, the ledger alone is enough
to replay how the share price moved (``share_value_history``).
"""

from __future__ import annotations

import enum
import hashlib
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

from stakepool.accounting import share_value_of

CHAIN_ROOT = "sha256:" + "0" * 64


class EventKind(str, enum.Enum):
    """Classification of pool events."""
    # Accounting
    DEPOSIT = "deposit"
    INCENTIVE_CREDITED = "incentive_credited"
    SHARES_TRANSFERRED = "shares_transferred"
    SHARES_APPROVED = "shares_approved"
    # Unbonding
    LEAVE = "leave"
    WITHDRAW = "withdraw"
    RAGE_LEAVE = "rage_leave"
    # Guardian extraction
    CLAIM = "claim"
    PENALIZE = "penalize"
    # Governance
    GOVERNANCE_CHANGED = "governance_changed"
    GUARDIAN_CHANGED = "guardian_changed"
    VALIDATOR_CHANGED = "validator_changed"
    DAILY_PENALTY_MAX_CHANGED = "daily_penalty_max_changed"
    RAGE_RECEIVED_CHANGED = "rage_received_changed"
    TIME_TO_UNBOND_CHANGED = "time_to_unbond_changed"


@dataclass(frozen=True)
class EventRecord:
    """One link in the pool ledger.

    ``total_shares``/``total_balance`` are the pool totals after the event.
    They are stored as strings on disk, like every other amount.
    """
    sequence: int
    event_id: str
    event_kind: EventKind
    timestamp: int
    actor_id: str
    payload: dict[str, Any]
    total_shares: int
    total_balance: int
    prev_hash: str
    event_hash: str

    @staticmethod
    def create(
        sequence: int,
        event_kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        timestamp: int,
        total_shares: int,
        total_balance: int,
        prev_hash: str = CHAIN_ROOT,
        event_id: Optional[str] = None,
    ) -> EventRecord:
        """Build a record and seal it with its hash."""
        event_id = event_id or f"{event_kind.value}_{uuid4().hex[:12]}"
        fields = _hashed_fields(
            sequence, event_id, event_kind.value, timestamp, actor_id, payload,
            total_shares, total_balance, prev_hash,
        )
        return EventRecord(
            sequence=sequence,
            event_id=event_id,
            event_kind=event_kind,
            timestamp=timestamp,
            actor_id=actor_id,
            payload=payload,
            total_shares=total_shares,
            total_balance=total_balance,
            prev_hash=prev_hash,
            event_hash=_digest(fields),
        )

    @property
    def timestamp_utc(self) -> str:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc).strftime(
            "%Y-%m-%dT%H:%M:%SZ"
        )

    @property
    def share_value(self) -> int:
        """Share value right after this event, scaled by 10**18."""
        return share_value_of(self.total_shares, self.total_balance)

    def to_dict(self) -> dict[str, Any]:
        data = _hashed_fields(
            self.sequence, self.event_id, self.event_kind.value, self.timestamp,
            self.actor_id, self.payload, self.total_shares, self.total_balance,
            self.prev_hash,
        )
        data["event_hash"] = self.event_hash
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> EventRecord:
        """Rebuild a stored record. Raises ValueError if its hash does not match."""
        record = cls(
            sequence=int(data["sequence"]),
            event_id=data["event_id"],
            event_kind=EventKind(data["event_kind"]),
            timestamp=int(data["timestamp"]),
            actor_id=data["actor_id"],
            payload=data["payload"],
            total_shares=int(data["total_shares"]),
            total_balance=int(data["total_balance"]),
            prev_hash=data["prev_hash"],
            event_hash=data["event_hash"],
        )
        expected = _digest({k: v for k, v in record.to_dict().items() if k != "event_hash"})
        if record.event_hash != expected:
            raise ValueError(
                f"Integrity check failed: event {record.event_id} "
                f"stored hash {record.event_hash} != computed {expected}"
            )
        return record


def _hashed_fields(
    sequence: int,
    event_id: str,
    event_kind: str,
    timestamp: int,
    actor_id: str,
    payload: dict[str, Any],
    total_shares: int,
    total_balance: int,
    prev_hash: str,
) -> dict[str, Any]:
    return {
        "sequence": sequence,
        "event_id": event_id,
        "event_kind": event_kind,
        "timestamp": timestamp,
        "actor_id": actor_id,
        "payload": payload,
        "total_shares": str(total_shares),
        "total_balance": str(total_balance),
        "prev_hash": prev_hash,
    }


def _digest(fields: dict[str, Any]) -> str:
    canonical = json.dumps(fields, sort_keys=True, ensure_ascii=False).encode("utf-8")
    return f"sha256:{hashlib.sha256(canonical).hexdigest()}"


class EventLog:
    """Hash-chained pool ledger with optional JSONL file persistence.

    Usage:
        log = EventLog(storage_path=data_dir / "events.jsonl")
        log.record(EventKind.DEPOSIT, alice, {"amount": "10"},
                   timestamp=now, total_shares=10, total_balance=10)
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self._events: list[EventRecord] = []
        self._storage_path = storage_path
        self._event_ids: set[str] = set()

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    @property
    def head_hash(self) -> str:
        """Hash the next record must chain onto."""
        return self._events[-1].event_hash if self._events else CHAIN_ROOT

    def record(
        self,
        event_kind: EventKind,
        actor_id: str,
        payload: dict[str, Any],
        *,
        timestamp: int,
        total_shares: int,
        total_balance: int,
    ) -> EventRecord:
        """Chain a new record onto the head of the log and append it."""
        record = EventRecord.create(
            sequence=self.count,
            event_kind=event_kind,
            actor_id=actor_id,
            payload=payload,
            timestamp=timestamp,
            total_shares=total_shares,
            total_balance=total_balance,
            prev_hash=self.head_hash,
        )
        self.append(record)
        return record

    def append(self, record: EventRecord) -> None:
        """Append a record that already links onto the head.

        Raises ValueError on a duplicate event_id (replay protection), a
        sequence gap, or a prev_hash that is not the current head.
        """
        self._link(record)
        if self._storage_path:
            self._append_to_file(record)

    def events(self, kind: Optional[EventKind] = None) -> list[EventRecord]:
        """Return events, optionally filtered by kind."""
        if kind is None:
            return list(self._events)
        return [e for e in self._events if e.event_kind == kind]

    def events_for(self, actor_id: str) -> list[EventRecord]:
        """Return events whose acting address is ``actor_id``."""
        return [e for e in self._events if e.actor_id == actor_id]

    def share_value_history(self) -> list[tuple[int, int]]:
        """(timestamp, share value) after every event that moved the price."""
        history: list[tuple[int, int]] = []
        for event in self._events:
            value = event.share_value
            if not history or history[-1][1] != value:
                history.append((event.timestamp, value))
        return history

    @property
    def count(self) -> int:
        return len(self._events)

    @property
    def last_event(self) -> Optional[EventRecord]:
        return self._events[-1] if self._events else None

    def _link(self, record: EventRecord) -> None:
        if record.event_id in self._event_ids:
            raise ValueError(f"Duplicate event ID: {record.event_id}")
        if record.sequence != self.count:
            raise ValueError(
                f"Out of sequence: event {record.event_id} has sequence "
                f"{record.sequence}, expected {self.count}"
            )
        if record.prev_hash != self.head_hash:
            raise ValueError(
                f"Chain break at event {record.event_id}: prev_hash "
                f"{record.prev_hash} != head {self.head_hash}"
            )
        self._events.append(record)
        self._event_ids.add(record.event_id)

    def _append_to_file(self, record: EventRecord) -> None:
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record.to_dict(), sort_keys=True, ensure_ascii=False) + "\n")

    def _load_from_file(self, path: Path) -> None:
        """Replay a JSONL ledger. Fail-closed on any bad hash or broken link."""
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                try:
                    self._link(EventRecord.from_dict(json.loads(line)))
                except ValueError as exc:
                    raise ValueError(f"{path} line {line_num}: {exc}") from exc
