"""Pool events — the typed result of every successful pool operation.

The engine returns one of these from each mutating call; the service
layer turns it into an EventRecord for the append-only log. Payloads
render integer amounts as decimal strings so they survive JSON consumers
that cannot hold 256-bit integers.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, ClassVar, Dict

from stakepool.persistence.event_log import EventKind


class PoolEvent:
    """Mixin for event dataclasses."""

    kind: ClassVar[EventKind]
    actor_field: ClassVar[str]

    @property
    def actor(self) -> str:
        return getattr(self, self.actor_field)

    def payload(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool):
                out[f.name] = value
            elif isinstance(value, int):
                out[f.name] = str(value)
            else:
                out[f.name] = value
        return out


@dataclass(frozen=True)
class Deposit(PoolEvent):
    kind: ClassVar[EventKind] = EventKind.DEPOSIT
    actor_field: ClassVar[str] = "payer"

    payer: str
    beneficiary: str
    amount: int
    minted_shares: int


@dataclass(frozen=True)
class IncentiveCredited(PoolEvent):
    kind: ClassVar[EventKind] = EventKind.INCENTIVE_CREDITED
    actor_field: ClassVar[str] = "source"

    source: str
    amount: int


@dataclass(frozen=True)
class SharesTransferred(PoolEvent):
    kind: ClassVar[EventKind] = EventKind.SHARES_TRANSFERRED
    actor_field: ClassVar[str] = "sender"

    sender: str
    recipient: str
    shares: int


@dataclass(frozen=True)
class SharesApproved(PoolEvent):
    kind: ClassVar[EventKind] = EventKind.SHARES_APPROVED
    actor_field: ClassVar[str] = "owner"

    owner: str
    spender: str
    shares: int


@dataclass(frozen=True)
class Leave(PoolEvent):
    kind: ClassVar[EventKind] = EventKind.LEAVE
    actor_field: ClassVar[str] = "owner"

    owner: str
    shares: int
    unlocks_at: int
    commitment_hash: str
    skip_transfer_of_remainder: bool = False


@dataclass(frozen=True)
class Withdrawal(PoolEvent):
    kind: ClassVar[EventKind] = EventKind.WITHDRAW
    actor_field: ClassVar[str] = "owner"

    owner: str
    shares: int
    payout: int
    transferred: bool = True


@dataclass(frozen=True)
class RageLeave(PoolEvent):
    kind: ClassVar[EventKind] = EventKind.RAGE_LEAVE
    actor_field: ClassVar[str] = "owner"

    owner: str
    shares: int
    received_tokens: int
    transferred: bool = True


@dataclass(frozen=True)
class Claim(PoolEvent):
    kind: ClassVar[EventKind] = EventKind.CLAIM
    actor_field: ClassVar[str] = "guardian"

    guardian: str
    token: str
    to: str
    amount: int


@dataclass(frozen=True)
class Penalty(PoolEvent):
    kind: ClassVar[EventKind] = EventKind.PENALIZE
    actor_field: ClassVar[str] = "guardian"

    guardian: str
    amount: int


@dataclass(frozen=True)
class ParameterChanged(PoolEvent):
    """One governance write. ``kind`` is set per instance."""
    actor_field: ClassVar[str] = "governance"

    kind: EventKind
    governance: str
    name: str
    old_value: Any
    new_value: Any

    def payload(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "old_value": str(self.old_value),
            "new_value": str(self.new_value),
        }
