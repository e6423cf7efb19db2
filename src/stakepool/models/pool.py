"""Pool models — the single mutable state record the engine owns.

All amounts are integers in base units. Addresses are EIP-55 checksum
strings; ``to_address`` is the only way an address enters the model.

Invariants the engine maintains over PoolState:
- total_shares == sum(share_balance.values())
- locked_shares[a] <= share_balance[a] for every address a
- sum(commitments.values()) == sum(locked_shares.values())
- no zero entries are stored in share_balance, locked_shares, commitments
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict

from eth_utils import is_address, to_checksum_address


def to_address(value: str) -> str:
    """Validate and checksum an address.

    Raises ValueError for anything that is not a 20-byte hex address.
    """
    if not isinstance(value, str) or not is_address(value):
        raise ValueError(f"Invalid address: {value!r}")
    return to_checksum_address(value)


@dataclass(frozen=True)
class RoleSet:
    """Role holders. Replaced whole by governance, never mutated in place."""
    governance: str
    guardian: str
    validator: str


@dataclass(frozen=True)
class RiskParameters:
    """Bounded risk parameters written by governance."""
    time_to_unbond: int
    max_daily_penalty_promilles: int
    rage_received_promilles: int


@dataclass(frozen=True)
class PenaltyWindow:
    """Guardian extraction already spent in day ``day_seq``."""
    day_seq: int = 0
    spent: int = 0


@dataclass
class PoolState:
    """Process-wide pool state.

    Mutable. Only StakingPool writes to it, and only after every check
    and external asset call of an operation has succeeded.
    """
    roles: RoleSet
    params: RiskParameters
    total_shares: int = 0
    total_balance: int = 0
    share_balance: Dict[str, int] = field(default_factory=dict)
    locked_shares: Dict[str, int] = field(default_factory=dict)
    allowances: Dict[str, Dict[str, int]] = field(default_factory=dict)
    commitments: Dict[bytes, int] = field(default_factory=dict)
    penalty_window: PenaltyWindow = field(default_factory=PenaltyWindow)

    def balance_of(self, owner: str) -> int:
        return self.share_balance.get(owner, 0)

    def locked_of(self, owner: str) -> int:
        return self.locked_shares.get(owner, 0)

    def unlocked_of(self, owner: str) -> int:
        return self.balance_of(owner) - self.locked_of(owner)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise to JSON-safe primitives (amounts as decimal strings)."""
        return {
            "roles": {
                "governance": self.roles.governance,
                "guardian": self.roles.guardian,
                "validator": self.roles.validator,
            },
            "params": {
                "time_to_unbond": self.params.time_to_unbond,
                "max_daily_penalty_promilles": self.params.max_daily_penalty_promilles,
                "rage_received_promilles": self.params.rage_received_promilles,
            },
            "total_shares": str(self.total_shares),
            "total_balance": str(self.total_balance),
            "share_balance": {k: str(v) for k, v in self.share_balance.items()},
            "locked_shares": {k: str(v) for k, v in self.locked_shares.items()},
            "allowances": {
                owner: {spender: str(v) for spender, v in spenders.items()}
                for owner, spenders in self.allowances.items()
            },
            "commitments": {
                "0x" + digest.hex(): str(v) for digest, v in self.commitments.items()
            },
            "penalty_window": {
                "day_seq": self.penalty_window.day_seq,
                "spent": str(self.penalty_window.spent),
            },
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> PoolState:
        roles = data["roles"]
        params = data["params"]
        window = data.get("penalty_window", {})
        return PoolState(
            roles=RoleSet(
                governance=to_address(roles["governance"]),
                guardian=to_address(roles["guardian"]),
                validator=to_address(roles["validator"]),
            ),
            params=RiskParameters(
                time_to_unbond=int(params["time_to_unbond"]),
                max_daily_penalty_promilles=int(params["max_daily_penalty_promilles"]),
                rage_received_promilles=int(params["rage_received_promilles"]),
            ),
            total_shares=int(data.get("total_shares", 0)),
            total_balance=int(data.get("total_balance", 0)),
            share_balance={
                to_address(k): int(v) for k, v in data.get("share_balance", {}).items()
            },
            locked_shares={
                to_address(k): int(v) for k, v in data.get("locked_shares", {}).items()
            },
            allowances={
                to_address(owner): {
                    to_address(spender): int(v) for spender, v in spenders.items()
                }
                for owner, spenders in data.get("allowances", {}).items()
            },
            commitments={
                bytes.fromhex(k[2:] if k.startswith("0x") else k): int(v)
                for k, v in data.get("commitments", {}).items()
            },
            penalty_window=PenaltyWindow(
                day_seq=int(window.get("day_seq", 0)),
                spent=int(window.get("spent", 0)),
            ),
        )
