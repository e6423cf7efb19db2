"""Unbonding commitment — a time-locked, content-addressed share reservation.

A commitment is never stored as a record. Its identity is the keccak256
digest of its ABI-encoded fields:

    keccak256(abi.encode(address owner, uint256 shares, uint256 unlocksAt))

The ledger keeps only ``digest → locked amount``. To claim, the caller
rebuilds the commitment from the values echoed in the leave event and
the digest authenticates it. Field order and widths are fixed, so the
same (owner, shares, unlocks_at) always lands in the same bucket.
"""

from __future__ import annotations

from dataclasses import dataclass

from eth_abi import encode
from eth_utils import keccak

from stakepool.models.pool import to_address

COMMITMENT_ABI_TYPES = ("address", "uint256", "uint256")
UINT256_MAX = 2 ** 256 - 1


@dataclass(frozen=True)
class UnbondCommitment:
    owner: str
    shares: int
    unlocks_at: int

    def __post_init__(self) -> None:
        object.__setattr__(self, "owner", to_address(self.owner))
        for name in ("shares", "unlocks_at"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise TypeError(f"{name} must be int, got {type(value).__name__}")
            if not 0 <= value <= UINT256_MAX:
                raise ValueError(f"{name} out of uint256 range: {value}")

    def encode(self) -> bytes:
        """Canonical ABI encoding (3 x 32 bytes)."""
        return encode(
            list(COMMITMENT_ABI_TYPES),
            [self.owner, self.shares, self.unlocks_at],
        )

    def hash(self) -> bytes:
        return keccak(self.encode())

    def hash_hex(self) -> str:
        return "0x" + self.hash().hex()
