"""Unbonding ledger — request-then-claim exits behind a time lock.

State machine per exit:
    LOCKED → RELEASED   (withdraw at or after unlocks_at; terminal)

``leave`` reserves shares: the owner keeps them on their balance but
they count against ``locked_shares`` and cannot be rage-exited or
transferred. ``withdraw`` authenticates a commitment by rebuilding its
digest, consumes it, and hands the shares back to the pool for burning.

Commitments are buckets of counters keyed by content hash. Two leaves
with the same (owner, shares, unlocks_at) add into one bucket, and a
withdraw can never release more than the bucket holds.
"""

from __future__ import annotations

from stakepool.errors import NoCommitment, UnlockTooEarly
from stakepool.models.commitment import UnbondCommitment
from stakepool.models.pool import PoolState


class UnbondingLedger:
    """Commitment buckets and per-owner locked share counters."""

    def __init__(self, state: PoolState) -> None:
        self._state = state

    def commitment_amount(self, commitment: UnbondCommitment) -> int:
        return self._state.commitments.get(commitment.hash(), 0)

    def open_commitment_total(self) -> int:
        return sum(self._state.commitments.values())

    def check_release(self, commitment: UnbondCommitment, now: int) -> None:
        """Raise unless ``commitment`` may be withdrawn at ``now``.

        The time lock is checked first: an early call fails with
        UnlockTooEarly whether or not the commitment exists.
        """
        if now < commitment.unlocks_at:
            raise UnlockTooEarly(
                f"Commitment unlocks at {commitment.unlocks_at}, now is {now}"
            )
        stored = self.commitment_amount(commitment)
        if stored == 0 or stored < commitment.shares:
            raise NoCommitment(
                f"No commitment of {commitment.shares} shares for "
                f"{commitment.owner} unlocking at {commitment.unlocks_at}"
            )

    def apply_lock(self, commitment: UnbondCommitment) -> None:
        s = self._state
        digest = commitment.hash()
        s.commitments[digest] = s.commitments.get(digest, 0) + commitment.shares
        s.locked_shares[commitment.owner] = (
            s.locked_shares.get(commitment.owner, 0) + commitment.shares
        )

    def apply_release(self, commitment: UnbondCommitment) -> None:
        s = self._state
        digest = commitment.hash()
        remaining = s.commitments[digest] - commitment.shares
        if remaining:
            s.commitments[digest] = remaining
        else:
            del s.commitments[digest]

        locked = s.locked_shares[commitment.owner] - commitment.shares
        if locked:
            s.locked_shares[commitment.owner] = locked
        else:
            del s.locked_shares[commitment.owner]
