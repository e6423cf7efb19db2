"""Accounting core — share minting, burning and share-token bookkeeping.

Conversion between underlying units and shares uses truncating integer
division on the totals captured before the operation:

    minted = amount                                  if total_shares == 0
    minted = amount * total_shares // total_balance  otherwise
    payout = shares * total_balance // total_shares

Truncation always favours the pool: a depositor never receives more
shares than they paid for, and an exiting holder never receives more
underlying than their shares are worth.

This module does not talk to the asset. StakingPool calls the asset and
only then applies the changes computed here.
"""

from __future__ import annotations

from stakepool.errors import InsufficientBalance, InsufficientShares, InvalidAmount
from stakepool.models.pool import PoolState
from stakepool.units import ONE


def require_amount(value: int, name: str = "amount", allow_zero: bool = False) -> int:
    """Reject non-integers, negatives, and (by default) zero."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or (value == 0 and not allow_zero):
        qualifier = "non-negative" if allow_zero else "positive"
        raise InvalidAmount(f"{name} must be {qualifier}, got {value}")
    return value


def shares_for_deposit(total_shares: int, total_balance: int, amount: int) -> int:
    """Shares minted for ``amount`` against pre-deposit totals."""
    if total_shares == 0:
        return amount
    if total_balance == 0:
        raise InsufficientBalance(
            "Pool balance is zero while shares are outstanding; deposits are "
            "rejected until the balance is restored"
        )
    return amount * total_shares // total_balance


def share_value_of(total_shares: int, total_balance: int) -> int:
    """Underlying units per share, scaled by 10**18. One before any mint."""
    if total_shares == 0:
        return ONE
    return total_balance * ONE // total_shares


def payout_for_shares(total_shares: int, total_balance: int, shares: int) -> int:
    """Underlying value of ``shares`` against pre-burn totals."""
    if total_shares == 0:
        return 0
    return shares * total_balance // total_shares


class ShareAccounting:
    """Applies share and balance changes to a PoolState.

    Every ``apply_*`` method assumes its preconditions were checked by
    the caller and cannot fail.
    """

    def __init__(self, state: PoolState) -> None:
        self._state = state

    def share_value(self) -> int:
        return share_value_of(self._state.total_shares, self._state.total_balance)

    def require_unlocked(self, owner: str, shares: int) -> None:
        available = self._state.unlocked_of(owner)
        if available < shares:
            raise InsufficientShares(
                f"{owner} has {available} unlocked shares, needs {shares}"
            )

    def apply_mint(self, beneficiary: str, amount: int, minted: int) -> None:
        s = self._state
        s.total_balance += amount
        s.total_shares += minted
        _add(s.share_balance, beneficiary, minted)

    def apply_burn(self, owner: str, shares: int, paid_out: int) -> None:
        s = self._state
        s.total_shares -= shares
        s.total_balance -= paid_out
        _add(s.share_balance, owner, -shares)

    def apply_credit(self, amount: int) -> None:
        self._state.total_balance += amount

    def apply_debit(self, amount: int) -> None:
        self._state.total_balance -= amount

    # -- share token surface ------------------------------------------

    def allowance(self, owner: str, spender: str) -> int:
        return self._state.allowances.get(owner, {}).get(spender, 0)

    def require_allowance(self, owner: str, spender: str, shares: int) -> None:
        allowed = self.allowance(owner, spender)
        if allowed < shares:
            raise InsufficientShares(
                f"{spender} is allowed {allowed} of {owner}'s shares, needs {shares}"
            )

    def apply_approve(self, owner: str, spender: str, shares: int) -> None:
        spenders = self._state.allowances.setdefault(owner, {})
        if shares:
            spenders[spender] = shares
        else:
            spenders.pop(spender, None)
            if not spenders:
                del self._state.allowances[owner]

    def apply_move(self, sender: str, recipient: str, shares: int) -> None:
        balances = self._state.share_balance
        _add(balances, sender, -shares)
        _add(balances, recipient, shares)


def _add(mapping: dict, key: str, delta: int) -> None:
    """Add ``delta`` to ``mapping[key]``, dropping the entry at zero."""
    value = mapping.get(key, 0) + delta
    if value:
        mapping[key] = value
    else:
        mapping.pop(key, None)
