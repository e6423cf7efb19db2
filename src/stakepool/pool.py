"""Staking pool engine — the only mutation path for pool state.

Composes the four layers over one PoolState:
- ShareAccounting      (accounting.py)  mint/burn conversion, share token
- UnbondingLedger      (unbonding.py)   leave → withdraw commitments
- RiskController       (risk.py)        guardian claim/penalize budget
- ParameterGovernance  (governance.py)  bounded setters, roles

Every operation follows the same shape:
1. normalise addresses and validate amounts,
2. run every check and compute the new values into locals,
3. perform the external asset call (if any) and fail on a falsy result,
4. commit to PoolState.

Nothing is written before step 4, so a rejected check or a refusing (or
raising) asset leaves the pool exactly as it was. The engine owns no
clock: every time-dependent operation takes ``now`` in unix seconds.

Usage:
    pool = StakingPool(address, asset, roles, params)
    pool.enter(alice, parse_units("10"), now=t)
    leave = pool.leave(alice, parse_units("4"), now=t)
    pool.withdraw(alice, leave.shares, leave.unlocks_at, now=leave.unlocks_at)
"""

from __future__ import annotations

from typing import Optional

from stakepool.accounting import (
    ShareAccounting,
    payout_for_shares,
    require_amount,
    shares_for_deposit,
)
from stakepool.asset import FungibleToken
from stakepool.errors import (
    InsufficientAllowanceOrBalance,
    TokenNotWhitelisted,
    TransferFailure,
)
from stakepool.governance import ParameterGovernance, validate_risk_parameters
from stakepool.models.commitment import UnbondCommitment
from stakepool.models.events import (
    Claim,
    Deposit,
    IncentiveCredited,
    Leave,
    ParameterChanged,
    Penalty,
    RageLeave,
    SharesApproved,
    SharesTransferred,
    Withdrawal,
)
from stakepool.models.pool import PoolState, RiskParameters, RoleSet, to_address
from stakepool.risk import RiskController
from stakepool.unbonding import UnbondingLedger
from stakepool.units import DECIMALS, PROMILLE_SCALE

DEFAULT_NAME = "Staking Pool Share"
DEFAULT_SYMBOL = "POOL-SHARE"


class StakingPool:
    """Pooled-staking vault over one underlying asset."""

    def __init__(
        self,
        address: str,
        asset: FungibleToken,
        roles: Optional[RoleSet] = None,
        params: Optional[RiskParameters] = None,
        name: str = DEFAULT_NAME,
        symbol: str = DEFAULT_SYMBOL,
        decimals: int = DECIMALS,
        state: Optional[PoolState] = None,
    ) -> None:
        if not isinstance(asset, FungibleToken):
            raise TypeError(
                f"Asset must implement FungibleToken Protocol, got {type(asset)}"
            )
        if state is None:
            if roles is None or params is None:
                raise ValueError("roles and params are required without a state")
            roles = RoleSet(
                governance=to_address(roles.governance),
                guardian=to_address(roles.guardian),
                validator=to_address(roles.validator),
            )
            validate_risk_parameters(params)
            state = PoolState(roles=roles, params=params)
        self.address = to_address(address)
        self.name = name
        self.symbol = symbol
        self.decimals = decimals
        self._asset = asset
        self._state = state
        self._accounting = ShareAccounting(state)
        self._ledger = UnbondingLedger(state)
        self._risk = RiskController(state)
        self._governance = ParameterGovernance(state)

    # -- views ----------------------------------------------------------

    @property
    def asset(self) -> FungibleToken:
        return self._asset

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def roles(self) -> RoleSet:
        return self._state.roles

    @property
    def params(self) -> RiskParameters:
        return self._state.params

    @property
    def total_shares(self) -> int:
        return self._state.total_shares

    @property
    def total_balance(self) -> int:
        return self._state.total_balance

    def balance_of(self, owner: str) -> int:
        return self._state.balance_of(to_address(owner))

    def locked_shares(self, owner: str) -> int:
        return self._state.locked_of(to_address(owner))

    def unlocked_shares(self, owner: str) -> int:
        return self._state.unlocked_of(to_address(owner))

    def share_value(self) -> int:
        return self._accounting.share_value()

    def commitment_amount(self, owner: str, shares: int, unlocks_at: int) -> int:
        return self._ledger.commitment_amount(UnbondCommitment(owner, shares, unlocks_at))

    def daily_cap(self) -> int:
        return self._risk.daily_cap()

    def remaining_penalty_budget(self, now: int) -> int:
        return self._risk.remaining_budget(_require_time(now))

    # -- accounting core ------------------------------------------------

    def enter(self, depositor: str, amount: int, *, now: int) -> Deposit:
        return self.enter_to(depositor, depositor, amount, now=now)

    def enter_to(
        self, depositor: str, beneficiary: str, amount: int, *, now: int
    ) -> Deposit:
        """Pull ``amount`` from ``depositor`` and mint shares to ``beneficiary``."""
        _require_time(now)
        depositor, beneficiary = to_address(depositor), to_address(beneficiary)
        require_amount(amount)
        s = self._state
        minted = shares_for_deposit(s.total_shares, s.total_balance, amount)

        if not self._asset.transfer_from(self.address, depositor, self.address, amount):
            raise InsufficientAllowanceOrBalance(
                f"Asset refused to move {amount} from {depositor} to the pool"
            )

        self._accounting.apply_mint(beneficiary, amount, minted)
        return Deposit(
            payer=depositor, beneficiary=beneficiary, amount=amount, minted_shares=minted
        )

    def add_incentive(self, source: str, amount: int) -> IncentiveCredited:
        """Credit incentive units already delivered to the pool address.

        Raises the share price for every holder. Zero is accepted.
        """
        source = to_address(source)
        require_amount(amount, allow_zero=True)
        self._accounting.apply_credit(amount)
        return IncentiveCredited(source=source, amount=amount)

    def transfer_shares(self, sender: str, recipient: str, shares: int) -> SharesTransferred:
        """Move unlocked shares between holders."""
        sender, recipient = to_address(sender), to_address(recipient)
        require_amount(shares, "shares", allow_zero=True)
        self._accounting.require_unlocked(sender, shares)
        self._accounting.apply_move(sender, recipient, shares)
        return SharesTransferred(sender=sender, recipient=recipient, shares=shares)

    def approve(self, owner: str, spender: str, shares: int) -> SharesApproved:
        owner, spender = to_address(owner), to_address(spender)
        require_amount(shares, "shares", allow_zero=True)
        self._accounting.apply_approve(owner, spender, shares)
        return SharesApproved(owner=owner, spender=spender, shares=shares)

    def allowance(self, owner: str, spender: str) -> int:
        return self._accounting.allowance(to_address(owner), to_address(spender))

    def transfer_shares_from(
        self, spender: str, owner: str, recipient: str, shares: int
    ) -> SharesTransferred:
        spender, owner, recipient = (
            to_address(spender), to_address(owner), to_address(recipient)
        )
        require_amount(shares, "shares", allow_zero=True)
        self._accounting.require_allowance(owner, spender, shares)
        self._accounting.require_unlocked(owner, shares)
        self._accounting.apply_approve(
            owner, spender, self._accounting.allowance(owner, spender) - shares
        )
        self._accounting.apply_move(owner, recipient, shares)
        return SharesTransferred(sender=owner, recipient=recipient, shares=shares)

    # -- unbonding ledger -----------------------------------------------

    def leave(
        self,
        owner: str,
        shares: int,
        skip_transfer_of_remainder: bool = False,
        *,
        now: int,
    ) -> Leave:
        """Lock ``shares`` until ``now + time_to_unbond``.

        Nothing is burned and nothing is paid here; ``withdraw`` does both.
        """
        _require_time(now)
        owner = to_address(owner)
        require_amount(shares, "shares")
        self._accounting.require_unlocked(owner, shares)
        commitment = UnbondCommitment(owner, shares, now + self._state.params.time_to_unbond)

        self._ledger.apply_lock(commitment)
        return Leave(
            owner=owner,
            shares=shares,
            unlocks_at=commitment.unlocks_at,
            commitment_hash=commitment.hash_hex(),
            skip_transfer_of_remainder=skip_transfer_of_remainder,
        )

    def withdraw(
        self,
        owner: str,
        shares: int,
        unlocks_at: int,
        skip_transfer: bool = False,
        *,
        now: int,
    ) -> Withdrawal:
        """Consume a matured commitment and pay out its shares' fair value."""
        _require_time(now)
        owner = to_address(owner)
        require_amount(shares, "shares")
        require_amount(unlocks_at, "unlocks_at", allow_zero=True)
        commitment = UnbondCommitment(owner, shares, unlocks_at)
        self._ledger.check_release(commitment, now)

        s = self._state
        payout = payout_for_shares(s.total_shares, s.total_balance, shares)
        if not skip_transfer:
            self._pay(owner, payout)

        self._ledger.apply_release(commitment)
        self._accounting.apply_burn(owner, shares, payout)
        return Withdrawal(
            owner=owner, shares=shares, payout=payout, transferred=not skip_transfer
        )

    def rage_leave(
        self,
        owner: str,
        shares: int,
        skip_transfer: bool = False,
        *,
        now: int,
    ) -> RageLeave:
        """Exit immediately at a ``rage_received_promilles`` haircut.

        The withheld part of the fair payout stays in the pool's balance
        while the shares are burned, so remaining holders absorb it.
        """
        _require_time(now)
        owner = to_address(owner)
        require_amount(shares, "shares")
        self._accounting.require_unlocked(owner, shares)

        s = self._state
        fair = payout_for_shares(s.total_shares, s.total_balance, shares)
        received = fair * s.params.rage_received_promilles // PROMILLE_SCALE
        if not skip_transfer:
            self._pay(owner, received)

        self._accounting.apply_burn(owner, shares, received)
        return RageLeave(
            owner=owner,
            shares=shares,
            received_tokens=received,
            transferred=not skip_transfer,
        )

    # -- risk extraction ------------------------------------------------

    def claim(self, caller: str, token: str, to: str, amount: int, *, now: int) -> Claim:
        """Guardian pays ``amount`` of the underlying out of the pool."""
        _require_time(now)
        caller, token, to = to_address(caller), to_address(token), to_address(to)
        self._risk.require_guardian(caller)
        require_amount(amount)
        if token != self._asset.address:
            raise TokenNotWhitelisted(f"{token} is not the pool's underlying asset")
        window = self._risk.check_extraction(amount, now)

        self._pay(to, amount)

        self._risk.apply_extraction(amount, window)
        return Claim(guardian=caller, token=token, to=to, amount=amount)

    def penalize(self, caller: str, amount: int, *, now: int) -> Penalty:
        """Guardian records a loss against the pool without paying anyone."""
        _require_time(now)
        caller = to_address(caller)
        self._risk.require_guardian(caller)
        require_amount(amount)
        window = self._risk.check_extraction(amount, now)

        self._risk.apply_extraction(amount, window)
        return Penalty(guardian=caller, amount=amount)

    # -- governance -----------------------------------------------------

    def set_governance(self, caller: str, new_governance: str) -> ParameterChanged:
        return self._governance.set_governance(to_address(caller), new_governance)

    def set_guardian(self, caller: str, new_guardian: str) -> ParameterChanged:
        return self._governance.set_guardian(to_address(caller), new_guardian)

    def set_validator(self, caller: str, new_validator: str) -> ParameterChanged:
        return self._governance.set_validator(to_address(caller), new_validator)

    def set_daily_penalty_max(self, caller: str, promilles: int) -> ParameterChanged:
        return self._governance.set_daily_penalty_max(to_address(caller), promilles)

    def set_rage_received(self, caller: str, promilles: int) -> ParameterChanged:
        return self._governance.set_rage_received(to_address(caller), promilles)

    def set_time_to_unbond(self, caller: str, seconds: int) -> ParameterChanged:
        return self._governance.set_time_to_unbond(to_address(caller), seconds)

    # -- invariants -----------------------------------------------------

    def check_invariants(self) -> list[str]:
        """Return descriptions of violated accounting invariants (empty = healthy)."""
        s = self._state
        violations: list[str] = []
        balances_sum = sum(s.share_balance.values())
        if s.total_shares != balances_sum:
            violations.append(
                f"total_shares {s.total_shares} != sum of balances {balances_sum}"
            )
        for owner, locked in s.locked_shares.items():
            if locked > s.balance_of(owner):
                violations.append(
                    f"{owner} has {locked} locked shares but a balance of "
                    f"{s.balance_of(owner)}"
                )
        locked_sum = sum(s.locked_shares.values())
        open_sum = self._ledger.open_commitment_total()
        if open_sum != locked_sum:
            violations.append(
                f"open commitments {open_sum} != sum of locked shares {locked_sum}"
            )
        if s.total_balance < 0:
            violations.append(f"total_balance is negative: {s.total_balance}")
        if s.total_shares == 0 and s.locked_shares:
            violations.append("locked shares exist while total_shares is zero")
        return violations

    def _pay(self, to: str, amount: int) -> None:
        if amount and not self._asset.transfer(self.address, to, amount):
            raise TransferFailure(f"Asset refused to pay {amount} to {to}")


def _require_time(now: int) -> int:
    return require_amount(now, "now", allow_zero=True)
