"""Underlying asset and incentive collaborators.

The pool never moves value itself. It asks a FungibleToken to move it,
and treats a falsy return as a failed operation. Swapping the asset
backend (in-memory, ERC-20 over web3) requires zero changes to pool
accounting.

Incentives follow the same split: an IncentiveSource mints new asset
units to the pool address, and the service credits exactly that amount
to the pool's balance. Crediting without minting shares is what raises
the share price.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from stakepool.errors import TransferFailure
from stakepool.models.pool import to_address


@runtime_checkable
class FungibleToken(Protocol):
    """Contract every underlying asset backend must satisfy.

    ``sender``/``spender`` is the address acting on the token, passed
    explicitly since there is no ambient caller identity.
    """

    @property
    def address(self) -> str:
        ...

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        ...

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        ...

    def balance_of(self, owner: str) -> int:
        ...


class InMemoryToken:
    """Reference ERC-20-style asset held in memory.

    Transfers that would overdraw a balance or an allowance return False
    rather than raising, which is how the pool expects a refusing token
    to behave.
    """

    def __init__(
        self,
        address: str,
        balances: Optional[Dict[str, int]] = None,
        allowances: Optional[Dict[str, Dict[str, int]]] = None,
    ) -> None:
        self._address = to_address(address)
        self._balances: Dict[str, int] = dict(balances or {})
        self._allowances: Dict[str, Dict[str, int]] = {
            owner: dict(spenders) for owner, spenders in (allowances or {}).items()
        }

    @property
    def address(self) -> str:
        return self._address

    @property
    def total_supply(self) -> int:
        return sum(self._balances.values())

    def balance_of(self, owner: str) -> int:
        return self._balances.get(to_address(owner), 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get(to_address(owner), {}).get(to_address(spender), 0)

    def mint(self, to: str, amount: int) -> None:
        if amount < 0:
            raise ValueError("Mint amount must be non-negative")
        to = to_address(to)
        self._balances[to] = self._balances.get(to, 0) + amount

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        if amount < 0:
            raise ValueError("Allowance must be non-negative")
        self._allowances.setdefault(to_address(owner), {})[to_address(spender)] = amount
        return True

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        return self._move(to_address(sender), to_address(to), amount)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        spender, owner = to_address(spender), to_address(owner)
        allowed = self._allowances.get(owner, {}).get(spender, 0)
        if amount < 0 or allowed < amount:
            return False
        if not self._move(owner, to_address(to), amount):
            return False
        self._allowances[owner][spender] = allowed - amount
        return True

    def _move(self, sender: str, to: str, amount: int) -> bool:
        balance = self._balances.get(sender, 0)
        if amount < 0 or balance < amount:
            return False
        self._balances[sender] = balance - amount
        self._balances[to] = self._balances.get(to, 0) + amount
        return True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self._address,
            "balances": {k: str(v) for k, v in self._balances.items() if v},
            "allowances": {
                owner: {s: str(v) for s, v in spenders.items() if v}
                for owner, spenders in self._allowances.items()
            },
        }

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> InMemoryToken:
        return InMemoryToken(
            address=data["address"],
            balances={to_address(k): int(v) for k, v in data.get("balances", {}).items()},
            allowances={
                to_address(owner): {to_address(s): int(v) for s, v in spenders.items()}
                for owner, spenders in data.get("allowances", {}).items()
            },
        )


ERC20_ABI = [
    {
        "name": "transfer",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "transferFrom",
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [
            {"name": "from", "type": "address"},
            {"name": "to", "type": "address"},
            {"name": "amount", "type": "uint256"},
        ],
        "outputs": [{"name": "", "type": "bool"}],
    },
    {
        "name": "balanceOf",
        "type": "function",
        "stateMutability": "view",
        "inputs": [{"name": "owner", "type": "address"}],
        "outputs": [{"name": "", "type": "uint256"}],
    },
]


class Erc20Token:
    """FungibleToken backed by an ERC-20 contract reached through web3.

    ``sender``/``spender`` must be an account the web3 provider can sign
    for. A transaction that reverts, either during gas estimation or once
    mined, is reported as False.

    A receipt that does not arrive within ``receipt_timeout`` raises
    TransferFailure. The transaction may still be mined after that, in
    which case the tokens have moved but the pool has committed nothing;
    reconcile the pool's asset balance against ``total_balance`` before
    retrying.
    """

    def __init__(self, w3: Any, address: str, receipt_timeout: int = 300) -> None:
        self._w3 = w3
        self._address = to_address(address)
        self._contract = w3.eth.contract(address=self._address, abi=ERC20_ABI)
        self._receipt_timeout = receipt_timeout

    @classmethod
    def connect(cls, rpc_url: str, address: str) -> Erc20Token:
        from web3 import Web3, HTTPProvider

        return cls(Web3(HTTPProvider(rpc_url)), address)

    @property
    def address(self) -> str:
        return self._address

    def balance_of(self, owner: str) -> int:
        return int(self._contract.functions.balanceOf(to_address(owner)).call())

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        fn = self._contract.functions.transfer(to_address(to), amount)
        return self._send(fn, sender)

    def transfer_from(self, spender: str, owner: str, to: str, amount: int) -> bool:
        fn = self._contract.functions.transferFrom(
            to_address(owner), to_address(to), amount
        )
        return self._send(fn, spender)

    def _send(self, fn: Any, sender: str) -> bool:
        from web3.exceptions import ContractLogicError, TimeExhausted

        try:
            tx_hash = fn.transact({"from": to_address(sender)})
        except ContractLogicError:
            return False
        try:
            receipt = self._w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self._receipt_timeout
            )
        except TimeExhausted as exc:
            raise TransferFailure(
                f"No receipt for {tx_hash.hex()} after {self._receipt_timeout}s; "
                "it may still be mined"
            ) from exc
        return receipt["status"] == 1


@runtime_checkable
class IncentiveSource(Protocol):
    """Mints incentive units of the underlying asset to a pool."""

    @property
    def address(self) -> str:
        ...

    def pending(self, now: int) -> int:
        ...

    def mint_incentive(self, to: str, now: int) -> int:
        ...


@dataclass
class RateIncentiveSource:
    """Linear per-second incentive, minted on demand into an InMemoryToken.

    Everything accrued since ``last_minted_at`` is minted in one go.
    """
    address: str
    asset: InMemoryToken
    rate_per_second: int
    last_minted_at: int

    def __post_init__(self) -> None:
        self.address = to_address(self.address)
        if self.rate_per_second < 0:
            raise ValueError("Incentive rate must be non-negative")

    def pending(self, now: int) -> int:
        if now <= self.last_minted_at:
            return 0
        return (now - self.last_minted_at) * self.rate_per_second

    def mint_incentive(self, to: str, now: int) -> int:
        amount = self.pending(now)
        if amount:
            self.asset.mint(to, amount)
        self.last_minted_at = max(self.last_minted_at, now)
        return amount

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rate_per_second": str(self.rate_per_second),
            "last_minted_at": self.last_minted_at,
        }
