"""Shared fixtures: deterministic accounts, an in-memory asset and a pool."""

from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest
from eth_account import Account

from stakepool.asset import InMemoryToken
from stakepool.models.pool import RiskParameters, RoleSet
from stakepool.pool import StakingPool
from stakepool.units import DAY_SECONDS

CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"

# One hour into a UTC day, so short test sequences never cross midnight.
NOW = 19676 * DAY_SECONDS + 3600
TIME_TO_UNBOND = 20 * DAY_SECONDS


def account(n: int) -> str:
    """Checksum address of the account with private key ``n``."""
    return Account.from_key(n.to_bytes(32, "big")).address


POOL = account(100)
ASSET = account(101)
OTHER_TOKEN = account(102)
GOVERNANCE = account(1)
GUARDIAN = account(2)
VALIDATOR = account(3)
ALICE = account(10)
BOB = account(11)
CAROL = account(12)


class RefusingToken(InMemoryToken):
    """Asset that refuses outgoing transfers once ``refuse`` is set."""

    refuse = False

    def transfer(self, sender: str, to: str, amount: int) -> bool:
        if self.refuse:
            return False
        return super().transfer(sender, to, amount)


def make_pool(
    asset: InMemoryToken,
    time_to_unbond: int = TIME_TO_UNBOND,
    max_daily_penalty_promilles: int = 50,
    rage_received_promilles: int = 700,
) -> StakingPool:
    return StakingPool(
        address=POOL,
        asset=asset,
        roles=RoleSet(governance=GOVERNANCE, guardian=GUARDIAN, validator=VALIDATOR),
        params=RiskParameters(
            time_to_unbond=time_to_unbond,
            max_daily_penalty_promilles=max_daily_penalty_promilles,
            rage_received_promilles=rage_received_promilles,
        ),
    )


@pytest.fixture
def asset() -> RefusingToken:
    return RefusingToken(ASSET)


@pytest.fixture
def pool(asset: RefusingToken) -> StakingPool:
    return make_pool(asset)


@pytest.fixture
def fund(asset: RefusingToken) -> Callable[[str, int], None]:
    """Mint ``amount`` to ``owner`` and approve the pool to pull it."""

    def _fund(owner: str, amount: int) -> None:
        asset.mint(owner, amount)
        asset.approve(owner, POOL, asset.allowance(owner, POOL) + amount)

    return _fund


@pytest.fixture
def stake(pool: StakingPool, fund: Callable[[str, int], None]) -> Callable[[str, int], int]:
    """Fund and enter in one step; returns minted shares."""

    def _stake(owner: str, amount: int, now: int = NOW) -> int:
        fund(owner, amount)
        return pool.enter(owner, amount, now=now).minted_shares

    return _stake
