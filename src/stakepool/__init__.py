"""Pooled-staking accounting engine.

Deposits mint proportional shares; exits go through a time-locked
unbonding ledger or an immediate, discounted rage exit; a guardian may
extract value within a daily budget; governance tunes bounded risk
parameters.
"""

from stakepool.asset import FungibleToken, InMemoryToken, RateIncentiveSource
from stakepool.config import PoolConfig
from stakepool.pool import StakingPool
from stakepool.service import ServiceResult, StakingService

__all__ = [
    "FungibleToken",
    "InMemoryToken",
    "PoolConfig",
    "RateIncentiveSource",
    "ServiceResult",
    "StakingPool",
    "StakingService",
]
