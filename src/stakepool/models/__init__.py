"""Pool data models: state, commitments and events."""

from stakepool.models.commitment import UnbondCommitment
from stakepool.models.pool import (
    PenaltyWindow,
    PoolState,
    RiskParameters,
    RoleSet,
    to_address,
)

__all__ = [
    "PenaltyWindow",
    "PoolState",
    "RiskParameters",
    "RoleSet",
    "UnbondCommitment",
    "to_address",
]
