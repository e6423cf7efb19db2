"""Errors raised by rejected pool operations.

Each error carries a stable ``code`` (the revert reason callers have
always matched on) so that the service layer and external callers can
distinguish failure kinds without parsing messages.

Hierarchy:
    StakingError
        Unauthorized           → NotGovernance, NotGuardian
        BoundsViolation        → DailyPenaltyTooLarge, TooLarge, OutOfBounds
        InsufficientShares
        InsufficientBalance
        DailyCapExceeded
        UnlockTooEarly
        NoCommitment
        TokenNotWhitelisted
        TransferFailure        → InsufficientAllowanceOrBalance
        InvalidAmount          (also a ValueError)

A raised StakingError means the pool state is exactly as it was before
the call. There is no partial application.
"""

from __future__ import annotations


class StakingError(Exception):
    """Base class for rejected pool operations."""

    code = "STAKING_ERROR"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.code)


class Unauthorized(StakingError):
    """Caller does not hold the role the operation requires."""

    code = "UNAUTHORIZED"


class NotGovernance(Unauthorized):
    code = "NOT_GOVERNANCE"


class NotGuardian(Unauthorized):
    code = "NOT_GUARDIAN"


class BoundsViolation(StakingError):
    """Governance parameter outside its hard-coded range."""

    code = "BOUNDS"


class DailyPenaltyTooLarge(BoundsViolation):
    code = "DAILY_PENALTY_TOO_LARGE"


class TooLarge(BoundsViolation):
    code = "TOO_LARGE"


class OutOfBounds(BoundsViolation):
    code = "BOUNDS"


class InsufficientShares(StakingError):
    """Exit or transfer exceeds the owner's unlocked share balance."""

    code = "INSUFFICIENT_SHARES"


class InsufficientBalance(StakingError):
    """Extraction exceeds the pool's attributed balance."""

    code = "INSUFFICIENT_BALANCE"


class DailyCapExceeded(StakingError):
    """Extraction exceeds the rolling daily penalty budget."""

    code = "DAILY_CAP_EXCEEDED"


class UnlockTooEarly(StakingError):
    code = "UNLOCK_TOO_EARLY"


class NoCommitment(StakingError):
    code = "NO_COMMITMENT"


class TokenNotWhitelisted(StakingError):
    code = "TOKEN_NOT_WHITELISTED"


class TransferFailure(StakingError):
    """The underlying asset refused a transfer."""

    code = "TRANSFER_FAILED"


class InsufficientAllowanceOrBalance(TransferFailure):
    code = "INSUFFICIENT_ALLOWANCE_OR_BALANCE"


class InvalidAmount(StakingError, ValueError):
    """Amount is not an integer in range for the operation."""

    code = "INVALID_AMOUNT"
