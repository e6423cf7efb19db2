"""Parameter governance — the single writer of risk parameters and roles.

Every setter requires ``caller == governance`` and validates against a
hard-coded bound before writing. Bounds are constants here, not config:
the config file only chooses initial values inside them.

| Parameter                    | Bound               | Failure              |
|------------------------------|---------------------|----------------------|
| max_daily_penalty_promilles  | 0 ..= 300           | DailyPenaltyTooLarge |
| rage_received_promilles      | 0 ..= 1000          | TooLarge             |
| time_to_unbond (seconds)     | 0 ..= 30 days       | OutOfBounds          |
"""

from __future__ import annotations

from dataclasses import replace

from stakepool.errors import (
    DailyPenaltyTooLarge,
    InvalidAmount,
    NotGovernance,
    OutOfBounds,
    TooLarge,
)
from stakepool.models.events import ParameterChanged
from stakepool.models.pool import PoolState, RiskParameters, to_address
from stakepool.persistence.event_log import EventKind
from stakepool.units import DAY_SECONDS, PROMILLE_SCALE

MAX_DAILY_PENALTY_PROMILLES = 300
MAX_RAGE_RECEIVED_PROMILLES = PROMILLE_SCALE
MAX_TIME_TO_UNBOND = 30 * DAY_SECONDS


def validate_risk_parameters(params: RiskParameters) -> None:
    """Raise the setter's bounds error for the first out-of-range value."""
    _check_daily_penalty_max(params.max_daily_penalty_promilles)
    _check_rage_received(params.rage_received_promilles)
    _check_time_to_unbond(params.time_to_unbond)


def _require_int(value: int, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidAmount(f"{name} must be an integer, got {type(value).__name__}")


def _check_daily_penalty_max(promilles: int) -> None:
    _require_int(promilles, "max_daily_penalty_promilles")
    if not 0 <= promilles <= MAX_DAILY_PENALTY_PROMILLES:
        raise DailyPenaltyTooLarge(
            f"Daily penalty max {promilles} outside [0, {MAX_DAILY_PENALTY_PROMILLES}]"
        )


def _check_rage_received(promilles: int) -> None:
    _require_int(promilles, "rage_received_promilles")
    if not 0 <= promilles <= MAX_RAGE_RECEIVED_PROMILLES:
        raise TooLarge(
            f"Rage received {promilles} outside [0, {MAX_RAGE_RECEIVED_PROMILLES}]"
        )


def _check_time_to_unbond(seconds: int) -> None:
    _require_int(seconds, "time_to_unbond")
    if not 0 <= seconds <= MAX_TIME_TO_UNBOND:
        raise OutOfBounds(
            f"Time to unbond {seconds}s outside [0, {MAX_TIME_TO_UNBOND}]"
        )


class ParameterGovernance:
    """Role-gated, bounds-checked writes to roles and risk parameters."""

    def __init__(self, state: PoolState) -> None:
        self._state = state

    def require_governance(self, caller: str) -> None:
        if caller != self._state.roles.governance:
            raise NotGovernance(f"{caller} is not governance")

    def set_governance(self, caller: str, new_governance: str) -> ParameterChanged:
        return self._set_role(caller, "governance", new_governance, EventKind.GOVERNANCE_CHANGED)

    def set_guardian(self, caller: str, new_guardian: str) -> ParameterChanged:
        return self._set_role(caller, "guardian", new_guardian, EventKind.GUARDIAN_CHANGED)

    def set_validator(self, caller: str, new_validator: str) -> ParameterChanged:
        return self._set_role(caller, "validator", new_validator, EventKind.VALIDATOR_CHANGED)

    def set_daily_penalty_max(self, caller: str, promilles: int) -> ParameterChanged:
        self.require_governance(caller)
        _check_daily_penalty_max(promilles)
        return self._set_param(
            caller, "max_daily_penalty_promilles", promilles,
            EventKind.DAILY_PENALTY_MAX_CHANGED,
        )

    def set_rage_received(self, caller: str, promilles: int) -> ParameterChanged:
        self.require_governance(caller)
        _check_rage_received(promilles)
        return self._set_param(
            caller, "rage_received_promilles", promilles,
            EventKind.RAGE_RECEIVED_CHANGED,
        )

    def set_time_to_unbond(self, caller: str, seconds: int) -> ParameterChanged:
        self.require_governance(caller)
        _check_time_to_unbond(seconds)
        return self._set_param(
            caller, "time_to_unbond", seconds,
            EventKind.TIME_TO_UNBOND_CHANGED,
        )

    def _set_role(
        self, caller: str, role: str, new_holder: str, kind: EventKind
    ) -> ParameterChanged:
        self.require_governance(caller)
        new_holder = to_address(new_holder)
        old = getattr(self._state.roles, role)
        self._state.roles = replace(self._state.roles, **{role: new_holder})
        return ParameterChanged(
            kind=kind, governance=caller, name=role, old_value=old, new_value=new_holder
        )

    def _set_param(
        self, caller: str, name: str, value: int, kind: EventKind
    ) -> ParameterChanged:
        old = getattr(self._state.params, name)
        self._state.params = replace(self._state.params, **{name: value})
        return ParameterChanged(
            kind=kind, governance=caller, name=name, old_value=old, new_value=value
        )
