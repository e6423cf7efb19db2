"""Staking service — the front door to the pool engine.

The engine is pure accounting: it takes an explicit caller and an
explicit ``now`` and returns a typed event. This facade supplies what the
engine deliberately lacks:
- a clock (overridable per call),
- the audit trail (every successful operation appends an EventRecord),
- persistence (a state snapshot after every successful mutation),
- incentive accrual from the configured IncentiveSource,
- uniform ServiceResults instead of exceptions.

A rejected operation produces ``success=False`` with the error message in
``errors`` and the stable error code in ``data["error_code"]``. It writes
nothing: no event, no snapshot.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from stakepool.asset import FungibleToken, IncentiveSource, InMemoryToken
from stakepool.config import PoolConfig
from stakepool.errors import StakingError
from stakepool.models.events import PoolEvent
from stakepool.models.pool import PoolState
from stakepool.persistence.event_log import EventLog, EventRecord
from stakepool.persistence.state_store import StateStore
from stakepool.pool import StakingPool
from stakepool.units import format_units


@dataclass(frozen=True)
class ServiceResult:
    """Result of a service operation."""
    success: bool
    errors: list[str] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)


def _system_clock() -> int:
    return int(time.time())


class StakingService:
    """Pool facade with clock, audit trail and persistence.

    Usage:
        config = PoolConfig.from_config_dir(config_dir)
        service = StakingService(config, event_log=log, state_store=store)
        service.enter(alice, parse_units("10"))
        result = service.leave(alice, parse_units("4"))
        service.withdraw(alice, parse_units("4"), int(result.data["unlocks_at"]))
    """

    def __init__(
        self,
        config: PoolConfig,
        asset: Optional[FungibleToken] = None,
        event_log: Optional[EventLog] = None,
        state_store: Optional[StateStore] = None,
        incentive_source: Optional[IncentiveSource] = None,
        clock: Callable[[], int] = _system_clock,
    ) -> None:
        self._config = config
        self._event_log = event_log
        self._state_store = state_store
        self._incentive_source = incentive_source
        self._clock = clock

        snapshot = state_store.load() if state_store else None
        state: Optional[PoolState] = None
        if snapshot is not None:
            state = PoolState.from_dict(snapshot["pool"])
            if asset is None and snapshot.get("asset"):
                asset = InMemoryToken.from_dict(snapshot["asset"])
            incentive = snapshot.get("incentive")
            if incentive and hasattr(incentive_source, "last_minted_at"):
                incentive_source.last_minted_at = int(incentive["last_minted_at"])
        if asset is None:
            asset = InMemoryToken(config.asset_address)
        if asset.address != config.asset_address:
            raise ValueError(
                f"Asset {asset.address} does not match configured asset "
                f"{config.asset_address}"
            )

        self._pool = StakingPool(
            address=config.pool_address,
            asset=asset,
            roles=config.roles,
            params=config.risk_parameters,
            name=config.share_token.name,
            symbol=config.share_token.symbol,
            decimals=config.share_token.decimals,
            state=state,
        )

    @property
    def pool(self) -> StakingPool:
        return self._pool

    @property
    def event_log(self) -> Optional[EventLog]:
        return self._event_log

    # -- accounting -----------------------------------------------------

    def enter(
        self, depositor: str, amount: int, beneficiary: Optional[str] = None,
        now: Optional[int] = None,
    ) -> ServiceResult:
        now = self._now(now)
        accrued = self._accrue_first(now)
        if accrued is not None:
            return accrued
        return self._run(
            lambda: self._pool.enter_to(
                depositor, beneficiary or depositor, amount, now=now
            ),
            now,
        )

    def add_incentive(
        self, source: str, amount: int, now: Optional[int] = None
    ) -> ServiceResult:
        return self._run(lambda: self._pool.add_incentive(source, amount), self._now(now))

    def accrue_incentives(self, now: Optional[int] = None) -> ServiceResult:
        """Mint whatever the incentive source has accrued and credit it."""
        now = self._now(now)
        source = self._incentive_source
        if source is None:
            return ServiceResult(success=False, errors=["No incentive source configured"])
        if source.pending(now) == 0:
            return ServiceResult(success=True, data={"amount": "0"})

        def op() -> PoolEvent:
            amount = source.mint_incentive(self._pool.address, now)
            return self._pool.add_incentive(source.address, amount)

        return self._run(op, now)

    def transfer_shares(
        self, sender: str, recipient: str, shares: int, now: Optional[int] = None
    ) -> ServiceResult:
        return self._run(
            lambda: self._pool.transfer_shares(sender, recipient, shares), self._now(now)
        )

    def approve(
        self, owner: str, spender: str, shares: int, now: Optional[int] = None
    ) -> ServiceResult:
        return self._run(lambda: self._pool.approve(owner, spender, shares), self._now(now))

    def transfer_shares_from(
        self, spender: str, owner: str, recipient: str, shares: int,
        now: Optional[int] = None,
    ) -> ServiceResult:
        return self._run(
            lambda: self._pool.transfer_shares_from(spender, owner, recipient, shares),
            self._now(now),
        )

    # -- unbonding ------------------------------------------------------

    def leave(
        self, owner: str, shares: int, skip_transfer_of_remainder: bool = False,
        now: Optional[int] = None,
    ) -> ServiceResult:
        now = self._now(now)
        accrued = self._accrue_first(now)
        if accrued is not None:
            return accrued
        return self._run(
            lambda: self._pool.leave(owner, shares, skip_transfer_of_remainder, now=now),
            now,
        )

    def withdraw(
        self, owner: str, shares: int, unlocks_at: int, skip_transfer: bool = False,
        now: Optional[int] = None,
    ) -> ServiceResult:
        now = self._now(now)
        accrued = self._accrue_first(now)
        if accrued is not None:
            return accrued
        return self._run(
            lambda: self._pool.withdraw(owner, shares, unlocks_at, skip_transfer, now=now),
            now,
        )

    def rage_leave(
        self, owner: str, shares: int, skip_transfer: bool = False,
        now: Optional[int] = None,
    ) -> ServiceResult:
        now = self._now(now)
        accrued = self._accrue_first(now)
        if accrued is not None:
            return accrued
        return self._run(
            lambda: self._pool.rage_leave(owner, shares, skip_transfer, now=now), now
        )

    # -- guardian -------------------------------------------------------

    def claim(
        self, caller: str, token: str, to: str, amount: int, now: Optional[int] = None
    ) -> ServiceResult:
        now = self._now(now)
        return self._run(lambda: self._pool.claim(caller, token, to, amount, now=now), now)

    def penalize(self, caller: str, amount: int, now: Optional[int] = None) -> ServiceResult:
        now = self._now(now)
        return self._run(lambda: self._pool.penalize(caller, amount, now=now), now)

    # -- governance -----------------------------------------------------

    def set_parameter(
        self, caller: str, name: str, value: Any, now: Optional[int] = None
    ) -> ServiceResult:
        """Dispatch a governance write by parameter name."""
        setters: dict[str, Callable[[str, Any], PoolEvent]] = {
            "governance": self._pool.set_governance,
            "guardian": self._pool.set_guardian,
            "validator": self._pool.set_validator,
            "max_daily_penalty_promilles": self._pool.set_daily_penalty_max,
            "rage_received_promilles": self._pool.set_rage_received,
            "time_to_unbond": self._pool.set_time_to_unbond,
        }
        setter = setters.get(name)
        if setter is None:
            return ServiceResult(
                success=False,
                errors=[f"Unknown parameter: {name}. Known: {', '.join(sorted(setters))}"],
            )
        return self._run(lambda: setter(caller, value), self._now(now))

    # -- reporting ------------------------------------------------------

    def status(self, now: Optional[int] = None) -> dict[str, Any]:
        now = self._now(now)
        pool = self._pool
        return {
            "pool": pool.address,
            "asset": pool.asset.address,
            "name": pool.name,
            "symbol": pool.symbol,
            "decimals": pool.decimals,
            "total_shares": format_units(pool.total_shares),
            "total_balance": format_units(pool.total_balance),
            "share_value": format_units(pool.share_value()),
            "open_commitments": len(pool.state.commitments),
            "roles": {
                "governance": pool.roles.governance,
                "guardian": pool.roles.guardian,
                "validator": pool.roles.validator,
            },
            "params": {
                "time_to_unbond": pool.params.time_to_unbond,
                "max_daily_penalty_promilles": pool.params.max_daily_penalty_promilles,
                "rage_received_promilles": pool.params.rage_received_promilles,
            },
            "daily_cap": format_units(pool.daily_cap()),
            "remaining_penalty_budget": format_units(pool.remaining_penalty_budget(now)),
            "events_logged": self._event_log.count if self._event_log else 0,
        }

    def check_invariants(self) -> list[str]:
        violations = self._pool.check_invariants() + self._config.validate()
        last = self._event_log.last_event if self._event_log else None
        if last is not None and (last.total_shares, last.total_balance) != (
            self._pool.total_shares, self._pool.total_balance,
        ):
            violations.append(
                f"ledger head {last.event_id} records totals "
                f"({last.total_shares}, {last.total_balance}) but the pool holds "
                f"({self._pool.total_shares}, {self._pool.total_balance})"
            )
        return violations

    # -- internals ------------------------------------------------------

    def _now(self, now: Optional[int]) -> int:
        return self._clock() if now is None else now

    def _accrue_first(self, now: int) -> Optional[ServiceResult]:
        """Credit pending incentives so the operation prices against them.

        Returns the failed accrual result, or None to carry on.
        """
        if self._incentive_source is None:
            return None
        accrued = self.accrue_incentives(now=now)
        return None if accrued.success else accrued

    def _run(self, op: Callable[[], PoolEvent], now: int) -> ServiceResult:
        try:
            event = op()
        except StakingError as exc:
            return ServiceResult(
                success=False, errors=[f"{exc.code}: {exc}"], data={"error_code": exc.code}
            )
        except ValueError as exc:
            return ServiceResult(success=False, errors=[str(exc)])

        record = self._record(event, now)
        self.save()
        data = event.payload()
        data["event_kind"] = event.kind.value
        if record is not None:
            data["event_id"] = record.event_id
        return ServiceResult(success=True, data=data)

    def _record(self, event: PoolEvent, now: int) -> Optional[EventRecord]:
        if self._event_log is None:
            return None
        return self._event_log.record(
            event.kind,
            event.actor,
            event.payload(),
            timestamp=now,
            total_shares=self._pool.total_shares,
            total_balance=self._pool.total_balance,
        )

    def save(self) -> None:
        """Write the current snapshot (no-op without a state store)."""
        if self._state_store is None:
            return
        asset = self._pool.asset
        source = self._incentive_source
        self._state_store.save(
            self._pool.state.to_dict(),
            asset.to_dict() if isinstance(asset, InMemoryToken) else None,
            source.to_dict() if hasattr(source, "to_dict") else None,
        )
