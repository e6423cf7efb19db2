"""Tests for StakingService: results, audit trail, persistence, incentives."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest

from stakepool.asset import InMemoryToken, RateIncentiveSource
from stakepool.config import PoolConfig
from stakepool.persistence.event_log import EventKind, EventLog
from stakepool.persistence.state_store import StateStore
from stakepool.service import ServiceResult, StakingService
from stakepool.units import ONE, parse_units
from conftest import ALICE, BOB, CONFIG_DIR, NOW


def _config() -> PoolConfig:
    return PoolConfig.from_config_dir(CONFIG_DIR)


def _service(
    tmp_path: Optional[Path] = None,
    incentive_source: Optional[RateIncentiveSource] = None,
    asset: Optional[InMemoryToken] = None,
) -> StakingService:
    return StakingService(
        _config(),
        asset=asset,
        event_log=EventLog(tmp_path / "events.jsonl" if tmp_path else None),
        state_store=StateStore(tmp_path / "state.json") if tmp_path else None,
        incentive_source=incentive_source,
        clock=lambda: NOW,
    )


def _fund(service: StakingService, owner: str, amount: int) -> None:
    asset = service.pool.asset
    asset.mint(owner, amount)
    asset.approve(owner, service.pool.address, amount)


class TestResults:
    def test_success_carries_payload_and_event(self) -> None:
        service = _service()
        _fund(service, ALICE, parse_units("10"))
        result = service.enter(ALICE, parse_units("10"))

        assert isinstance(result, ServiceResult)
        assert result.success
        assert result.errors == []
        assert result.data["event_kind"] == "deposit"
        assert result.data["minted_shares"] == str(parse_units("10"))
        assert result.data["event_id"].startswith("deposit_")

    def test_staking_error_reports_code(self) -> None:
        service = _service()
        result = service.leave(ALICE, 5)
        assert not result.success
        assert result.data["error_code"] == "INSUFFICIENT_SHARES"
        assert result.errors[0].startswith("INSUFFICIENT_SHARES:")

    def test_bad_address_is_a_failure_not_an_exception(self) -> None:
        result = _service().enter("nobody", 10)
        assert not result.success
        assert "Invalid address" in result.errors[0]

    def test_failure_writes_no_event(self) -> None:
        service = _service()
        service.rage_leave(ALICE, 1)
        assert service.event_log.count == 0

    def test_asset_address_must_match_config(self) -> None:
        with pytest.raises(ValueError, match="does not match"):
            _service(asset=InMemoryToken(BOB))


class TestAuditTrail:
    def test_every_success_is_logged(self) -> None:
        service = _service()
        _fund(service, ALICE, 100)
        service.enter(ALICE, 100)
        leave = service.leave(ALICE, 40)
        service.withdraw(ALICE, 40, int(leave.data["unlocks_at"]), now=int(leave.data["unlocks_at"]))

        kinds = [e.event_kind for e in service.event_log.events()]
        assert kinds == [EventKind.DEPOSIT, EventKind.LEAVE, EventKind.WITHDRAW]
        assert all(e.actor_id == ALICE for e in service.event_log.events())
        assert service.event_log.events(EventKind.WITHDRAW)[0].payload["payout"] == "40"

    def test_event_timestamp_is_operation_time(self) -> None:
        service = _service()
        _fund(service, ALICE, 100)
        service.enter(ALICE, 100, now=0)
        assert service.event_log.last_event.timestamp_utc == "1970-01-01T00:00:00Z"

    def test_records_carry_pool_totals(self) -> None:
        service = _service()
        guardian = service.pool.roles.guardian
        _fund(service, ALICE, 100)
        service.enter(ALICE, 100)
        service.penalize(guardian, 5)

        penalty = service.event_log.last_event
        assert (penalty.total_shares, penalty.total_balance) == (100, 95)
        assert penalty.prev_hash == service.event_log.events()[0].event_hash
        assert service.event_log.share_value_history() == [
            (NOW, ONE), (NOW, 95 * ONE // 100),
        ]

    def test_ledger_divergence_is_a_violation(self) -> None:
        service = _service()
        _fund(service, ALICE, 10)
        service.enter(ALICE, 10)
        assert service.check_invariants() == []
        service.pool.state.total_balance += 1
        assert any("ledger head" in v for v in service.check_invariants())

    def test_guardian_events(self) -> None:
        service = _service()
        guardian = service.pool.roles.guardian
        _fund(service, ALICE, 1000)
        service.enter(ALICE, 1000)

        claim = service.claim(guardian, service.pool.asset.address, BOB, 20)
        penalty = service.penalize(guardian, 25)
        assert claim.success and penalty.success
        assert service.pool.total_balance == 955
        assert service.pool.asset.balance_of(BOB) == 20
        assert [e.event_kind for e in service.event_log.events_for(guardian)] == [
            EventKind.CLAIM, EventKind.PENALIZE,
        ]

        # cap is now 955 * 5% = 47 with 45 already spent
        over = service.penalize(guardian, 5)
        assert over.data["error_code"] == "DAILY_CAP_EXCEEDED"


class TestGovernance:
    def test_set_parameter(self) -> None:
        service = _service()
        governance = service.pool.roles.governance
        result = service.set_parameter(governance, "rage_received_promilles", 400)
        assert result.success
        assert result.data["event_kind"] == "rage_received_changed"
        assert result.data["new_value"] == "400"
        assert service.pool.params.rage_received_promilles == 400

    def test_set_role(self) -> None:
        service = _service()
        result = service.set_parameter(service.pool.roles.governance, "guardian", BOB)
        assert result.success
        assert service.pool.roles.guardian == BOB

    def test_unknown_parameter(self) -> None:
        result = _service().set_parameter(ALICE, "fee", 1)
        assert not result.success
        assert "Unknown parameter" in result.errors[0]

    def test_non_governance(self) -> None:
        result = _service().set_parameter(ALICE, "time_to_unbond", 10)
        assert result.data["error_code"] == "NOT_GOVERNANCE"

    def test_out_of_bounds(self) -> None:
        service = _service()
        result = service.set_parameter(service.pool.roles.governance, "max_daily_penalty_promilles", 301)
        assert result.data["error_code"] == "DAILY_PENALTY_TOO_LARGE"


class TestPersistence:
    def test_reload_restores_pool_and_asset(self, tmp_path: Path) -> None:
        first = _service(tmp_path)
        _fund(first, ALICE, 100)
        first.enter(ALICE, 100)
        leave = first.leave(ALICE, 25)
        unlocks_at = int(leave.data["unlocks_at"])

        second = _service(tmp_path)
        assert second.pool.balance_of(ALICE) == 100
        assert second.pool.locked_shares(ALICE) == 25
        assert second.pool.asset.balance_of(second.pool.address) == 100
        assert second.event_log.count == 2

        result = second.withdraw(ALICE, 25, unlocks_at, now=unlocks_at)
        assert result.success
        assert second.pool.asset.balance_of(ALICE) == 25

    def test_failure_does_not_write_snapshot(self, tmp_path: Path) -> None:
        service = _service(tmp_path)
        service.leave(ALICE, 1)
        assert not (tmp_path / "state.json").exists()

    def test_reload_restores_parameters(self, tmp_path: Path) -> None:
        first = _service(tmp_path)
        first.set_parameter(first.pool.roles.governance, "time_to_unbond", 60)
        assert _service(tmp_path).pool.params.time_to_unbond == 60


class TestIncentives:
    def _source(self, asset: InMemoryToken) -> RateIncentiveSource:
        return RateIncentiveSource(
            address=asset.address,
            asset=asset,
            rate_per_second=ONE // 1000,
            last_minted_at=NOW,
        )

    def test_enter_accrues_first(self) -> None:
        asset = InMemoryToken(_config().asset_address)
        service = _service(incentive_source=self._source(asset), asset=asset)
        _fund(service, ALICE, parse_units("10"))
        _fund(service, BOB, parse_units("10"))

        service.enter(ALICE, parse_units("10"), now=NOW)
        assert service.event_log.count == 1

        result = service.enter(BOB, parse_units("10"), now=NOW + 100)
        assert result.success
        kinds = [e.event_kind for e in service.event_log.events()]
        assert kinds == [EventKind.DEPOSIT, EventKind.INCENTIVE_CREDITED, EventKind.DEPOSIT]
        assert int(result.data["minted_shares"]) == 10 ** 38 // (101 * 10 ** 17)
        assert service.pool.total_balance == parse_units("20.1")
        assert asset.balance_of(service.pool.address) == parse_units("20.1")

    def _two_stakers(self) -> tuple[StakingService, InMemoryToken]:
        asset = InMemoryToken(_config().asset_address)
        service = _service(incentive_source=self._source(asset), asset=asset)
        _fund(service, ALICE, parse_units("10"))
        _fund(service, BOB, parse_units("10"))
        service.enter(ALICE, parse_units("10"), now=NOW)
        service.enter(BOB, parse_units("10"), now=NOW)
        return service, asset

    def test_rage_leave_accrues_first(self) -> None:
        service, asset = self._two_stakers()
        service.set_parameter(service.pool.roles.governance, "rage_received_promilles", 1000)

        # 10_000s at 0.001/s accrues 10 tokens, half of it Alice's
        result = service.rage_leave(ALICE, parse_units("10"), now=NOW + 10_000)
        assert result.success
        assert result.data["received_tokens"] == str(parse_units("15"))
        assert asset.balance_of(ALICE) == parse_units("15")
        assert service.pool.total_balance == parse_units("15")
        assert service.pool.total_shares == parse_units("10")

    def test_withdraw_accrues_first(self) -> None:
        service, asset = self._two_stakers()
        leave = service.leave(ALICE, parse_units("10"), now=NOW)
        unlocks_at = int(leave.data["unlocks_at"])

        result = service.withdraw(ALICE, parse_units("10"), unlocks_at, now=unlocks_at)
        accrued = (unlocks_at - NOW) * (ONE // 1000)
        assert result.success
        assert int(result.data["payout"]) == (parse_units("20") + accrued) // 2
        kinds = [e.event_kind for e in service.event_log.events()]
        assert kinds[-2:] == [EventKind.INCENTIVE_CREDITED, EventKind.WITHDRAW]

    def test_failed_exit_keeps_the_accrual(self) -> None:
        service, _ = self._two_stakers()
        result = service.rage_leave(BOB, parse_units("11"), now=NOW + 100)
        assert result.data["error_code"] == "INSUFFICIENT_SHARES"
        assert service.pool.total_balance == parse_units("20.1")

    def test_accrue_without_source_fails(self) -> None:
        result = _service().accrue_incentives()
        assert not result.success

    def test_nothing_pending_is_a_noop(self) -> None:
        asset = InMemoryToken(_config().asset_address)
        service = _service(incentive_source=self._source(asset), asset=asset)
        result = service.accrue_incentives(now=NOW)
        assert result.success
        assert result.data == {"amount": "0"}
        assert service.event_log.count == 0

    def test_manual_incentive(self) -> None:
        service = _service()
        _fund(service, ALICE, 10)
        service.enter(ALICE, 10)
        result = service.add_incentive(BOB, 5)
        assert result.data["event_kind"] == "incentive_credited"
        assert service.pool.total_balance == 15

    def test_last_minted_at_survives_reload(self, tmp_path: Path) -> None:
        asset = InMemoryToken(_config().asset_address)
        first = _service(tmp_path, incentive_source=self._source(asset), asset=asset)
        first.accrue_incentives(now=NOW + 50)

        source = self._source(asset)
        _service(tmp_path, incentive_source=source, asset=asset)
        assert source.last_minted_at == NOW + 50


class TestReporting:
    def test_status(self) -> None:
        service = _service()
        _fund(service, ALICE, parse_units("10"))
        service.enter(ALICE, parse_units("10"))
        status = service.status()
        assert status["total_shares"] == "10"
        assert status["share_value"] == "1"
        assert status["daily_cap"] == "0.5"
        assert status["remaining_penalty_budget"] == "0.5"
        assert status["events_logged"] == 1

    def test_check_invariants_clean(self) -> None:
        service = _service()
        _fund(service, ALICE, 10)
        service.enter(ALICE, 10)
        assert service.check_invariants() == []

    def test_check_invariants_reports_corruption(self) -> None:
        service = _service()
        _fund(service, ALICE, 10)
        service.enter(ALICE, 10)
        service.pool.state.total_shares += 1
        assert any("total_shares" in v for v in service.check_invariants())
