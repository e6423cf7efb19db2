"""Tests for deposits, incentives, share pricing and the share token surface."""

from __future__ import annotations

import pytest

from stakepool.accounting import payout_for_shares, require_amount, shares_for_deposit
from stakepool.errors import (
    InsufficientAllowanceOrBalance,
    InsufficientBalance,
    InsufficientShares,
    InvalidAmount,
    TransferFailure,
)
from stakepool.units import ONE, parse_units
from conftest import ALICE, BOB, CAROL, NOW, POOL


class TestConversionMath:
    def test_first_deposit_mints_one_to_one(self) -> None:
        assert shares_for_deposit(0, 0, 10) == 10

    def test_first_deposit_ignores_leftover_balance(self) -> None:
        assert shares_for_deposit(0, 5, 10) == 10

    def test_mint_truncates_in_pools_favour(self) -> None:
        assert shares_for_deposit(20, 21, 10) == 9

    def test_mint_rejected_when_balance_wiped(self) -> None:
        with pytest.raises(InsufficientBalance):
            shares_for_deposit(10, 0, 5)

    def test_payout_truncates(self) -> None:
        assert payout_for_shares(3, 10, 1) == 3

    def test_payout_with_no_shares_is_zero(self) -> None:
        assert payout_for_shares(0, 10, 0) == 0

    def test_require_amount_rejects_zero_by_default(self) -> None:
        with pytest.raises(InvalidAmount):
            require_amount(0)
        assert require_amount(0, allow_zero=True) == 0

    def test_require_amount_rejects_negative_bool_and_float(self) -> None:
        for bad in (-1, True, 1.5, "10"):
            with pytest.raises(InvalidAmount):
                require_amount(bad)

    def test_invalid_amount_is_a_value_error(self) -> None:
        with pytest.raises(ValueError):
            require_amount(-5)


class TestEnter:
    def test_mint_sequence(self, pool, stake) -> None:
        assert stake(ALICE, 10) == 10
        assert stake(BOB, 10) == 10
        pool.add_incentive(POOL, 1)
        assert (pool.total_shares, pool.total_balance) == (20, 21)

        assert stake(CAROL, 10) == 9
        assert pool.total_shares == 29
        assert pool.total_balance == 31
        assert pool.balance_of(CAROL) == 9

    def test_deposit_event(self, pool, fund) -> None:
        fund(ALICE, parse_units("5"))
        event = pool.enter(ALICE, parse_units("5"), now=NOW)
        assert event.payer == ALICE
        assert event.beneficiary == ALICE
        assert event.amount == parse_units("5")
        assert event.minted_shares == parse_units("5")

    def test_pulls_asset_into_pool(self, pool, asset, stake) -> None:
        stake(ALICE, parse_units("3"))
        assert asset.balance_of(ALICE) == 0
        assert asset.balance_of(POOL) == parse_units("3")

    def test_enter_to_credits_beneficiary(self, pool, asset, fund) -> None:
        fund(ALICE, 100)
        event = pool.enter_to(ALICE, BOB, 100, now=NOW)
        assert event.beneficiary == BOB
        assert pool.balance_of(BOB) == 100
        assert pool.balance_of(ALICE) == 0
        assert asset.balance_of(ALICE) == 0

    def test_lowercase_addresses_are_normalised(self, pool, fund) -> None:
        fund(ALICE, 10)
        pool.enter(ALICE.lower(), 10, now=NOW)
        assert pool.balance_of(ALICE) == 10

    def test_without_allowance_fails_and_changes_nothing(self, pool, asset) -> None:
        asset.mint(ALICE, 100)
        with pytest.raises(InsufficientAllowanceOrBalance):
            pool.enter(ALICE, 100, now=NOW)
        assert pool.total_shares == 0
        assert pool.total_balance == 0
        assert asset.balance_of(ALICE) == 100

    def test_without_funds_fails(self, pool, asset) -> None:
        asset.approve(ALICE, POOL, 100)
        with pytest.raises(TransferFailure):
            pool.enter(ALICE, 100, now=NOW)
        assert pool.balance_of(ALICE) == 0

    def test_zero_amount_rejected(self, pool, fund) -> None:
        fund(ALICE, 10)
        with pytest.raises(InvalidAmount):
            pool.enter(ALICE, 0, now=NOW)

    def test_bad_address_rejected(self, pool) -> None:
        with pytest.raises(ValueError):
            pool.enter("not-an-address", 10, now=NOW)

    def test_rejected_after_balance_wiped(self, pool, stake, fund) -> None:
        stake(ALICE, 100)
        pool.state.total_balance = 0
        fund(BOB, 10)
        with pytest.raises(InsufficientBalance):
            pool.enter(BOB, 10, now=NOW)


class TestIncentive:
    def test_raises_share_value(self, pool, stake) -> None:
        stake(ALICE, parse_units("10"))
        assert pool.share_value() == ONE
        event = pool.add_incentive(POOL, parse_units("5"))
        assert event.amount == parse_units("5")
        assert pool.total_shares == parse_units("10")
        assert pool.share_value() == ONE * 3 // 2

    def test_zero_incentive_accepted(self, pool) -> None:
        pool.add_incentive(POOL, 0)
        assert pool.total_balance == 0

    def test_negative_incentive_rejected(self, pool) -> None:
        with pytest.raises(InvalidAmount):
            pool.add_incentive(POOL, -1)


class TestShareValue:
    def test_empty_pool_is_par(self, pool) -> None:
        assert pool.share_value() == ONE

    def test_tracks_balance_per_share(self, pool, stake) -> None:
        stake(ALICE, 4)
        pool.add_incentive(POOL, 1)
        assert pool.share_value() == 5 * ONE // 4


class TestShareToken:
    def test_transfer_moves_shares(self, pool, stake) -> None:
        stake(ALICE, 10)
        event = pool.transfer_shares(ALICE, BOB, 4)
        assert (event.sender, event.recipient, event.shares) == (ALICE, BOB, 4)
        assert pool.balance_of(ALICE) == 6
        assert pool.balance_of(BOB) == 4
        assert pool.total_shares == 10

    def test_transfer_all_drops_empty_balance(self, pool, stake) -> None:
        stake(ALICE, 10)
        pool.transfer_shares(ALICE, BOB, 10)
        assert ALICE not in pool.state.share_balance

    def test_transfer_over_balance_rejected(self, pool, stake) -> None:
        stake(ALICE, 10)
        with pytest.raises(InsufficientShares):
            pool.transfer_shares(ALICE, BOB, 11)

    def test_locked_shares_not_transferable(self, pool, stake) -> None:
        stake(ALICE, 10)
        pool.leave(ALICE, 7, now=NOW)
        with pytest.raises(InsufficientShares):
            pool.transfer_shares(ALICE, BOB, 4)
        pool.transfer_shares(ALICE, BOB, 3)
        assert pool.unlocked_shares(ALICE) == 0
        assert pool.locked_shares(ALICE) == 7

    def test_approve_and_transfer_from(self, pool, stake) -> None:
        stake(ALICE, 10)
        pool.approve(ALICE, BOB, 6)
        assert pool.allowance(ALICE, BOB) == 6

        event = pool.transfer_shares_from(BOB, ALICE, CAROL, 4)
        assert event.sender == ALICE
        assert pool.balance_of(CAROL) == 4
        assert pool.allowance(ALICE, BOB) == 2

    def test_transfer_from_over_allowance_rejected(self, pool, stake) -> None:
        stake(ALICE, 10)
        pool.approve(ALICE, BOB, 3)
        with pytest.raises(InsufficientShares):
            pool.transfer_shares_from(BOB, ALICE, CAROL, 4)
        assert pool.allowance(ALICE, BOB) == 3
        assert pool.balance_of(ALICE) == 10

    def test_transfer_from_respects_lock(self, pool, stake) -> None:
        stake(ALICE, 10)
        pool.leave(ALICE, 8, now=NOW)
        pool.approve(ALICE, BOB, 10)
        with pytest.raises(InsufficientShares):
            pool.transfer_shares_from(BOB, ALICE, CAROL, 5)
        assert pool.allowance(ALICE, BOB) == 10

    def test_approve_zero_clears_allowance(self, pool) -> None:
        pool.approve(ALICE, BOB, 5)
        pool.approve(ALICE, BOB, 0)
        assert pool.allowance(ALICE, BOB) == 0
        assert pool.state.allowances == {}

    def test_metadata_defaults(self, pool) -> None:
        assert pool.name == "Staking Pool Share"
        assert pool.symbol == "POOL-SHARE"
        assert pool.decimals == 18
