#!/usr/bin/env python3
"""Simulate many stakers against one pool and verify the invariants hold.

Each round a random staker deposits, requests an exit, withdraws a
matured commitment, or rage-exits; incentives accrue every round and the
guardian penalises occasionally. Invariants are checked after every
step and the run aborts on the first violation.

Usage:
    python3 tools/simulate_pool.py
    python3 tools/simulate_pool.py 500      # number of rounds

Optional settings in a .env file at the project root:
    SIMULATION_STAKERS   number of random accounts (default 20)
    SIMULATION_SEED      RNG seed (default 1)
"""

from __future__ import annotations

import os
import random
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from dotenv import load_dotenv
from eth_account import Account

from stakepool.asset import InMemoryToken, RateIncentiveSource
from stakepool.config import PoolConfig
from stakepool.service import StakingService
from stakepool.units import DAY_SECONDS, format_units, parse_units

load_dotenv(ROOT / ".env")

STAKERS = int(os.getenv("SIMULATION_STAKERS", "20"))
SEED = int(os.getenv("SIMULATION_SEED", "1"))
ROUNDS = int(sys.argv[1]) if len(sys.argv) > 1 else 200
START = 1_700_000_000


def random_addresses(rng: random.Random, size: int) -> list[str]:
    return [Account.from_key(rng.randbytes(32)).address for _ in range(size)]


def main() -> int:
    rng = random.Random(SEED)
    config = PoolConfig.from_config_dir(ROOT / "config")
    asset = InMemoryToken(config.asset_address)
    now = START
    source = RateIncentiveSource(
        address=config.asset_address,
        asset=asset,
        rate_per_second=parse_units("0.001"),
        last_minted_at=now,
    )
    service = StakingService(config, asset=asset, incentive_source=source)
    pool = service.pool

    stakers = random_addresses(rng, STAKERS)
    for staker in stakers:
        asset.mint(staker, parse_units("10000"))
        asset.approve(staker, pool.address, parse_units("10000"))

    pending: list[tuple[str, int, int]] = []
    counts = {"enter": 0, "leave": 0, "withdraw": 0, "rage_leave": 0, "penalize": 0, "rejected": 0}

    for round_num in range(1, ROUNDS + 1):
        now += rng.randint(60, DAY_SECONDS // 2)
        staker = rng.choice(stakers)
        action = rng.choice(["enter", "enter", "leave", "withdraw", "rage_leave"])

        if action == "enter":
            result = service.enter(staker, parse_units(str(rng.randint(1, 200))), now=now)
        elif action == "leave":
            unlocked = pool.unlocked_shares(staker)
            if unlocked == 0:
                continue
            result = service.leave(staker, rng.randint(1, unlocked), now=now)
            if result.success:
                pending.append((staker, int(result.data["shares"]), int(result.data["unlocks_at"])))
        elif action == "withdraw":
            matured = [p for p in pending if p[2] <= now]
            if not matured:
                continue
            owner, shares, unlocks_at = rng.choice(matured)
            result = service.withdraw(owner, shares, unlocks_at, now=now)
            if result.success:
                pending.remove((owner, shares, unlocks_at))
        else:
            unlocked = pool.unlocked_shares(staker)
            if unlocked == 0:
                continue
            result = service.rage_leave(staker, rng.randint(1, unlocked), now=now)

        counts[action if result.success else "rejected"] += 1

        if round_num % 25 == 0 and pool.total_balance:
            penalty = service.penalize(
                pool.roles.guardian, max(1, pool.remaining_penalty_budget(now) // 2), now=now
            )
            counts["penalize" if penalty.success else "rejected"] += 1

        violations = pool.check_invariants()
        if violations:
            print(f"Round {round_num}: invariant violated after {action}")
            for violation in violations:
                print(f"  - {violation}")
            return 1

    print("=" * 60)
    print(f"  Rounds:        {ROUNDS}")
    print(f"  Stakers:       {STAKERS}")
    for name, count in counts.items():
        print(f"  {name + ':':<15}{count}")
    print(f"  Total shares:  {format_units(pool.total_shares)}")
    print(f"  Total balance: {format_units(pool.total_balance)}")
    print(f"  Share value:   {format_units(pool.share_value())}")
    print(f"  Open commitments: {len(pool.state.commitments)}")
    print("=" * 60)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
