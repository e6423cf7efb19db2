#!/usr/bin/env python3
"""Validate the pool config and, if present, the persisted pool state.

Checks:
- risk parameters in config/staking_params.json sit inside the bounds
  governance enforces (daily penalty <= 300, rage received <= 1000,
  time to unbond <= 30 days),
- share token metadata is well formed,
- data/state.json (if it exists) satisfies the accounting invariants.

Usage:
    python3 tools/check_invariants.py
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT / "src"))

from stakepool.asset import InMemoryToken
from stakepool.config import CONFIG_FILENAME, PoolConfig
from stakepool.models.pool import PoolState
from stakepool.pool import StakingPool
from stakepool.persistence.state_store import StateStore

CONFIG_DIR = ROOT / "config"
STATE_PATH = ROOT / "data" / "state.json"


def check_config(errors: list[str]) -> PoolConfig | None:
    path = CONFIG_DIR / CONFIG_FILENAME
    with path.open("r", encoding="utf-8") as handle:
        raw = json.load(handle)
    try:
        return PoolConfig.from_dict(raw)
    except (KeyError, ValueError) as exc:
        errors.append(f"{path.name}: {exc}")
        return None


def check_state(config: PoolConfig, errors: list[str]) -> None:
    document = StateStore(STATE_PATH).load()
    if document is None:
        return
    pool = StakingPool(
        address=config.pool_address,
        asset=InMemoryToken(config.asset_address),
        state=PoolState.from_dict(document["pool"]),
    )
    errors.extend(f"state.json: {v}" for v in pool.check_invariants())


def check() -> int:
    errors: list[str] = []
    config = check_config(errors)
    if config is not None:
        check_state(config, errors)

    if errors:
        print("Pool invariant check FAILED:")
        for error in errors:
            print(f"  - {error}")
        return 1
    print("Pool invariant check passed.")
    return 0


if __name__ == "__main__":
    raise SystemExit(check())
