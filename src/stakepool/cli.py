"""Staking pool CLI — drive a file-backed pool from the command line.

Usage:
    python -m stakepool.cli status
    python -m stakepool.cli mint-asset --to 0xA11CE... --amount 100
    python -m stakepool.cli approve-asset --owner 0xA11CE... --amount 100
    python -m stakepool.cli enter --from 0xA11CE... --amount 10
    python -m stakepool.cli leave --owner 0xA11CE... --shares 4
    python -m stakepool.cli withdraw --owner 0xA11CE... --shares 4 --unlocks-at 1760000000
    python -m stakepool.cli rage-leave --owner 0xA11CE... --shares 1
    python -m stakepool.cli claim --caller <guardian> --to 0xB0B... --amount 1
    python -m stakepool.cli penalize --caller <guardian> --amount 1
    python -m stakepool.cli add-incentive --amount 1
    python -m stakepool.cli set-param --caller <governance> --name rage_received_promilles --value 500
    python -m stakepool.cli check-invariants

Amounts and shares are whole-token decimals ("1.5"). The config and data
directories default to ``config/`` and ``data/`` at the project root and
can be overridden with STAKEPOOL_CONFIG_DIR / STAKEPOOL_DATA_DIR (read
from a ``.env`` file if present) or with --config / --data-dir.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from stakepool.asset import InMemoryToken
from stakepool.config import PoolConfig
from stakepool.persistence.event_log import EventLog
from stakepool.persistence.state_store import StateStore
from stakepool.service import ServiceResult, StakingService
from stakepool.units import parse_units


ROOT = Path(__file__).resolve().parents[2]
DEFAULT_CONFIG = ROOT / "config"
DEFAULT_DATA = ROOT / "data"

INTEGER_PARAMETERS = {
    "max_daily_penalty_promilles",
    "rage_received_promilles",
    "time_to_unbond",
}


def _make_service(args: argparse.Namespace) -> StakingService:
    """Create a StakingService with durable persistence."""
    data_dir: Path = args.data_dir
    data_dir.mkdir(parents=True, exist_ok=True)
    config = PoolConfig.from_config_dir(args.config)
    service_kwargs = {}
    if args.now is not None:
        service_kwargs["clock"] = lambda: args.now
    return StakingService(
        config,
        event_log=EventLog(storage_path=data_dir / "events.jsonl"),
        state_store=StateStore(storage_path=data_dir / "state.json"),
        **service_kwargs,
    )


def _report(result: ServiceResult) -> int:
    if result.success:
        print(json.dumps(result.data, indent=2, default=str))
        return 0
    print(f"Failed: {'; '.join(result.errors)}", file=sys.stderr)
    return 1


def _in_memory_asset(service: StakingService) -> InMemoryToken:
    asset = service.pool.asset
    if not isinstance(asset, InMemoryToken):
        raise SystemExit("This command needs the in-memory asset")
    return asset


def cmd_status(args: argparse.Namespace) -> int:
    service = _make_service(args)
    print(json.dumps(service.status(), indent=2))
    return 0


def cmd_mint_asset(args: argparse.Namespace) -> int:
    service = _make_service(args)
    asset = _in_memory_asset(service)
    asset.mint(args.to, parse_units(args.amount))
    service.save()
    print(f"Minted {args.amount} to {args.to}")
    return 0


def cmd_approve_asset(args: argparse.Namespace) -> int:
    service = _make_service(args)
    asset = _in_memory_asset(service)
    asset.approve(args.owner, service.pool.address, parse_units(args.amount))
    service.save()
    print(f"Approved the pool to pull {args.amount} from {args.owner}")
    return 0


def cmd_enter(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(
        service.enter(args.sender, parse_units(args.amount), beneficiary=args.to)
    )


def cmd_leave(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.leave(args.owner, parse_units(args.shares)))


def cmd_withdraw(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(
        service.withdraw(
            args.owner,
            parse_units(args.shares),
            args.unlocks_at,
            skip_transfer=args.skip_transfer,
        )
    )


def cmd_rage_leave(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(
        service.rage_leave(
            args.owner, parse_units(args.shares), skip_transfer=args.skip_transfer
        )
    )


def cmd_claim(args: argparse.Namespace) -> int:
    service = _make_service(args)
    token = args.token or service.pool.asset.address
    return _report(service.claim(args.caller, token, args.to, parse_units(args.amount)))


def cmd_penalize(args: argparse.Namespace) -> int:
    service = _make_service(args)
    return _report(service.penalize(args.caller, parse_units(args.amount)))


def cmd_add_incentive(args: argparse.Namespace) -> int:
    """Mint incentive units to the pool and credit them to its balance."""
    service = _make_service(args)
    asset = _in_memory_asset(service)
    amount = parse_units(args.amount)
    asset.mint(service.pool.address, amount)
    return _report(service.add_incentive(args.source or asset.address, amount))


def cmd_set_param(args: argparse.Namespace) -> int:
    service = _make_service(args)
    value = int(args.value) if args.name in INTEGER_PARAMETERS else args.value
    return _report(service.set_parameter(args.caller, args.name, value))


def cmd_check_invariants(args: argparse.Namespace) -> int:
    service = _make_service(args)
    violations = service.check_invariants()
    if violations:
        for violation in violations:
            print(f"VIOLATION: {violation}", file=sys.stderr)
        return 1
    print("All pool invariants hold.")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stakepool",
        description="Pooled-staking accounting engine CLI",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(os.getenv("STAKEPOOL_CONFIG_DIR", DEFAULT_CONFIG)),
        help="Path to config directory (default: config/)",
    )
    parser.add_argument(
        "--data-dir",
        type=Path,
        default=Path(os.getenv("STAKEPOOL_DATA_DIR", DEFAULT_DATA)),
        help="Path to data directory holding state.json and events.jsonl",
    )
    parser.add_argument(
        "--now", type=int, default=None,
        help="Unix timestamp to act at (default: wall clock)",
    )
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("status", help="Show pool status")

    p_mint = sub.add_parser("mint-asset", help="Mint in-memory asset to an address")
    p_mint.add_argument("--to", required=True, help="Recipient address")
    p_mint.add_argument("--amount", required=True, help="Amount (whole tokens)")

    p_appr = sub.add_parser("approve-asset", help="Approve the pool to pull asset")
    p_appr.add_argument("--owner", required=True, help="Asset owner address")
    p_appr.add_argument("--amount", required=True, help="Allowance (whole tokens)")

    p_enter = sub.add_parser("enter", help="Deposit and mint shares")
    p_enter.add_argument("--from", dest="sender", required=True, help="Depositor")
    p_enter.add_argument("--to", help="Beneficiary (default: depositor)")
    p_enter.add_argument("--amount", required=True, help="Amount (whole tokens)")

    p_leave = sub.add_parser("leave", help="Lock shares for unbonding")
    p_leave.add_argument("--owner", required=True, help="Share owner")
    p_leave.add_argument("--shares", required=True, help="Shares (whole units)")

    p_wd = sub.add_parser("withdraw", help="Withdraw a matured commitment")
    p_wd.add_argument("--owner", required=True, help="Share owner")
    p_wd.add_argument("--shares", required=True, help="Shares (whole units)")
    p_wd.add_argument("--unlocks-at", type=int, required=True, help="Unlock timestamp")
    p_wd.add_argument("--skip-transfer", action="store_true", help="Do not pay out")

    p_rage = sub.add_parser("rage-leave", help="Exit immediately at a discount")
    p_rage.add_argument("--owner", required=True, help="Share owner")
    p_rage.add_argument("--shares", required=True, help="Shares (whole units)")
    p_rage.add_argument("--skip-transfer", action="store_true", help="Do not pay out")

    p_claim = sub.add_parser("claim", help="Guardian claim from the pool")
    p_claim.add_argument("--caller", required=True, help="Guardian address")
    p_claim.add_argument("--to", required=True, help="Recipient")
    p_claim.add_argument("--amount", required=True, help="Amount (whole tokens)")
    p_claim.add_argument("--token", help="Token address (default: underlying)")

    p_pen = sub.add_parser("penalize", help="Guardian records a loss")
    p_pen.add_argument("--caller", required=True, help="Guardian address")
    p_pen.add_argument("--amount", required=True, help="Amount (whole tokens)")

    p_inc = sub.add_parser("add-incentive", help="Credit an incentive to the pool")
    p_inc.add_argument("--amount", required=True, help="Amount (whole tokens)")
    p_inc.add_argument("--source", help="Incentive source address (default: asset)")

    p_param = sub.add_parser("set-param", help="Governance parameter or role change")
    p_param.add_argument("--caller", required=True, help="Governance address")
    p_param.add_argument(
        "--name", required=True,
        choices=[
            "governance", "guardian", "validator",
            "max_daily_penalty_promilles", "rage_received_promilles", "time_to_unbond",
        ],
    )
    p_param.add_argument("--value", required=True, help="New value")

    sub.add_parser("check-invariants", help="Check pool accounting invariants")

    return parser


def main(argv: list[str] | None = None) -> int:
    load_dotenv(ROOT / ".env")
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    commands = {
        "status": cmd_status,
        "mint-asset": cmd_mint_asset,
        "approve-asset": cmd_approve_asset,
        "enter": cmd_enter,
        "leave": cmd_leave,
        "withdraw": cmd_withdraw,
        "rage-leave": cmd_rage_leave,
        "claim": cmd_claim,
        "penalize": cmd_penalize,
        "add-incentive": cmd_add_incentive,
        "set-param": cmd_set_param,
        "check-invariants": cmd_check_invariants,
    }

    handler = commands.get(args.command)
    if handler is None:
        print(f"Unknown command: {args.command}", file=sys.stderr)
        return 1

    return handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
