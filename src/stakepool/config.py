"""Pool configuration — loaded from ``config/staking_params.json``.

The file picks the deployment's initial values: share token metadata,
role holders, the underlying asset, and starting risk parameters. The
risk parameters must already sit inside the bounds governance enforces;
a config that governance itself could not have written is rejected.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

from stakepool.errors import BoundsViolation, InvalidAmount
from stakepool.governance import validate_risk_parameters
from stakepool.models.pool import RiskParameters, RoleSet, to_address
from stakepool.units import DECIMALS

CONFIG_FILENAME = "staking_params.json"


@dataclass(frozen=True)
class ShareTokenMetadata:
    name: str
    symbol: str
    decimals: int = DECIMALS


@dataclass(frozen=True)
class PoolConfig:
    pool_address: str
    asset_address: str
    roles: RoleSet
    risk_parameters: RiskParameters
    share_token: ShareTokenMetadata

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> PoolConfig:
        roles = params["roles"]
        risk = params["risk_parameters"]
        token = params.get("share_token", {})
        config = cls(
            pool_address=to_address(params["pool_address"]),
            asset_address=to_address(params["asset_address"]),
            roles=RoleSet(
                governance=to_address(roles["governance"]),
                guardian=to_address(roles["guardian"]),
                validator=to_address(roles["validator"]),
            ),
            risk_parameters=RiskParameters(
                time_to_unbond=risk["time_to_unbond_seconds"],
                max_daily_penalty_promilles=risk["max_daily_penalty_promilles"],
                rage_received_promilles=risk["rage_received_promilles"],
            ),
            share_token=ShareTokenMetadata(
                name=token.get("name", "Staking Pool Share"),
                symbol=token.get("symbol", "POOL-SHARE"),
                decimals=token.get("decimals", DECIMALS),
            ),
        )
        errors = config.validate()
        if errors:
            raise ValueError("Invalid pool config: " + "; ".join(errors))
        return config

    @classmethod
    def from_config_dir(cls, config_dir: Path) -> PoolConfig:
        """Load from ``<config_dir>/staking_params.json``."""
        path = config_dir / CONFIG_FILENAME
        with path.open("r", encoding="utf-8") as handle:
            return cls.from_dict(json.load(handle))

    def validate(self) -> list[str]:
        """Return config violations (empty = valid)."""
        errors: list[str] = []
        try:
            validate_risk_parameters(self.risk_parameters)
        except (BoundsViolation, InvalidAmount) as exc:
            errors.append(f"{exc.code}: {exc}")
        if self.pool_address == self.asset_address:
            errors.append("pool_address must differ from asset_address")
        if self.share_token.decimals != DECIMALS:
            errors.append(
                f"share_token.decimals must be {DECIMALS}, got {self.share_token.decimals}"
            )
        if not self.share_token.name or not self.share_token.symbol:
            errors.append("share_token name and symbol must be non-empty")
        return errors
