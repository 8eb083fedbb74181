"""
Configuration loader for rebasevault.

What it does:
- Reads static settings from `config/config.yaml`.
- Applies environment overrides using the `REBASEVAULT_` prefix, e.g.
  `REBASEVAULT_OWNER`, `REBASEVAULT_BASE_INTEREST_RATE`,
  `REBASEVAULT_PROMETHEUS_PORT`.
- Validates the resulting configuration using Pydantic models.

Where it is used:
- Called by `rebasevault.main` to wire the ledger, asset and vault.
"""

import os
import yaml
from typing import Dict, Optional
from pydantic import BaseModel, Field, field_validator

from ..ledger.ledger import DEFAULT_BASE_INTEREST_RATE

ENV_PREFIX = "REBASEVAULT"


class TokenConfig(BaseModel):
    """Ledger metadata and the initial global interest rate."""
    name: str = "Rebase Token"
    symbol: str = "RBT"
    decimals: int = 18
    base_interest_rate: int = DEFAULT_BASE_INTEREST_RATE

    @field_validator("base_interest_rate", "decimals")
    @classmethod
    def non_negative(cls, v, info):
        if v < 0:
            raise ValueError(f"{info.field_name} must be non-negative")
        return v


class DemoConfig(BaseModel):
    """Scenario run by the offline demo."""
    start_ts: int = 1_700_000_000
    depositors: Dict[str, int] = Field(default_factory=lambda: {"alice": 10**18})
    accrual_seconds: int = 3600
    transfer_to: Optional[str] = "bob"
    rate_cut: Optional[int] = None


class Settings(BaseModel):
    """Runtime settings assembled from YAML + environment variables."""
    token: TokenConfig = Field(default_factory=TokenConfig)
    owner: str = "owner"
    vault_address: str = "vault"
    asset_symbol: str = "ETH"
    prometheus_port: int = 8000
    data_dir: str = "data"
    demo: DemoConfig = Field(default_factory=DemoConfig)

    @field_validator("owner", "vault_address")
    @classmethod
    def not_empty(cls, v, info):
        if not v:
            raise ValueError(f"Missing required address: {info.field_name}")
        return v


def _env(name: str) -> Optional[str]:
    val = os.getenv(f"{ENV_PREFIX}_{name}")
    return val if val else None


def load_settings(path: str = "config/config.yaml") -> Settings:
    """Load YAML config (if present), apply env overrides, return Settings."""
    config = {}
    if os.path.exists(path):
        with open(path, "r") as f:
            config = yaml.safe_load(f) or {}
    if _env("OWNER"):
        config["owner"] = _env("OWNER")
    if _env("VAULT_ADDRESS"):
        config["vault_address"] = _env("VAULT_ADDRESS")
    if _env("PROMETHEUS_PORT"):
        config["prometheus_port"] = int(_env("PROMETHEUS_PORT"))
    if _env("DATA_DIR"):
        config["data_dir"] = _env("DATA_DIR")
    if _env("BASE_INTEREST_RATE"):
        config.setdefault("token", {})["base_interest_rate"] = int(_env("BASE_INTEREST_RATE"))
    return Settings(**config)
