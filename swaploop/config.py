"""Configuration loader for SwapLoop.

Settings are layered, lowest to highest precedence:
  1. SwapConfig defaults
  2. config/swap.yaml
  3. Environment (.env is loaded by the CLI)
  4. Explicit overrides (CLI flags)

Everything is validated once at startup. Missing required values raise
ConfigurationError before any swap is attempted.
"""

from __future__ import annotations

import logging
import os
from decimal import ROUND_CEILING, ROUND_DOWN, Decimal
from enum import IntEnum
from pathlib import Path
from typing import Any, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

log = logging.getLogger("swaploop.config")

WORKSPACE = Path(__file__).resolve().parent.parent
CONFIG_DIR = WORKSPACE / "config"
SWAP_CONFIG_PATH = CONFIG_DIR / "swap.yaml"

APT_COIN_TYPE = "0x1::aptos_coin::AptosCoin"
KAPT_COIN_TYPE = "0x821c94e69bc7ca058c913b7b5e6b0a5c9fd1523d58723a966fb8c1f5ea888105"

# Environment variable -> SwapConfig field
ENV_FIELDS: dict[str, str] = {
    "PRIVATE_KEY": "private_key",
    "TAPP_POOL_ID": "pool_id",
    "SWAP_BATCH_SIZE": "batch_size",
    "TOKEN_IN_INDEX_APT": "token_index_a",
    "TOKEN_IN_INDEX_KAPT": "token_index_b",
    "APTOS_NODE_URL": "node_url",
    "TAPP_API_URL": "tapp_api_url",
}

REQUIRED_ENV = ("PRIVATE_KEY", "TAPP_POOL_ID")


class ConfigurationError(Exception):
    """A required setting is missing or invalid. Fatal at startup."""


class SwapConfig(BaseModel):
    """Validated settings for one swap-loop run."""

    model_config = ConfigDict(extra="forbid")

    # Credentials / venue
    private_key: str = Field(repr=False)
    pool_id: str

    # Loop policy
    batch_size: int = Field(default=50, ge=0)
    min_threshold: Decimal = Field(default=Decimal("2"), ge=0)
    reserve: Decimal = Field(default=Decimal("5"), ge=0)
    slippage: Decimal = Field(default=Decimal("0.005"), ge=0, lt=1)
    loop_interval_seconds: float = Field(default=5.0, ge=0)

    # Assets
    decimals: int = Field(default=8, ge=0, le=18)
    token_index_a: int = Field(default=0, ge=0)
    token_index_b: int = Field(default=1, ge=0)
    asset_a_type: str = APT_COIN_TYPE
    asset_b_type: str = KAPT_COIN_TYPE

    # Endpoints / transaction parameters
    node_url: str = "https://fullnode.mainnet.aptoslabs.com/v1"
    tapp_api_url: str = "https://api.tapp.exchange/api/v1"
    swap_function: str = (
        "0x487e905f899ccb6d46fdaec56ba1e0c4cf119862a16c409904b8c78fab1f5e8a::router::swap"
    )
    max_gas_amount: int = Field(default=20_000, gt=0)
    txn_ttl_seconds: int = Field(default=60, gt=0)
    confirmation_timeout_seconds: float = Field(default=60.0, gt=0)

    @model_validator(mode="after")
    def _distinct_token_indices(self) -> "SwapConfig":
        if self.token_index_a == self.token_index_b:
            raise ValueError("token_index_a and token_index_b must differ")
        return self

    def to_units(self, amount: Decimal, rounding: str = ROUND_DOWN) -> int:
        """Convert a decimal amount of asset A/B to its smallest unit."""
        return int((amount * (Decimal(10) ** self.decimals)).to_integral_value(rounding=rounding))

    def to_decimal(self, units: int) -> Decimal:
        return Decimal(units) / (Decimal(10) ** self.decimals)

    @property
    def reserve_units(self) -> int:
        """Reserve in smallest units, rounded up so A->B never dips below it."""
        return self.to_units(self.reserve, rounding=ROUND_CEILING)


def load_swap_yaml(path: Path | None = None) -> dict[str, Any]:
    """Load config/swap.yaml (or the given path). Missing file -> {}."""
    path = path or SWAP_CONFIG_PATH
    if not path.exists():
        return {}
    data = yaml.safe_load(path.read_text()) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def load_config(
    env: Mapping[str, str] | None = None,
    path: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> SwapConfig:
    """Build the SwapConfig for this run.

    Raises:
        ConfigurationError: required setting missing or any value invalid.
    """
    env = os.environ if env is None else env
    data = load_swap_yaml(path)

    for env_key, field_name in ENV_FIELDS.items():
        value = env.get(env_key, "")
        if value:
            data[field_name] = value

    for key, value in (overrides or {}).items():
        if value is not None:
            data[key] = value

    missing = [k for k in REQUIRED_ENV if not str(data.get(ENV_FIELDS[k]) or "").strip()]
    if missing:
        raise ConfigurationError(f"Missing required settings: {', '.join(missing)}")

    try:
        return SwapConfig(**data)
    except ValidationError as e:
        # Never echo the private key back in the error text
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {problems}") from None


# ── Notifications ────────────────────────────────────────────────────


class NotificationService(IntEnum):
    DISABLED = 0
    DISCORD = 1
    TELEGRAM = 2
    LINE = 3


class NotificationConfig(BaseModel):
    """Notifier settings. Loaded independently of SwapConfig so that
    configuration errors can still be reported."""

    service: int = 0
    discord_webhook_url: str = ""
    telegram_bot_token: str = Field(default="", repr=False)
    telegram_chat_id: str = ""
    line_notify_token: str = Field(default="", repr=False)


def load_notification_config(env: Mapping[str, str] | None = None) -> NotificationConfig:
    env = os.environ if env is None else env
    raw_service = env.get("NOTIFICATION_SERVICE", "0") or "0"
    try:
        service = int(raw_service)
    except ValueError:
        log.warning("NOTIFICATION_SERVICE=%r is not an integer; notifications disabled", raw_service)
        service = NotificationService.DISABLED

    return NotificationConfig(
        service=service,
        discord_webhook_url=env.get("DISCORD_WEBHOOK_URL", ""),
        telegram_bot_token=env.get("TELEGRAM_BOT_TOKEN", ""),
        telegram_chat_id=env.get("TELEGRAM_CHAT_ID", ""),
        line_notify_token=env.get("LINE_NOTIFY_TOKEN", ""),
    )
