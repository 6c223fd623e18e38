"""Configuration loader: reads ``.env`` and the process environment."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import find_dotenv, load_dotenv

from fa_sdk.coin import DEFAULT_MODULE
from fa_sdk.errors import ConfigError
from fa_sdk.types import AccountAddress

logger = logging.getLogger(__name__)

DEFAULT_NODE_URL = "https://fullnode.testnet.aptoslabs.com"
DEFAULT_FAUCET_URL = "https://faucet.testnet.aptoslabs.com"
DEFAULT_OWNER_ADDR = "d13c155015121b598283cf4290955a68bb659228b2aacacbcee2a851e48b4e49"


@dataclass(frozen=True)
class DemoConfig:
    node_url: str = DEFAULT_NODE_URL
    faucet_url: str = DEFAULT_FAUCET_URL
    owner_address: AccountAddress = AccountAddress.from_str(DEFAULT_OWNER_ADDR)
    owner_key_file: Path = Path("d13.key")
    coin_module: str = DEFAULT_MODULE
    fund_amount: int = 100_000_000
    confirmation_timeout: float = 30.0
    log_level: str = "INFO"


def _int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from exc
    if value < 0:
        raise ConfigError(f"{name} must not be negative")
    return value


def _float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if not raw:
        return default
    try:
        value = float(raw)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{name} must be positive")
    return value


def load_config(env: Mapping[str, str] | None = None) -> DemoConfig:
    """Build a :class:`DemoConfig` from the environment.

    Args:
        env: Variables to read instead of ``os.environ`` (``.env`` is only
            looked up from the working directory when reading the real
            environment).
    """
    if env is None:
        load_dotenv(find_dotenv(usecwd=True))
        env = os.environ

    owner_raw = env.get("OWNER_ADDR") or DEFAULT_OWNER_ADDR
    try:
        owner = AccountAddress.from_str(owner_raw)
    except ValueError as exc:
        raise ConfigError(f"OWNER_ADDR is not a valid address: {owner_raw!r}") from exc

    cfg = DemoConfig(
        node_url=env.get("APTOS_NODE_URL") or DEFAULT_NODE_URL,
        faucet_url=env.get("APTOS_FAUCET_URL") or DEFAULT_FAUCET_URL,
        owner_address=owner,
        owner_key_file=Path(env.get("OWNER_KEY_FILE") or "d13.key"),
        coin_module=env.get("COIN_MODULE") or DEFAULT_MODULE,
        fund_amount=_int(env, "FUND_AMOUNT", DemoConfig.fund_amount),
        confirmation_timeout=_float(env, "CONFIRMATION_TIMEOUT", DemoConfig.confirmation_timeout),
        log_level=env.get("LOG_LEVEL") or "INFO",
    )
    logger.debug("configuration: node=%s faucet=%s", cfg.node_url, cfg.faucet_url)
    return cfg
