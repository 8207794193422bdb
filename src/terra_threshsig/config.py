"""Wallet configuration."""

import os
from dataclasses import dataclass, field, replace
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Mapping

from .chains import TerraChainConfig, TerraNetworks
from .mpc import HD_COIN_INDEX
from .planner import DEFAULT_GAS_ADJUSTMENT, DEFAULT_GAS_PRICE
from .timeouts import DEFAULT_LEDGER_TIMEOUT, DEFAULT_SIGN_TIMEOUT
from .types import ErrorCode, ThreshSigError

ENV_PREFIX = "TERRA_THRESHSIG_"


@dataclass
class WalletConfig:
    """Configuration for creating a wallet context."""

    chain: TerraChainConfig = field(default_factory=lambda: _preset("SOJU"))
    db_path: Path = Path("client_db")
    coin_index: int = HD_COIN_INDEX
    gas_price: Decimal = DEFAULT_GAS_PRICE
    gas_adjustment: Decimal = DEFAULT_GAS_ADJUSTMENT
    ledger_timeout_secs: float = DEFAULT_LEDGER_TIMEOUT
    sign_timeout_secs: float = DEFAULT_SIGN_TIMEOUT
    password: str | None = None

    @classmethod
    def from_env(
        cls, environ: Mapping[str, str] | None = None, prefix: str = ENV_PREFIX
    ) -> "WalletConfig":
        """Build a config from ``TERRA_THRESHSIG_*`` variables.

        ``NETWORK`` picks a preset; ``LCD_URL`` (comma separated) and
        ``CHAIN_ID`` override it.
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(prefix + name)
            return value if value else None

        network = get("NETWORK") or "SOJU"
        if network not in TerraNetworks:
            raise ThreshSigError(
                ErrorCode.INVALID_CONFIG,
                f"Unknown network {network!r}; expected one of {sorted(TerraNetworks)}",
            )
        chain = _preset(network)
        if get("LCD_URL"):
            chain.lcd_urls = [url.strip().rstrip("/") for url in get("LCD_URL").split(",") if url.strip()]
        if get("CHAIN_ID"):
            chain.chain_id = get("CHAIN_ID")

        config = cls(chain=chain, password=get("PASSWORD"))
        if get("DB_PATH"):
            config.db_path = Path(get("DB_PATH"))
        if get("GAS_PRICE"):
            config.gas_price = _decimal(prefix + "GAS_PRICE", get("GAS_PRICE"))
        if get("GAS_ADJUSTMENT"):
            config.gas_adjustment = _decimal(prefix + "GAS_ADJUSTMENT", get("GAS_ADJUSTMENT"))
        if get("LEDGER_TIMEOUT"):
            config.ledger_timeout_secs = float(_decimal(prefix + "LEDGER_TIMEOUT", get("LEDGER_TIMEOUT")))
        if get("SIGN_TIMEOUT"):
            config.sign_timeout_secs = float(_decimal(prefix + "SIGN_TIMEOUT", get("SIGN_TIMEOUT")))

        config.validate()
        return config

    @property
    def ledger_call_timeout_secs(self) -> float:
        """Bound on one ledger call; every LCD endpoint gets its own attempt."""
        return self.ledger_timeout_secs * len(self.chain.lcd_urls)

    def validate(self) -> None:
        if not self.chain.lcd_urls:
            raise ThreshSigError(ErrorCode.INVALID_CONFIG, "At least one LCD URL is required")
        if self.gas_price < 0 or self.gas_adjustment <= 0:
            raise ThreshSigError(ErrorCode.INVALID_CONFIG, "Gas price and adjustment must be positive")
        if self.ledger_timeout_secs <= 0 or self.sign_timeout_secs <= 0:
            raise ThreshSigError(ErrorCode.INVALID_CONFIG, "Timeouts must be positive")


def _preset(name: str) -> TerraChainConfig:
    preset = TerraNetworks[name]
    return replace(preset, lcd_urls=list(preset.lcd_urls))


def _decimal(name: str, value: str) -> Decimal:
    try:
        return Decimal(value)
    except InvalidOperation as e:
        raise ThreshSigError(ErrorCode.INVALID_CONFIG, f"{name} is not a number: {value!r}", e) from e
